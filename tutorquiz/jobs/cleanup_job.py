import logging
from typing import Optional

from rq import get_current_job

from tutorquiz.core.database import SessionLocal
from tutorquiz.services.attempt_service import abandon_stale_attempts

logger = logging.getLogger(__name__)


def _set_meta(job, **values):
    if job is None:
        return
    job.meta.update(values)
    job.save_meta()


def abandon_stale_attempts_job(ttl_hours: Optional[int] = None) -> dict:
    """Abandon stale in-progress attempts; safe to run outside a worker."""
    job = get_current_job()
    _set_meta(job, state="running")
    db = SessionLocal()
    try:
        count = abandon_stale_attempts(db, ttl_hours=ttl_hours)
    except Exception:
        db.rollback()
        _set_meta(job, state="failed")
        logger.exception("Stale attempt cleanup failed")
        raise
    finally:
        db.close()
    _set_meta(job, state="done", abandoned=count)
    logger.info(f"Stale attempt cleanup abandoned {count} attempts")
    return {"abandoned": count}
