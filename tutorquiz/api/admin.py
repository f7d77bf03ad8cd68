from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from rq.exceptions import NoSuchJobError
from rq.job import Job

from tutorquiz.core.auth import require_roles
from tutorquiz.jobs.cleanup_job import abandon_stale_attempts_job
from tutorquiz.jobs.queue import queue, redis

router = APIRouter()


class StartCleanup(BaseModel):
    ttl_hours: Optional[int] = Field(default=None, ge=1)


class CleanupStatus(BaseModel):
    state: str
    abandoned: Optional[int] = None
    result: Optional[dict] = None


@router.post("/attempts/cleanup", dependencies=[Depends(require_roles("admin"))])
def start_cleanup(payload: StartCleanup):
    job = queue.enqueue(abandon_stale_attempts_job, payload.ttl_hours, job_timeout=600)
    return {"job_id": job.get_id()}


@router.get("/attempts/cleanup/status", response_model=CleanupStatus, dependencies=[Depends(require_roles("admin"))])
def cleanup_status(job_id: str):
    try:
        job = Job.fetch(job_id, connection=redis)
    except NoSuchJobError:
        raise HTTPException(404, "Cleanup job not found")
    meta = job.meta or {}
    state = meta.get("state") or job.get_status().value
    return CleanupStatus(
        state=state,
        abandoned=meta.get("abandoned"),
        result=job.return_value() if state == "done" else None,
    )
