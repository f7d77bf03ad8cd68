from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tutorquiz.core.auth import TokenData, require_roles
from tutorquiz.core.database import get_db
from tutorquiz.schemas import TutorStats
from tutorquiz.services import scoring

router = APIRouter()


@router.get("/tutor", response_model=TutorStats)
def tutor_stats(user: TokenData = Depends(require_roles("tutor")), db: Session = Depends(get_db)):
    return scoring.get_tutor_stats(db, user.sub)
