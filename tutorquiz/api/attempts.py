from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from tutorquiz.core.auth import TokenData, get_current_user, require_roles
from tutorquiz.core.database import get_db
from tutorquiz.schemas import AttemptOut, AttemptStart, AttemptSubmit, FeedbackIn, StudentAnswerOut, SubmissionResult
from tutorquiz.services import attempt_service

router = APIRouter()


@router.post("", response_model=AttemptOut)
def start_attempt(payload: AttemptStart, user: TokenData = Depends(require_roles("student")),
                  db: Session = Depends(get_db)):
    return attempt_service.start_attempt(db, payload.quiz_id, user.sub)


@router.post("/submit", response_model=SubmissionResult)
def submit_attempt(payload: AttemptSubmit, user: TokenData = Depends(require_roles("student")),
                   db: Session = Depends(get_db)):
    return attempt_service.submit_attempt(db, payload.attempt_id, user.sub, payload.answers)


@router.get("/mine", response_model=List[AttemptOut])
def my_attempts(limit: Optional[int] = Query(default=None, ge=1, le=100),
                user: TokenData = Depends(require_roles("student")), db: Session = Depends(get_db)):
    return attempt_service.get_student_attempts(db, user.sub, limit)


@router.get("/recent", response_model=List[AttemptOut])
def recent_attempts(limit: Optional[int] = Query(default=None, ge=1, le=100),
                    user: TokenData = Depends(require_roles("student")), db: Session = Depends(get_db)):
    return attempt_service.get_recent_attempts(db, user.sub, limit)


@router.get("/{attempt_id}", response_model=AttemptOut)
def get_attempt(attempt_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return attempt_service.get_attempt_by_id(db, attempt_id, user.sub)


@router.get("/{attempt_id}/answers", response_model=List[StudentAnswerOut])
def attempt_answers(attempt_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return attempt_service.get_attempt_answers(db, attempt_id, user.sub)


@router.post("/{attempt_id}/abandon", response_model=AttemptOut)
def abandon_attempt(attempt_id: str, user: TokenData = Depends(require_roles("student")),
                    db: Session = Depends(get_db)):
    return attempt_service.abandon_attempt(db, attempt_id, user.sub)


@router.delete("/{attempt_id}", status_code=204)
def delete_attempt(attempt_id: str, user: TokenData = Depends(require_roles("student")),
                   db: Session = Depends(get_db)):
    attempt_service.delete_attempt(db, attempt_id, user.sub)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{attempt_id}/feedback", response_model=AttemptOut)
def tutor_feedback(attempt_id: str, payload: FeedbackIn, user: TokenData = Depends(require_roles("tutor")),
                   db: Session = Depends(get_db)):
    return attempt_service.save_tutor_feedback(db, attempt_id, user.sub, payload.feedback)
