from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from tutorquiz.core.auth import TokenData, get_current_user, require_roles
from tutorquiz.core.config import settings
from tutorquiz.core.database import get_db
from tutorquiz.schemas import (
    AttemptOut, AttemptStats, AvailableQuiz, DuplicateIn, QuizCreate, QuizFilters, QuizOut, QuizPage, QuizStats,
    QuizUpdate,
)
from tutorquiz.services import attempt_service, quiz_service, scoring

router = APIRouter()


@router.post("", response_model=QuizOut, status_code=201)
def create_quiz(payload: QuizCreate, user: TokenData = Depends(require_roles("tutor", "student")),
                db: Session = Depends(get_db)):
    role = "tutor" if "tutor" in user.roles else "student"
    return quiz_service.create_quiz(db, user.sub, payload, role=role)


@router.get("", response_model=QuizPage)
def list_quizzes(
    tutor_id: Optional[str] = None,
    subject: Optional[str] = None,
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None,
    grade_level_id: Optional[str] = None,
    is_public: Optional[bool] = None,
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    skip: int = Query(default=0, ge=0),
    user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = QuizFilters(
        tutor_id=tutor_id, subject=subject, difficulty=difficulty, grade_level_id=grade_level_id,
        is_public=is_public, user_id=user.sub, limit=limit, skip=skip,
    )
    quizzes, total = quiz_service.list_quizzes(db, filters)
    return QuizPage(quizzes=[QuizOut.model_validate(q) for q in quizzes], total=total)


@router.get("/available", response_model=List[AvailableQuiz])
def available_quizzes(subject: Optional[str] = None, user: TokenData = Depends(require_roles("student")),
                      db: Session = Depends(get_db)):
    return quiz_service.get_available_quizzes_for_student(db, user.sub, subject)


@router.get("/{quiz_id}", response_model=QuizOut)
def get_quiz(quiz_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return quiz_service.require_quiz(db, quiz_id, user.sub)


@router.patch("/{quiz_id}", response_model=QuizOut)
def update_quiz(quiz_id: str, payload: QuizUpdate, user: TokenData = Depends(get_current_user),
                db: Session = Depends(get_db)):
    return quiz_service.update_quiz(db, quiz_id, user.sub, payload)


@router.delete("/{quiz_id}", status_code=204)
def delete_quiz(quiz_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    quiz_service.delete_quiz(db, quiz_id, user.sub)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{quiz_id}/duplicate", response_model=QuizOut, status_code=201)
def duplicate_quiz(quiz_id: str, payload: Optional[DuplicateIn] = None,
                   user: TokenData = Depends(require_roles("tutor", "student")), db: Session = Depends(get_db)):
    return quiz_service.duplicate_quiz(db, quiz_id, user.sub, payload.title if payload else None)


@router.post("/{quiz_id}/publish", response_model=QuizOut)
def toggle_publish(quiz_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return quiz_service.toggle_publish_status(db, quiz_id, user.sub)


@router.get("/{quiz_id}/stats", response_model=QuizStats)
def quiz_stats(quiz_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return quiz_service.get_quiz_stats(db, quiz_id, user.sub)


@router.get("/{quiz_id}/attempts", response_model=List[AttemptOut])
def quiz_attempts(quiz_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return attempt_service.get_quiz_attempts(db, quiz_id, user.sub)


@router.get("/{quiz_id}/attempts/stats", response_model=AttemptStats)
def quiz_attempt_stats(quiz_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return scoring.get_quiz_attempt_stats(db, quiz_id, user.sub)
