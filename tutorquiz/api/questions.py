from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from tutorquiz.core.auth import TokenData, get_current_user
from tutorquiz.core.database import get_db
from tutorquiz.schemas import (
    AIQuestionIn, QuestionCreate, QuestionFilters, QuestionOrder, QuestionOut, QuestionStats, QuestionUpdate,
)
from tutorquiz.services import question_service

router = APIRouter()


class QuestionPage(BaseModel):
    questions: List[QuestionOut]
    total: int


def _as_seen_by(question, viewer_id: str) -> QuestionOut:
    out = QuestionOut.model_validate(question)
    return out if question.quiz.created_by == viewer_id else out.without_key()


# ---- nested under a quiz ----

@router.post("/quizzes/{quiz_id}/questions", response_model=QuestionOut, status_code=201)
def create_question(quiz_id: str, payload: QuestionCreate, user: TokenData = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    return question_service.create_question(db, user.sub, quiz_id, payload)


@router.get("/quizzes/{quiz_id}/questions", response_model=List[QuestionOut])
def quiz_questions(quiz_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    questions = question_service.get_questions_by_quiz(db, quiz_id, user.sub)
    return [_as_seen_by(q, user.sub) for q in questions]


@router.post("/quizzes/{quiz_id}/questions/bulk", response_model=List[QuestionOut], status_code=201)
def bulk_create(quiz_id: str, payload: List[QuestionCreate], user: TokenData = Depends(get_current_user),
                db: Session = Depends(get_db)):
    return question_service.bulk_create_questions(db, user.sub, quiz_id, payload)


@router.post("/quizzes/{quiz_id}/questions/ai-import", response_model=List[QuestionOut], status_code=201)
def ai_import(quiz_id: str, payload: List[AIQuestionIn], user: TokenData = Depends(get_current_user),
              db: Session = Depends(get_db)):
    return question_service.import_ai_questions(db, user.sub, quiz_id, payload)


@router.put("/quizzes/{quiz_id}/questions/order", response_model=List[QuestionOut])
def reorder(quiz_id: str, payload: List[QuestionOrder], user: TokenData = Depends(get_current_user),
            db: Session = Depends(get_db)):
    return question_service.reorder_questions(db, user.sub, quiz_id, payload)


@router.get("/quizzes/{quiz_id}/questions/stats", response_model=QuestionStats)
def question_stats(quiz_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return question_service.get_question_stats(db, quiz_id, user.sub)


# ---- single questions ----

@router.get("/questions", response_model=QuestionPage)
def search_questions(
    quiz_id: Optional[str] = None,
    question_type: Optional[Literal["multiple_choice", "true_false"]] = None,
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None,
    tags: Optional[List[str]] = Query(default=None),
    is_active: Optional[bool] = None,
    limit: int = Query(default=50, ge=1, le=100),
    skip: int = Query(default=0, ge=0),
    user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = QuestionFilters(quiz_id=quiz_id, question_type=question_type, difficulty=difficulty, tags=tags,
                              is_active=is_active, limit=limit, skip=skip)
    items, total = question_service.list_questions(db, filters, user.sub)
    return QuestionPage(questions=[_as_seen_by(q, user.sub) for q in items], total=total)


@router.get("/questions/{question_id}", response_model=QuestionOut)
def get_question(question_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return _as_seen_by(question_service.get_question_by_id(db, question_id, user.sub), user.sub)


@router.patch("/questions/{question_id}", response_model=QuestionOut)
def update_question(question_id: str, payload: QuestionUpdate, user: TokenData = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    return question_service.update_question(db, question_id, user.sub, payload)


@router.delete("/questions/{question_id}", status_code=204)
def delete_question(question_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    question_service.delete_question(db, question_id, user.sub)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
