"""Ownership and visibility rules shared by the quiz, question and attempt services."""
import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from tutorquiz.core.errors import Forbidden, NotFound
from tutorquiz.models import Question, Quiz

logger = logging.getLogger(__name__)


def visibility_clause(requester_id: Optional[str]):
    """Public quizzes for everyone, plus the requester's own."""
    if requester_id:
        return or_(Quiz.is_public.is_(True), Quiz.created_by == requester_id)
    return Quiz.is_public.is_(True)


def find_visible_quiz(db: Session, quiz_id: str, requester_id: Optional[str] = None) -> Optional[Quiz]:
    return db.scalar(
        select(Quiz).where(Quiz.id == quiz_id, Quiz.is_active.is_(True), visibility_clause(requester_id))
    )


def require_visible_quiz(db: Session, quiz_id: str, requester_id: Optional[str] = None) -> Quiz:
    quiz = find_visible_quiz(db, quiz_id, requester_id)
    if quiz is None:
        raise NotFound("Quiz not found or access denied")
    return quiz


def require_owned_quiz(db: Session, quiz_id: str, owner_id: str) -> Quiz:
    quiz = db.scalar(select(Quiz).where(Quiz.id == quiz_id, Quiz.is_active.is_(True)))
    if quiz is None:
        raise NotFound("Quiz not found")
    if quiz.created_by != owner_id:
        logger.warning(f"User {owner_id} denied write access to quiz {quiz_id}")
        raise Forbidden("Only the quiz creator can do this")
    return quiz


def count_active_questions(db: Session, quiz_id: str) -> int:
    return db.scalar(
        select(func.count(Question.id)).where(Question.quiz_id == quiz_id, Question.is_active.is_(True))
    ) or 0


def active_questions(db: Session, quiz_id: str):
    return db.scalars(
        select(Question)
        .where(Question.quiz_id == quiz_id, Question.is_active.is_(True))
        .order_by(Question.order, Question.created_at)
    ).all()
