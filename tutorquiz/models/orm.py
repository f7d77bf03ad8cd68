import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Index, Integer, JSON, String, Text, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutorquiz.core.database import Base
from tutorquiz.core.errors import ValidationError


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"


class QuizQuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    MIXED = "mixed"


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class AttemptStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


def check_answer_set(question_type: str, answers) -> None:
    """Raise ValidationError unless the answers fit the question type.

    multiple_choice needs at least two answers with at least one correct;
    true_false needs exactly two answers with exactly one correct.
    """
    correct = [a for a in answers if a.is_correct]
    if question_type == QuestionType.MULTIPLE_CHOICE:
        if len(answers) < 2:
            raise ValidationError("Multiple choice questions must have at least 2 answers")
        if not correct:
            raise ValidationError("Multiple choice questions must have at least one correct answer")
    elif question_type == QuestionType.TRUE_FALSE:
        if len(answers) != 2:
            raise ValidationError("True/false questions must have exactly 2 answers")
        if len(correct) != 1:
            raise ValidationError("True/false questions must have exactly one correct answer")
    else:
        raise ValidationError(f"Unsupported question type: {question_type}")


@dataclass
class AnswerCheck:
    """Outcome of grading one question against a set of selected answer ids."""
    is_correct: bool
    correct_answer_ids: List[str] = field(default_factory=list)
    score: int = 0


# ========== Content Models ==========

class Quiz(Base):
    __tablename__ = "quizzes"
    __table_args__ = (
        Index("idx_quizzes_subject_public", "subject", "is_public"),
        Index("idx_quizzes_creator_active", "created_by", "is_active"),
        Index("idx_quizzes_difficulty", "difficulty"),
        Index("idx_quizzes_created", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500))
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    grade_level_id: Mapped[Optional[str]] = mapped_column(String(64))
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default=Difficulty.MEDIUM.value)
    question_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=QuizQuestionType.MULTIPLE_CHOICE.value
    )
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    time_limit: Mapped[Optional[int]] = mapped_column(Integer)  # minutes
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list)
    passing_score: Mapped[int] = mapped_column(Integer, default=70, nullable=False)
    instructions: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Soft delete only, so no delete cascade here
    questions: Mapped[List["Question"]] = relationship(back_populates="quiz", order_by="Question.order")

    def __repr__(self) -> str:
        return f"<Quiz(id={self.id}, title={self.title!r})>"


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        Index("idx_questions_quiz_order", "quiz_id", "order"),
        Index("idx_questions_type", "question_type"),
        Index("idx_questions_difficulty", "difficulty"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    quiz_id: Mapped[str] = mapped_column(String(36), ForeignKey("quizzes.id"), nullable=False)
    question_text: Mapped[str] = mapped_column(String(1000), nullable=False)
    question_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=QuestionType.MULTIPLE_CHOICE.value
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    explanation: Mapped[Optional[str]] = mapped_column(String(500))
    hint: Mapped[Optional[str]] = mapped_column(String(200))
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default=Difficulty.MEDIUM.value)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    quiz: Mapped["Quiz"] = relationship(back_populates="questions")
    answers: Mapped[List["Answer"]] = relationship(
        back_populates="question", cascade="all, delete-orphan", order_by="Answer.order", lazy="selectin"
    )

    def check_invariants(self) -> None:
        check_answer_set(self.question_type, self.answers)

    def correct_answer_ids(self) -> List[str]:
        return [a.id for a in self.answers if a.is_correct and a.id]

    def check_answer(self, answer_ids: Iterable[str]) -> AnswerCheck:
        # exact set equality: neither a subset nor a superset of the correct ids passes
        correct = set(self.correct_answer_ids())
        is_correct = bool(correct) and set(answer_ids) == correct
        return AnswerCheck(
            is_correct=is_correct,
            correct_answer_ids=sorted(correct),
            score=self.points if is_correct else 0,
        )

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, quiz_id={self.quiz_id}, order={self.order})>"


class Answer(Base):
    __tablename__ = "question_answers"
    __table_args__ = (
        Index("idx_answers_question", "question_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    question_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    answer_text: Mapped[str] = mapped_column(String(500), nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    explanation: Mapped[Optional[str]] = mapped_column(String(300))
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    question: Mapped["Question"] = relationship(back_populates="answers")


# ========== Delivery Models ==========

class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        Index("idx_attempts_quiz_student", "quiz_id", "student_id"),
        Index("idx_attempts_student_created", "student_id", "created_at"),
        Index("idx_attempts_status", "status"),
        # at most one in-progress attempt per (student, quiz)
        Index(
            "uq_attempts_in_progress", "student_id", "quiz_id", unique=True,
            postgresql_where=text("status = 'in_progress'"),
            sqlite_where=text("status = 'in_progress'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    quiz_id: Mapped[str] = mapped_column(String(36), ForeignKey("quizzes.id"), nullable=False)
    student_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=AttemptStatus.IN_PROGRESS.value
    )
    score: Mapped[Optional[int]] = mapped_column(Integer)
    max_score: Mapped[Optional[int]] = mapped_column(Integer)
    correct_answers: Mapped[Optional[int]] = mapped_column(Integer)
    total_questions: Mapped[Optional[int]] = mapped_column(Integer)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    tutor_feedback: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    quiz: Mapped["Quiz"] = relationship()
    answers: Mapped[List["StudentAnswer"]] = relationship(
        back_populates="attempt", cascade="all, delete-orphan", order_by="StudentAnswer.created_at"
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once the quiz time limit has run out on an in-progress attempt."""
        if self.status != AttemptStatus.IN_PROGRESS or self.quiz is None or not self.quiz.time_limit:
            return False
        elapsed = (now or utcnow()) - self.started_at
        return elapsed.total_seconds() > self.quiz.time_limit * 60

    def __repr__(self) -> str:
        return f"<QuizAttempt(id={self.id}, status={self.status}, score={self.score})>"


class StudentAnswer(Base):
    __tablename__ = "student_answers"
    __table_args__ = (
        Index("idx_student_answers_attempt", "attempt_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    attempt_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quiz_attempts.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[str] = mapped_column(String(36), ForeignKey("questions.id"), nullable=False)
    selected_answer_ids: Mapped[List[str]] = mapped_column(JSON, default=list)
    answer_text: Mapped[Optional[str]] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    attempt: Mapped["QuizAttempt"] = relationship(back_populates="answers")
    question: Mapped["Question"] = relationship()
