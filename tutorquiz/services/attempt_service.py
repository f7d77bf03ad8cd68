"""
Attempt lifecycle: in_progress -> completed | abandoned.

Both terminal states are final. Score fields are written once, by the
transition to completed.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tutorquiz.core.config import settings
from tutorquiz.core.errors import Forbidden, InvalidState, NotFound, ValidationError
from tutorquiz.models import AttemptStatus, Quiz, QuizAttempt, StudentAnswer, new_id, utcnow
from tutorquiz.schemas import SubmissionResult, SubmittedAnswer
from tutorquiz.services import access, scoring

logger = logging.getLogger(__name__)


def _in_progress(db: Session, quiz_id: str, student_id: str) -> Optional[QuizAttempt]:
    return db.scalar(
        select(QuizAttempt).where(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.student_id == student_id,
            QuizAttempt.status == AttemptStatus.IN_PROGRESS.value,
        )
    )


def _owned_attempt(db: Session, attempt_id: str, student_id: str) -> QuizAttempt:
    attempt = db.scalar(
        select(QuizAttempt).where(QuizAttempt.id == attempt_id, QuizAttempt.student_id == student_id)
    )
    if attempt is None:
        raise NotFound("Attempt not found or access denied")
    return attempt


def _abandon(attempt: QuizAttempt, reason: str) -> None:
    attempt.status = AttemptStatus.ABANDONED.value
    logger.info(f"Attempt {attempt.id} abandoned: {reason}")


def start_attempt(db: Session, quiz_id: str, student_id: str) -> QuizAttempt:
    """Find-or-create the student's in-progress attempt on a quiz."""
    quiz = access.require_visible_quiz(db, quiz_id, student_id)
    if access.count_active_questions(db, quiz.id) == 0:
        raise ValidationError("Quiz has no questions yet")

    existing = _in_progress(db, quiz.id, student_id)
    if existing is not None:
        if not existing.is_expired():
            return existing
        _abandon(existing, "time limit elapsed before restart")
        db.commit()

    attempt = QuizAttempt(
        id=new_id(),
        quiz_id=quiz.id,
        student_id=student_id,
        status=AttemptStatus.IN_PROGRESS.value,
        started_at=utcnow(),
    )
    db.add(attempt)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent start won the unique in-progress slot; hand back its attempt
        db.rollback()
        winner = _in_progress(db, quiz.id, student_id)
        if winner is None:
            raise
        return winner
    db.refresh(attempt)
    logger.info(f"Attempt {attempt.id} started on quiz {quiz.id} by {student_id}")
    return attempt


def submit_attempt(db: Session, attempt_id: str, student_id: str,
                   answers: Sequence[SubmittedAnswer]) -> SubmissionResult:
    attempt = _owned_attempt(db, attempt_id, student_id)
    if attempt.status != AttemptStatus.IN_PROGRESS:
        logger.warning(f"Rejected submit on attempt {attempt_id} in state {attempt.status}")
        raise InvalidState(f"Attempt is already {attempt.status}")
    if attempt.is_expired():
        _abandon(attempt, "submitted after the time limit")
        db.commit()
        raise InvalidState("Quiz attempt has expired")

    quiz = attempt.quiz
    if not quiz.is_active:
        # grading needs the live question set; a deleted quiz has none
        _abandon(attempt, "quiz was deleted")
        db.commit()
        raise NotFound("Quiz not found")
    grade = scoring.grade_submission(access.active_questions(db, quiz.id), answers)
    for item in grade.items:
        db.add(StudentAnswer(
            id=new_id(),
            attempt_id=attempt.id,
            question_id=item.question_id,
            selected_answer_ids=item.selected_answer_ids,
            answer_text=item.answer_text,
            is_correct=item.is_correct,
            points_earned=item.points_earned,
        ))

    # compare-and-set on status so a second concurrent submit cannot re-score
    now = utcnow()
    result = db.execute(
        update(QuizAttempt)
        .where(QuizAttempt.id == attempt.id, QuizAttempt.status == AttemptStatus.IN_PROGRESS.value)
        .values(
            status=AttemptStatus.COMPLETED.value,
            score=grade.score,
            max_score=grade.max_score,
            correct_answers=grade.correct_answers,
            total_questions=grade.total_questions,
            completed_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise InvalidState("Attempt is no longer in progress")
    db.commit()
    db.refresh(attempt)

    logger.info(
        f"Attempt {attempt.id} completed: {grade.score}/{grade.max_score} "
        f"({grade.correct_answers}/{grade.total_questions} correct)"
    )
    return SubmissionResult(
        attempt_id=attempt.id,
        score=grade.score,
        max_score=grade.max_score,
        percentage=scoring.percentage(grade.score, grade.max_score),
        correct_answers=grade.correct_answers,
        total_questions=grade.total_questions,
        passed=scoring.is_passing(grade.score, grade.max_score, quiz.passing_score),
    )


def abandon_attempt(db: Session, attempt_id: str, student_id: str) -> QuizAttempt:
    attempt = _owned_attempt(db, attempt_id, student_id)
    if attempt.status != AttemptStatus.IN_PROGRESS:
        raise InvalidState(f"Attempt is already {attempt.status}")
    _abandon(attempt, "abandoned by student")
    db.commit()
    db.refresh(attempt)
    return attempt


def abandon_stale_attempts(db: Session, now: Optional[datetime] = None, ttl_hours: Optional[int] = None) -> int:
    """Abandon in-progress attempts past the TTL or past their quiz time limit."""
    now = now or utcnow()
    ttl = ttl_hours if ttl_hours is not None else settings.ATTEMPT_TTL_HOURS
    cutoff = now - timedelta(hours=ttl)
    attempts = db.scalars(
        select(QuizAttempt).where(QuizAttempt.status == AttemptStatus.IN_PROGRESS.value)
    ).all()
    count = 0
    for attempt in attempts:
        if attempt.started_at < cutoff:
            _abandon(attempt, f"older than {ttl}h")
            count += 1
        elif attempt.is_expired(now):
            _abandon(attempt, "time limit elapsed")
            count += 1
    if count:
        db.commit()
    return count


def delete_attempt(db: Session, attempt_id: str, student_id: str) -> None:
    attempt = _owned_attempt(db, attempt_id, student_id)
    if attempt.status == AttemptStatus.COMPLETED:
        logger.warning(f"Rejected delete of completed attempt {attempt_id}")
        raise InvalidState("Cannot delete completed quiz attempts")
    db.delete(attempt)
    db.commit()
    logger.info(f"Attempt {attempt_id} deleted by {student_id}")


def get_attempt_by_id(db: Session, attempt_id: str, user_id: str) -> QuizAttempt:
    """Visible to the attempting student and to the creator of the (active) quiz."""
    attempt = db.scalar(select(QuizAttempt).where(QuizAttempt.id == attempt_id))
    if attempt is None:
        raise NotFound("Attempt not found or access denied")
    is_creator = attempt.quiz.is_active and attempt.quiz.created_by == user_id
    if user_id != attempt.student_id and not is_creator:
        raise NotFound("Attempt not found or access denied")
    if attempt.is_expired():
        _abandon(attempt, "time limit elapsed")
        db.commit()
        db.refresh(attempt)
    return attempt


def get_attempt_answers(db: Session, attempt_id: str, user_id: str) -> List[StudentAnswer]:
    attempt = get_attempt_by_id(db, attempt_id, user_id)
    return list(attempt.answers)


def get_student_attempts(db: Session, student_id: str, limit: Optional[int] = None) -> List[QuizAttempt]:
    stmt = (
        select(QuizAttempt)
        .where(QuizAttempt.student_id == student_id)
        .order_by(QuizAttempt.created_at.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    return list(db.scalars(stmt).all())


def get_recent_attempts(db: Session, student_id: str, limit: Optional[int] = None) -> List[QuizAttempt]:
    return get_student_attempts(db, student_id, limit or settings.RECENT_ATTEMPTS_LIMIT)


def get_quiz_attempts(db: Session, quiz_id: str, owner_id: str) -> List[QuizAttempt]:
    quiz = access.require_owned_quiz(db, quiz_id, owner_id)
    return list(db.scalars(
        select(QuizAttempt).where(QuizAttempt.quiz_id == quiz.id).order_by(QuizAttempt.created_at.desc())
    ).all())


def save_tutor_feedback(db: Session, attempt_id: str, tutor_id: str, feedback: str) -> QuizAttempt:
    attempt = db.scalar(select(QuizAttempt).where(QuizAttempt.id == attempt_id))
    if attempt is None:
        raise NotFound("Quiz attempt not found")
    quiz: Quiz = attempt.quiz
    if quiz is None or quiz.created_by != tutor_id:
        raise Forbidden("You can only give feedback on attempts at your own quizzes")
    attempt.tutor_feedback = feedback
    db.commit()
    db.refresh(attempt)
    return attempt
