"""
Grading and attempt statistics.

Grading is exact set equality between the selected answer ids and the
question's correct answer ids. Percentages are rounded half-up to one
decimal; averages of raw scores to two decimals. Pass/fail is decided on
the exact ratio, never on the rounded percentage.
"""
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from tutorquiz.models import AttemptStatus, Question, Quiz, QuizAttempt
from tutorquiz.schemas import AttemptStats, SubmittedAnswer, TutorStats
from tutorquiz.services import access

logger = logging.getLogger(__name__)

BUCKETS = [f"{lo}-{lo + 9}" for lo in range(0, 90, 10)] + ["90-100"]


@dataclass
class GradedAnswer:
    question_id: str
    selected_answer_ids: List[str]
    answer_text: Optional[str]
    is_correct: bool
    points_earned: int


@dataclass
class Grade:
    score: int = 0
    max_score: int = 0
    correct_answers: int = 0
    total_questions: int = 0
    items: List[GradedAnswer] = field(default_factory=list)


def _round(value: float, places: str) -> float:
    return float(Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP))


def percentage(score: int, max_score: int) -> float:
    if not max_score:
        return 0.0
    return _round(score / max_score * 100, "0.1")


def is_passing(score: int, max_score: int, passing_score: int) -> bool:
    if not max_score:
        return False
    return score * 100 >= passing_score * max_score


def grade_submission(questions: Sequence[Question], answers: Iterable[SubmittedAnswer]) -> Grade:
    """Grade submitted answers against the full question set of a quiz.

    Every question counts toward max_score; only answered ones can earn
    points. Answers for unknown questions are ignored and the first answer
    wins when a question is submitted twice.
    """
    submitted: Dict[str, SubmittedAnswer] = {}
    for answer in answers:
        submitted.setdefault(answer.question_id, answer)

    grade = Grade(total_questions=len(questions))
    for question in questions:
        grade.max_score += question.points
        answer = submitted.get(question.id)
        if answer is None:
            continue
        check = question.check_answer(answer.selected_answer_ids)
        if check.is_correct:
            grade.correct_answers += 1
            grade.score += check.score
        grade.items.append(GradedAnswer(
            question_id=question.id,
            selected_answer_ids=list(answer.selected_answer_ids),
            answer_text=answer.answer_text,
            is_correct=check.is_correct,
            points_earned=check.score,
        ))
    return grade


def _bucket(pct: float) -> str:
    return BUCKETS[min(int(pct // 10), 9)]


def attempt_statistics(attempts: Iterable[QuizAttempt], passing_score: Optional[int] = None) -> AttemptStats:
    """Aggregate over attempts; pass counts need a passing_score (or the attempt's quiz)."""
    stats = AttemptStats(distribution={b: 0 for b in BUCKETS})
    scores, percentages = [], []
    for attempt in attempts:
        stats.total_attempts += 1
        stats.by_status[attempt.status] = stats.by_status.get(attempt.status, 0) + 1
        if attempt.status != AttemptStatus.COMPLETED or attempt.score is None:
            continue
        scores.append(attempt.score)
        pct = percentage(attempt.score, attempt.max_score or 0)
        percentages.append(pct)
        stats.distribution[_bucket(pct)] += 1
        threshold = passing_score if passing_score is not None else attempt.quiz.passing_score
        if is_passing(attempt.score, attempt.max_score or 0, threshold):
            stats.passed += 1

    stats.completed_attempts = len(scores)
    if scores:
        stats.average_score = _round(sum(scores) / len(scores), "0.01")
        stats.average_percentage = _round(sum(percentages) / len(percentages), "0.1")
        stats.pass_rate = _round(stats.passed / len(scores) * 100, "0.1")
    return stats


def get_quiz_attempt_stats(db: Session, quiz_id: str, owner_id: str) -> AttemptStats:
    quiz = access.require_owned_quiz(db, quiz_id, owner_id)
    attempts = db.scalars(select(QuizAttempt).where(QuizAttempt.quiz_id == quiz.id)).all()
    return attempt_statistics(attempts, quiz.passing_score)


def get_tutor_stats(db: Session, tutor_id: str) -> TutorStats:
    quizzes = db.scalars(select(Quiz).where(Quiz.created_by == tutor_id, Quiz.is_active.is_(True))).all()
    quiz_ids = [q.id for q in quizzes]
    attempts = db.scalars(select(QuizAttempt).where(QuizAttempt.quiz_id.in_(quiz_ids))).all() if quiz_ids else []
    completed = [a.score for a in attempts if a.status == AttemptStatus.COMPLETED and a.score is not None]
    return TutorStats(
        total_quizzes=len(quizzes),
        active_quizzes=sum(1 for q in quizzes if q.is_public),
        total_attempts=len(attempts),
        average_score=_round(sum(completed) / len(completed), "0.01") if completed else 0.0,
        total_students=len({a.student_id for a in attempts}),
    )
