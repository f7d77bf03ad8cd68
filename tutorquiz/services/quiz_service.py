import logging
from typing import List, Optional, Tuple

from sqlalchemy import distinct, func, select, update
from sqlalchemy.orm import Session

from tutorquiz.core.config import settings
from tutorquiz.core.errors import Forbidden
from tutorquiz.models import Answer, AttemptStatus, Question, Quiz, QuizAttempt, new_id, utcnow
from tutorquiz.schemas import AvailableQuiz, QuizCreate, QuizFilters, QuizOut, QuizStats, QuizUpdate
from tutorquiz.services import access
from tutorquiz.services.question_service import build_questions

logger = logging.getLogger(__name__)

CREATOR_ROLES = ("tutor", "student")
_REQUIRED_FIELDS = {
    "title", "subject", "difficulty", "question_type", "total_questions", "is_public", "tags", "passing_score",
}


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def create_quiz(db: Session, creator_id: str, data: QuizCreate, role: str = "tutor") -> Quiz:
    if role not in CREATOR_ROLES:
        raise Forbidden(f"Role '{role}' cannot create quizzes")
    quiz = Quiz(
        id=new_id(),
        title=data.title,
        description=data.description,
        subject=data.subject,
        grade_level_id=data.grade_level_id,
        created_by=creator_id,
        difficulty=data.difficulty,
        question_type=data.question_type,
        total_questions=data.total_questions,
        time_limit=data.time_limit,
        # tutors publish by default, students keep their quizzes to themselves
        is_public=data.is_public if data.is_public is not None else role == "tutor",
        tags=list(data.tags),
        passing_score=data.passing_score if data.passing_score is not None else settings.DEFAULT_PASSING_SCORE,
        instructions=data.instructions,
        is_active=True,
    )
    # inline questions are validated before anything is added to the session
    questions = build_questions(quiz.id, data.questions, 1) if data.questions else []
    db.add(quiz)
    db.add_all(questions)
    db.commit()
    db.refresh(quiz)
    logger.info(f"Quiz {quiz.id} created by {role} {creator_id} with {len(questions)} questions")
    return quiz


def get_quiz_by_id(db: Session, quiz_id: str, requester_id: Optional[str] = None) -> Optional[Quiz]:
    """Return the quiz if it is active and visible to the requester, else None."""
    return access.find_visible_quiz(db, quiz_id, requester_id)


def require_quiz(db: Session, quiz_id: str, requester_id: Optional[str] = None) -> Quiz:
    return access.require_visible_quiz(db, quiz_id, requester_id)


def list_quizzes(db: Session, filters: QuizFilters) -> Tuple[List[Quiz], int]:
    conds = [Quiz.is_active.is_(True)]
    if filters.subject:
        conds.append(Quiz.subject.ilike(f"%{_escape_like(filters.subject)}%", escape="\\"))
    if filters.difficulty:
        conds.append(Quiz.difficulty == filters.difficulty)
    if filters.grade_level_id:
        conds.append(Quiz.grade_level_id == filters.grade_level_id)
    if filters.is_public is not None:
        conds.append(Quiz.is_public.is_(filters.is_public))

    if filters.user_id:
        if filters.tutor_id and filters.tutor_id != filters.user_id:
            # someone else's quizzes: public ones only
            conds.append(Quiz.is_public.is_(True))
            conds.append(Quiz.created_by == filters.tutor_id)
        else:
            conds.append(access.visibility_clause(filters.user_id))
            if filters.tutor_id:
                conds.append(Quiz.created_by == filters.tutor_id)
    else:
        conds.append(Quiz.is_public.is_(True))
        if filters.tutor_id:
            conds.append(Quiz.created_by == filters.tutor_id)

    total = db.scalar(select(func.count(Quiz.id)).where(*conds)) or 0
    quizzes = db.scalars(
        select(Quiz).where(*conds).order_by(Quiz.created_at.desc()).limit(filters.limit).offset(filters.skip)
    ).all()
    return list(quizzes), total


def update_quiz(db: Session, quiz_id: str, requester_id: str, data: QuizUpdate) -> Quiz:
    quiz = access.require_owned_quiz(db, quiz_id, requester_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is None and key in _REQUIRED_FIELDS:
            continue
        setattr(quiz, key, value)
    db.commit()
    db.refresh(quiz)
    return quiz


def delete_quiz(db: Session, quiz_id: str, requester_id: str) -> None:
    """Soft-delete the quiz and every one of its questions in one transaction."""
    quiz = access.require_owned_quiz(db, quiz_id, requester_id)
    quiz.is_active = False
    db.execute(
        update(Question).where(Question.quiz_id == quiz.id).values(is_active=False, updated_at=utcnow())
    )
    db.commit()
    logger.info(f"Quiz {quiz_id} and its questions soft-deleted by {requester_id}")


def duplicate_quiz(db: Session, quiz_id: str, requester_id: str, new_title: Optional[str] = None) -> Quiz:
    source = access.require_visible_quiz(db, quiz_id, requester_id)
    copy = Quiz(
        id=new_id(),
        title=new_title or f"{source.title} (Copy)",
        description=source.description,
        subject=source.subject,
        grade_level_id=source.grade_level_id,
        created_by=requester_id,
        difficulty=source.difficulty,
        question_type=source.question_type,
        total_questions=source.total_questions,
        time_limit=source.time_limit,
        is_public=False,
        tags=list(source.tags or []),
        passing_score=source.passing_score,
        instructions=source.instructions,
        is_active=True,
    )
    db.add(copy)
    copied = 0
    for question in access.active_questions(db, source.id):
        db.add(Question(
            id=new_id(),
            quiz_id=copy.id,
            question_text=question.question_text,
            question_type=question.question_type,
            points=question.points,
            answers=[
                Answer(id=new_id(), answer_text=a.answer_text, is_correct=a.is_correct,
                       explanation=a.explanation, order=a.order)
                for a in question.answers
            ],
            explanation=question.explanation,
            hint=question.hint,
            difficulty=question.difficulty,
            tags=list(question.tags or []),
            order=question.order,
            is_active=True,
        ))
        copied += 1
    db.commit()
    db.refresh(copy)
    logger.info(f"Quiz {source.id} duplicated as {copy.id} for {requester_id} ({copied} questions)")
    return copy


def toggle_publish_status(db: Session, quiz_id: str, requester_id: str) -> Quiz:
    quiz = access.require_owned_quiz(db, quiz_id, requester_id)
    quiz.is_public = not quiz.is_public
    db.commit()
    db.refresh(quiz)
    logger.info(f"Quiz {quiz_id} is now {'public' if quiz.is_public else 'private'}")
    return quiz


def is_quiz_complete(db: Session, quiz: Quiz) -> bool:
    return access.count_active_questions(db, quiz.id) == quiz.total_questions


def get_quiz_stats(db: Session, quiz_id: str, requester_id: Optional[str] = None) -> QuizStats:
    quiz = access.require_visible_quiz(db, quiz_id, requester_id)
    question_count = access.count_active_questions(db, quiz.id)
    completed = db.scalar(
        select(func.count(distinct(Question.id)))
        .join(Answer, Answer.question_id == Question.id)
        .where(Question.quiz_id == quiz.id, Question.is_active.is_(True))
    ) or 0
    return QuizStats(
        quiz=QuizOut.model_validate(quiz),
        question_count=question_count,
        completed_questions=completed,
        is_complete=question_count == quiz.total_questions and completed == quiz.total_questions,
    )


def get_available_quizzes_for_student(db: Session, student_id: str,
                                      subject: Optional[str] = None) -> List[AvailableQuiz]:
    conds = [Quiz.is_active.is_(True), access.visibility_clause(student_id)]
    if subject:
        conds.append(Quiz.subject.ilike(f"%{_escape_like(subject)}%", escape="\\"))
    quizzes = db.scalars(
        select(Quiz).where(*conds).order_by(Quiz.created_at.desc()).limit(settings.AVAILABLE_QUIZZES_LIMIT)
    ).all()

    now = utcnow()
    expired = 0
    result = []
    for quiz in quizzes:
        count = access.count_active_questions(db, quiz.id)
        if count == 0:
            continue
        latest = db.scalar(
            select(QuizAttempt)
            .where(QuizAttempt.quiz_id == quiz.id, QuizAttempt.student_id == student_id)
            .order_by(QuizAttempt.created_at.desc())
            .limit(1)
        )
        if latest is not None and latest.is_expired(now):
            latest.status = AttemptStatus.ABANDONED.value
            expired += 1
        result.append(AvailableQuiz(
            quiz=QuizOut.model_validate(quiz),
            question_count=count,
            attempt_id=latest.id if latest else None,
            attempt_status=latest.status if latest else None,
        ))
    if expired:
        db.commit()
        logger.info(f"Abandoned {expired} timed-out attempts for student {student_id}")
    return result
