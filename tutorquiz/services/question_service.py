import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tutorquiz.core.config import settings
from tutorquiz.core.errors import NotFound, ValidationError
from tutorquiz.models import Answer, Difficulty, Question, Quiz, check_answer_set, new_id
from tutorquiz.schemas import (
    AIQuestionIn, AnswerIn, QuestionCreate, QuestionFilters, QuestionOrder, QuestionStats, QuestionUpdate,
)
from tutorquiz.services import access

logger = logging.getLogger(__name__)

# columns a patch may not null out
_REQUIRED_FIELDS = {"question_text", "question_type", "points", "difficulty", "tags", "order"}


def _build_answers(items: Sequence[AnswerIn]) -> List[Answer]:
    return [
        Answer(
            id=new_id(),
            answer_text=a.answer_text,
            is_correct=a.is_correct,
            explanation=a.explanation,
            order=a.order if a.order is not None else i,
        )
        for i, a in enumerate(items)
    ]


def build_question(quiz_id: str, data: QuestionCreate, order: int, extra_tags: Sequence[str] = ()) -> Question:
    """Assemble an unsaved question and check its answer invariants."""
    tags = list(data.tags)
    for tag in extra_tags:
        if tag not in tags:
            tags.append(tag)
    question = Question(
        id=new_id(),
        quiz_id=quiz_id,
        question_text=data.question_text,
        question_type=data.question_type,
        points=data.points if data.points is not None else settings.DEFAULT_QUESTION_POINTS,
        answers=_build_answers(data.answers),
        explanation=data.explanation,
        hint=data.hint,
        difficulty=data.difficulty or Difficulty.MEDIUM.value,
        tags=tags,
        order=order,
        is_active=True,
    )
    question.check_invariants()
    return question


def build_questions(quiz_id: str, items: Sequence[QuestionCreate], next_order: int,
                    extra_tags: Sequence[str] = ()) -> List[Question]:
    """Build a whole batch; any invalid item rejects the batch before anything is written."""
    questions = []
    for i, data in enumerate(items):
        if data.order is not None:
            order = data.order
        else:
            order = next_order
            next_order += 1
        try:
            questions.append(build_question(quiz_id, data, order, extra_tags))
        except ValidationError as exc:
            raise ValidationError(f"Question {i + 1}: {exc.message}")
    return questions


def next_order(db: Session, quiz_id: str) -> int:
    last = db.scalar(select(func.max(Question.order)).where(Question.quiz_id == quiz_id))
    return (last or 0) + 1


def create_question(db: Session, creator_id: str, quiz_id: str, data: QuestionCreate) -> Question:
    quiz = access.require_owned_quiz(db, quiz_id, creator_id)
    order = data.order if data.order is not None else next_order(db, quiz.id)
    question = build_question(quiz.id, data, order)
    db.add(question)
    db.commit()
    db.refresh(question)
    logger.info(f"Question {question.id} added to quiz {quiz.id} at order {order}")
    return question


def get_question_by_id(db: Session, question_id: str, requester_id: Optional[str] = None) -> Question:
    question = db.scalar(select(Question).where(Question.id == question_id, Question.is_active.is_(True)))
    if question is None or access.find_visible_quiz(db, question.quiz_id, requester_id) is None:
        raise NotFound("Question not found")
    return question


def get_questions_by_quiz(db: Session, quiz_id: str, requester_id: Optional[str] = None) -> List[Question]:
    # an inactive quiz is not visible, so its questions are unreachable even
    # if they were somehow left active
    quiz = access.require_visible_quiz(db, quiz_id, requester_id)
    return list(access.active_questions(db, quiz.id))


def list_questions(db: Session, filters: QuestionFilters,
                   requester_id: Optional[str] = None) -> Tuple[List[Question], int]:
    conds = [Quiz.is_active.is_(True), access.visibility_clause(requester_id)]
    if filters.quiz_id:
        conds.append(Question.quiz_id == filters.quiz_id)
    if filters.question_type:
        conds.append(Question.question_type == filters.question_type)
    if filters.difficulty:
        conds.append(Question.difficulty == filters.difficulty)
    conds.append(Question.is_active.is_(filters.is_active if filters.is_active is not None else True))

    rows = db.scalars(
        select(Question).join(Quiz, Quiz.id == Question.quiz_id).where(*conds)
        .order_by(Question.created_at.desc())
    ).all()
    if filters.tags:
        # tags live in a JSON list; any-of matching is done here to stay portable
        wanted = set(filters.tags)
        rows = [q for q in rows if wanted.intersection(q.tags or [])]
    total = len(rows)
    return list(rows[filters.skip:filters.skip + filters.limit]), total


def update_question(db: Session, question_id: str, requester_id: str, patch: QuestionUpdate) -> Question:
    question = db.scalar(select(Question).where(Question.id == question_id, Question.is_active.is_(True)))
    if question is None:
        raise NotFound("Question not found")
    access.require_owned_quiz(db, question.quiz_id, requester_id)

    fields = patch.model_dump(exclude_unset=True, exclude={"answers"})
    fields = {k: v for k, v in fields.items() if not (v is None and k in _REQUIRED_FIELDS)}
    new_answers = _build_answers(patch.answers) if patch.answers is not None else None

    # validate the merged result before touching the row
    check_answer_set(
        fields.get("question_type", question.question_type),
        new_answers if new_answers is not None else question.answers,
    )

    for key, value in fields.items():
        setattr(question, key, value)
    if new_answers is not None:
        question.answers = new_answers
    db.commit()
    db.refresh(question)
    logger.info(f"Question {question.id} updated by {requester_id}")
    return question


def delete_question(db: Session, question_id: str, requester_id: str) -> None:
    question = db.scalar(select(Question).where(Question.id == question_id, Question.is_active.is_(True)))
    if question is None:
        raise NotFound("Question not found")
    access.require_owned_quiz(db, question.quiz_id, requester_id)
    question.is_active = False
    db.commit()
    logger.info(f"Question {question_id} soft-deleted by {requester_id}")


def bulk_create_questions(db: Session, creator_id: str, quiz_id: str,
                          items: Sequence[QuestionCreate], extra_tags: Sequence[str] = ()) -> List[Question]:
    quiz = access.require_owned_quiz(db, quiz_id, creator_id)
    questions = build_questions(quiz.id, items, next_order(db, quiz.id), extra_tags)
    db.add_all(questions)
    db.commit()
    for q in questions:
        db.refresh(q)
    logger.info(f"Added {len(questions)} questions to quiz {quiz.id}")
    return questions


def import_ai_questions(db: Session, creator_id: str, quiz_id: str, items: Sequence[AIQuestionIn]) -> List[Question]:
    """Ingest generated candidates with the same rules as hand-written questions."""
    quiz = access.require_owned_quiz(db, quiz_id, creator_id)
    converted = [
        QuestionCreate(
            question_text=item.question_text,
            question_type=item.question_type,
            points=item.points,
            answers=[AnswerIn(answer_text=a.answer_text, is_correct=a.is_correct, order=i)
                     for i, a in enumerate(item.answers)],
            difficulty=quiz.difficulty,
        )
        for item in items
    ]
    return bulk_create_questions(db, creator_id, quiz.id, converted, extra_tags=[settings.AI_TAG])


def reorder_questions(db: Session, requester_id: str, quiz_id: str, orders: Sequence[QuestionOrder]) -> List[Question]:
    quiz = access.require_owned_quiz(db, quiz_id, requester_id)
    ids = [o.question_id for o in orders]
    found = {
        q.id: q for q in db.scalars(select(Question).where(Question.quiz_id == quiz.id, Question.id.in_(ids)))
    }
    missing = [qid for qid in ids if qid not in found]
    if missing:
        raise NotFound(f"Questions not in quiz: {', '.join(missing)}")
    for o in orders:
        found[o.question_id].order = o.order
    db.commit()
    return list(access.active_questions(db, quiz.id))


def get_question_stats(db: Session, quiz_id: str, requester_id: Optional[str] = None) -> QuestionStats:
    quiz = access.require_visible_quiz(db, quiz_id, requester_id)
    rows = db.execute(
        select(Question.question_type, Question.difficulty, func.count(Question.id))
        .where(Question.quiz_id == quiz.id, Question.is_active.is_(True))
        .group_by(Question.question_type, Question.difficulty)
    ).all()
    stats = QuestionStats()
    for qtype, difficulty, n in rows:
        stats.total_questions += n
        if qtype == "multiple_choice":
            stats.multiple_choice += n
        elif qtype == "true_false":
            stats.true_false += n
        stats.by_difficulty[difficulty] = stats.by_difficulty.get(difficulty, 0) + n
    return stats
