import pytest
from sqlalchemy import func, select

from tutorquiz.core.errors import Forbidden, NotFound, ValidationError
from tutorquiz.models import Question, Quiz
from tutorquiz.schemas import QuestionCreate, QuizFilters, QuizUpdate
from tutorquiz.services import attempt_service, question_service, quiz_service


def test_tutor_quiz_defaults(make_quiz):
    quiz = make_quiz()
    assert quiz.is_public is True
    assert quiz.is_active is True
    assert quiz.passing_score == 70
    assert quiz.difficulty == "medium"
    assert quiz.created_by == "tutor-1"


def test_student_quiz_is_private_by_default(make_quiz):
    quiz = make_quiz(owner="student-1", role="student")
    assert quiz.is_public is False


def test_other_roles_cannot_create_quizzes(make_quiz):
    with pytest.raises(Forbidden):
        make_quiz(owner="admin-1", role="admin")


def test_invalid_inline_question_rejects_whole_quiz(db, make_quiz, mc):
    with pytest.raises(ValidationError, match="Question 2"):
        make_quiz(questions=[mc(), mc(correct=())], total_questions=2)
    assert db.scalar(select(func.count(Quiz.id))) == 0
    assert db.scalar(select(func.count(Question.id))) == 0


def test_private_quiz_is_hidden_from_others(db, make_quiz, mc):
    quiz = make_quiz(questions=[mc()], is_public=False)

    assert quiz_service.get_quiz_by_id(db, quiz.id, "student-1") is None
    assert quiz_service.get_quiz_by_id(db, quiz.id) is None
    with pytest.raises(NotFound):
        question_service.get_questions_by_quiz(db, quiz.id, "student-1")

    assert quiz_service.get_quiz_by_id(db, quiz.id, "tutor-1").id == quiz.id
    assert len(question_service.get_questions_by_quiz(db, quiz.id, "tutor-1")) == 1


def test_list_quizzes_scopes_to_requester(db, make_quiz):
    make_quiz(title="Public A")
    make_quiz(title="Private A", is_public=False)
    make_quiz(owner="tutor-2", title="Public B")
    make_quiz(owner="tutor-2", title="Private B", is_public=False)

    quizzes, total = quiz_service.list_quizzes(db, QuizFilters(user_id="tutor-1"))
    assert total == 3
    assert {q.title for q in quizzes} == {"Public A", "Private A", "Public B"}

    quizzes, total = quiz_service.list_quizzes(db, QuizFilters(user_id="tutor-1", tutor_id="tutor-2"))
    assert [q.title for q in quizzes] == ["Public B"]

    quizzes, total = quiz_service.list_quizzes(db, QuizFilters())
    assert total == 2


def test_list_quizzes_subject_is_a_literal_substring(db, make_quiz):
    make_quiz(subject="Math 100%")
    make_quiz(subject="Math 1000")

    quizzes, _ = quiz_service.list_quizzes(db, QuizFilters(subject="100%"))
    assert [q.subject for q in quizzes] == ["Math 100%"]

    _, total = quiz_service.list_quizzes(db, QuizFilters(subject="math"))
    assert total == 2


def test_list_quizzes_paginates_newest_first(db, make_quiz):
    for i in range(5):
        make_quiz(title=f"Quiz {i}")

    page, total = quiz_service.list_quizzes(db, QuizFilters(limit=2, skip=1))
    assert total == 5
    assert len(page) == 2


def test_update_quiz_requires_owner(db, make_quiz):
    quiz = make_quiz()
    with pytest.raises(Forbidden):
        quiz_service.update_quiz(db, quiz.id, "tutor-2", QuizUpdate(title="Hijacked"))
    with pytest.raises(NotFound):
        quiz_service.update_quiz(db, "missing", "tutor-1", QuizUpdate(title="Nope"))

    updated = quiz_service.update_quiz(db, quiz.id, "tutor-1", QuizUpdate(title="Renamed", subject=None, time_limit=15))
    assert updated.title == "Renamed"
    assert updated.subject == "Math"
    assert updated.time_limit == 15


def test_delete_quiz_soft_deletes_its_questions(db, make_quiz, mc, tf):
    quiz = make_quiz(questions=[mc(), tf()], total_questions=2)

    quiz_service.delete_quiz(db, quiz.id, "tutor-1")

    assert quiz_service.get_quiz_by_id(db, quiz.id, "tutor-1") is None
    with pytest.raises(NotFound):
        question_service.get_questions_by_quiz(db, quiz.id, "tutor-1")
    rows = db.scalars(select(Question).where(Question.quiz_id == quiz.id)).all()
    assert len(rows) == 2
    assert all(not q.is_active for q in rows)
    assert all(q.answers for q in rows)


def test_delete_quiz_requires_owner(db, make_quiz):
    quiz = make_quiz()
    with pytest.raises(Forbidden):
        quiz_service.delete_quiz(db, quiz.id, "tutor-2")
    assert quiz_service.get_quiz_by_id(db, quiz.id).is_active


def test_duplicate_public_quiz_is_private_copy(db, make_quiz, mc, tf):
    source = make_quiz(questions=[mc(), tf()], total_questions=2)

    copy = quiz_service.duplicate_quiz(db, source.id, "student-x")

    assert copy.id != source.id
    assert copy.title == "Algebra Basics (Copy)"
    assert copy.created_by == "student-x"
    assert copy.is_public is False
    db.refresh(source)
    assert source.is_public is True
    assert source.created_by == "tutor-1"

    originals = question_service.get_questions_by_quiz(db, source.id, "tutor-1")
    copies = question_service.get_questions_by_quiz(db, copy.id, "student-x")
    assert [(q.question_text, q.order) for q in copies] == [(q.question_text, q.order) for q in originals]
    assert [[(a.answer_text, a.is_correct) for a in q.answers] for q in copies] == \
        [[(a.answer_text, a.is_correct) for a in q.answers] for q in originals]
    assert not {q.id for q in copies} & {q.id for q in originals}


def test_duplicate_skips_deleted_questions_and_takes_title(db, make_quiz, mc):
    source = make_quiz(questions=[mc("Keep"), mc("Drop")], total_questions=2)
    question_service.delete_question(db, source.questions[1].id, "tutor-1")

    copy = quiz_service.duplicate_quiz(db, source.id, "tutor-1", "Algebra II")

    assert copy.title == "Algebra II"
    assert [q.question_text for q in question_service.get_questions_by_quiz(db, copy.id, "tutor-1")] == ["Keep"]


def test_duplicate_private_quiz_of_someone_else_is_not_found(db, make_quiz):
    quiz = make_quiz(is_public=False)
    with pytest.raises(NotFound):
        quiz_service.duplicate_quiz(db, quiz.id, "student-x")


def test_toggle_publish_status(db, make_quiz):
    quiz = make_quiz()
    assert quiz_service.toggle_publish_status(db, quiz.id, "tutor-1").is_public is False
    assert quiz_service.toggle_publish_status(db, quiz.id, "tutor-1").is_public is True
    with pytest.raises(Forbidden):
        quiz_service.toggle_publish_status(db, quiz.id, "tutor-2")


def test_quiz_completeness_and_stats(db, make_quiz, mc, tf):
    quiz = make_quiz(questions=[mc()], total_questions=2)
    assert quiz_service.is_quiz_complete(db, quiz) is False

    question_service.bulk_create_questions(db, "tutor-1", quiz.id, [QuestionCreate(**tf())])
    assert quiz_service.is_quiz_complete(db, quiz) is True

    stats = quiz_service.get_quiz_stats(db, quiz.id, "tutor-1")
    assert stats.question_count == 2
    assert stats.completed_questions == 2
    assert stats.is_complete is True
    assert stats.quiz.id == quiz.id


def test_available_quizzes_for_student(db, make_quiz, mc):
    ready = make_quiz(title="Ready", questions=[mc()])
    make_quiz(title="Empty")
    make_quiz(owner="tutor-2", title="Hidden", questions=[mc()], is_public=False)
    attempt = attempt_service.start_attempt(db, ready.id, "student-1")

    available = quiz_service.get_available_quizzes_for_student(db, "student-1")

    assert [a.quiz.title for a in available] == ["Ready"]
    assert available[0].question_count == 1
    assert available[0].attempt_id == attempt.id
    assert available[0].attempt_status == "in_progress"
