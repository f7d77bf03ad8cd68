"""
Input contracts and result summaries.

Every service operation takes one of these models, so field bounds are
checked once here regardless of the transport in front of the service.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, constr, model_validator

QuestionTypeLit = Literal["multiple_choice", "true_false"]
QuizQuestionTypeLit = Literal["multiple_choice", "true_false", "mixed"]
DifficultyLit = Literal["easy", "medium", "hard"]


# ========== Questions ==========

class AnswerIn(BaseModel):
    answer_text: constr(strip_whitespace=True, min_length=1, max_length=500)
    is_correct: bool = False
    explanation: Optional[constr(strip_whitespace=True, max_length=300)] = None
    order: Optional[int] = Field(default=None, ge=0)


class QuestionCreate(BaseModel):
    question_text: constr(strip_whitespace=True, min_length=1, max_length=1000)
    question_type: QuestionTypeLit = "multiple_choice"
    points: Optional[int] = Field(default=None, ge=0)
    answers: List[AnswerIn] = Field(min_length=1)
    explanation: Optional[constr(strip_whitespace=True, max_length=500)] = None
    hint: Optional[constr(strip_whitespace=True, max_length=200)] = None
    difficulty: Optional[DifficultyLit] = None
    tags: List[str] = Field(default_factory=list)
    order: Optional[int] = Field(default=None, ge=0)


class QuestionUpdate(BaseModel):
    question_text: Optional[constr(strip_whitespace=True, min_length=1, max_length=1000)] = None
    question_type: Optional[QuestionTypeLit] = None
    points: Optional[int] = Field(default=None, ge=0)
    answers: Optional[List[AnswerIn]] = None
    explanation: Optional[constr(strip_whitespace=True, max_length=500)] = None
    hint: Optional[constr(strip_whitespace=True, max_length=200)] = None
    difficulty: Optional[DifficultyLit] = None
    tags: Optional[List[str]] = None
    order: Optional[int] = Field(default=None, ge=0)


class AIAnswerIn(BaseModel):
    answer_text: constr(strip_whitespace=True, min_length=1, max_length=500)
    is_correct: bool


class AIQuestionIn(BaseModel):
    """Candidate question in the shape the generator integration produces."""
    question_text: constr(strip_whitespace=True, min_length=1, max_length=1000)
    question_type: QuestionTypeLit
    points: Optional[int] = Field(default=None, ge=0)
    answers: List[AIAnswerIn]
    is_ai_generated: bool = True
    ai_status: Optional[Literal["pending", "approved", "discarded"]] = None
    ai_metadata: Optional[Dict] = None


class QuestionOrder(BaseModel):
    question_id: str
    order: int = Field(ge=0)


class QuestionFilters(BaseModel):
    quiz_id: Optional[str] = None
    question_type: Optional[QuestionTypeLit] = None
    difficulty: Optional[DifficultyLit] = None
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None
    limit: int = Field(default=50, ge=1, le=100)
    skip: int = Field(default=0, ge=0)


# ========== Quizzes ==========

class QuizCreate(BaseModel):
    title: constr(strip_whitespace=True, min_length=1, max_length=200)
    description: Optional[constr(strip_whitespace=True, max_length=500)] = None
    subject: constr(strip_whitespace=True, min_length=1, max_length=100)
    grade_level_id: Optional[str] = None
    difficulty: DifficultyLit = "medium"
    question_type: QuizQuestionTypeLit = "multiple_choice"
    total_questions: int = Field(ge=1, le=100)
    time_limit: Optional[int] = Field(default=None, ge=1, le=180)
    is_public: Optional[bool] = None
    tags: List[str] = Field(default_factory=list)
    passing_score: Optional[int] = Field(default=None, ge=0, le=100)
    instructions: Optional[constr(strip_whitespace=True, max_length=1000)] = None
    questions: List[QuestionCreate] = Field(default_factory=list)


class QuizUpdate(BaseModel):
    title: Optional[constr(strip_whitespace=True, min_length=1, max_length=200)] = None
    description: Optional[constr(strip_whitespace=True, max_length=500)] = None
    subject: Optional[constr(strip_whitespace=True, min_length=1, max_length=100)] = None
    grade_level_id: Optional[str] = None
    difficulty: Optional[DifficultyLit] = None
    question_type: Optional[QuizQuestionTypeLit] = None
    total_questions: Optional[int] = Field(default=None, ge=1, le=100)
    time_limit: Optional[int] = Field(default=None, ge=1, le=180)
    is_public: Optional[bool] = None
    tags: Optional[List[str]] = None
    passing_score: Optional[int] = Field(default=None, ge=0, le=100)
    instructions: Optional[constr(strip_whitespace=True, max_length=1000)] = None


class QuizFilters(BaseModel):
    tutor_id: Optional[str] = None
    subject: Optional[str] = None
    difficulty: Optional[DifficultyLit] = None
    grade_level_id: Optional[str] = None
    is_public: Optional[bool] = None
    user_id: Optional[str] = None
    limit: int = Field(default=20, ge=1, le=100)
    skip: int = Field(default=0, ge=0)


class DuplicateIn(BaseModel):
    title: Optional[constr(strip_whitespace=True, min_length=1, max_length=200)] = None


# ========== Attempts ==========

class AttemptStart(BaseModel):
    quiz_id: str


class SubmittedAnswer(BaseModel):
    question_id: str
    selected_answer_id: Optional[str] = None
    selected_answer_ids: List[str] = Field(default_factory=list)
    answer_text: Optional[str] = None

    @model_validator(mode="after")
    def merge_selection(self):
        # single-select clients send selected_answer_id; fold it into the set
        if self.selected_answer_id and self.selected_answer_id not in self.selected_answer_ids:
            self.selected_answer_ids = [self.selected_answer_id, *self.selected_answer_ids]
        return self


class AttemptSubmit(BaseModel):
    attempt_id: str
    answers: List[SubmittedAnswer]


class FeedbackIn(BaseModel):
    feedback: constr(strip_whitespace=True, min_length=1, max_length=2000)


# ========== Results ==========

class SubmissionResult(BaseModel):
    attempt_id: str
    score: int
    max_score: int
    percentage: float
    correct_answers: int
    total_questions: int
    passed: bool


class QuestionStats(BaseModel):
    total_questions: int = 0
    multiple_choice: int = 0
    true_false: int = 0
    by_difficulty: Dict[str, int] = Field(default_factory=lambda: {"easy": 0, "medium": 0, "hard": 0})


class AttemptStats(BaseModel):
    total_attempts: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    completed_attempts: int = 0
    average_score: float = 0.0
    average_percentage: float = 0.0
    passed: int = 0
    pass_rate: float = 0.0
    distribution: Dict[str, int] = Field(default_factory=dict)


class TutorStats(BaseModel):
    total_quizzes: int
    active_quizzes: int
    total_attempts: int
    average_score: float
    total_students: int


# ========== Read models ==========

class AnswerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    answer_text: str
    # None when the viewer does not own the quiz
    is_correct: Optional[bool] = None
    explanation: Optional[str] = None
    order: int


class QuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str
    question_text: str
    question_type: str
    points: int
    answers: List[AnswerOut]
    explanation: Optional[str] = None
    hint: Optional[str] = None
    difficulty: str
    tags: List[str] = Field(default_factory=list)
    order: int
    is_active: bool

    def without_key(self) -> "QuestionOut":
        return self.model_copy(update={
            "answers": [a.model_copy(update={"is_correct": None}) for a in self.answers],
        })


class QuizOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    subject: str
    grade_level_id: Optional[str] = None
    created_by: str
    difficulty: str
    question_type: str
    total_questions: int
    time_limit: Optional[int] = None
    is_public: bool
    is_active: bool
    tags: List[str] = Field(default_factory=list)
    passing_score: int
    instructions: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class QuizPage(BaseModel):
    quizzes: List[QuizOut]
    total: int


class QuizStats(BaseModel):
    quiz: QuizOut
    question_count: int
    completed_questions: int
    is_complete: bool


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str
    student_id: str
    status: str
    score: Optional[int] = None
    max_score: Optional[int] = None
    correct_answers: Optional[int] = None
    total_questions: Optional[int] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    tutor_feedback: Optional[str] = None
    created_at: datetime


class StudentAnswerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    attempt_id: str
    question_id: str
    selected_answer_ids: List[str] = Field(default_factory=list)
    answer_text: Optional[str] = None
    is_correct: bool
    points_earned: int
    question: Optional[QuestionOut] = None


class AvailableQuiz(BaseModel):
    quiz: QuizOut
    question_count: int
    attempt_id: Optional[str] = None
    attempt_status: Optional[str] = None
