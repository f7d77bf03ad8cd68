from tutorquiz.models.orm import (
    Answer, AnswerCheck, AttemptStatus, Difficulty, Question, QuestionType, Quiz, QuizAttempt,
    QuizQuestionType, StudentAnswer, check_answer_set, new_id, utcnow,
)

__all__ = [
    "Answer", "AnswerCheck", "AttemptStatus", "Difficulty", "Question", "QuestionType", "Quiz",
    "QuizAttempt", "QuizQuestionType", "StudentAnswer", "check_answer_set", "new_id", "utcnow",
]
