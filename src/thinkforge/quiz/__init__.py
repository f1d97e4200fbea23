"""Timed multiple-choice quizzes and progress tracking."""

from .generator import QuestionCache, QuestionGenerator
from .models import AnswerRecord, Question, QuestionBatch
from .progress import (
    ProgressRepository,
    QuizOutcome,
    SubjectProgress,
    UserProgress,
)
from .session import QuizSession, SessionStatus
from .timer import QuestionTimer, TimerState
from .validator import parse_batch

__all__ = [
    "AnswerRecord",
    "ProgressRepository",
    "Question",
    "QuestionBatch",
    "QuestionCache",
    "QuestionGenerator",
    "QuestionTimer",
    "QuizOutcome",
    "QuizSession",
    "SessionStatus",
    "SubjectProgress",
    "TimerState",
    "UserProgress",
    "parse_batch",
]
