"""Quiz session engine: pool selection, grading, mastery, and statistics."""

from __future__ import annotations

from .evaluator import AnswerEvaluator
from .identity import QuestionIdentityResolver, SlotIdentityResolver
from .models import (
    Answer,
    EmptyPoolError,
    ProgressRecord,
    Question,
    Quiz,
    QuizplayError,
    SessionSnapshot,
    ShuffledAnswer,
    StartMode,
)
from .pool import count_due_reviews, fisher_yates, select_pool
from .progress import ProgressTracker
from .scheduling import (
    DoublingSchedulingPolicy,
    ScheduleDecision,
    SchedulingPolicy,
)
from .session import QuizSession, SessionState
from .statistics import (
    GradeInfo,
    SessionStatistics,
    XPCalculation,
    calculate_grade,
    calculate_xp,
    format_elapsed,
)
from .timer import TimerController
from .wrong_pool import (
    WRONG_QUESTIONS_POOL_QUIZ_ID,
    build_wrong_pool,
    split_progress_by_origin,
)

__all__ = [
    "Answer",
    "AnswerEvaluator",
    "DoublingSchedulingPolicy",
    "EmptyPoolError",
    "GradeInfo",
    "ProgressRecord",
    "ProgressTracker",
    "Question",
    "QuestionIdentityResolver",
    "Quiz",
    "QuizSession",
    "QuizplayError",
    "ScheduleDecision",
    "SchedulingPolicy",
    "SessionSnapshot",
    "SessionState",
    "SessionStatistics",
    "ShuffledAnswer",
    "SlotIdentityResolver",
    "StartMode",
    "TimerController",
    "WRONG_QUESTIONS_POOL_QUIZ_ID",
    "XPCalculation",
    "build_wrong_pool",
    "calculate_grade",
    "calculate_xp",
    "count_due_reviews",
    "fisher_yates",
    "format_elapsed",
    "select_pool",
    "split_progress_by_origin",
]
