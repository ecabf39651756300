"""End-of-pass statistics, grades, and XP."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import AbstractSet, Sequence

from .models import Question

__all__ = [
    "GradeInfo",
    "SessionStatistics",
    "XPCalculation",
    "aggregate_statistics",
    "calculate_grade",
    "calculate_xp",
    "format_elapsed",
    "round_half_up",
]

BASE_XP_PER_QUESTION = 10
MIN_PERCENTAGE_MULTIPLIER = 0.3
PERCENTAGE_MULTIPLIER_RANGE = 1.2
# (max average seconds per question, multiplier)
SPEED_TIERS: tuple[tuple[float, float], ...] = (
    (20, 1.3),
    (30, 1.2),
    (45, 1.1),
    (60, 1.0),
    (90, 0.9),
)
SPEED_VERY_SLOW_MULTIPLIER = 0.8
BASE_ATTEMPT_MULTIPLIER = 1.1
ATTEMPT_PENALTY_RATE = 0.1
MIN_ATTEMPT_MULTIPLIER = 0.5

_GRADES: tuple[tuple[int, int, str], ...] = (
    (92, 1, "Sehr gut"),
    (81, 2, "Gut"),
    (67, 3, "Befriedigend"),
    (50, 4, "Ausreichend"),
    (30, 5, "Mangelhaft"),
)


@dataclass(frozen=True)
class SessionStatistics:
    """Summary figures for the active pass and the whole session."""

    correct_count: int
    total_answered: int
    percentage: int
    total_questions: int
    solved_count: int
    all_solved: bool
    total_tries: int
    elapsed_ms: int
    wrong_questions: tuple[Question, ...] = ()

    @property
    def accuracy(self) -> float:
        if self.total_answered == 0:
            return 0.0
        return self.correct_count / self.total_answered


@dataclass(frozen=True)
class GradeInfo:
    grade: int
    label: str


@dataclass(frozen=True)
class XPCalculation:
    total_xp: int
    base_xp: int
    percentage_multiplier: float
    speed_multiplier: float
    attempt_multiplier: float


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def aggregate_statistics(
    *,
    pool: Sequence[Question],
    answer_history: Sequence[bool],
    solved_keys: AbstractSet[str],
    fresh_pool_keys: AbstractSet[str],
    total_tries: int,
    elapsed_ms: int,
) -> SessionStatistics:
    """Derive statistics for the active pass.

    ``pool`` is the active pool (the repeat pool during a repeat pass). A
    question without a history entry counts as wrong.
    """

    correct_count = sum(1 for entry in answer_history if entry)
    answered = len(answer_history)
    percentage = (
        round_half_up(correct_count / answered * 100) if answered else 0
    )
    wrong = tuple(
        question
        for index, question in enumerate(pool)
        if index >= answered or not answer_history[index]
    )
    return SessionStatistics(
        correct_count=correct_count,
        total_answered=answered,
        percentage=percentage,
        total_questions=len(pool),
        solved_count=len(solved_keys),
        all_solved=bool(fresh_pool_keys) and fresh_pool_keys <= solved_keys,
        total_tries=total_tries,
        elapsed_ms=elapsed_ms,
        wrong_questions=wrong,
    )


def calculate_grade(percentage: float) -> GradeInfo:
    """Map a percentage onto the 1 (best) to 6 school grade scale."""

    for threshold, grade, label in _GRADES:
        if percentage >= threshold:
            return GradeInfo(grade, label)
    return GradeInfo(6, "Ungenügend")


def calculate_xp(
    percentage: float,
    elapsed_ms: int,
    total_questions: int,
    attempts: int,
) -> XPCalculation:
    """Score a finished pass from accuracy, speed, and number of tries."""

    base_xp = total_questions * BASE_XP_PER_QUESTION
    percentage_multiplier = (
        MIN_PERCENTAGE_MULTIPLIER
        + (percentage / 100) * PERCENTAGE_MULTIPLIER_RANGE
    )
    speed_multiplier = SPEED_VERY_SLOW_MULTIPLIER
    if total_questions > 0:
        average_seconds = elapsed_ms / 1000 / total_questions
        for limit, multiplier in SPEED_TIERS:
            if average_seconds <= limit:
                speed_multiplier = multiplier
                break
    attempt_multiplier = max(
        MIN_ATTEMPT_MULTIPLIER,
        BASE_ATTEMPT_MULTIPLIER - attempts * ATTEMPT_PENALTY_RATE,
    )
    total = round_half_up(
        base_xp * percentage_multiplier * speed_multiplier * attempt_multiplier
    )
    return XPCalculation(
        total_xp=total,
        base_xp=base_xp,
        percentage_multiplier=percentage_multiplier,
        speed_multiplier=speed_multiplier,
        attempt_multiplier=attempt_multiplier,
    )


def format_elapsed(ms: int) -> str:
    total_seconds = max(0, ms) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"
