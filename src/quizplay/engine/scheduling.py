"""Pluggable spaced-repetition scheduling policies."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

__all__ = [
    "ScheduleDecision",
    "SchedulingPolicy",
    "DoublingSchedulingPolicy",
]


@dataclass(frozen=True)
class ScheduleDecision:
    next_review_date: datetime | None
    difficulty_level: int


class SchedulingPolicy(Protocol):
    def schedule(
        self,
        prior_streak: int,
        attempts: int,
        is_correct: bool,
        now: datetime,
    ) -> ScheduleDecision: ...


@dataclass(frozen=True)
class DoublingSchedulingPolicy:
    """Review interval doubles with every consecutive correct answer.

    The interval is ``base_interval * 2 ** min(streak, max_exponent)`` where
    ``streak`` is the streak after the current answer (a wrong answer resets it
    to zero, giving one base interval). Difficulty follows a ladder: 0 new,
    1 attempted, 2 to 3 learning, 4 known, 5 mastered.
    """

    base_interval: timedelta = timedelta(days=1)
    max_exponent: int = 5

    def schedule(
        self,
        prior_streak: int,
        attempts: int,
        is_correct: bool,
        now: datetime,
    ) -> ScheduleDecision:
        streak = prior_streak + 1 if is_correct else 0
        multiplier = 2 ** min(streak, self.max_exponent)
        return ScheduleDecision(
            next_review_date=now + self.base_interval * multiplier,
            difficulty_level=self.difficulty_for(streak, attempts),
        )

    @staticmethod
    def difficulty_for(streak: int, attempts: int) -> int:
        if streak >= 5:
            return 5
        if streak >= 3:
            return 4
        if streak >= 2:
            return 3
        if streak >= 1:
            return 2
        if attempts > 0:
            return 1
        return 0
