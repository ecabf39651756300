"""Per-question mastery bookkeeping."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from types import MappingProxyType
from typing import Mapping

from .models import ProgressRecord
from .scheduling import SchedulingPolicy

__all__ = ["ProgressTracker"]


class ProgressTracker:
    """Maintain progress records keyed by stable question keys.

    The map only grows; ``clear`` is reserved for an explicit restart. Review
    dates and difficulty always come from the injected policy.
    """

    def __init__(
        self,
        policy: SchedulingPolicy,
        initial: Mapping[str, ProgressRecord] | None = None,
    ) -> None:
        self._policy = policy
        self._records: dict[str, ProgressRecord] = dict(initial or {})

    def get(self, key: str) -> ProgressRecord | None:
        return self._records.get(key)

    def record(
        self, key: str, is_correct: bool, now: datetime
    ) -> ProgressRecord:
        previous = self._records.get(key) or ProgressRecord()
        attempts = previous.attempts + 1
        decision = self._policy.schedule(
            previous.correct_streak, attempts, is_correct, now
        )
        updated = replace(
            previous,
            answered=previous.answered or is_correct,
            attempts=attempts,
            last_answer_correct=is_correct,
            correct_streak=previous.correct_streak + 1 if is_correct else 0,
            last_attempt_date=now,
            next_review_date=decision.next_review_date,
            difficulty_level=decision.difficulty_level,
        )
        self._records[key] = updated
        return updated

    def merge(self, records: Mapping[str, ProgressRecord]) -> None:
        """Fold in records without ever un-answering a question."""

        for key, incoming in records.items():
            current = self._records.get(key)
            if current is not None and current.answered:
                incoming = replace(incoming, answered=True)
            self._records[key] = incoming

    def clear(self) -> None:
        self._records.clear()

    def view(self) -> Mapping[str, ProgressRecord]:
        return MappingProxyType(dict(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records
