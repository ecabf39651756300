"""Build the fixed, shuffled question pool for a session."""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, Mapping, MutableSequence, Sequence, TypeVar

from .models import ProgressRecord, Question, StartMode

__all__ = [
    "fisher_yates",
    "flashcard_eligible",
    "select_pool",
    "count_due_reviews",
]

T = TypeVar("T")

_LOGGER = logging.getLogger(__name__)


def fisher_yates(items: MutableSequence[T], rng: random.Random) -> None:
    """Shuffle ``items`` in place with a single Fisher-Yates pass."""

    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]


def flashcard_eligible(questions: Sequence[Question]) -> list[Question]:
    return [q for q in questions if q.is_flashcard_eligible]


def select_pool(
    questions: Sequence[Question],
    mode: StartMode | str,
    *,
    key_for: Callable[[Question], str],
    progress: Mapping[str, ProgressRecord] | None = None,
    flashcard: bool = False,
    now: datetime,
    rng: random.Random,
    logger: logging.Logger | None = None,
) -> tuple[Question, ...]:
    """Select and shuffle the questions in play for a session.

    - fresh: every question (flashcard-eligible ones in flashcard mode)
    - continue: attempted questions not yet answered correctly
    - review: answered questions whose review date has passed
    An empty filtered set falls back to the fresh set.
    """

    log = logger or _LOGGER
    start_mode = StartMode.from_value(mode)
    base = flashcard_eligible(questions) if flashcard else list(questions)
    records = progress or {}

    if start_mode is StartMode.CONTINUE:
        filtered = [
            q for q in base if _is_in_progress(records.get(key_for(q)))
        ]
    elif start_mode is StartMode.REVIEW:
        filtered = [
            q for q in base if _is_due(records.get(key_for(q)), now)
        ]
    else:
        filtered = base

    fell_back = not filtered
    pool = list(base if fell_back else filtered)
    fisher_yates(pool, rng)

    log.info(
        "Selected question pool",
        extra={
            "event": "pool_selected",
            "mode": start_mode.value,
            "flashcard": flashcard,
            "pool_size": len(pool),
            "fell_back": fell_back and start_mode is not StartMode.FRESH,
        },
    )
    return tuple(pool)


def count_due_reviews(
    progress: Mapping[str, ProgressRecord], now: datetime
) -> int:
    return sum(1 for record in progress.values() if record.is_due(now))


def _is_in_progress(record: ProgressRecord | None) -> bool:
    return record is not None and record.attempts > 0 and not record.answered


def _is_due(record: ProgressRecord | None, now: datetime) -> bool:
    return record is not None and record.is_due(now)
