from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quizplay.engine import (
    DoublingSchedulingPolicy,
    ProgressRecord,
    ProgressTracker,
)

NOW = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)


def test_first_wrong_answer_creates_record() -> None:
    tracker = ProgressTracker(DoublingSchedulingPolicy())

    record = tracker.record("quiz_q0", False, NOW)

    assert record.attempts == 1
    assert record.answered is False
    assert record.last_answer_correct is False
    assert record.correct_streak == 0
    assert record.last_attempt_date == NOW
    assert record.next_review_date == NOW + timedelta(days=1)
    assert record.difficulty_level == 1
    assert "quiz_q0" in tracker


def test_correct_streak_doubles_review_interval() -> None:
    tracker = ProgressTracker(DoublingSchedulingPolicy())

    tracker.record("k", True, NOW)
    record = tracker.record("k", True, NOW)

    assert record.answered is True
    assert record.correct_streak == 2
    assert record.next_review_date == NOW + timedelta(days=4)
    assert record.difficulty_level == 3


def test_wrong_answer_resets_streak_but_keeps_answered() -> None:
    tracker = ProgressTracker(DoublingSchedulingPolicy())
    tracker.record("k", True, NOW)

    record = tracker.record("k", False, NOW)

    assert record.answered is True
    assert record.correct_streak == 0
    assert record.attempts == 2
    assert record.last_answer_correct is False


def test_interval_is_capped_by_max_exponent() -> None:
    policy = DoublingSchedulingPolicy(base_interval=timedelta(hours=1))

    decision = policy.schedule(10, 11, True, NOW)

    assert decision.next_review_date == NOW + timedelta(hours=32)
    assert decision.difficulty_level == 5


@pytest.mark.parametrize(
    "streak, attempts, expected",
    [(0, 0, 0), (0, 3, 1), (1, 1, 2), (2, 2, 3), (4, 4, 4), (6, 6, 5)],
)
def test_difficulty_ladder(streak, attempts, expected) -> None:
    assert DoublingSchedulingPolicy.difficulty_for(streak, attempts) == (
        expected
    )


def test_merge_never_unanswers() -> None:
    tracker = ProgressTracker(
        DoublingSchedulingPolicy(),
        {"k": ProgressRecord(answered=True, attempts=1)},
    )

    tracker.merge({"k": ProgressRecord(answered=False, attempts=3)})

    merged = tracker.get("k")
    assert merged is not None
    assert merged.answered is True
    assert merged.attempts == 3


def test_view_is_read_only_and_clear_empties() -> None:
    tracker = ProgressTracker(DoublingSchedulingPolicy())
    tracker.record("k", True, NOW)
    view = tracker.view()

    with pytest.raises(TypeError):
        view["other"] = ProgressRecord()  # type: ignore[index]

    tracker.clear()
    assert len(tracker) == 0
    assert "k" in view
