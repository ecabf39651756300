from __future__ import annotations

from quizplay.engine import TimerController


def test_elapsed_follows_the_clock(clock) -> None:
    timer = TimerController(clock)

    clock.advance(3)

    assert timer.running is True
    assert timer.elapsed_ms == 3000


def test_hidden_time_is_not_counted(clock) -> None:
    timer = TimerController(clock)
    clock.advance(2)

    timer.set_page_visible(False)
    clock.advance(5)
    assert timer.elapsed_ms == 2000

    timer.set_page_visible(True)
    clock.advance(1)
    assert timer.elapsed_ms == 3000


def test_repeated_visibility_events_are_ignored(clock) -> None:
    timer = TimerController(clock)
    clock.advance(1)
    timer.set_page_visible(True)
    clock.advance(1)

    assert timer.elapsed_ms == 2000


def test_freeze_stops_until_unfreeze(clock) -> None:
    timer = TimerController(clock)
    clock.advance(4)

    timer.freeze()
    clock.advance(10)
    assert timer.elapsed_ms == 4000

    timer.set_page_visible(False)
    timer.set_page_visible(True)
    clock.advance(10)
    assert timer.elapsed_ms == 4000

    timer.unfreeze()
    clock.advance(1)
    assert timer.elapsed_ms == 5000


def test_previous_elapsed_is_seeded_and_reset(clock) -> None:
    timer = TimerController(clock, previous_elapsed_ms=7000)
    clock.advance(1)
    assert timer.elapsed_ms == 8000

    timer.reset()
    clock.advance(2)
    assert timer.elapsed_ms == 2000
