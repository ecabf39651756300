"""Foreground elapsed-time tracking with pause-on-hidden semantics."""

from __future__ import annotations

import time
from typing import Callable

__all__ = ["TimerController"]

Clock = Callable[[], float]


class TimerController:
    """Accumulate elapsed time only while visible and not frozen.

    ``elapsed = previous_elapsed + (now - session_start_mark)`` while a segment
    is open. Hiding the page or completing the pass closes the segment and
    keeps its value in ``previous_elapsed``.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        previous_elapsed_ms: int = 0,
    ) -> None:
        self._clock = clock or time.monotonic
        self.previous_elapsed = max(0, previous_elapsed_ms) / 1000.0
        self.page_visible = True
        self.frozen = False
        self.session_start_mark: float | None = self._clock()

    @property
    def running(self) -> bool:
        return self.session_start_mark is not None

    @property
    def elapsed_ms(self) -> int:
        elapsed = self.previous_elapsed
        if self.session_start_mark is not None:
            elapsed += self._clock() - self.session_start_mark
        return int(elapsed * 1000)

    def set_page_visible(self, visible: bool) -> None:
        if visible == self.page_visible:
            return
        self.page_visible = visible
        if visible:
            self._open_segment()
        else:
            self._close_segment()

    def freeze(self) -> None:
        """Stop for good once a pass completes."""

        self._close_segment()
        self.frozen = True

    def unfreeze(self) -> None:
        self.frozen = False
        self._open_segment()

    def reset(self) -> None:
        self.previous_elapsed = 0.0
        self.frozen = False
        self.session_start_mark = None
        self._open_segment()

    def _open_segment(self) -> None:
        if self.frozen or not self.page_visible or self.running:
            return
        self.session_start_mark = self._clock()

    def _close_segment(self) -> None:
        if self.session_start_mark is None:
            return
        self.previous_elapsed += self._clock() - self.session_start_mark
        self.session_start_mark = None
