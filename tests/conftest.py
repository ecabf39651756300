from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
# Make src/ and the shared fixtures importable without an install
for extra in (TESTS_DIR, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import FakeClock, FrozenNow  # noqa: E402

_QUIZPLAY_ENV = (
    "QUIZPLAY_CONFIG",
    "QUIZPLAY_LOG_LEVEL",
    "QUIZPLAY_FLASHCARD",
    "QUIZPLAY_BASE_INTERVAL_HOURS",
)


@pytest.fixture
def clock() -> FakeClock:
    """Hand-advanced monotonic clock for timer assertions."""

    return FakeClock()


@pytest.fixture
def frozen_now() -> FrozenNow:
    return FrozenNow()


@pytest.fixture
def workspace_home(tmp_path: Path, monkeypatch) -> Path:
    """Point QUIZPLAY_DATA_HOME at a per-test directory."""

    home = tmp_path / "quizplay-home"
    monkeypatch.setenv("QUIZPLAY_DATA_HOME", str(home))
    for name in _QUIZPLAY_ENV:
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture(autouse=True)
def _reset_quizplay_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("quizplay")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
