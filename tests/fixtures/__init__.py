"""Shared builders and fakes for the quizplay test suite."""

from .quizzes import (  # noqa: F401
    FakeClock,
    FrozenNow,
    make_question,
    make_quiz,
    quiz_payload,
    write_quiz,
)

__all__ = [
    "FakeClock",
    "FrozenNow",
    "make_question",
    "make_quiz",
    "quiz_payload",
    "write_quiz",
]
