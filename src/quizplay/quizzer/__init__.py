from ._main import build_arg_parser, main
from .session import (
    QuizSessionResult,
    SessionCommand,
    parse_session_command,
    run_quiz_session,
)

__all__ = [
    "build_arg_parser",
    "main",
    "QuizSessionResult",
    "SessionCommand",
    "parse_session_command",
    "run_quiz_session",
]
