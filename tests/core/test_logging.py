from __future__ import annotations

import json
import logging
from pathlib import Path

from quizplay.core import logging as core_logging


def _close(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_configure_logger_writes_json_lines(tmp_path):
    logger, log_path = core_logging.configure_logger(
        "quizplay.test",
        log_dir=tmp_path / "logs",
        level="INFO",
        filename="test.log",
    )

    logger.debug("filtered out")
    logger.info(
        "Answer submitted",
        extra={"event": "answer_submitted", "correct": True, "slot": 2},
    )

    class _Opaque:
        def __repr__(self):  # noqa: D401
            return "opaque"

    try:
        raise ValueError("boom")
    except ValueError:
        logger.exception(
            "with error",
            extra={
                "keys": frozenset({"quiz_q0"}),
                "path": Path("x"),
                "obj": _Opaque(),
            },
        )
    for handler in logger.handlers:
        handler.flush()

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["message"] == "Answer submitted"
    assert first["level"] == "INFO"
    assert first["logger"] == "quizplay.test"
    assert first["extra"] == {
        "event": "answer_submitted",
        "correct": True,
        "slot": 2,
    }

    last = json.loads(lines[-1])
    assert "ValueError" in last["exception"]
    assert last["extra"]["keys"] == ["quiz_q0"]
    assert last["extra"]["path"] == "x"
    assert last["extra"]["obj"] == "opaque"

    _close(logger)


def test_child_loggers_propagate_into_configured_file(tmp_path):
    logger, log_path = core_logging.configure_logger(
        "quizplay.parent",
        log_dir=tmp_path / "logs",
        filename="parent.log",
    )

    logging.getLogger("quizplay.parent.engine").warning("from child")
    for handler in logger.handlers:
        handler.flush()

    payload = json.loads(log_path.read_text(encoding="utf-8").strip())
    assert payload["logger"] == "quizplay.parent.engine"

    _close(logger)


def test_verbose_adds_console_handler_once(tmp_path):
    kwargs = dict(log_dir=tmp_path / "logs", verbose=True, filename="v.log")
    logger, _ = core_logging.configure_logger("quizplay.verbose", **kwargs)
    core_logging.configure_logger("quizplay.verbose", **kwargs)

    console_handlers = [
        handler
        for handler in logger.handlers
        if getattr(handler, "_quizplay_console", False)
    ]
    file_handlers = [
        handler
        for handler in logger.handlers
        if getattr(handler, "_quizplay_file", False)
    ]
    assert len(console_handlers) == 1
    assert len(file_handlers) == 1

    core_logging.configure_logger(
        "quizplay.verbose", log_dir=tmp_path / "logs", filename="v.log"
    )
    assert not any(
        getattr(handler, "_quizplay_console", False)
        for handler in logger.handlers
    )

    _close(logger)


def test_unknown_level_defaults_to_info(tmp_path):
    logger, log_path = core_logging.configure_logger(
        "quizplay.level",
        log_dir=tmp_path / "logs",
        level="chatty",
        filename="level.log",
    )

    logger.debug("hidden")
    logger.info("shown")
    for handler in logger.handlers:
        handler.flush()

    assert "shown" in log_path.read_text(encoding="utf-8")
    assert "hidden" not in log_path.read_text(encoding="utf-8")

    _close(logger)


def test_permission_error_falls_back_to_temp_dir(tmp_path, monkeypatch):
    fallback = tmp_path / "fallback"
    monkeypatch.setattr(core_logging, "_fallback_log_dir", lambda: fallback)
    original_mkdir = Path.mkdir
    blocked = tmp_path / "blocked"

    def fake_mkdir(self, *args, **kwargs):
        if self == blocked:
            raise PermissionError("nope")
        return original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fake_mkdir)

    logger, log_path = core_logging.configure_logger(
        "quizplay.fallback", log_dir=blocked, filename="f.log"
    )

    assert log_path == fallback / "f.log"

    _close(logger)
