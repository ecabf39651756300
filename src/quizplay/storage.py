"""Quiz file loading and on-disk progress snapshots for the CLI host."""

from __future__ import annotations

import json
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Mapping

from .engine.models import ProgressRecord, Quiz, SessionSnapshot

__all__ = [
    "ProgressStore",
    "ProgressStoreError",
    "QuizFormatError",
    "load_quiz",
    "read_jsonl",
]

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]+")


class QuizFormatError(RuntimeError):
    """Raised when a quiz file cannot be parsed into questions."""


class ProgressStoreError(RuntimeError):
    """Raised when a saved snapshot cannot be read or written."""


def read_jsonl(path: Path) -> List[dict]:
    data: List[dict] = []
    with Path(path).open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            data.append(json.loads(line))
    return data


def load_quiz(path: Path) -> Quiz:
    """Load a quiz from a ``.json`` document or a ``.jsonl`` question list.

    JSONL files hold one question per line; the quiz id and title default to
    the file stem. Questions without any correct index are rejected because
    they can never be answered.
    """

    path = Path(path)
    try:
        if path.suffix.lower() == ".jsonl":
            payload: Any = {
                "id": path.stem,
                "title": path.stem,
                "questions": read_jsonl(path),
            }
        else:
            payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise QuizFormatError(f"Quiz file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise QuizFormatError(
            f"Failed to parse quiz file {path}: {exc}"
        ) from exc

    if not isinstance(payload, Mapping):
        raise QuizFormatError(f"Quiz file must hold a JSON object: {path}")
    payload = dict(payload)
    payload.setdefault("id", path.stem)
    payload.setdefault("title", payload["id"])
    if not isinstance(payload.get("questions"), list):
        raise QuizFormatError(f"Quiz file has no 'questions' list: {path}")

    quiz = Quiz.from_dict(payload)
    for question in quiz.questions:
        if not question.correct_indices:
            raise QuizFormatError(
                f"Question {question.slot + 1} in {path} has no correct "
                "answer."
            )
    return quiz


class ProgressStore:
    """Snapshots stored as ``<root>/<user>/<quiz_id>.json``."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    def path_for(self, user: str, quiz_id: str) -> Path:
        return self._root / _safe_name(user) / f"{_safe_name(quiz_id)}.json"

    def load(self, user: str, quiz_id: str) -> SessionSnapshot | None:
        target = self.path_for(user, quiz_id)
        if not target.is_file():
            return None
        try:
            payload = json.loads(target.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ProgressStoreError(
                f"Failed to parse progress file: {target}"
            ) from exc
        if not isinstance(payload, Mapping):
            raise ProgressStoreError(
                f"Progress file must hold a JSON object: {target}"
            )
        return SessionSnapshot.from_dict(payload)

    def save(
        self, user: str, quiz_id: str, snapshot: SessionSnapshot
    ) -> Path:
        target = self.path_for(user, quiz_id)
        payload = dict(snapshot.to_dict())
        payload["username"] = user
        payload["quizId"] = quiz_id
        payload["lastUpdated"] = datetime.now(timezone.utc).isoformat()
        _atomic_write_json(target, payload)
        return target

    def merge_records(
        self,
        user: str,
        quiz_id: str,
        records: Mapping[str, ProgressRecord],
    ) -> SessionSnapshot:
        """Write ``records`` into the quiz's snapshot, keeping other fields."""

        current = self.load(user, quiz_id) or SessionSnapshot()
        progress = dict(current.progress_map)
        progress.update(records)
        solved = set(current.solved_question_keys)
        solved.update(key for key, rec in records.items() if rec.answered)
        merged = SessionSnapshot(
            answer_history=current.answer_history,
            solved_question_keys=tuple(sorted(solved)),
            total_tries=current.total_tries,
            elapsed_ms=current.elapsed_ms,
            progress_map=progress,
        )
        self.save(user, quiz_id, merged)
        return merged


def _safe_name(value: str) -> str:
    cleaned = _SAFE_NAME.sub("-", value.strip()).strip("-.")
    return cleaned or "default"


def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
    )
    try:
        try:
            json.dump(payload, handle, indent=2, sort_keys=True)
            handle.flush()
            os.fsync(handle.fileno())
        finally:
            handle.close()
        os.replace(handle.name, path)
    except (OSError, TypeError, ValueError) as exc:
        _discard(handle.name)
        raise ProgressStoreError(f"Failed to write {path}: {exc}") from exc
    except BaseException:
        _discard(handle.name)
        raise


def _discard(name: str) -> None:
    if os.path.exists(name):
        os.unlink(name)
