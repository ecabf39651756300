"""Immutable quiz data and serializable progress records for the engine.

Questions receive a permanent ``slot`` when a quiz is loaded. The slot is the
only identity the engine relies on, so copies of a question (for example in a
repeat-wrong pass or a cross-quiz pool) always resolve to the same progress
entry.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, MutableMapping, Sequence

__all__ = [
    "Answer",
    "Question",
    "Quiz",
    "ProgressRecord",
    "SessionSnapshot",
    "ShuffledAnswer",
    "StartMode",
    "QuizplayError",
    "EmptyPoolError",
    "parse_timestamp",
    "format_timestamp",
]


class QuizplayError(RuntimeError):
    """Base class for engine-level errors surfaced to hosts."""


class EmptyPoolError(QuizplayError):
    """Raised when a session would start without any question in play."""


class StartMode(Enum):
    """Ways a host can open a session."""

    FRESH = "fresh"
    CONTINUE = "continue"
    REVIEW = "review"

    @classmethod
    def from_value(cls, value: "StartMode | str") -> "StartMode":
        if isinstance(value, StartMode):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        expected = ", ".join(member.value for member in cls)
        raise ValueError(
            f"Unknown start mode '{value}'. Expected one of: {expected}."
        )


@dataclass(frozen=True)
class Answer:
    """A single answer option; referenced by its index in the question."""

    type: str
    content: str
    alt_text: str | None = None

    @property
    def is_text(self) -> bool:
        return self.type == "text"

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Answer":
        alt = payload.get("altText", payload.get("alt_text"))
        if alt is None:
            alt = payload.get("alt")
        return cls(
            type=str(payload.get("type") or "text"),
            content=str(payload.get("content", "")),
            alt_text=str(alt) if alt is not None else None,
        )

    def to_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "type": self.type,
            "content": self.content,
        }
        if self.alt_text is not None:
            payload["altText"] = self.alt_text
        return payload


@dataclass(frozen=True)
class Question:
    """Immutable question as loaded from a quiz."""

    prompt: str
    answers: tuple[Answer, ...]
    correct_indices: frozenset[int]
    slot: int
    id: str | None = None
    explanation: str | None = None
    origin_quiz_id: str | None = None
    origin_slot: int | None = None

    @property
    def is_multi_select(self) -> bool:
        return len(self.correct_indices) > 1

    @property
    def is_flashcard_eligible(self) -> bool:
        """True when every correct answer exists and is text-typed."""

        if not self.correct_indices:
            return False
        for index in self.correct_indices:
            if not 0 <= index < len(self.answers):
                return False
            if not self.answers[index].is_text:
                return False
        return True

    def borrowed(self, quiz_id: str, slot: int) -> "Question":
        """Copy this question into another quiz, keeping its origin."""

        return replace(
            self,
            slot=slot,
            origin_quiz_id=self.origin_quiz_id or quiz_id,
            origin_slot=(
                self.origin_slot if self.origin_slot is not None else self.slot
            ),
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], slot: int) -> "Question":
        raw_answers = payload.get("answers")
        answers: list[Answer] = []
        if isinstance(raw_answers, Sequence) and not isinstance(
            raw_answers, (str, bytes)
        ):
            for item in raw_answers:
                if isinstance(item, Mapping):
                    answers.append(Answer.from_dict(item))
                elif item is not None:
                    answers.append(Answer("text", str(item)))
        origin_slot = payload.get("originQuestionIndex")
        explanation = payload.get("explanation")
        identifier = payload.get("id")
        return cls(
            prompt=str(payload.get("question", payload.get("prompt", ""))),
            answers=tuple(answers),
            correct_indices=_coerce_correct_indices(payload),
            slot=slot,
            id=str(identifier) if identifier else None,
            explanation=str(explanation) if explanation else None,
            origin_quiz_id=(
                str(payload["originQuizId"])
                if payload.get("originQuizId")
                else None
            ),
            origin_slot=int(origin_slot) if origin_slot is not None else None,
        )

    def to_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "question": self.prompt,
            "answers": [answer.to_dict() for answer in self.answers],
            "correctAnswerIndices": sorted(self.correct_indices),
        }
        if self.id:
            payload["id"] = self.id
        if self.explanation:
            payload["explanation"] = self.explanation
        if self.origin_quiz_id:
            payload["originQuizId"] = self.origin_quiz_id
        if self.origin_slot is not None:
            payload["originQuestionIndex"] = self.origin_slot
        return payload


def _coerce_correct_indices(payload: Mapping[str, Any]) -> frozenset[int]:
    raw = payload.get("correctAnswerIndices", payload.get("correct_indices"))
    if raw is None:
        single = payload.get("correctAnswerIndex")
        if single is None:
            single = payload.get("correct_index")
        raw = [] if single is None else [single]
    indices: set[int] = set()
    for value in raw:
        try:
            indices.add(int(value))
        except (TypeError, ValueError):
            continue
    return frozenset(indices)


@dataclass(frozen=True)
class Quiz:
    """A quiz with its questions in authoring order."""

    id: str
    title: str
    questions: tuple[Question, ...]
    flashcard: bool = False

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Quiz":
        raw_questions = payload.get("questions") or []
        questions = tuple(
            Question.from_dict(item, slot)
            for slot, item in enumerate(raw_questions)
            if isinstance(item, Mapping)
        )
        flashcard = payload.get("isFlashCardQuiz", payload.get("flashcard"))
        return cls(
            id=str(payload.get("id", "")),
            title=str(payload.get("title", "")),
            questions=questions,
            flashcard=flashcard is True,
        )

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "isFlashCardQuiz": self.flashcard,
            "questions": [question.to_dict() for question in self.questions],
        }


@dataclass(frozen=True)
class ShuffledAnswer:
    """Answer in display order, tagged with its original index."""

    original_index: int
    answer: Answer


@dataclass(frozen=True)
class ProgressRecord:
    """Per-question mastery record keyed by a stable question key."""

    answered: bool = False
    attempts: int = 0
    last_answer_correct: bool = False
    correct_streak: int = 0
    last_attempt_date: datetime | None = None
    next_review_date: datetime | None = None
    difficulty_level: int = 0

    def is_due(self, now: datetime) -> bool:
        return (
            self.answered
            and self.next_review_date is not None
            and self.next_review_date <= now
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProgressRecord":
        """Build a record, defaulting any field older snapshots lack."""

        return cls(
            answered=bool(payload.get("answered", False)),
            attempts=int(payload.get("attempts", 0) or 0),
            last_answer_correct=bool(payload.get("lastAnswerCorrect", False)),
            correct_streak=int(payload.get("correctStreak", 0) or 0),
            last_attempt_date=parse_timestamp(payload.get("lastAttemptDate")),
            next_review_date=parse_timestamp(payload.get("nextReviewDate")),
            difficulty_level=int(payload.get("difficultyLevel", 0) or 0),
        )

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "answered": self.answered,
            "attempts": self.attempts,
            "lastAnswerCorrect": self.last_answer_correct,
            "correctStreak": self.correct_streak,
            "lastAttemptDate": format_timestamp(self.last_attempt_date),
            "nextReviewDate": format_timestamp(self.next_review_date),
            "difficultyLevel": self.difficulty_level,
        }


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of everything a host needs to persist."""

    answer_history: tuple[bool, ...] = ()
    solved_question_keys: tuple[str, ...] = ()
    total_tries: int = 1
    elapsed_ms: int = 0
    progress_map: Mapping[str, ProgressRecord] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        """True when every tracked question has been answered correctly."""

        return bool(self.progress_map) and all(
            record.answered for record in self.progress_map.values()
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SessionSnapshot":
        raw_progress = payload.get("progressMap", payload.get("questions"))
        progress: dict[str, ProgressRecord] = {}
        if isinstance(raw_progress, Mapping):
            for key, value in raw_progress.items():
                if isinstance(value, Mapping):
                    progress[str(key)] = ProgressRecord.from_dict(value)
        history = payload.get("answerHistory", payload.get("answers")) or []
        solved = (
            payload.get("solvedQuestionKeys", payload.get("solvedQuestions"))
            or []
        )
        elapsed = payload.get("elapsedTimeMs", payload.get("totalElapsedTime"))
        return cls(
            answer_history=tuple(bool(item) for item in history),
            solved_question_keys=tuple(str(item) for item in solved),
            total_tries=int(payload.get("totalTries", 1) or 1),
            elapsed_ms=int(elapsed or 0),
            progress_map=progress,
        )

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "answerHistory": list(self.answer_history),
            "solvedQuestionKeys": list(self.solved_question_keys),
            "totalTries": self.total_tries,
            "elapsedTimeMs": self.elapsed_ms,
            "completed": self.completed,
            "progressMap": {
                key: record.to_dict()
                for key, record in sorted(self.progress_map.items())
            },
        }


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO-8601 strings or epoch milliseconds into aware datetimes."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()
