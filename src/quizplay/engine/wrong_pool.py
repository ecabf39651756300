"""Cross-quiz pool of questions whose last answer was wrong."""

from __future__ import annotations

from collections import defaultdict
from typing import Mapping, Sequence

from .identity import QuestionIdentityResolver, SlotIdentityResolver
from .models import ProgressRecord, Question, Quiz, SessionSnapshot

__all__ = [
    "WRONG_QUESTIONS_POOL_QUIZ_ID",
    "build_wrong_pool",
    "split_progress_by_origin",
]

WRONG_QUESTIONS_POOL_QUIZ_ID = "__wrong_questions_pool__"


def build_wrong_pool(
    quizzes: Sequence[Quiz],
    progress_by_quiz: Mapping[str, SessionSnapshot],
    *,
    resolver: QuestionIdentityResolver | None = None,
    title: str = "Wrong answers",
) -> Quiz:
    """Collect attempted-but-last-wrong questions into a single quiz.

    Each question is re-slotted into the pool while remembering its origin, so
    the default resolver keys its progress against the original quiz.
    """

    resolve = resolver or SlotIdentityResolver()
    questions: list[Question] = []
    seen: set[str] = set()
    for quiz in quizzes:
        snapshot = progress_by_quiz.get(quiz.id)
        if snapshot is None:
            continue
        for question in quiz.questions:
            key = resolve.key_for(question, quiz.id)
            record = snapshot.progress_map.get(key)
            if record is None or key in seen:
                continue
            if record.attempts > 0 and not record.last_answer_correct:
                seen.add(key)
                questions.append(question.borrowed(quiz.id, len(questions)))
    return Quiz(
        id=WRONG_QUESTIONS_POOL_QUIZ_ID,
        title=title,
        questions=tuple(questions),
    )


def split_progress_by_origin(
    pool_quiz: Quiz,
    progress_map: Mapping[str, ProgressRecord],
    *,
    resolver: QuestionIdentityResolver | None = None,
) -> dict[str, dict[str, ProgressRecord]]:
    """Group pool progress records by the quiz each question came from."""

    resolve = resolver or SlotIdentityResolver()
    grouped: dict[str, dict[str, ProgressRecord]] = defaultdict(dict)
    for question in pool_quiz.questions:
        if question.origin_quiz_id is None:
            continue
        key = resolve.key_for(question, pool_quiz.id)
        record = progress_map.get(key)
        if record is not None:
            grouped[question.origin_quiz_id][key] = record
    return dict(grouped)
