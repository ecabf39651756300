"""Correctness checks for submitted answer sets."""

from __future__ import annotations

import logging
from typing import AbstractSet

from .models import Question

__all__ = ["AnswerEvaluator"]


class AnswerEvaluator:
    """Grade selections against a question's correct indices.

    Malformed questions never raise; they simply produce no feedback and
    grade as incorrect.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    def evaluate(
        self,
        question: Question,
        selected: AbstractSet[int],
        *,
        self_grade: bool | None = None,
    ) -> bool:
        """Return whether ``selected`` answers ``question`` correctly.

        When ``self_grade`` is given (flashcard mode) it is taken as the result
        verbatim.
        """

        if self_grade is not None:
            return bool(self_grade)
        expected = self.feedback_indices(question)
        if not expected or not selected:
            return False
        if not question.is_multi_select:
            (only,) = expected
            return len(selected) == 1 and only in selected
        return set(selected) == set(expected)

    def feedback_indices(self, question: Question) -> frozenset[int]:
        """Correct indices that actually exist in the answer list."""

        valid = frozenset(
            index
            for index in question.correct_indices
            if 0 <= index < len(question.answers)
        )
        if valid != question.correct_indices or not valid:
            self._logger.warning(
                "Question has inconsistent answers; feedback degraded",
                extra={
                    "event": "malformed_question",
                    "slot": question.slot,
                    "answer_count": len(question.answers),
                    "correct_indices": sorted(question.correct_indices),
                },
            )
        return valid
