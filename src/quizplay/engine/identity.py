"""Stable question keys used to index progress records."""

from __future__ import annotations

from typing import Protocol

from .models import Question

__all__ = [
    "QuestionIdentityResolver",
    "SlotIdentityResolver",
]


class QuestionIdentityResolver(Protocol):
    def key_for(self, question: Question, quiz_id: str) -> str: ...


class SlotIdentityResolver:
    """Resolve keys from explicit ids or load-time slots.

    Borrowed questions resolve against their origin quiz so progress earned
    in a cross-quiz pool lands on the original question.
    """

    def key_for(self, question: Question, quiz_id: str) -> str:
        if question.id:
            return question.id
        if question.origin_quiz_id is not None:
            origin_slot = (
                question.origin_slot
                if question.origin_slot is not None
                else question.slot
            )
            return f"{question.origin_quiz_id}_q{origin_slot}"
        return f"{quiz_id}_q{question.slot}"
