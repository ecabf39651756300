"""Session state machine driving a single quiz-taking episode.

A ``QuizSession`` owns the question pool for its lifetime, walks the learner
through select, submit, and next, records mastery through the progress
tracker, and can fork into repeat-wrong passes once a pass completes. Nothing
in here performs I/O: hosts persist the snapshots delivered to ``on_change``.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Mapping, Sequence

from .evaluator import AnswerEvaluator
from .identity import QuestionIdentityResolver, SlotIdentityResolver
from .models import (
    EmptyPoolError,
    ProgressRecord,
    Question,
    Quiz,
    SessionSnapshot,
    ShuffledAnswer,
    StartMode,
)
from .pool import fisher_yates, flashcard_eligible, select_pool
from .progress import ProgressTracker
from .scheduling import DoublingSchedulingPolicy, SchedulingPolicy
from .statistics import SessionStatistics, aggregate_statistics
from .timer import Clock, TimerController

__all__ = [
    "QuizSession",
    "SessionState",
    "SnapshotListener",
]

SnapshotListener = Callable[[SessionSnapshot], None]


class SessionState(Enum):
    ANSWERING = "answering"
    ANSWER_SELECTED = "answer_selected"
    SUBMITTED = "submitted"
    SESSION_COMPLETE = "session_complete"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuizSession:
    """Drive selection, submission, advancement, completion, and retries."""

    def __init__(
        self,
        quiz: Quiz,
        *,
        resumed: SessionSnapshot | None = None,
        mode: StartMode | str = StartMode.FRESH,
        flashcard: bool | None = None,
        policy: SchedulingPolicy | None = None,
        resolver: QuestionIdentityResolver | None = None,
        clock: Clock | None = None,
        now: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        on_change: SnapshotListener | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.quiz = quiz
        self.mode = StartMode.from_value(mode)
        self.flashcard = quiz.flashcard if flashcard is None else flashcard
        self._resolver = resolver or SlotIdentityResolver()
        self._now = now or _utcnow
        self._rng = rng or random.Random()
        self._on_change = on_change
        self._logger = logger or logging.getLogger(__name__)
        self._evaluator = AnswerEvaluator(self._logger)

        snapshot = resumed or SessionSnapshot()
        self._progress = ProgressTracker(policy or DoublingSchedulingPolicy())
        self._progress.merge(snapshot.progress_map)
        fresh = (
            flashcard_eligible(quiz.questions)
            if self.flashcard
            else quiz.questions
        )
        self._fresh_keys = frozenset(self.key_for(q) for q in fresh)
        self.pool: tuple[Question, ...] = select_pool(
            quiz.questions,
            self.mode,
            key_for=self.key_for,
            progress=snapshot.progress_map,
            flashcard=self.flashcard,
            now=self._now(),
            rng=self._rng,
            logger=self._logger,
        )
        if not self.pool:
            raise EmptyPoolError(
                f"Quiz '{quiz.id}' has no questions to play in this mode."
            )

        self.current_index = 0
        self.selected_answers: set[int] = set()
        self.submitted = False
        self.answer_history: list[bool] = []
        self.solved: set[str] = set(snapshot.solved_question_keys)
        self.total_tries = max(1, snapshot.total_tries)
        self.repeat_pool: tuple[Question, ...] | None = None
        self.complete = False
        self.timer = TimerController(
            clock, previous_elapsed_ms=snapshot.elapsed_ms
        )
        self._answer_orders: dict[int, tuple[ShuffledAnswer, ...]] = {}

    def key_for(self, question: Question) -> str:
        return self._resolver.key_for(question, self.quiz.id)

    @property
    def active_pool(self) -> tuple[Question, ...]:
        return self.repeat_pool if self.repeat_pool is not None else self.pool

    @property
    def total_questions(self) -> int:
        return len(self.active_pool)

    @property
    def current_question(self) -> Question:
        return self.active_pool[self.current_index]

    @property
    def in_repeat_pass(self) -> bool:
        return self.repeat_pool is not None

    @property
    def is_multi_select(self) -> bool:
        return self.current_question.is_multi_select

    @property
    def state(self) -> SessionState:
        if self.complete:
            return SessionState.SESSION_COMPLETE
        if self.submitted:
            return SessionState.SUBMITTED
        if self.selected_answers:
            return SessionState.ANSWER_SELECTED
        return SessionState.ANSWERING

    @property
    def last_result(self) -> bool | None:
        return self.answer_history[-1] if self.answer_history else None

    @property
    def elapsed_ms(self) -> int:
        return self.timer.elapsed_ms

    @property
    def progress_map(self) -> Mapping[str, ProgressRecord]:
        return self._progress.view()

    @property
    def shuffled_answers(self) -> tuple[ShuffledAnswer, ...]:
        """Answers of the current question in a per-question fixed order."""

        question = self.current_question
        order = self._answer_orders.get(question.slot)
        if order is None:
            items = [
                ShuffledAnswer(index, answer)
                for index, answer in enumerate(question.answers)
            ]
            fisher_yates(items, self._rng)
            order = tuple(items)
            self._answer_orders[question.slot] = order
        return order

    def correct_answers(self) -> list[ShuffledAnswer]:
        """Correct answers of the current question, in display order."""

        expected = self._evaluator.feedback_indices(self.current_question)
        return [
            item
            for item in self.shuffled_answers
            if item.original_index in expected
        ]

    def statistics(self) -> SessionStatistics:
        return aggregate_statistics(
            pool=self.active_pool,
            answer_history=self.answer_history,
            solved_keys=frozenset(self.solved),
            fresh_pool_keys=self._fresh_keys,
            total_tries=self.total_tries,
            elapsed_ms=self.elapsed_ms,
        )

    def wrong_questions(self) -> Sequence[Question]:
        return self.statistics().wrong_questions

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            answer_history=tuple(self.answer_history),
            solved_question_keys=tuple(sorted(self.solved)),
            total_tries=self.total_tries,
            elapsed_ms=self.elapsed_ms,
            progress_map=self._progress.view(),
        )

    def select(self, original_index: int) -> bool:
        """Select (or toggle, for multi-select) an answer by original index."""

        if self.complete or self.submitted:
            return False
        question = self.current_question
        if not 0 <= original_index < len(question.answers):
            self._logger.debug(
                "Ignored selection outside the answer list",
                extra={"slot": question.slot, "index": original_index},
            )
            return False
        if question.is_multi_select:
            if original_index in self.selected_answers:
                self.selected_answers.discard(original_index)
            else:
                self.selected_answers.add(original_index)
        else:
            self.selected_answers = {original_index}
        return True

    def submit(self, self_grade: bool | None = None) -> bool | None:
        """Grade the current question; ``None`` when nothing happened.

        Malformed questions (no correct index inside the answer list) accept
        an empty submission and grade it as incorrect so the pass can move on.
        """

        if self.complete or self.submitted:
            return None
        question = self.current_question
        if self.flashcard:
            if self_grade is None:
                return None
            result = self._evaluator.evaluate(
                question, self.selected_answers, self_grade=self_grade
            )
        else:
            # A question without any answerable choice grades as wrong.
            expected = self._evaluator.feedback_indices(question)
            if not self.selected_answers and expected:
                return None
            result = self._evaluator.evaluate(question, self.selected_answers)

        self.submitted = True
        self.answer_history.append(result)
        key = self.key_for(question)
        record = self._progress.record(key, result, self._now())
        if result:
            self.solved.add(key)
        self._logger.info(
            "Answer submitted",
            extra={
                "event": "answer_submitted",
                "quiz_id": self.quiz.id,
                "question_key": key,
                "correct": result,
                "attempts": record.attempts,
                "streak": record.correct_streak,
            },
        )
        self._notify()
        return result

    def next(self) -> bool:
        """Advance after a submission; completes the pass on the last one."""

        if self.complete or not self.submitted:
            return False
        if self.current_index < self.total_questions - 1:
            self.current_index += 1
            self._reset_question()
            return True
        self._complete_pass()
        return True

    def restart(self) -> None:
        self.answer_history = []
        self._progress.clear()
        self.solved.clear()
        self.total_tries = 1
        self.timer.reset()
        self.repeat_pool = None
        self.complete = False
        self.current_index = 0
        self._reset_question()
        self._logger.info(
            "Session restarted",
            extra={"event": "restart", "quiz_id": self.quiz.id},
        )
        self._notify()

    def repeat_wrong(self) -> bool:
        """Start a pass over the questions answered wrong in this pass."""

        if not self.complete:
            return False
        active = self.active_pool
        wrong = tuple(
            question
            for index, question in enumerate(active)
            if not self._answered_correctly(index)
        )
        if not wrong:
            return False
        self._merge_solved(active)
        self.repeat_pool = wrong
        self.current_index = 0
        self.answer_history = []
        self.complete = False
        self.total_tries += 1
        self._reset_question()
        self.timer.unfreeze()
        self._logger.info(
            "Repeating wrong answers",
            extra={
                "event": "repeat_wrong",
                "quiz_id": self.quiz.id,
                "repeat_size": len(wrong),
                "total_tries": self.total_tries,
            },
        )
        self._notify()
        return True

    def set_page_visible(self, visible: bool) -> None:
        self.timer.set_page_visible(visible)

    def _complete_pass(self) -> None:
        self.complete = True
        self._merge_solved(self.active_pool)
        self.timer.freeze()
        stats = self.statistics()
        self._logger.info(
            "Pass completed",
            extra={
                "event": "pass_completed",
                "quiz_id": self.quiz.id,
                "correct": stats.correct_count,
                "answered": stats.total_answered,
                "percentage": stats.percentage,
                "all_solved": stats.all_solved,
                "elapsed_ms": stats.elapsed_ms,
            },
        )
        self._notify()

    def _merge_solved(self, questions: Sequence[Question]) -> None:
        for index, question in enumerate(questions):
            if self._answered_correctly(index):
                self.solved.add(self.key_for(question))

    def _answered_correctly(self, index: int) -> bool:
        return index < len(self.answer_history) and self.answer_history[index]

    def _reset_question(self) -> None:
        self.selected_answers = set()
        self.submitted = False

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())
