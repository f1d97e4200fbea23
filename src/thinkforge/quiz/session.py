"""Quiz session state machine.

A session walks through one :class:`QuestionBatch`: it records answers,
runs the per-question timer and, after the last question, folds the result
into the user's progress. Rendering lives in :mod:`thinkforge.quiz.view`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Mapping, Optional, Protocol

from ..errors import GenerationError, NetworkError, ValidationError
from .generator import QuestionGenerator
from .models import AnswerRecord, Question, QuestionBatch
from .progress import QuizOutcome, UserProgress, summarize_session
from .scoring import is_correct
from .timer import DEFAULT_TIME_LIMITS, QuestionTimer

__all__ = ["SessionStatus", "ProgressRecorder", "QuizSession"]

LOGGER = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"


class ProgressRecorder(Protocol):
    def record(self, outcome: QuizOutcome) -> UserProgress:
        """Persist a completed quiz and return the updated progress."""


class QuizSession:
    """Drive a five-question quiz from generation to progress fold."""

    def __init__(
        self,
        generator: QuestionGenerator,
        recorder: ProgressRecorder,
        *,
        time_limits: Mapping[str, int] = DEFAULT_TIME_LIMITS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._generator = generator
        self._recorder = recorder
        self._logger = logger or LOGGER
        self.timer = QuestionTimer(
            limits=time_limits, on_expire=self._on_timer_expired
        )
        self._status = SessionStatus.IDLE
        self._batch: Optional[QuestionBatch] = None
        self._index = 0
        self._selections: dict[str, int] = {}
        self._records: list[AnswerRecord] = []
        self.last_outcome: Optional[QuizOutcome] = None
        self.last_progress: Optional[UserProgress] = None

    # State accessors -----------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._status is SessionStatus.ACTIVE

    @property
    def subject(self) -> Optional[str]:
        return self._batch.subject if self._batch else None

    @property
    def batch(self) -> Optional[QuestionBatch]:
        return self._batch

    @property
    def index(self) -> int:
        return self._index

    @property
    def current_question(self) -> Question:
        self._require_active()
        return self._batch[self._index]

    @property
    def is_last_question(self) -> bool:
        return (
            self._batch is not None and self._index == len(self._batch) - 1
        )

    @property
    def records(self) -> tuple[AnswerRecord, ...]:
        return tuple(self._records)

    @property
    def selections(self) -> Mapping[str, int]:
        return dict(self._selections)

    def record_for(self, question_id: str) -> Optional[AnswerRecord]:
        for record in self._records:
            if record.question_id == question_id:
                return record
        return None

    # Operations ----------------------------------------------------------

    def start(self, subject: str) -> QuestionBatch:
        """Generate a batch for ``subject`` and begin the quiz.

        On failure the session keeps whatever state it had before.
        """

        batch = self.fetch_batch(subject)
        self.begin(batch)
        return batch

    def fetch_batch(self, subject: str) -> QuestionBatch:
        """Return a validated batch without touching session state."""

        try:
            return self._generator.generate(subject)
        except (NetworkError, ValidationError) as exc:
            self._logger.warning(
                "Quiz start failed",
                extra={"subject": subject, "error": str(exc)},
            )
            raise GenerationError(
                f"Failed to generate questions for {subject}: {exc}"
            ) from exc

    def begin(self, batch: QuestionBatch) -> None:
        """Begin a quiz with an already validated ``batch``."""

        self._reset()
        self._batch = batch
        self._status = SessionStatus.ACTIVE
        self.timer.start(batch[0].difficulty)
        self._logger.info(
            "Quiz started",
            extra={"subject": batch.subject, "questions": len(batch)},
        )

    def select_answer(self, question_id: str, option: int) -> AnswerRecord:
        self._require_active()
        question = self._batch.by_id(question_id)
        if question is None:
            raise ValueError(f"Unknown question id: {question_id}")
        if not 0 <= option < len(question.options):
            raise ValueError(f"Option index out of range: {option}")
        on_screen = question.id == self.current_question.id
        existing = self.record_for(question_id)
        if on_screen:
            elapsed = self.timer.elapsed
        else:
            elapsed = existing.elapsed_seconds if existing else 0
        record = AnswerRecord(
            question_id=question_id,
            selected=option,
            is_correct=is_correct(question, option),
            elapsed_seconds=elapsed,
        )
        self._upsert(record)
        self._selections[question_id] = option
        if on_screen:
            self.timer.mark_answered()
        return record

    def advance(self) -> Optional[QuizOutcome]:
        """Move to the next question, or complete the quiz on the last one.

        Completion persists the outcome through the recorder. Persistence
        errors propagate after the session is discarded.
        """

        self._require_active()
        if not self.is_last_question:
            self._index += 1
            self.timer.start(self.current_question.difficulty)
            return None
        return self._complete()

    def retreat(self) -> None:
        self._require_active()
        if self._index == 0:
            return
        self._index -= 1
        self.timer.start(self.current_question.difficulty)

    def abandon(self) -> None:
        if self._batch is not None:
            self._logger.info(
                "Quiz abandoned",
                extra={"subject": self._batch.subject, "index": self._index},
            )
        self._reset()

    def tick(self) -> None:
        if self.is_active:
            self.timer.tick()

    # Internals -----------------------------------------------------------

    def _complete(self) -> QuizOutcome:
        self.timer.cancel()
        outcome = summarize_session(self._batch, self._records)
        subject = self._batch.subject
        try:
            progress = self._recorder.record(outcome)
        finally:
            self._reset()
        cache = self._generator.cache
        if cache is not None:
            cache.discard(subject)
        self._status = SessionStatus.COMPLETED
        self.last_outcome = outcome
        self.last_progress = progress
        return outcome

    def _on_timer_expired(self, elapsed: int) -> None:
        question = self.current_question
        if self.record_for(question.id) is None:
            self._upsert(AnswerRecord.skipped_for(question.id, elapsed))
        self._logger.info(
            "Question timed out",
            extra={"question_id": question.id, "elapsed": elapsed},
        )
        self.advance()

    def _upsert(self, record: AnswerRecord) -> None:
        for position, existing in enumerate(self._records):
            if existing.question_id == record.question_id:
                self._records[position] = record
                return
        self._records.append(record)

    def _require_active(self) -> None:
        if not self.is_active or self._batch is None:
            raise RuntimeError("No quiz in progress")

    def _reset(self) -> None:
        self.timer.cancel()
        self._status = SessionStatus.IDLE
        self._batch = None
        self._index = 0
        self._selections = {}
        self._records = []
