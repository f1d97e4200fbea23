"""Fold completed quizzes into user and subject progress.

A completed session is summarised into a :class:`QuizOutcome`, stored as a
quiz attempt, then folded into the ``user_progress`` and ``subject_progress``
aggregates. Averages are kept as incremental means so the stored
``average_score`` columns stay authoritative.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, MutableMapping, Optional, Sequence

from ..backend.datastore import Datastore
from ..errors import NetworkError, PersistenceError
from .models import AnswerRecord, QuestionBatch
from .scoring import aggregate_score

__all__ = [
    "SubjectProgress",
    "UserProgress",
    "QuizOutcome",
    "incremental_mean",
    "summarize_session",
    "fold_subject",
    "fold_user",
    "ProgressRepository",
]

LOGGER = logging.getLogger(__name__)

ATTEMPTS_TABLE = "quiz_attempts"
USER_TABLE = "user_progress"
SUBJECT_TABLE = "subject_progress"


@dataclass(frozen=True)
class SubjectProgress:
    subject: str
    total_attempts: int = 0
    average_score: float = 0.0
    last_attempt: Optional[str] = None
    weak_topics: tuple[str, ...] = ()
    strong_topics: tuple[str, ...] = ()

    def to_row(self, user_id: str) -> MutableMapping[str, Any]:
        return {
            "user_id": user_id,
            "subject": self.subject,
            "total_attempts": self.total_attempts,
            "average_score": self.average_score,
            "last_attempt": self.last_attempt,
            "weak_topics": list(self.weak_topics),
            "strong_topics": list(self.strong_topics),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SubjectProgress":
        return cls(
            subject=str(row.get("subject") or ""),
            total_attempts=int(row.get("total_attempts") or 0),
            average_score=float(row.get("average_score") or 0.0),
            last_attempt=row.get("last_attempt"),
            weak_topics=tuple(row.get("weak_topics") or ()),
            strong_topics=tuple(row.get("strong_topics") or ()),
        )


@dataclass(frozen=True)
class UserProgress:
    total_quizzes: int = 0
    average_score: float = 0.0
    last_active: Optional[str] = None
    subjects: Mapping[str, SubjectProgress] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.total_quizzes == 0 and not self.subjects

    def to_row(self, user_id: str) -> MutableMapping[str, Any]:
        return {
            "user_id": user_id,
            "total_quizzes": self.total_quizzes,
            "average_score": self.average_score,
            "last_active": self.last_active,
        }


@dataclass(frozen=True)
class QuizOutcome:
    """Summary of a completed quiz, ready to be persisted."""

    subject: str
    score: float
    total_questions: int
    correct_answers: int
    time_spent: int
    questions: tuple[Mapping[str, Any], ...]
    weak_topics: tuple[str, ...]
    strong_topics: tuple[str, ...]

    def attempt_row(self, user_id: str) -> MutableMapping[str, Any]:
        return {
            "user_id": user_id,
            "subject": self.subject,
            "score": self.score,
            "total_questions": self.total_questions,
            "time_spent": self.time_spent,
            "questions": [dict(entry) for entry in self.questions],
        }


def incremental_mean(mean: float, count: int, value: float) -> float:
    """Return the mean after adding ``value`` to ``count`` prior samples."""

    return (mean * count + value) / (count + 1)


def _merge_unique(existing: Iterable[str], new: Iterable[str]) -> tuple[str, ...]:
    merged: list[str] = []
    for item in [*existing, *new]:
        if item not in merged:
            merged.append(item)
    return tuple(merged)


def summarize_session(
    batch: QuestionBatch, records: Sequence[AnswerRecord]
) -> QuizOutcome:
    """Score a finished batch.

    Questions without a record count as incorrect and tag their topic as
    weak.
    """

    by_id = {record.question_id: record for record in records}
    entries: list[Mapping[str, Any]] = []
    weak: list[str] = []
    strong: list[str] = []
    for question in batch:
        record = by_id.get(question.id)
        selected = record.selected if record else None
        correct = record is not None and record.is_correct
        topic = question.topic_tag(batch.subject)
        (strong if correct else weak).append(topic)
        entries.append(
            {
                "question": question.prompt,
                "options": list(question.options),
                "selectedAnswer": selected,
                "correctAnswer": question.correct_option,
                "isCorrect": correct,
                "explanation": question.explanation,
                "topic": topic,
            }
        )
    return QuizOutcome(
        subject=batch.subject,
        score=aggregate_score(by_id.values(), len(batch)),
        total_questions=len(batch),
        correct_answers=sum(1 for entry in entries if entry["isCorrect"]),
        time_spent=sum(record.elapsed_seconds for record in records),
        questions=tuple(entries),
        weak_topics=_merge_unique((), weak),
        strong_topics=_merge_unique((), strong),
    )


def fold_subject(
    previous: Optional[SubjectProgress],
    outcome: QuizOutcome,
    *,
    timestamp: str,
) -> SubjectProgress:
    base = previous or SubjectProgress(subject=outcome.subject)
    return replace(
        base,
        total_attempts=base.total_attempts + 1,
        average_score=incremental_mean(
            base.average_score, base.total_attempts, outcome.score
        ),
        last_attempt=timestamp,
        weak_topics=_merge_unique(base.weak_topics, outcome.weak_topics),
        strong_topics=_merge_unique(base.strong_topics, outcome.strong_topics),
    )


def fold_user(
    previous: UserProgress, outcome: QuizOutcome, *, timestamp: str
) -> UserProgress:
    subjects = dict(previous.subjects)
    subjects[outcome.subject] = fold_subject(
        subjects.get(outcome.subject), outcome, timestamp=timestamp
    )
    return UserProgress(
        total_quizzes=previous.total_quizzes + 1,
        average_score=incremental_mean(
            previous.average_score, previous.total_quizzes, outcome.score
        ),
        last_active=timestamp,
        subjects=subjects,
    )


class ProgressRepository:
    """Read and write progress records for one user."""

    def __init__(
        self,
        datastore: Datastore,
        user_id: str,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._datastore = datastore
        self._user_id = user_id
        self._logger = logger or LOGGER

    @property
    def user_id(self) -> str:
        return self._user_id

    def load(self) -> UserProgress:
        rows = self._datastore.select(
            USER_TABLE, {"user_id": self._user_id}, limit=1
        )
        subject_rows = self._datastore.select(
            SUBJECT_TABLE, {"user_id": self._user_id}
        )
        subjects = {
            progress.subject: progress
            for progress in map(SubjectProgress.from_row, subject_rows)
        }
        if not rows:
            return UserProgress(subjects=subjects)
        row = rows[0]
        return UserProgress(
            total_quizzes=int(row.get("total_quizzes") or 0),
            average_score=float(row.get("average_score") or 0.0),
            last_active=row.get("last_active"),
            subjects=subjects,
        )

    def attempts(self) -> list[Mapping[str, Any]]:
        """Return stored quiz attempts, newest first."""

        return self._datastore.select(
            ATTEMPTS_TABLE,
            {"user_id": self._user_id},
            order="created_at",
            descending=True,
        )

    def record(
        self, outcome: QuizOutcome, *, timestamp: str | None = None
    ) -> UserProgress:
        """Persist ``outcome`` and return the folded progress.

        The attempt row is written first. If a later aggregate write fails
        the raised :class:`PersistenceError` has ``attempt_recorded`` set.
        """

        stamp = timestamp or datetime.now(timezone.utc).isoformat()
        self._datastore.insert(ATTEMPTS_TABLE, outcome.attempt_row(self._user_id))
        try:
            progress = self._fold_and_store(outcome, stamp)
        except (PersistenceError, NetworkError) as exc:
            self._logger.error(
                "Progress aggregate update failed after attempt insert",
                extra={"subject": outcome.subject, "error": str(exc)},
            )
            raise PersistenceError(
                "Quiz attempt saved but progress could not be updated: "
                f"{exc}",
                status=getattr(exc, "status", None),
                attempt_recorded=True,
            ) from exc
        self._logger.info(
            "Progress folded",
            extra={
                "subject": outcome.subject,
                "score": outcome.score,
                "total_quizzes": progress.total_quizzes,
            },
        )
        return progress

    def _fold_and_store(self, outcome: QuizOutcome, stamp: str) -> UserProgress:
        previous = self.load()
        progress = fold_user(previous, outcome, timestamp=stamp)
        self._datastore.upsert(
            USER_TABLE,
            progress.to_row(self._user_id),
            on_conflict=("user_id",),
        )
        self._datastore.upsert(
            SUBJECT_TABLE,
            progress.subjects[outcome.subject].to_row(self._user_id),
            on_conflict=("user_id", "subject"),
        )
        return progress
