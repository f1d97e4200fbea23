"""Answer scoring."""

from __future__ import annotations

from typing import Iterable, Optional

from .models import AnswerRecord, Question

__all__ = ["is_correct", "aggregate_score", "correct_count"]


def is_correct(question: Question, selected: Optional[int]) -> bool:
    return selected is not None and selected == question.correct_option


def correct_count(records: Iterable[AnswerRecord]) -> int:
    return sum(1 for record in records if record.is_correct)


def aggregate_score(records: Iterable[AnswerRecord], total: int) -> float:
    """Return ``100 * correct / total``; skipped answers count as wrong."""

    if total <= 0:
        raise ValueError("total must be positive")
    return 100.0 * correct_count(records) / total
