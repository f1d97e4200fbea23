"""Parse-or-reject boundary for model-generated question batches.

Checks run in a fixed order and the first failure rejects the whole batch:

1. the payload decodes to a sequence of exactly five entries
2. every entry has the expected fields and types
3. every entry has four pairwise distinct options
4. the batch holds two easy, two medium and one hard question
"""

from __future__ import annotations

import json
import re
from collections import Counter
from typing import Any, Mapping

from ..errors import (
    CountError,
    DistributionError,
    DuplicateOptionError,
    ShapeError,
)
from .models import (
    BATCH_SIZE,
    EXPECTED_DISTRIBUTION,
    OPTION_COUNT,
    Question,
    QuestionBatch,
)

__all__ = ["parse_batch", "validate_entries"]

_FENCE_RE = re.compile(r"```(?:json)?\s*(.+?)```", re.DOTALL)


def parse_batch(raw: str, *, subject: str) -> QuestionBatch:
    """Decode raw model text into a :class:`QuestionBatch` or raise."""

    return validate_entries(_decode(raw), subject=subject)


def validate_entries(entries: Any, *, subject: str) -> QuestionBatch:
    if not isinstance(entries, list) or len(entries) != BATCH_SIZE:
        found = len(entries) if isinstance(entries, list) else "no"
        raise CountError(
            f"Expected {BATCH_SIZE} questions, got {found}"
        )
    questions = [
        _build_question(entry, index) for index, entry in enumerate(entries)
    ]
    ids = [question.id for question in questions]
    if len(set(ids)) != len(ids):
        raise ShapeError("Question ids must be unique")
    for index, question in enumerate(questions):
        if len(set(question.options)) != OPTION_COUNT:
            raise DuplicateOptionError(
                f"Duplicate options found in question {index + 1}",
                index=index,
            )
    counts = Counter(question.difficulty for question in questions)
    if any(counts[level] != n for level, n in EXPECTED_DISTRIBUTION.items()):
        raise DistributionError(
            "Invalid difficulty distribution: "
            f"easy={counts['easy']}, medium={counts['medium']}, "
            f"hard={counts['hard']}"
        )
    return QuestionBatch(subject=subject, questions=tuple(questions))


def _decode(raw: str) -> Any:
    text = (raw or "").strip()
    fenced = _FENCE_RE.search(text)
    payload = fenced.group(1) if fenced else text
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise CountError("Invalid question format: not a JSON array") from exc


def _build_question(entry: Any, index: int) -> Question:
    def fail(reason: str) -> ShapeError:
        return ShapeError(
            f"Invalid question format at index {index}: {reason}",
            index=index,
        )

    if not isinstance(entry, Mapping):
        raise fail("entry is not an object")
    prompt = entry.get("question")
    if not isinstance(prompt, str) or not prompt.strip():
        raise fail("missing question text")
    options = entry.get("options")
    if (
        not isinstance(options, list)
        or len(options) != OPTION_COUNT
        or not all(isinstance(option, str) for option in options)
    ):
        raise fail(f"options must be {OPTION_COUNT} strings")
    correct = entry.get("correctOption")
    if (
        isinstance(correct, bool)
        or not isinstance(correct, int)
        or not 0 <= correct < OPTION_COUNT
    ):
        raise fail("correctOption must be an integer between 0 and 3")
    explanation = entry.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        raise fail("missing explanation")
    difficulty = entry.get("difficulty")
    if difficulty not in EXPECTED_DISTRIBUTION:
        raise fail("difficulty must be easy, medium or hard")
    topic = entry.get("topic")
    if topic is not None and not isinstance(topic, str):
        raise fail("topic must be a string when present")
    return Question(
        id=_question_id(entry.get("id"), index),
        prompt=prompt.strip(),
        options=tuple(options),
        correct_option=correct,
        explanation=explanation.strip(),
        difficulty=difficulty,
        topic=topic.strip() if topic and topic.strip() else None,
    )


def _question_id(raw: Any, index: int) -> str:
    if isinstance(raw, bool) or raw is None:
        return str(index + 1)
    text = str(raw).strip()
    return text or str(index + 1)
