"""Data structures shared by the quiz engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, MutableMapping, Optional

Difficulty = Literal["easy", "medium", "hard"]

OPTION_COUNT = 4
BATCH_SIZE = 5
EXPECTED_DISTRIBUTION: Mapping[str, int] = {"easy": 2, "medium": 2, "hard": 1}
OPTION_LABELS = ("A", "B", "C", "D")

__all__ = [
    "Difficulty",
    "OPTION_COUNT",
    "BATCH_SIZE",
    "EXPECTED_DISTRIBUTION",
    "OPTION_LABELS",
    "Question",
    "QuestionBatch",
    "AnswerRecord",
]


@dataclass(frozen=True)
class Question:
    """A single multiple-choice question with four options."""

    id: str
    prompt: str
    options: tuple[str, ...]
    correct_option: int
    explanation: str
    difficulty: Difficulty
    topic: Optional[str] = None

    def topic_tag(self, subject: str) -> str:
        """Return the topic used for weak/strong tagging."""

        return self.topic or subject

    def option_label(self, index: Optional[int]) -> str:
        if index is None or not 0 <= index < len(self.options):
            return "-"
        return f"{OPTION_LABELS[index]}) {self.options[index]}"

    def to_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "id": self.id,
            "question": self.prompt,
            "options": list(self.options),
            "correctOption": self.correct_option,
            "explanation": self.explanation,
            "difficulty": self.difficulty,
        }
        if self.topic:
            payload["topic"] = self.topic
        return payload


@dataclass(frozen=True)
class QuestionBatch:
    """Exactly five questions with the easy/medium/hard mix of 2/2/1."""

    subject: str
    questions: tuple[Question, ...]

    def __len__(self) -> int:
        return len(self.questions)

    def __getitem__(self, index: int) -> Question:
        return self.questions[index]

    def __iter__(self):
        return iter(self.questions)

    def by_id(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


@dataclass(frozen=True)
class AnswerRecord:
    """Outcome of one question within a session."""

    question_id: str
    selected: Optional[int]
    is_correct: bool
    elapsed_seconds: int
    skipped: bool = False

    @classmethod
    def skipped_for(cls, question_id: str, elapsed_seconds: int) -> "AnswerRecord":
        return cls(
            question_id=question_id,
            selected=None,
            is_correct=False,
            elapsed_seconds=elapsed_seconds,
            skipped=True,
        )
