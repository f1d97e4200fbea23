"""Topics to review, folded from stored quiz attempts."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .auth.service import AuthSession
from .chat.cli import build_chat
from .chat.models import Conversation
from .chat.runtime import TutorChat
from .context import AppContext
from .core.cli import add_common_arguments
from .errors import NetworkError, ThinkForgeError
from .inference import InferenceClient
from .prompts import review_seed_message, wrong_answer_prompt
from .quiz.models import OPTION_LABELS
from .quiz.progress import ProgressRepository
from .routes import run_protected

__all__ = [
    "IncorrectQuestion",
    "TopicReview",
    "fold_topic_reviews",
    "ReviewService",
    "render_topics",
    "render_topic_detail",
    "EXPLANATION_FALLBACK",
    "ReviewError",
    "main",
    "run",
]

LOGGER = logging.getLogger(__name__)

EXPLANATION_FALLBACK = "Failed to generate explanation. Please try again."


class ReviewError(ThinkForgeError):
    """Raised when a requested topic or question does not exist."""


@dataclass(frozen=True)
class IncorrectQuestion:
    question: str
    user_answer: str
    correct_answer: str
    explanation: Optional[str] = None


@dataclass(frozen=True)
class TopicReview:
    topic: str
    subject: str
    incorrect_attempts: int = 0
    total_attempts: int = 0
    last_attempted: Optional[str] = None
    incorrect_questions: tuple[IncorrectQuestion, ...] = field(default=())

    @property
    def success_rate(self) -> float:
        if not self.total_attempts:
            return 0.0
        return 100.0 * (1 - self.incorrect_attempts / self.total_attempts)


def _answer_text(options: Sequence[Any], index: Any) -> str:
    if index is None:
        return "No answer (skipped)"
    if isinstance(index, int) and 0 <= index < len(options):
        return str(options[index])
    if isinstance(index, int) and 0 <= index < len(OPTION_LABELS):
        return f"Option {OPTION_LABELS[index]}"
    return str(index)


def fold_topic_reviews(
    attempts: Iterable[Mapping[str, Any]],
) -> list[TopicReview]:
    """Group the questions of ``attempts`` by (topic, subject).

    ``attempts`` are expected newest first so the first sighting of a topic
    gives its ``last_attempted``. Topics without mistakes are left out and
    the rest are ordered by mistake count.
    """

    stats: dict[tuple[str, str], TopicReview] = {}
    for attempt in attempts:
        subject = str(attempt.get("subject") or "")
        for entry in attempt.get("questions") or ():
            if not isinstance(entry, Mapping):
                continue
            topic = str(entry.get("topic") or subject)
            key = (topic, subject)
            current = stats.get(key) or TopicReview(
                topic=topic,
                subject=subject,
                last_attempted=attempt.get("created_at"),
            )
            current = replace(current, total_attempts=current.total_attempts + 1)
            if not entry.get("isCorrect"):
                options = entry.get("options") or ()
                missed = IncorrectQuestion(
                    question=str(entry.get("question") or ""),
                    user_answer=_answer_text(options, entry.get("selectedAnswer")),
                    correct_answer=_answer_text(
                        options, entry.get("correctAnswer")
                    ),
                )
                current = replace(
                    current,
                    incorrect_attempts=current.incorrect_attempts + 1,
                    incorrect_questions=(*current.incorrect_questions, missed),
                )
            stats[key] = current
    reviews = [review for review in stats.values() if review.incorrect_attempts]
    reviews.sort(key=lambda review: review.incorrect_attempts, reverse=True)
    return reviews


class ReviewService:
    """Load review topics and turn them into explanations or chats."""

    def __init__(
        self,
        progress: ProgressRepository,
        client: InferenceClient,
        chat: TutorChat,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._progress = progress
        self._client = client
        self._chat = chat
        self._logger = logger or LOGGER

    def topics(self, *, subject: str | None = None) -> list[TopicReview]:
        reviews = fold_topic_reviews(self._progress.attempts())
        if subject:
            reviews = [review for review in reviews if review.subject == subject]
        return reviews

    def explain(self, review: TopicReview) -> TopicReview:
        """Fill in a model explanation for each missed question."""

        explained = []
        for missed in review.incorrect_questions:
            if missed.explanation:
                explained.append(missed)
                continue
            explained.append(
                replace(missed, explanation=self._explanation_for(missed))
            )
        return replace(review, incorrect_questions=tuple(explained))

    def explain_in_chat(
        self,
        review: TopicReview,
        missed: IncorrectQuestion,
        *,
        understanding_check: bool = False,
    ) -> Conversation:
        """Start a tutor conversation seeded with ``missed``."""

        conversation = self._chat.create_conversation(
            f"Review: {review.topic} - {review.subject}"
        )
        self._chat.add_user_message(
            conversation.id,
            review_seed_message(
                missed.question,
                missed.user_answer,
                missed.correct_answer,
                understanding_check=understanding_check,
            ),
        )
        self._logger.info(
            "Review conversation created",
            extra={
                "conversation_id": conversation.id,
                "topic": review.topic,
                "understanding_check": understanding_check,
            },
        )
        return conversation

    def _explanation_for(self, missed: IncorrectQuestion) -> str:
        prompt = wrong_answer_prompt(
            missed.question, missed.user_answer, missed.correct_answer
        )
        try:
            return self._client.generate(prompt)
        except NetworkError as exc:
            self._logger.warning(
                "Explanation request failed", extra={"error": str(exc)}
            )
            return EXPLANATION_FALLBACK


def render_topics(console: Console, reviews: Sequence[TopicReview]) -> None:
    if not reviews:
        console.print(
            Panel(
                "No topics to review. Keep taking quizzes to find the areas "
                "that need attention.",
                title="Topics to Review",
            )
        )
        return
    table = Table(title=f"Topics to Review ({len(reviews)} need attention)")
    table.add_column("#", justify="right")
    table.add_column("Topic")
    table.add_column("Subject")
    table.add_column("Mistakes", justify="right", style="red")
    table.add_column("Success rate", justify="right")
    table.add_column("Last attempted")
    for idx, review in enumerate(reviews, start=1):
        table.add_row(
            str(idx),
            review.topic,
            review.subject,
            str(review.incorrect_attempts),
            f"{review.success_rate:.1f}%",
            review.last_attempted or "-",
        )
    console.print(table)


def render_topic_detail(console: Console, review: TopicReview) -> None:
    console.rule(f"{review.topic} ({review.subject})")
    for idx, missed in enumerate(review.incorrect_questions, start=1):
        body = (
            f"[bold]{missed.question}[/]\n\n"
            f"Your answer: [red]{missed.user_answer}[/]\n"
            f"Correct answer: [green]{missed.correct_answer}[/]"
        )
        if missed.explanation:
            body += f"\n\n{missed.explanation}"
        console.print(Panel(body, title=f"Question {idx}"))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thinkforge topics",
        description="List topics to review from past quiz mistakes.",
    )
    parser.add_argument("--subject", help="Only show topics for this subject.")
    parser.add_argument(
        "--explain",
        type=int,
        metavar="N",
        help="Show missed questions of topic N with tutor explanations.",
    )
    parser.add_argument(
        "--chat",
        type=int,
        metavar="N",
        help="Open a tutor chat about a missed question of topic N.",
    )
    parser.add_argument(
        "--question",
        type=int,
        default=1,
        metavar="M",
        help="Which missed question to discuss with --chat (default 1).",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="With --chat, ask the tutor to check your understanding.",
    )
    add_common_arguments(parser)
    return parser


def _select(items: Sequence[Any], position: int, label: str) -> Any:
    if not 1 <= position <= len(items):
        raise ReviewError(f"No {label} numbered {position}.")
    return items[position - 1]


def run(
    args: argparse.Namespace,
    context: AppContext,
    console: Console,
    session: AuthSession,
) -> int:
    chat = build_chat(context, session)
    service = ReviewService(
        ProgressRepository(
            context.datastore_for(session),
            session.user_id,
            logger=context.logger,
        ),
        context.get_inference(),
        chat,
        logger=context.logger,
    )
    reviews = service.topics(subject=args.subject)
    if args.explain is not None:
        review = _select(reviews, args.explain, "topic")
        console.print("Fetching explanations...")
        render_topic_detail(console, service.explain(review))
        return 0
    if args.chat is not None:
        review = _select(reviews, args.chat, "topic")
        missed = _select(review.incorrect_questions, args.question, "question")
        conversation = service.explain_in_chat(
            review, missed, understanding_check=args.check
        )
        chat.interactive_loop(console=console, conversation_id=conversation.id)
        return 0
    render_topics(console, reviews)
    subjects = sorted({review.subject for review in reviews})
    if subjects and not args.subject:
        console.print(f"[dim]Subjects: {', '.join(subjects)}[/]")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    return run_protected(_build_parser(), run, "topics", argv)
