"""Rich rendering of the progress dashboard."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table

from .auth.service import AuthSession
from .context import AppContext
from .core.cli import add_common_arguments
from .quiz.progress import ProgressRepository, UserProgress
from .routes import run_protected

__all__ = ["top_topics", "render_dashboard", "EMPTY_MESSAGE", "main", "run"]

EMPTY_MESSAGE = (
    "No progress data available yet. Start taking quizzes to track your "
    "progress!"
)


def top_topics(
    progress: UserProgress, *, strong: bool, limit: int = 5
) -> list[tuple[str, float]]:
    """Return up to ``limit`` (topic, subject average) pairs."""

    pairs: list[tuple[str, float]] = []
    for subject in progress.subjects.values():
        topics: Sequence[str] = (
            subject.strong_topics if strong else subject.weak_topics
        )
        pairs.extend((topic, subject.average_score) for topic in topics)
    return pairs[:limit]


def render_dashboard(console: Console, progress: UserProgress) -> None:
    if progress.is_empty:
        console.print(Panel(EMPTY_MESSAGE, title="Progress"))
        return

    summary = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD)
    summary.add_column("Metric", style="bold")
    summary.add_column("Value", justify="right")
    summary.add_row("Total quizzes", str(progress.total_quizzes))
    summary.add_row("Average score", f"{progress.average_score:.1f}%")
    summary.add_row("Last active", progress.last_active or "-")
    console.print(Panel(summary, title="Progress"))

    subjects = list(progress.subjects.values())
    most_attempts = max((s.total_attempts for s in subjects), default=0) or 1
    distribution = Table(title="Subject distribution", box=box.SIMPLE)
    distribution.add_column("Subject")
    distribution.add_column("Attempts", justify="right")
    distribution.add_column("", min_width=20)
    for subject in subjects:
        distribution.add_row(
            subject.subject,
            str(subject.total_attempts),
            ProgressBar(
                total=most_attempts, completed=subject.total_attempts, width=20
            ),
        )
    console.print(distribution)

    scores = Table(title="Average score per subject", box=box.SIMPLE)
    scores.add_column("Subject")
    scores.add_column("Average", justify="right")
    scores.add_column("Last attempt")
    for subject in subjects:
        scores.add_row(
            subject.subject,
            f"{subject.average_score:.1f}%",
            subject.last_attempt or "-",
        )
    console.print(scores)

    for title, strong, style in (
        ("Strengths", True, "green"),
        ("Weaknesses", False, "red"),
    ):
        table = Table(title=title, box=box.SIMPLE)
        table.add_column("Topic", style=style)
        table.add_column("Subject average", justify="right")
        rows = top_topics(progress, strong=strong)
        for topic, score in rows:
            table.add_row(topic, f"{score:.1f}%")
        if not rows:
            table.add_row("-", "-")
        console.print(table)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thinkforge progress",
        description="Show quiz progress, strengths and weaknesses.",
    )
    add_common_arguments(parser)
    return parser


def run(
    args: argparse.Namespace,
    context: AppContext,
    console: Console,
    session: AuthSession,
) -> int:
    repository = ProgressRepository(
        context.datastore_for(session), session.user_id, logger=context.logger
    )
    render_dashboard(console, repository.load())
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    return run_protected(_build_parser(), run, "progress", argv)
