"""`thinkforge quiz` command."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from rich.console import Console

from ..auth.service import AuthSession
from ..context import AppContext
from ..core.cli import add_common_arguments
from ..routes import run_protected
from .generator import QuestionCache, QuestionGenerator
from .progress import ProgressRepository
from .session import QuizSession
from .view import QuizApp

__all__ = ["main", "run", "build_session"]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thinkforge quiz",
        description="Take a timed five-question quiz.",
    )
    parser.add_argument(
        "--subject",
        help="Start straight away with this subject.",
    )
    parser.add_argument(
        "--list-subjects",
        action="store_true",
        help="Print the available subjects and exit.",
    )
    add_common_arguments(parser)
    return parser


def build_session(context: AppContext, session: AuthSession) -> QuizSession:
    quiz_config = context.config.quiz
    cache = QuestionCache(
        max_entries=quiz_config.cache_max_entries,
        ttl_seconds=quiz_config.cache_ttl_seconds,
    )
    generator = QuestionGenerator(
        context.get_inference(), cache=cache, logger=context.logger
    )
    repository = ProgressRepository(
        context.datastore_for(session), session.user_id, logger=context.logger
    )
    return QuizSession(
        generator,
        repository,
        time_limits=quiz_config.time_limits,
        logger=context.logger,
    )


def run(
    args: argparse.Namespace,
    context: AppContext,
    console: Console,
    session: AuthSession,
) -> int:
    subjects = context.config.quiz.subjects
    if args.list_subjects:
        for subject in subjects:
            console.print(f"- {subject}")
        return 0
    if args.subject and args.subject not in subjects:
        console.print(
            f"[red]Unknown subject '{args.subject}'.[/] "
            "Use --list-subjects to see the options."
        )
        return 2
    app = QuizApp(
        build_session(context, session),
        subjects,
        initial_subject=args.subject,
        logger=context.logger,
    )
    app.run()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    return run_protected(_build_parser(), run, "quiz", argv)
