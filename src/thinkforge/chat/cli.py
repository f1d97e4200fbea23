"""`thinkforge chat` command."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from rich.console import Console

from ..auth.service import AuthSession
from ..context import AppContext
from ..core.cli import add_common_arguments
from ..routes import run_protected
from .runtime import TutorChat

__all__ = ["main", "run", "build_chat"]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thinkforge chat",
        description="Talk to the ThinkForge AI tutor.",
    )
    parser.add_argument(
        "--conversation",
        help="Open this conversation id instead of the conversation list.",
    )
    parser.add_argument(
        "--subject",
        help="Subject the tutor should assume (defaults to chat.default_subject).",
    )
    add_common_arguments(parser)
    return parser


def build_chat(context: AppContext, session: AuthSession) -> TutorChat:
    return TutorChat(
        context.datastore_for(session),
        context.get_inference(),
        session.user_id,
        config=context.config.chat,
        logger=context.logger,
    )


def run(
    args: argparse.Namespace,
    context: AppContext,
    console: Console,
    session: AuthSession,
) -> int:
    build_chat(context, session).interactive_loop(
        console=console,
        conversation_id=args.conversation,
        subject=args.subject,
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    return run_protected(_build_parser(), run, "chat", argv)
