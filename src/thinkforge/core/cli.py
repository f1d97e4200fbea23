"""Argument and context helpers shared by the command modules."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..errors import ThinkForgeError

if TYPE_CHECKING:
    from ..context import AppContext

__all__ = ["add_common_arguments", "to_path", "build_context", "print_error"]


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=str,
        help="Path to thinkforge.toml (defaults to the workspace config).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Echo log records to stderr.",
    )


def to_path(value: str | None) -> Path | None:
    if value is None:
        return None
    return Path(value).expanduser().resolve()


def print_error(message: str) -> None:
    sys.stderr.write(message + "\n")


def build_context(
    args: argparse.Namespace, command: str
) -> Optional["AppContext"]:
    """Build the command context, reporting setup errors on stderr."""

    from ..context import AppContext

    try:
        return AppContext.build(
            command,
            config_path=to_path(getattr(args, "config", None)),
            verbose=bool(getattr(args, "verbose", False)),
        )
    except ThinkForgeError as exc:
        print_error(f"Error: {exc}")
        return None
