"""Unified CLI entry point: the ThinkForge route table."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from importlib import import_module, metadata
from typing import Callable, Mapping, Optional, Sequence, TextIO

CommandMain = Callable[[Sequence[str]], Optional[int]]


@dataclass(frozen=True)
class Route:
    """A navigable page exposed as a subcommand.

    ``target`` names the ``module:function`` implementing the page; it is
    imported on first use so ``thinkforge --help`` stays fast.
    """

    name: str
    summary: str
    target: Optional[str] = None
    is_tui: bool = False
    protected: bool = False

    @property
    def prog(self) -> str:
        return f"thinkforge {self.name}"

    def resolve(self) -> CommandMain:
        module_name, _, func_name = (self.target or "").partition(":")
        return getattr(import_module(module_name), func_name)

    def describe(self, width: int) -> str:
        tags = ""
        if self.is_tui:
            tags += " (TUI)"
        if self.protected:
            tags += " (login required)"
        return f"  {self.name.ljust(width)}  {self.summary}{tags}"


ROUTES: Sequence[Route] = (
    Route("home", "Show the ThinkForge landing page."),
    Route("login", "Sign in to your account.", "thinkforge.auth.cli:login"),
    Route("signup", "Create a new account.", "thinkforge.auth.cli:signup"),
    Route(
        "confirm-email",
        "Verify the link from your confirmation email.",
        "thinkforge.auth.cli:confirm_email",
    ),
    Route("logout", "Sign out of your account.", "thinkforge.auth.cli:logout"),
    Route(
        "chat",
        "Talk to the AI tutor.",
        "thinkforge.chat.cli:main",
        protected=True,
    ),
    Route(
        "quiz",
        "Take a timed multiple-choice quiz.",
        "thinkforge.quiz.cli:main",
        is_tui=True,
        protected=True,
    ),
    Route(
        "progress",
        "Review your quiz progress dashboard.",
        "thinkforge.dashboard:main",
        protected=True,
    ),
    Route(
        "topics",
        "See topics to review from past mistakes.",
        "thinkforge.review:main",
        protected=True,
    ),
    Route(
        "config",
        "Manage the configuration file.",
        "thinkforge.config_cli:main",
    ),
)

COMMANDS: Mapping[str, Route] = {route.name: route for route in ROUTES}

_BANNER = (
    "ThinkForge: your AI study companion.\n"
    "Chat with a tutor, take timed quizzes and track what to review next."
)

_USAGE = (
    "Usage: thinkforge <command> [args...]\n"
    "Run `thinkforge list` for commands or `thinkforge help <name>` for "
    "details."
)


def format_command_table() -> str:
    """Return the command listing shown by ``home``, ``list`` and errors."""

    width = max(len(route.name) for route in ROUTES)
    rows = [route.describe(width) for route in ROUTES]
    return "\n".join(["Available commands:", *rows])


def format_usage() -> str:
    return f"{_USAGE}\n\n{format_command_table()}"


def _emit(text: str, stream: Optional[TextIO] = None) -> None:
    (stream or sys.stdout).write(text + "\n")


def _show_home(_: Sequence[str]) -> int:
    _emit(_BANNER)
    _emit("")
    _emit(format_usage())
    return 0


def _show_list(_: Sequence[str]) -> int:
    _emit(format_command_table())
    return 0


def _show_usage(_: Sequence[str]) -> int:
    _emit(format_usage())
    return 0


def _show_version(_: Sequence[str]) -> int:
    try:
        _emit(metadata.version("thinkforge"))
    except metadata.PackageNotFoundError:
        _emit("unknown")
    return 0


def _show_help(argv: Sequence[str]) -> int:
    if not argv:
        return _show_usage(argv)
    route = COMMANDS.get(argv[0])
    if route is None:
        _emit(f"Unknown command '{argv[0]}'.", sys.stderr)
        _emit(format_command_table(), sys.stderr)
        return 2
    _emit(f"{route.name}: {route.summary}")
    if route.protected:
        _emit("You will be asked to log in first if you are signed out.")
    if route.target:
        _emit(f"Run `{route.prog} --help` for CLI-specific options.")
    return 0


def _not_found(name: str) -> int:
    _emit(f"Page not found: '{name}' is not a ThinkForge command.", sys.stderr)
    _emit(format_command_table(), sys.stderr)
    return 2


_BUILTINS: Mapping[str, Callable[[Sequence[str]], int]] = {
    "home": _show_home,
    "list": _show_list,
    "help": _show_help,
    "-h": _show_usage,
    "--help": _show_usage,
    "version": _show_version,
    "-V": _show_version,
    "--version": _show_version,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        return _show_home(args)

    head, *tail = args
    builtin = _BUILTINS.get(head)
    if builtin is not None:
        return builtin(tail)

    route = COMMANDS.get(head)
    if route is None or route.target is None:
        return _not_found(head)
    return _invoke_main(route.resolve(), route.prog, tail)


def _invoke_main(func: CommandMain, prog_name: str, argv: Sequence[str]) -> int:
    """Run a command ``main`` with ``sys.argv`` pointed at ``prog_name``.

    ``SystemExit`` raised by argparse is folded into the return code.
    """

    saved_argv = sys.argv
    sys.argv = [prog_name, *argv]
    try:
        result = func(list(argv))
    except SystemExit as exc:
        return _exit_code(exc.code)
    finally:
        sys.argv = saved_argv
    return result if isinstance(result, int) else 0


def _exit_code(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    _emit(str(code), sys.stderr)
    return 1


if __name__ == "__main__":  # pragma: no cover - manual invocation guard
    raise SystemExit(main())
