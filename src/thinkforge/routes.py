"""Login gate shared by the protected commands."""

from __future__ import annotations

import argparse
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from rich.console import Console

from .auth.service import AuthService, AuthSession
from .core.cli import build_context, print_error
from .core.config import ConfigError
from .core.workspace import WorkspaceError
from .errors import AuthError, NetworkError, ThinkForgeError

if TYPE_CHECKING:
    from .context import AppContext

__all__ = [
    "ensure_authenticated",
    "prompt_login",
    "run_protected",
    "run_with_context",
]


def prompt_login(
    auth: AuthService,
    console: Console,
    *,
    email: str | None = None,
    attempts: int = 3,
) -> Optional[AuthSession]:
    """Ask for credentials until sign-in succeeds or ``attempts`` run out."""

    for _ in range(attempts):
        try:
            address = email or console.input("Email: ")
            password = console.input("Password: ", password=True)
        except (EOFError, KeyboardInterrupt):
            console.print("\nLogin cancelled.")
            return None
        try:
            session = auth.sign_in(address, password)
        except (AuthError, NetworkError) as exc:
            console.print(f"[red]{exc}[/]")
            email = None
            continue
        console.print(
            f"[green]Login successful.[/] Welcome back, {session.display_name}!"
        )
        return session
    return None


def ensure_authenticated(
    auth: AuthService,
    console: Console,
    *,
    route: str,
    interactive: bool = True,
) -> Optional[AuthSession]:
    """Return the active session, sending the user through login if needed.

    After a successful login the caller continues with ``route``.
    """

    session = auth.current_session()
    if session is not None:
        return session
    console.print(f"[yellow]Please log in to open '{route}'.[/]")
    if not interactive:
        return None
    return prompt_login(auth, console)


ProtectedRunner = Callable[
    [argparse.Namespace, "AppContext", Console, AuthSession], int
]


def run_protected(
    parser: argparse.ArgumentParser,
    runner: ProtectedRunner,
    route: str,
    argv: Optional[Sequence[str]],
    *,
    console: Optional[Console] = None,
) -> int:
    """Parse ``argv``, require a session and run ``runner`` for ``route``."""

    args = parser.parse_args(list(argv) if argv is not None else None)
    context = build_context(args, route)
    if context is None:
        return 2
    output = console or Console()
    return run_with_context(args, context, output, runner, route)


def run_with_context(
    args: argparse.Namespace,
    context: "AppContext",
    console: Console,
    runner: ProtectedRunner,
    route: str,
) -> int:
    try:
        session = ensure_authenticated(
            context.auth_service(), console, route=route
        )
        if session is None:
            return 1
        return runner(args, context, console, session)
    except (ConfigError, WorkspaceError) as exc:
        print_error(f"Error: {exc}")
        return 2
    except ThinkForgeError as exc:
        context.logger.error(
            "Command failed", extra={"route": route, "error": str(exc)}
        )
        console.print(f"[red]{exc}[/]")
        return 1
