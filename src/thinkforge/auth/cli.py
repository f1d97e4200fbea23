"""Account commands: login, signup, confirm-email and logout."""

from __future__ import annotations

import argparse
from typing import Callable, Optional, Sequence
from urllib.parse import parse_qs, urlparse

from rich.console import Console

from ..context import AppContext
from ..core.cli import add_common_arguments, build_context, print_error
from ..errors import AuthError, NetworkError, ThinkForgeError
from ..routes import prompt_login

__all__ = [
    "login",
    "signup",
    "confirm_email",
    "logout",
    "run_login",
    "run_signup",
    "run_confirm_email",
    "run_logout",
]

Runner = Callable[[argparse.Namespace, AppContext, Console], int]


def _login_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thinkforge login",
        description="Sign in to your ThinkForge account.",
    )
    parser.add_argument("--email", help="Account email (prompted if omitted).")
    add_common_arguments(parser)
    return parser


def _signup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thinkforge signup",
        description="Create a ThinkForge account.",
    )
    parser.add_argument("--email", help="Account email (prompted if omitted).")
    parser.add_argument(
        "--redirect-to",
        help="Where the confirmation link should send the browser.",
    )
    add_common_arguments(parser)
    return parser


def _confirm_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thinkforge confirm-email",
        description="Verify the token from a confirmation email.",
    )
    parser.add_argument("--token", help="Confirmation token from the email.")
    parser.add_argument(
        "--type", dest="type_", help="Confirmation type (usually 'signup')."
    )
    parser.add_argument(
        "--url",
        help="Full confirmation link; token and type are read from it.",
    )
    add_common_arguments(parser)
    return parser


def _logout_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thinkforge logout",
        description="Sign out and forget the stored session.",
    )
    add_common_arguments(parser)
    return parser


def run_login(
    args: argparse.Namespace, context: AppContext, console: Console
) -> int:
    session = prompt_login(context.auth_service(), console, email=args.email)
    return 0 if session is not None else 1


def run_signup(
    args: argparse.Namespace, context: AppContext, console: Console
) -> int:
    try:
        email = args.email or console.input("Email: ")
        password = console.input("Password: ", password=True)
        confirm = console.input("Confirm password: ", password=True)
    except (EOFError, KeyboardInterrupt):
        console.print("\nSign up cancelled.")
        return 1
    if password != confirm:
        console.print("[red]Passwords do not match.[/]")
        return 1
    session = context.auth_service().sign_up(
        email, password, redirect_to=args.redirect_to
    )
    if session is not None:
        console.print(
            f"[green]Account created.[/] Signed in as {session.email}."
        )
    else:
        console.print(
            "[green]Account created.[/] Check your email for the "
            "confirmation link, then run `thinkforge confirm-email --url "
            "<link>`."
        )
    return 0


def run_confirm_email(
    args: argparse.Namespace, context: AppContext, console: Console
) -> int:
    token, type_ = args.token, args.type_
    if args.url:
        query = parse_qs(urlparse(args.url).query)
        token = token or (query.get("token") or [None])[0]
        type_ = type_ or (query.get("type") or [None])[0]
    console.print("Confirming your email...")
    context.auth_service().confirm_email(token, type_)
    console.print(
        "[green]Email verified successfully![/] You can now log in with "
        "`thinkforge login`."
    )
    return 0


def run_logout(
    args: argparse.Namespace, context: AppContext, console: Console
) -> int:
    auth = context.auth_service()
    if auth.current_session() is None:
        console.print("You are not signed in.")
        return 0
    auth.sign_out()
    console.print("Signed out.")
    return 0


def _run(
    parser: argparse.ArgumentParser,
    runner: Runner,
    command: str,
    argv: Optional[Sequence[str]],
    console: Optional[Console] = None,
) -> int:
    args = parser.parse_args(list(argv) if argv is not None else None)
    context = build_context(args, command)
    if context is None:
        return 2
    output = console or Console()
    try:
        return runner(args, context, output)
    except (AuthError, NetworkError) as exc:
        context.logger.error(
            "Account command failed",
            extra={"command": command, "error": str(exc)},
        )
        output.print(f"[red]{exc}[/]")
        return 1
    except ThinkForgeError as exc:
        print_error(f"Error: {exc}")
        return 2


def login(argv: Optional[Sequence[str]] = None) -> int:
    return _run(_login_parser(), run_login, "login", argv)


def signup(argv: Optional[Sequence[str]] = None) -> int:
    return _run(_signup_parser(), run_signup, "signup", argv)


def confirm_email(argv: Optional[Sequence[str]] = None) -> int:
    return _run(_confirm_parser(), run_confirm_email, "confirm-email", argv)


def logout(argv: Optional[Sequence[str]] = None) -> int:
    return _run(_logout_parser(), run_logout, "logout", argv)
