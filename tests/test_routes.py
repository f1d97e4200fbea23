from __future__ import annotations

import argparse

from rich.console import Console

from fixtures import FakeResponse

from thinkforge import dashboard, review
from thinkforge.auth import cli as auth_cli
from thinkforge.auth.service import AuthSessionStore
from thinkforge.errors import ChatError
from thinkforge.quiz import cli as quiz_cli
from thinkforge.quiz.progress import ATTEMPTS_TABLE, USER_TABLE
from thinkforge.routes import ensure_authenticated, run_with_context

TOKEN_BODY = {
    "access_token": "access-1",
    "refresh_token": "refresh-1",
    "expires_in": 3600,
    "user": {"id": "user-1", "email": "ada@example.com"},
}


class ScriptedConsole(Console):
    def __init__(self, *lines: str) -> None:
        super().__init__(record=True, width=120)
        self.lines = list(lines)
        self.prompts: list[str] = []

    def input(self, prompt="", **kwargs):
        self.prompts.append(str(prompt))
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


def _record_runner(calls):
    def runner(args, context, console, session):
        calls.append(session)
        return 0

    return runner


def test_signed_out_user_is_sent_to_login_then_route(app_context, http):
    http.queue(FakeResponse(200, TOKEN_BODY))
    console = ScriptedConsole("ada@example.com", "secret")
    calls = []

    code = run_with_context(
        argparse.Namespace(), app_context, console, _record_runner(calls), "progress"
    )

    assert code == 0
    assert [s.user_id for s in calls] == ["user-1"]
    text = console.export_text()
    assert "Please log in to open 'progress'." in text
    assert "Welcome back, ada!" in text


def test_failed_logins_stop_after_three_attempts(app_context, http):
    http.queue(*[FakeResponse(400, {"msg": "Invalid login credentials"})] * 3)
    console = ScriptedConsole("a@b.c", "x", "a@b.c", "y", "a@b.c", "z")
    calls = []

    code = run_with_context(
        argparse.Namespace(), app_context, console, _record_runner(calls), "chat"
    )

    assert code == 1
    assert calls == []
    assert console.export_text().count("Invalid login credentials") == 3


def test_signed_in_user_goes_straight_to_route(app_context, signed_in, http):
    calls = []

    code = run_with_context(
        argparse.Namespace(),
        app_context,
        ScriptedConsole(),
        _record_runner(calls),
        "topics",
    )

    assert code == 0
    assert calls == [signed_in]
    assert http.calls == []


def test_non_interactive_check_does_not_prompt(app_context):
    console = ScriptedConsole()

    session = ensure_authenticated(
        app_context.auth_service(), console, route="quiz", interactive=False
    )

    assert session is None
    assert console.prompts == []


def test_runner_errors_are_reported(app_context, signed_in):
    def runner(args, context, console, session):
        raise ChatError("Conversation not found: x")

    console = ScriptedConsole()

    code = run_with_context(argparse.Namespace(), app_context, console, runner, "chat")

    assert code == 1
    assert "Conversation not found: x" in console.export_text()


def test_progress_route_renders_dashboard(app_context, signed_in, datastore):
    datastore.insert(
        USER_TABLE,
        {"user_id": "user-1", "total_quizzes": 2, "average_score": 65.0},
    )
    console = ScriptedConsole()

    code = run_with_context(
        argparse.Namespace(), app_context, console, dashboard.run, "progress"
    )

    assert code == 0
    assert "65.0%" in console.export_text()


def test_topics_route_lists_reviews(app_context, signed_in, datastore):
    datastore.insert(
        ATTEMPTS_TABLE,
        {
            "user_id": "user-1",
            "subject": "Physics",
            "questions": [
                {
                    "question": "Speed of light?",
                    "options": ["1", "2", "3", "c"],
                    "selectedAnswer": 0,
                    "correctAnswer": 3,
                    "isCorrect": False,
                    "topic": "Relativity",
                }
            ],
        },
    )
    args = argparse.Namespace(
        subject=None, explain=None, chat=None, question=1, check=False
    )
    console = ScriptedConsole()

    code = run_with_context(args, app_context, console, review.run, "topics")

    assert code == 0
    text = console.export_text()
    assert "Relativity" in text
    assert "Subjects: Physics" in text


def test_topics_route_rejects_unknown_topic(app_context, signed_in):
    args = argparse.Namespace(
        subject=None, explain=4, chat=None, question=1, check=False
    )
    console = ScriptedConsole()

    code = run_with_context(args, app_context, console, review.run, "topics")

    assert code == 1
    assert "No topic numbered 4." in console.export_text()


def test_quiz_route_lists_subjects(app_context, signed_in):
    args = argparse.Namespace(list_subjects=True, subject=None)
    console = ScriptedConsole()

    code = run_with_context(args, app_context, console, quiz_cli.run, "quiz")

    assert code == 0
    assert "- Mathematics" in console.export_text()


def test_quiz_route_rejects_unknown_subject(app_context, signed_in):
    args = argparse.Namespace(list_subjects=False, subject="Alchemy")
    console = ScriptedConsole()

    code = run_with_context(args, app_context, console, quiz_cli.run, "quiz")

    assert code == 2
    assert "Unknown subject 'Alchemy'." in console.export_text()


def test_login_command_stores_session(app_context, http):
    http.queue(FakeResponse(200, TOKEN_BODY))
    console = ScriptedConsole("secret")

    code = auth_cli.run_login(
        argparse.Namespace(email="ada@example.com"), app_context, console
    )

    assert code == 0
    store = AuthSessionStore(app_context.workspace.path_for("auth"))
    assert store.load().user_id == "user-1"


def test_signup_requires_matching_passwords(app_context, http):
    console = ScriptedConsole("one", "two")

    code = auth_cli.run_signup(
        argparse.Namespace(email="ada@example.com", redirect_to=None),
        app_context,
        console,
    )

    assert code == 1
    assert "Passwords do not match." in console.export_text()
    assert http.calls == []


def test_signup_pending_confirmation_message(app_context, http):
    http.queue(FakeResponse(200, {"id": "user-1"}))
    console = ScriptedConsole("secret", "secret")

    code = auth_cli.run_signup(
        argparse.Namespace(email="ada@example.com", redirect_to=None),
        app_context,
        console,
    )

    assert code == 0
    assert "Check your email" in console.export_text()


def test_confirm_email_reads_token_from_link(app_context, http):
    http.queue(FakeResponse(200, TOKEN_BODY))
    console = ScriptedConsole()
    args = argparse.Namespace(
        token=None,
        type_=None,
        url="https://app.test/confirm-email?token=abc123&type=signup",
    )

    code = auth_cli.run_confirm_email(args, app_context, console)

    assert code == 0
    assert http.last.json == {"type": "signup", "token_hash": "abc123"}
    assert "Email verified successfully!" in console.export_text()


def test_logout_forgets_session(app_context, signed_in, http):
    http.queue(FakeResponse(204))
    console = ScriptedConsole()

    assert auth_cli.run_logout(argparse.Namespace(), app_context, console) == 0

    store = AuthSessionStore(app_context.workspace.path_for("auth"))
    assert store.load() is None
    assert "Signed out." in console.export_text()


def test_corrupt_session_file_sends_user_to_login(app_context, http):
    store = AuthSessionStore(app_context.workspace.path_for("auth"))
    store.path.write_text("{not json")
    http.queue(FakeResponse(200, TOKEN_BODY))
    console = ScriptedConsole("ada@example.com", "secret")
    calls = []

    code = run_with_context(
        argparse.Namespace(), app_context, console, _record_runner(calls), "quiz"
    )

    assert code == 0
    assert [s.user_id for s in calls] == ["user-1"]
    assert "Please log in to open 'quiz'." in console.export_text()
