"""Textual front-end for timed quizzes."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from rich import box
from rich.table import Table
from textual.app import App, ComposeResult
from textual.containers import Container, Vertical
from textual.widget import Widget
from textual.widgets import Button, Static

from ..errors import GenerationError, ThinkForgeError
from .models import OPTION_LABELS, Question, QuestionBatch
from .progress import QuizOutcome
from .session import QuizSession

__all__ = ["QuizApp", "QuestionView", "SubjectPicker", "outcome_table"]

LOGGER = logging.getLogger(__name__)


def outcome_table(outcome: QuizOutcome) -> Table:
    table = Table(
        title=f"{outcome.subject}: {outcome.score:.0f}%",
        box=box.SIMPLE,
        expand=True,
    )
    table.add_column("#", justify="right")
    table.add_column("Question", overflow="fold")
    table.add_column("Your answer")
    table.add_column("Correct answer")
    table.add_column("Result", justify="center")
    for idx, entry in enumerate(outcome.questions, start=1):
        options = entry.get("options") or []
        selected = entry.get("selectedAnswer")
        correct = entry["correctAnswer"]
        table.add_row(
            str(idx),
            str(entry["question"]),
            options[selected] if selected is not None else "skipped",
            options[correct] if options else str(correct),
            "✅" if entry["isCorrect"] else "❌",
        )
    return table


class SubjectPicker(Widget):
    """Buttons for each available subject."""

    def __init__(self, subjects: Sequence[str]) -> None:
        super().__init__()
        self.subjects = tuple(subjects)

    def compose(self) -> ComposeResult:
        yield Static("Choose a subject to start a quiz.", id="picker-title")
        with Vertical(id="subjects"):
            for idx, subject in enumerate(self.subjects):
                yield Button(subject, id=f"subject-{idx}")


class QuestionView(Widget):
    """Render one question with its options, progress and feedback."""

    def __init__(
        self,
        question: Question,
        index: int,
        total: int,
        *,
        selected: Optional[int] = None,
    ) -> None:
        super().__init__()
        self.question = question
        self.index = index
        self.total = total
        self.selected = selected

    def compose(self) -> ComposeResult:
        yield Static(
            f"Question {self.index}/{self.total} [{self.question.difficulty}]",
            id="progress",
        )
        yield Static(self.question.prompt, id="stem")
        with Vertical(id="choices"):
            for idx, option in enumerate(self.question.options):
                button = Button(
                    f"{OPTION_LABELS[idx]}) {option}", id=f"choice-{idx}"
                )
                if idx == self.selected:
                    button.add_class("selected")
                yield button
        feedback = (
            self.feedback_text(self.selected)
            if self.selected is not None
            else ""
        )
        yield Static(feedback, id="feedback")
        with Container(id="nav"):
            yield Button("Prev", id="prev")
            yield Button("Next", id="next")
            yield Button("Exit", id="exit")

    def feedback_text(self, selected: int) -> str:
        if selected == self.question.correct_option:
            return "Correct!"
        return "Incorrect. Try again!"


class QuizApp(App):
    CSS = """
#choices Button.selected { background: $accent; color: black; }
#status { color: $text-muted; }
"""
    BINDINGS = [
        ("a", "select(0)", "A"),
        ("b", "select(1)", "B"),
        ("c", "select(2)", "C"),
        ("d", "select(3)", "D"),
        ("n", "next", "Next"),
        ("p", "prev", "Prev"),
        ("x", "abandon", "Exit quiz"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        session: QuizSession,
        subjects: Sequence[str],
        *,
        initial_subject: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__()
        self._quiz = session
        self._subjects = tuple(subjects)
        self._initial_subject = initial_subject
        self._quiz_logger = logger or LOGGER
        self._generation = 0
        self._pending = False
        self._saving = False
        self.last_message = ""

    @property
    def busy(self) -> bool:
        return self._pending

    def compose(self) -> ComposeResult:
        yield Static("ThinkForge Quiz", id="title")
        with Container(id="stage"):
            yield SubjectPicker(self._subjects)
        yield Static("", id="status")

    def on_mount(self) -> None:
        self.set_interval(1.0, self.handle_tick)
        if self._initial_subject:
            self.request_quiz(self._initial_subject)

    # Quiz flow -----------------------------------------------------------

    def request_quiz(self, subject: str) -> None:
        """Generate a batch for ``subject`` in a worker thread."""

        if self._pending:
            return
        self._generation += 1
        token = self._generation
        self._pending = True
        self._show(Static(f"Generating questions about {subject}...", id="loading"))
        self.run_worker(
            lambda: self._generate(token, subject),
            thread=True,
            exclusive=True,
            group="quiz",
        )

    def _generate(self, token: int, subject: str) -> None:
        try:
            batch = self._quiz.fetch_batch(subject)
        except GenerationError as exc:
            self.call_from_thread(self.generation_failed, token, str(exc))
            return
        self.call_from_thread(self.batch_ready, token, batch)

    def batch_ready(self, token: int, batch: QuestionBatch) -> bool:
        if token != self._generation:
            self._quiz_logger.info(
                "Discarded stale question batch",
                extra={"subject": batch.subject},
            )
            return False
        self._pending = False
        self._quiz.begin(batch)
        self._render_question()
        return True

    def generation_failed(self, token: int, message: str) -> None:
        if token != self._generation:
            return
        self._pending = False
        self._notify(
            f"{message}. Please try again.", severity="error"
        )
        self._show(SubjectPicker(self._subjects))

    def handle_tick(self) -> None:
        session = self._quiz
        if self._pending or not session.is_active:
            return
        expiring = session.timer.expires_on_next_tick
        if expiring and session.is_last_question:
            self._finish(session.tick)
            return
        session.tick()
        if expiring:
            self._notify("Time's up! Question skipped.", severity="warning")
            self._render_question()
        else:
            self._update_status()

    def select_answer(self, option: int) -> bool:
        session = self._quiz
        if self._pending or not session.is_active:
            return False
        question = session.current_question
        if not 0 <= option < len(question.options):
            return False
        record = session.select_answer(question.id, option)
        self._notify(
            "Correct!" if record.is_correct else "Incorrect. Try again!",
            severity="information" if record.is_correct else "warning",
        )
        self._render_question()
        return True

    def next_question(self) -> None:
        session = self._quiz
        if self._pending or not session.is_active:
            return
        if session.is_last_question:
            self._finish(session.advance)
            return
        session.advance()
        self._render_question()

    def prev_question(self) -> None:
        if self._pending or not self._quiz.is_active:
            return
        self._quiz.retreat()
        self._render_question()

    def abandon(self) -> None:
        if self._saving:
            self._notify("Saving progress, please wait.", severity="warning")
            return
        self._generation += 1
        self._pending = False
        self._quiz.abandon()
        self._show(SubjectPicker(self._subjects))
        self._update_status()

    def _finish(self, step: Callable[[], object]) -> None:
        self._pending = True
        self._saving = True
        token = self._generation
        self._show(Static("Saving progress...", id="saving"))
        self.run_worker(
            lambda: self._complete(token, step),
            thread=True,
            exclusive=True,
            group="quiz",
        )

    def _complete(self, token: int, step: Callable[[], object]) -> None:
        if not self._quiz.is_active:
            self.call_from_thread(self.completion_skipped, token)
            return
        try:
            step()
        except ThinkForgeError as exc:
            self.call_from_thread(self.completion_failed, token, exc)
            return
        self.call_from_thread(self.completed, token)

    def completed(self, token: int) -> None:
        self._saving = False
        if token != self._generation:
            return
        self._pending = False
        outcome = self._quiz.last_outcome
        self._notify("Quiz completed!")
        if outcome is not None:
            self._show(Static(outcome_table(outcome), id="summary"))
        self._update_status()

    def completion_skipped(self, token: int) -> None:
        self._saving = False
        if token != self._generation:
            return
        self._pending = False
        self._quiz_logger.warning("No quiz in progress to save")
        self._show(SubjectPicker(self._subjects))
        self._update_status()

    def completion_failed(self, token: int, exc: ThinkForgeError) -> None:
        self._saving = False
        if token != self._generation:
            return
        self._pending = False
        self._quiz_logger.error(
            "Failed to save progress", extra={"error": str(exc)}
        )
        self._notify(f"Failed to save progress: {exc}", severity="error")
        self._show(SubjectPicker(self._subjects))
        self._update_status()

    # Rendering -----------------------------------------------------------

    def status_text(self) -> str:
        session = self._quiz
        if not session.is_active:
            return "No quiz in progress."
        return (
            f"{session.subject} | Time left: {session.timer.remaining}s | "
            f"Answered: {len(session.selections)}/{len(session.batch)}"
        )

    def _render_question(self) -> None:
        session = self._quiz
        if not session.is_active:
            self._update_status()
            return
        question = session.current_question
        self._show(
            QuestionView(
                question,
                index=session.index + 1,
                total=len(session.batch),
                selected=session.selections.get(question.id),
            )
        )
        self._update_status()

    def _show(self, widget: Widget) -> None:
        if not self.is_running:
            return
        stage = self.query_one("#stage", Container)
        stage.remove_children()
        stage.mount(widget)

    def _update_status(self) -> None:
        if not self.is_running:
            return
        self.query_one("#status", Static).update(self.status_text())

    def _notify(self, message: str, *, severity: str = "information") -> None:
        self.last_message = message
        if self.is_running:
            self.notify(message, severity=severity)

    # Actions -------------------------------------------------------------

    def action_select(self, option: int) -> None:
        self.select_answer(option)

    def action_next(self) -> None:
        self.next_question()

    def action_prev(self) -> None:
        self.prev_question()

    def action_abandon(self) -> None:
        self.abandon()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id or ""
        if button_id.startswith("subject-"):
            self.request_quiz(self._subjects[int(button_id.split("-", 1)[1])])
        elif button_id.startswith("choice-"):
            self.select_answer(int(button_id.split("-", 1)[1]))
        elif button_id == "next":
            self.next_question()
        elif button_id == "prev":
            self.prev_question()
        elif button_id == "exit":
            self.abandon()
