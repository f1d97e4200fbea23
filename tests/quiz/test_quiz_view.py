from __future__ import annotations

from fixtures import StubInferenceClient, batch_json, make_batch
from rich.console import Console

from thinkforge.errors import PersistenceError
from thinkforge.quiz.generator import QuestionGenerator
from thinkforge.quiz.progress import QuizOutcome, UserProgress, summarize_session
from thinkforge.quiz.session import QuizSession, SessionStatus
from thinkforge.quiz.view import QuestionView, QuizApp, outcome_table


class InlineWorkers:
    """Run app workers synchronously instead of on a thread."""

    def __init__(self, app: QuizApp) -> None:
        self.app = app
        self.pending = []

    def run_worker(self, work, **kwargs):
        self.pending.append(work)

    def call_from_thread(self, callback, *args):
        return callback(*args)

    def drain(self) -> None:
        while self.pending:
            self.pending.pop(0)()


class Recorder:
    def __init__(self, error=None):
        self.error = error

    def record(self, outcome: QuizOutcome) -> UserProgress:
        if self.error is not None:
            raise self.error
        return UserProgress(total_quizzes=1, average_score=outcome.score)


def _app(monkeypatch, *replies, recorder=None):
    session = QuizSession(
        QuestionGenerator(StubInferenceClient(*replies)),
        recorder or Recorder(),
    )
    app = QuizApp(session, ["Mathematics", "Physics"])
    workers = InlineWorkers(app)
    monkeypatch.setattr(app, "run_worker", workers.run_worker)
    monkeypatch.setattr(app, "call_from_thread", workers.call_from_thread)
    return app, session, workers


def test_question_view_feedback_text():
    question = make_batch()[0]
    view = QuestionView(question, index=1, total=5)

    assert view.feedback_text(1) == "Correct!"
    assert view.feedback_text(0) == "Incorrect. Try again!"


def test_request_quiz_begins_session(monkeypatch):
    app, session, workers = _app(monkeypatch, batch_json())

    app.request_quiz("Mathematics")
    assert app.busy
    workers.drain()

    assert not app.busy
    assert session.is_active
    assert session.subject == "Mathematics"
    assert app.status_text().startswith("Mathematics | Time left: 20s")


def test_generation_failure_reports_message(monkeypatch):
    app, session, workers = _app(monkeypatch, "garbage")

    app.request_quiz("Mathematics")
    workers.drain()

    assert not session.is_active
    assert not app.busy
    assert "Failed to generate questions" in app.last_message


def test_stale_batch_is_discarded(monkeypatch):
    app, session, workers = _app(monkeypatch, batch_json())
    app.request_quiz("Mathematics")
    app.abandon()

    workers.drain()

    assert not session.is_active


def test_select_answer_gives_feedback(monkeypatch):
    app, session, workers = _app(monkeypatch, batch_json())
    app.request_quiz("Mathematics")
    workers.drain()

    assert app.select_answer(0) is True
    assert app.last_message == "Incorrect. Try again!"
    assert app.select_answer(1) is True
    assert app.last_message == "Correct!"
    assert app.select_answer(7) is False
    assert session.selections == {"1": 1}


def test_navigation_moves_between_questions(monkeypatch):
    app, session, workers = _app(monkeypatch, batch_json())
    app.request_quiz("Mathematics")
    workers.drain()

    app.next_question()
    assert session.index == 1
    app.prev_question()
    assert session.index == 0


def test_tick_expiry_skips_question(monkeypatch):
    app, session, workers = _app(monkeypatch, batch_json())
    app.request_quiz("Mathematics")
    workers.drain()

    for _ in range(20):
        app.handle_tick()

    assert session.index == 1
    assert session.record_for("1").skipped
    assert app.last_message == "Time's up! Question skipped."


def test_finishing_last_question_shows_summary(monkeypatch):
    app, session, workers = _app(monkeypatch, batch_json())
    app.request_quiz("Mathematics")
    workers.drain()
    for option in [1, 0, 2, 3, 0]:
        app.select_answer(option)
        app.next_question()

    assert app.busy
    workers.drain()

    assert not app.busy
    assert app.last_message == "Quiz completed!"
    assert session.last_outcome.score == 100.0


def test_expiry_on_last_question_completes_quiz(monkeypatch):
    app, session, workers = _app(monkeypatch, batch_json())
    app.request_quiz("Mathematics")
    workers.drain()
    for _ in range(4):
        app.next_question()

    for _ in range(120):
        app.handle_tick()
    workers.drain()

    assert session.last_outcome is not None
    assert session.last_outcome.questions[4]["selectedAnswer"] is None


def test_completion_failure_is_reported(monkeypatch):
    app, session, workers = _app(
        monkeypatch, batch_json(), recorder=Recorder(PersistenceError("boom"))
    )
    app.request_quiz("Mathematics")
    workers.drain()
    for _ in range(5):
        app.next_question()

    workers.drain()

    assert app.last_message == "Failed to save progress: boom"
    assert not session.is_active


def test_outcome_table_lists_answers():
    batch = make_batch()
    outcome = summarize_session(batch, [])
    console = Console(record=True, width=160)

    console.print(outcome_table(outcome))

    text = console.export_text()
    assert "Mathematics: 0%" in text
    assert "skipped" in text
    assert "ln|x| + C" in text


class AbandoningRecorder(Recorder):
    def __init__(self):
        super().__init__()
        self.app = None
        self.recorded = []

    def record(self, outcome: QuizOutcome) -> UserProgress:
        self.app.abandon()
        self.recorded.append(outcome)
        return super().record(outcome)


def _finish_quiz(app, workers):
    app.request_quiz("Mathematics")
    workers.drain()
    for _ in range(5):
        app.next_question()


def test_abandon_is_ignored_while_saving(monkeypatch):
    app, session, workers = _app(monkeypatch, batch_json())
    _finish_quiz(app, workers)

    app.abandon()

    assert app.busy
    assert app.last_message == "Saving progress, please wait."
    workers.drain()
    assert not app.busy
    assert app.last_message == "Quiz completed!"
    assert session.status is SessionStatus.COMPLETED


def test_abandon_during_save_does_not_race_the_fold(monkeypatch):
    recorder = AbandoningRecorder()
    app, session, workers = _app(monkeypatch, batch_json(), recorder=recorder)
    recorder.app = app
    _finish_quiz(app, workers)

    workers.drain()

    assert len(recorder.recorded) == 1
    assert session.status is SessionStatus.COMPLETED
    assert app.last_message == "Quiz completed!"


def test_save_worker_skips_inactive_session(monkeypatch):
    app, session, workers = _app(monkeypatch, batch_json())
    _finish_quiz(app, workers)
    session.abandon()

    workers.drain()

    assert not app.busy
    assert session.last_outcome is None
    assert session.status is SessionStatus.IDLE
    app.abandon()
    assert app.last_message != "Saving progress, please wait."
