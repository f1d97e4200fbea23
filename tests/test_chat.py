from __future__ import annotations

from dataclasses import replace

import pytest
from rich.console import Console

from fixtures import StubInferenceClient

from thinkforge.chat.runtime import (
    CONVERSATIONS_TABLE,
    MESSAGES_TABLE,
    TutorChat,
)
from thinkforge.config import default_config
from thinkforge.errors import ChatError, NetworkError


@pytest.fixture
def client():
    return StubInferenceClient()


@pytest.fixture
def chat(datastore, client):
    return TutorChat(datastore, client, "user-1", config=default_config().chat)


class ScriptedConsole(Console):
    """Console that reads queued input lines and records output."""

    def __init__(self, *lines: str) -> None:
        super().__init__(record=True, width=120)
        self.lines = list(lines)

    def input(self, prompt="", **kwargs):  # noqa: D401
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)


def test_create_and_list_conversations(chat, datastore):
    first = chat.create_conversation("  Algebra help ")
    second = chat.create_conversation("Physics")
    datastore.update(
        CONVERSATIONS_TABLE, {"updated_at": "2999-01-01"}, {"id": first.id}
    )

    listing = chat.list_conversations()

    assert first.title == "Algebra help"
    assert [c.id for c in listing] == [first.id, second.id]


def test_create_conversation_requires_title(chat):
    with pytest.raises(ChatError):
        chat.create_conversation("   ")


def test_get_conversation_is_scoped_to_user(chat, datastore):
    row = datastore.insert(
        CONVERSATIONS_TABLE, {"user_id": "someone-else", "title": "Secret"}
    )

    with pytest.raises(ChatError, match="not found"):
        chat.get_conversation(row["id"])


def test_send_message_stores_both_sides(chat, client, datastore):
    conversation = chat.create_conversation("Algebra")
    client.queue("x equals 2")

    user_message, reply = chat.send_message(
        conversation.id, "  How do I solve x + 5 = 7? ", subject="Mathematics"
    )

    assert user_message.role == "user"
    assert user_message.content == "How do I solve x + 5 = 7?"
    assert reply.role == "assistant"
    assert reply.content == "x equals 2"
    prompt = client.prompts[0]
    assert "The user is learning about Mathematics." in prompt
    assert prompt.endswith("Current message: How do I solve x + 5 = 7?")
    assert len(datastore.rows(MESSAGES_TABLE)) == 2


def test_send_message_includes_earlier_history(chat, client):
    conversation = chat.create_conversation("Algebra")
    client.queue("first reply", "second reply")
    chat.send_message(conversation.id, "first question")

    chat.send_message(conversation.id, "second question")

    prompt = client.prompts[1]
    assert "User: first question" in prompt
    assert "Assistant: first reply" in prompt
    assert "User: second question" not in prompt
    assert "The user is learning about General." in prompt


def test_history_is_capped(datastore, client):
    config = replace(default_config().chat, max_conversation_length=2)
    chat = TutorChat(datastore, client, "user-1", config=config)
    conversation = chat.create_conversation("Long")
    client.queue("r1", "r2", "r3")
    chat.send_message(conversation.id, "q1")
    chat.send_message(conversation.id, "q2")

    chat.send_message(conversation.id, "q3")

    prompt = client.prompts[2]
    assert "q1" not in prompt
    assert "User: q2" in prompt
    assert "Assistant: r2" in prompt


@pytest.mark.parametrize("content", ["", "   ", "x" * 1001])
def test_send_message_rejects_bad_content(chat, client, content):
    conversation = chat.create_conversation("Algebra")

    with pytest.raises(ChatError):
        chat.send_message(conversation.id, content)

    assert client.prompts == []


def test_failed_reply_keeps_user_message(chat, client, datastore):
    conversation = chat.create_conversation("Algebra")
    client.queue(NetworkError("model offline"))

    with pytest.raises(NetworkError):
        chat.send_message(conversation.id, "hello")

    [stored] = datastore.rows(MESSAGES_TABLE)
    assert stored["role"] == "user"


def test_open_seeded_conversation_answers_first_message(chat, client):
    conversation = chat.create_conversation("Review: Algebra - Mathematics")
    chat.add_user_message(conversation.id, "Please explain this question")
    client.queue("Here is the explanation. Can you tell me why?")

    _, history = chat.open_conversation(conversation.id)

    assert [m.role for m in history] == ["user", "assistant"]
    assert 'started from the "Explain in Chat" button' in client.prompts[0]
    _, again = chat.open_conversation(conversation.id)
    assert len(again) == 2
    assert len(client.prompts) == 1


def test_delete_conversation_removes_messages(chat, client, datastore):
    conversation = chat.create_conversation("Temp")
    client.queue("reply")
    chat.send_message(conversation.id, "hi")

    chat.delete_conversation(conversation.id)

    assert datastore.rows(CONVERSATIONS_TABLE) == []
    assert datastore.rows(MESSAGES_TABLE) == []


def test_interactive_loop_creates_and_chats(chat, client):
    client.queue("Photosynthesis turns light into sugar.")
    console = ScriptedConsole(":new Biology", "What is photosynthesis?", ":q")

    chat.interactive_loop(console=console)

    output = console.export_text()
    assert "No conversations yet" in output
    assert "Started Biology." in output
    assert "Photosynthesis turns light into sugar." in output
    assert "Goodbye!" in output


def test_interactive_loop_reports_errors(chat):
    console = ScriptedConsole("hello", ":open 3", ":new   ")

    chat.interactive_loop(console=console)

    output = console.export_text()
    assert "Open or create a conversation first." in output
    assert "Error: No conversation numbered 3." in output
    assert "Error: Conversation title cannot be empty." in output
    assert "Exiting chat." in output
