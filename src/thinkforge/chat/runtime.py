"""Tutor chat backed by the datastore and the inference collaborator."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..backend.datastore import Datastore, utc_now
from ..config import ChatConfig
from ..errors import ChatError, ThinkForgeError
from ..inference import InferenceClient
from ..prompts import explain_seed_prompt, tutor_reply_prompt
from .models import ChatMessage, Conversation

__all__ = ["TutorChat", "CONVERSATIONS_TABLE", "MESSAGES_TABLE"]

LOGGER = logging.getLogger(__name__)

CONVERSATIONS_TABLE = "conversations"
MESSAGES_TABLE = "chat_messages"

_HELP = (
    "Commands: :new <title>, :list, :open <number>, :delete <number>, "
    ":quit"
)


class TutorChat:
    """Conversation management and message exchange for one user."""

    def __init__(
        self,
        datastore: Datastore,
        client: InferenceClient,
        user_id: str,
        *,
        config: ChatConfig,
        logger: logging.Logger | None = None,
    ) -> None:
        self._datastore = datastore
        self._client = client
        self._user_id = user_id
        self._config = config
        self._logger = logger or LOGGER

    # Conversations -------------------------------------------------------

    def list_conversations(self) -> list[Conversation]:
        rows = self._datastore.select(
            CONVERSATIONS_TABLE,
            {"user_id": self._user_id},
            order="updated_at",
            descending=True,
        )
        return [Conversation.from_row(row) for row in rows]

    def create_conversation(self, title: str) -> Conversation:
        cleaned = (title or "").strip()
        if not cleaned:
            raise ChatError("Conversation title cannot be empty.")
        now = utc_now()
        row = self._datastore.insert(
            CONVERSATIONS_TABLE,
            {
                "user_id": self._user_id,
                "title": cleaned,
                "created_at": now,
                "updated_at": now,
            },
        )
        conversation = Conversation.from_row(row)
        self._logger.info(
            "Conversation created", extra={"conversation_id": conversation.id}
        )
        return conversation

    def get_conversation(self, conversation_id: str) -> Conversation:
        rows = self._datastore.select(
            CONVERSATIONS_TABLE,
            {"id": conversation_id, "user_id": self._user_id},
            limit=1,
        )
        if not rows:
            raise ChatError(f"Conversation not found: {conversation_id}")
        return Conversation.from_row(rows[0])

    def messages(self, conversation_id: str) -> list[ChatMessage]:
        rows = self._datastore.select(
            MESSAGES_TABLE,
            {"conversation_id": conversation_id},
            order="created_at",
        )
        return [ChatMessage.from_row(row) for row in rows]

    def open_conversation(
        self, conversation_id: str, *, answer_seed: bool = True
    ) -> tuple[Conversation, list[ChatMessage]]:
        """Load a conversation and its messages in ascending order.

        A conversation seeded with a single user message receives its first
        tutor reply here.
        """

        conversation = self.get_conversation(conversation_id)
        history = self.messages(conversation.id)
        if answer_seed and _is_seeded(history):
            reply = self._client.generate(explain_seed_prompt(history[0].content))
            history.append(self._store_reply(conversation.id, reply))
            self._logger.info(
                "Answered seeded conversation",
                extra={"conversation_id": conversation.id},
            )
        return conversation, history

    def delete_conversation(self, conversation_id: str) -> None:
        conversation = self.get_conversation(conversation_id)
        self._datastore.delete(
            MESSAGES_TABLE, {"conversation_id": conversation.id}
        )
        self._datastore.delete(
            CONVERSATIONS_TABLE,
            {"id": conversation.id, "user_id": self._user_id},
        )
        self._logger.info(
            "Conversation deleted", extra={"conversation_id": conversation.id}
        )

    def add_user_message(self, conversation_id: str, content: str) -> ChatMessage:
        row = self._datastore.insert(
            MESSAGES_TABLE,
            {
                "conversation_id": conversation_id,
                "user_id": self._user_id,
                "role": "user",
                "content": content,
                "created_at": utc_now(),
            },
        )
        return ChatMessage.from_row(row)

    # Messages ------------------------------------------------------------

    def send_message(
        self,
        conversation_id: str,
        content: str,
        *,
        subject: str | None = None,
    ) -> tuple[ChatMessage, ChatMessage]:
        """Store ``content``, ask the tutor and store its reply.

        The steps run in order without rollback: a failure after the user
        message is stored leaves that message in place.
        """

        text = (content or "").strip()
        if not text:
            raise ChatError("Message cannot be empty.")
        if len(text) > self._config.max_message_length:
            raise ChatError(
                "Message is too long "
                f"({len(text)} > {self._config.max_message_length} characters)."
            )
        conversation = self.get_conversation(conversation_id)
        user_message = self.add_user_message(conversation.id, text)
        history = [
            message
            for message in self.messages(conversation.id)
            if message.id != user_message.id
        ]
        history = history[-self._config.max_conversation_length:]
        prompt = tutor_reply_prompt(
            ((message.role, message.content) for message in history),
            text,
            subject=subject or self._config.default_subject,
        )
        reply_text = self._client.generate(prompt)
        reply = self._store_reply(conversation.id, reply_text)
        self._logger.info(
            "Message sent",
            extra={
                "conversation_id": conversation.id,
                "history": len(history),
            },
        )
        return user_message, reply

    def _store_reply(self, conversation_id: str, content: str) -> ChatMessage:
        row = self._datastore.insert(
            MESSAGES_TABLE,
            {
                "conversation_id": conversation_id,
                "user_id": self._user_id,
                "role": "assistant",
                "content": content,
                "created_at": utc_now(),
            },
        )
        self._datastore.update(
            CONVERSATIONS_TABLE,
            {"updated_at": utc_now()},
            {"id": conversation_id},
        )
        return ChatMessage.from_row(row)

    # Interactive loop ----------------------------------------------------

    def interactive_loop(
        self,
        *,
        console: Console,
        conversation_id: str | None = None,
        subject: str | None = None,
    ) -> None:
        console.print(Panel(_HELP, title="ThinkForge Tutor"))
        current: Optional[Conversation] = None
        listing: list[Conversation] = []
        if conversation_id:
            current = self._open_and_render(console, conversation_id)
        else:
            listing = self._render_listing(console)
        while True:
            try:
                raw = console.input("[bold green]You[/]> ")
            except (EOFError, KeyboardInterrupt):
                console.print("\nExiting chat.")
                break
            text = raw.strip()
            if not text:
                continue
            if text in {":quit", ":q", "exit"}:
                console.print("Goodbye!")
                break
            try:
                if text == ":list":
                    listing = self._render_listing(console)
                elif text.startswith(":new"):
                    current = self.create_conversation(text[4:])
                    console.print(f"Started [bold]{current.title}[/].")
                elif text.startswith(":open"):
                    target = _pick(listing, text[5:])
                    current = self._open_and_render(console, target.id)
                elif text.startswith(":delete"):
                    target = _pick(listing, text[7:])
                    self.delete_conversation(target.id)
                    console.print(f"Deleted [bold]{target.title}[/].")
                    if current is not None and current.id == target.id:
                        current = None
                    listing = self._render_listing(console)
                elif text.startswith(":"):
                    console.print(_HELP)
                elif current is None:
                    console.print(
                        "[yellow]Open or create a conversation first.[/]"
                    )
                else:
                    _, reply = self.send_message(
                        current.id, text, subject=subject
                    )
                    console.print(Panel(reply.content, title="Tutor"))
            except ThinkForgeError as exc:
                self._logger.error("Chat action failed", extra={"error": str(exc)})
                console.print(f"[red]Error:[/] {exc}")

    def _render_listing(self, console: Console) -> list[Conversation]:
        conversations = self.list_conversations()
        if not conversations:
            console.print("[dim]No conversations yet. Use :new <title>.[/]")
            return conversations
        table = Table(title="Conversations")
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("Updated")
        for idx, conversation in enumerate(conversations, start=1):
            table.add_row(
                str(idx), conversation.title, conversation.updated_at or "-"
            )
        console.print(table)
        return conversations

    def _open_and_render(
        self, console: Console, conversation_id: str
    ) -> Conversation:
        conversation, history = self.open_conversation(conversation_id)
        console.rule(conversation.title)
        for message in history:
            title = "You" if message.role == "user" else "Tutor"
            style = "green" if message.role == "user" else "cyan"
            console.print(Panel(message.content, title=title, border_style=style))
        return conversation


def _is_seeded(history: Sequence[ChatMessage]) -> bool:
    return len(history) == 1 and history[0].role == "user"


def _pick(listing: Sequence[Conversation], raw: str) -> Conversation:
    token = raw.strip()
    if not token.isdigit():
        raise ChatError("Give the conversation number from :list.")
    position = int(token)
    if not 1 <= position <= len(listing):
        raise ChatError(f"No conversation numbered {position}.")
    return listing[position - 1]
