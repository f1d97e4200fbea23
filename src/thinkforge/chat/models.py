"""Records stored for tutor conversations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

__all__ = ["Role", "Conversation", "ChatMessage"]

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class Conversation:
    id: str
    user_id: str
    title: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Conversation":
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id") or ""),
            title=str(row.get("title") or ""),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at") or row.get("created_at"),
        )


@dataclass(frozen=True)
class ChatMessage:
    id: str
    conversation_id: str
    user_id: str
    role: Role
    content: str
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ChatMessage":
        role = row.get("role")
        return cls(
            id=str(row["id"]),
            conversation_id=str(row.get("conversation_id") or ""),
            user_id=str(row.get("user_id") or ""),
            role="assistant" if role == "assistant" else "user",
            content=str(row.get("content") or ""),
            created_at=row.get("created_at"),
        )
