"""AI tutor conversations."""

from .models import ChatMessage, Conversation
from .runtime import TutorChat

__all__ = ["ChatMessage", "Conversation", "TutorChat"]
