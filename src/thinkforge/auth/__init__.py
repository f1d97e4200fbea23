"""Account sign-in and session persistence."""

from .service import AuthService, AuthSession, AuthSessionStore

__all__ = ["AuthService", "AuthSession", "AuthSessionStore"]
