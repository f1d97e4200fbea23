"""Sign-in, sign-up and email confirmation against the hosted auth API.

The authenticated session is stored under ``<workspace>/auth/session.json``
so later commands can reach the datastore as the signed-in user.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

from ..backend.transport import RestTransport, error_message
from ..errors import AuthError

__all__ = [
    "AuthSession",
    "AuthSessionStore",
    "AuthService",
    "SESSION_FILENAME",
]

SESSION_FILENAME = "session.json"
_EXPIRY_MARGIN_SECONDS = 30

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthSession:
    """Tokens and identity of the signed-in user."""

    access_token: str
    refresh_token: Optional[str]
    user_id: str
    email: str
    expires_at: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.email.split("@")[0] if self.email else "User"

    def is_expired(self, *, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at - _EXPIRY_MARGIN_SECONDS

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "user_id": self.user_id,
            "email": self.email,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AuthSession":
        access_token = payload.get("access_token")
        user_id = payload.get("user_id")
        if not isinstance(access_token, str) or not access_token:
            raise AuthError("Stored session is missing an access token.")
        if not isinstance(user_id, str) or not user_id:
            raise AuthError("Stored session is missing the user id.")
        expires_at = payload.get("expires_at")
        return cls(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or None,
            user_id=user_id,
            email=str(payload.get("email") or ""),
            expires_at=int(expires_at) if expires_at is not None else None,
        )

    @classmethod
    def from_token_response(
        cls, payload: Mapping[str, Any], *, now: float | None = None
    ) -> "AuthSession":
        """Build a session from a ``/token`` or ``/verify`` response body."""

        access_token = payload.get("access_token")
        user = payload.get("user")
        if not isinstance(access_token, str) or not isinstance(user, Mapping):
            raise AuthError("Auth response did not include a session.")
        expires_at = payload.get("expires_at")
        if expires_at is None and payload.get("expires_in") is not None:
            current = time.time() if now is None else now
            expires_at = int(current) + int(payload["expires_in"])
        return cls(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or None,
            user_id=str(user.get("id") or ""),
            email=str(user.get("email") or ""),
            expires_at=int(expires_at) if expires_at is not None else None,
        )


class AuthSessionStore:
    """Persist the current :class:`AuthSession` as a private JSON file."""

    def __init__(self, directory: Path) -> None:
        self._path = Path(directory) / SESSION_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[AuthSession]:
        if not self._path.exists():
            return None
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise AuthError(
                f"Stored session is corrupt: {self._path}"
            ) from exc
        if not isinstance(payload, Mapping):
            raise AuthError(f"Stored session is corrupt: {self._path}")
        return AuthSession.from_dict(payload)

    def save(self, session: AuthSession) -> None:
        _atomic_write_json(self._path, session.to_dict())

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


class AuthService:
    """Thin client for the GoTrue endpoints used by ThinkForge."""

    def __init__(
        self,
        transport: RestTransport,
        store: AuthSessionStore,
        *,
        email_redirect_to: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._transport = transport
        self._store = store
        self._redirect_to = email_redirect_to
        self._logger = logger or LOGGER

    def sign_in(self, email: str, password: str) -> AuthSession:
        email = _require_credential(email, "Email")
        if not password:
            raise AuthError("Password is required.")
        response = self._transport.request(
            "POST",
            "auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.status_code != 200:
            self._logger.warning(
                "Sign-in rejected",
                extra={"status": response.status_code},
            )
            raise AuthError(f"Login failed: {error_message(response)}")
        session = AuthSession.from_token_response(_json(response))
        self._store.save(session)
        self._logger.info("Signed in", extra={"user_id": session.user_id})
        return session

    def sign_up(
        self,
        email: str,
        password: str,
        *,
        redirect_to: str | None = None,
    ) -> Optional[AuthSession]:
        """Register a new account.

        Returns the session when the backend confirms accounts automatically
        and ``None`` when a confirmation email was sent instead.
        """

        email = _require_credential(email, "Email")
        if not password:
            raise AuthError("Password is required.")
        params = {}
        target = redirect_to or self._redirect_to
        if target:
            params["redirect_to"] = target
        response = self._transport.request(
            "POST",
            "auth/v1/signup",
            params=params,
            json={"email": email, "password": password},
        )
        if response.status_code != 200:
            raise AuthError(f"Sign up failed: {error_message(response)}")
        payload = _json(response)
        if payload.get("access_token"):
            session = AuthSession.from_token_response(payload)
            self._store.save(session)
            self._logger.info(
                "Signed up and signed in", extra={"user_id": session.user_id}
            )
            return session
        self._logger.info("Sign-up pending email confirmation")
        return None

    def confirm_email(self, token: str | None, type_: str | None) -> None:
        """Verify the token from a confirmation email.

        The user still signs in afterwards; a session returned by the verify
        endpoint is not kept.
        """

        if not token or not type_:
            raise AuthError("Missing confirmation token or type")
        response = self._transport.request(
            "POST",
            "auth/v1/verify",
            json={"type": "signup", "token_hash": token},
        )
        if response.status_code != 200:
            raise AuthError(
                f"Email confirmation failed: {error_message(response)}"
            )
        self._logger.info("Email confirmed")

    def sign_out(self) -> None:
        session = self._load_or_discard()
        if session is None:
            return
        try:
            self._transport.request(
                "POST", "auth/v1/logout", token=session.access_token
            )
        finally:
            self._store.clear()
        self._logger.info("Signed out", extra={"user_id": session.user_id})

    def current_session(self) -> Optional[AuthSession]:
        """Return the stored session, refreshing it when it has expired.

        A session that cannot be refreshed is discarded.
        """

        session = self._load_or_discard()
        if session is None or not session.is_expired():
            return session
        if not session.refresh_token:
            self._store.clear()
            return None
        response = self._transport.request(
            "POST",
            "auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": session.refresh_token},
        )
        if response.status_code != 200:
            self._logger.warning(
                "Session refresh rejected",
                extra={"status": response.status_code},
            )
            self._store.clear()
            return None
        refreshed = AuthSession.from_token_response(_json(response))
        self._store.save(refreshed)
        return refreshed

    def _load_or_discard(self) -> Optional[AuthSession]:
        """Load the stored session; an unreadable file counts as signed out."""

        try:
            return self._store.load()
        except AuthError as exc:
            self._logger.warning(
                "Discarding unreadable session", extra={"error": str(exc)}
            )
            self._store.clear()
            return None


def _require_credential(value: str, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise AuthError(f"{label} is required.")
    return cleaned


def _json(response: Any) -> Mapping[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise AuthError("Auth service returned invalid JSON") from exc
    if not isinstance(payload, Mapping):
        raise AuthError("Auth service returned an unexpected payload")
    return payload


def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    """Replace ``path`` with ``payload`` so readers never see a partial file."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
