"""Exception hierarchy shared by ThinkForge services and commands."""

from __future__ import annotations

__all__ = [
    "ThinkForgeError",
    "NetworkError",
    "AuthError",
    "PersistenceError",
    "GenerationError",
    "ChatError",
    "ValidationError",
    "CountError",
    "ShapeError",
    "DuplicateOptionError",
    "DistributionError",
]


class ThinkForgeError(RuntimeError):
    """Base class for every error surfaced to the user."""


class NetworkError(ThinkForgeError):
    """Raised when a collaborator is unreachable or answers with non-2xx."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthError(ThinkForgeError):
    """Raised when sign-in, sign-up or email confirmation fails."""


class PersistenceError(ThinkForgeError):
    """Raised when a datastore read or write fails.

    ``attempt_recorded`` is set when a quiz attempt was stored upstream before
    the failing write, leaving the progress aggregates behind it.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        attempt_recorded: bool = False,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.attempt_recorded = attempt_recorded


class GenerationError(ThinkForgeError):
    """Raised when a question batch cannot be obtained for a quiz."""


class ChatError(ThinkForgeError):
    """Raised when a tutor conversation request is invalid."""


class ValidationError(ThinkForgeError):
    """Raised when a model-produced question batch breaks the shape rules."""

    kind = "invalid"

    def __init__(self, message: str, *, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class CountError(ValidationError):
    kind = "count"


class ShapeError(ValidationError):
    kind = "shape"


class DuplicateOptionError(ValidationError):
    kind = "duplicate_option"


class DistributionError(ValidationError):
    kind = "distribution"
