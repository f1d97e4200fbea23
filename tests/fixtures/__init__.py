"""Shared testing fixtures and fakes for the ThinkForge test suite."""

from .http import FakeResponse, FakeSession, RecordedCall  # noqa: F401
from .inference import StubInferenceClient  # noqa: F401
from .quiz import batch_json, make_batch, question_entries  # noqa: F401

__all__ = [
    "FakeResponse",
    "FakeSession",
    "RecordedCall",
    "StubInferenceClient",
    "batch_json",
    "make_batch",
    "question_entries",
]
