"""Question batch generation with a small per-session cache."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable, Optional

from ..errors import ValidationError
from ..inference import InferenceClient
from ..prompts import quiz_batch_prompt
from .models import QuestionBatch
from .validator import parse_batch

__all__ = ["QuestionCache", "QuestionGenerator"]

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


class QuestionCache:
    """LRU cache of validated batches keyed by subject, with a TTL.

    ``max_entries=0`` disables caching; ``ttl_seconds=0`` keeps entries
    until they are evicted by size.
    """

    def __init__(
        self,
        *,
        max_entries: int,
        ttl_seconds: int,
        clock: Clock = time.monotonic,
    ) -> None:
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[float, QuestionBatch]]" = (
            OrderedDict()
        )

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, subject: str) -> Optional[QuestionBatch]:
        entry = self._entries.get(subject)
        if entry is None:
            return None
        stored_at, batch = entry
        if self._ttl and self._clock() - stored_at >= self._ttl:
            del self._entries[subject]
            return None
        self._entries.move_to_end(subject)
        return batch

    def put(self, subject: str, batch: QuestionBatch) -> None:
        if self._max_entries <= 0:
            return
        self._entries[subject] = (self._clock(), batch)
        self._entries.move_to_end(subject)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def discard(self, subject: str) -> None:
        self._entries.pop(subject, None)

    def clear(self) -> None:
        self._entries.clear()


class QuestionGenerator:
    """Request, validate and cache question batches for a subject.

    Raises :class:`~thinkforge.errors.NetworkError` or a
    :class:`~thinkforge.errors.ValidationError` subclass unchanged.
    """

    def __init__(
        self,
        client: InferenceClient,
        *,
        cache: Optional[QuestionCache] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._logger = logger or LOGGER

    @property
    def cache(self) -> Optional[QuestionCache]:
        return self._cache

    def generate(self, subject: str, *, use_cache: bool = True) -> QuestionBatch:
        if use_cache and self._cache is not None:
            cached = self._cache.get(subject)
            if cached is not None:
                self._logger.debug(
                    "Question batch served from cache",
                    extra={"subject": subject},
                )
                return cached
        raw = self._client.generate(quiz_batch_prompt(subject))
        try:
            batch = parse_batch(raw, subject=subject)
        except ValidationError as exc:
            self._logger.warning(
                "Question batch rejected",
                extra={
                    "subject": subject,
                    "kind": exc.kind,
                    "index": exc.index,
                    "reason": str(exc),
                },
            )
            raise
        if self._cache is not None:
            self._cache.put(subject, batch)
        self._logger.info(
            "Question batch generated", extra={"subject": subject}
        )
        return batch
