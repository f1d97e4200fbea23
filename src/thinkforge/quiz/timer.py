"""Per-question countdown driven by one-second ticks."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Mapping, Optional

__all__ = ["TimerState", "QuestionTimer", "DEFAULT_TIME_LIMITS"]

DEFAULT_TIME_LIMITS: Mapping[str, int] = {
    "easy": 20,
    "medium": 60,
    "hard": 120,
}


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ANSWERED = "answered"
    EXPIRED = "expired"


class QuestionTimer:
    """Countdown for the question on screen.

    The owner calls :meth:`tick` once per second. When the budget runs out
    the timer moves to ``EXPIRED`` and calls ``on_expire`` exactly once with
    the elapsed seconds. Answering or cancelling stops the countdown.
    """

    def __init__(
        self,
        *,
        limits: Mapping[str, int] = DEFAULT_TIME_LIMITS,
        on_expire: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._limits = dict(limits)
        self._on_expire = on_expire
        self._state = TimerState.IDLE
        self._budget = 0
        self._elapsed = 0

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def elapsed(self) -> int:
        return self._elapsed

    @property
    def remaining(self) -> int:
        return max(self._budget - self._elapsed, 0)

    @property
    def expires_on_next_tick(self) -> bool:
        return self._state is TimerState.RUNNING and self.remaining <= 1

    @property
    def budget(self) -> int:
        return self._budget

    def limit_for(self, difficulty: str) -> int:
        try:
            return self._limits[difficulty]
        except KeyError as exc:
            raise ValueError(f"Unknown difficulty: {difficulty}") from exc

    def start(self, difficulty: str) -> None:
        """Enter ``RUNNING`` with a fresh budget for ``difficulty``."""

        self._budget = self.limit_for(difficulty)
        self._elapsed = 0
        self._state = TimerState.RUNNING

    def tick(self) -> None:
        if self._state is not TimerState.RUNNING:
            return
        self._elapsed += 1
        if self._elapsed >= self._budget:
            self._state = TimerState.EXPIRED
            if self._on_expire is not None:
                self._on_expire(self._elapsed)

    def mark_answered(self) -> None:
        if self._state is TimerState.RUNNING:
            self._state = TimerState.ANSWERED

    def cancel(self) -> None:
        self._state = TimerState.IDLE
        self._budget = 0
        self._elapsed = 0
