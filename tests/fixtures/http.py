"""Fake ``requests`` objects for backend and inference tests."""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union


class FakeResponse:
    """Minimal stand-in for :class:`requests.Response`."""

    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        *,
        text: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    def json(self) -> Any:
        if self._payload is not None:
            return self._payload
        return json.loads(self.text)


@dataclass
class RecordedCall:
    method: str
    url: str
    params: Mapping[str, Any] = field(default_factory=dict)
    json: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout: Any = None


Queued = Union[FakeResponse, Exception]


class FakeSession:
    """Replay queued responses and record every request made."""

    def __init__(self, responses: Iterable[Queued] = ()) -> None:
        self.responses: deque[Queued] = deque(responses)
        self.calls: list[RecordedCall] = []

    def queue(self, *responses: Queued) -> None:
        self.responses.extend(responses)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(
            RecordedCall(
                method=method,
                url=url,
                params=dict(kwargs.get("params") or {}),
                json=kwargs.get("json"),
                headers=dict(kwargs.get("headers") or {}),
                timeout=kwargs.get("timeout"),
            )
        )
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = self.responses.popleft()
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("POST", url, **kwargs)

    @property
    def last(self) -> RecordedCall:
        return self.calls[-1]
