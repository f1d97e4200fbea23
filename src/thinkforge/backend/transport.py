"""HTTP transport for the hosted auth/datastore backend."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import requests

from ..errors import NetworkError

__all__ = ["RestTransport", "error_message"]

LOGGER = logging.getLogger(__name__)


class RestTransport:
    """Thin wrapper around :class:`requests.Session` for backend calls.

    Connection failures become :class:`NetworkError`; HTTP error statuses are
    returned to the caller, which maps them to its own error type.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: int = 30,
        session: Any | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()
        self._logger = logger or LOGGER

    @property
    def base_url(self) -> str:
        return self._base_url

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        token: str | None = None,
    ) -> requests.Response:
        merged = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {token or self._api_key}",
            "Content-Type": "application/json",
        }
        if headers:
            merged.update(headers)
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            response = self._session.request(
                method,
                url,
                params=dict(params or {}),
                json=json,
                headers=merged,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            self._logger.error(
                "Backend unreachable",
                extra={"method": method, "path": path, "error": str(exc)},
            )
            raise NetworkError(f"Backend unreachable: {exc}") from exc
        self._logger.debug(
            "Backend request",
            extra={
                "method": method,
                "path": path,
                "status": response.status_code,
            },
        )
        return response


def error_message(response: requests.Response) -> str:
    """Extract a human readable error from a backend response."""

    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, Mapping):
        for key in ("error_description", "msg", "message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    text = (response.text or "").strip()
    return text or f"HTTP {response.status_code}"
