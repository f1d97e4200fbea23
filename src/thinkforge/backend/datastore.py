"""Record-oriented access to the hosted datastore.

Two implementations share the :class:`Datastore` protocol: ``RestDatastore``
talks to a PostgREST endpoint, ``InMemoryDatastore`` keeps rows in process
and backs the test-suite.
"""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, MutableMapping, Protocol, Sequence

from ..errors import PersistenceError
from .transport import RestTransport, error_message

__all__ = [
    "Row",
    "Datastore",
    "RestDatastore",
    "InMemoryDatastore",
    "utc_now",
]

Row = MutableMapping[str, Any]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Datastore(Protocol):
    """CRUD surface used by the chat, quiz and progress services."""

    def select(
        self,
        table: str,
        filters: Mapping[str, Any],
        *,
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        """Return rows matching every equality filter."""

    def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        """Insert ``row`` and return the stored representation."""

    def upsert(
        self, table: str, row: Mapping[str, Any], *, on_conflict: Sequence[str]
    ) -> Row:
        """Insert or merge ``row`` keyed by the ``on_conflict`` columns."""

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Mapping[str, Any],
    ) -> list[Row]:
        """Apply ``values`` to matching rows and return them."""

    def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        """Delete matching rows and return how many were removed."""


class RestDatastore:
    """PostgREST-backed datastore authenticated with the user's token."""

    def __init__(self, transport: RestTransport, *, access_token: str) -> None:
        self._transport = transport
        self._token = access_token

    def select(
        self,
        table: str,
        filters: Mapping[str, Any],
        *,
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        params = {"select": "*", **_filter_params(filters)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        payload = self._call("GET", table, params=params)
        return _as_rows(payload, table)

    def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        payload = self._call(
            "POST",
            table,
            json=[dict(row)],
            prefer="return=representation",
        )
        return _first_row(payload, table)

    def upsert(
        self, table: str, row: Mapping[str, Any], *, on_conflict: Sequence[str]
    ) -> Row:
        payload = self._call(
            "POST",
            table,
            params={"on_conflict": ",".join(on_conflict)},
            json=[dict(row)],
            prefer="resolution=merge-duplicates,return=representation",
        )
        return _first_row(payload, table)

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Mapping[str, Any],
    ) -> list[Row]:
        payload = self._call(
            "PATCH",
            table,
            params=_filter_params(filters),
            json=dict(values),
            prefer="return=representation",
        )
        return _as_rows(payload, table)

    def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        payload = self._call(
            "DELETE",
            table,
            params=_filter_params(filters),
            prefer="return=representation",
        )
        return len(_as_rows(payload, table))

    def _call(
        self,
        method: str,
        table: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        response = self._transport.request(
            method,
            f"rest/v1/{table}",
            params=params,
            json=json,
            headers=headers,
            token=self._token,
        )
        if not 200 <= response.status_code < 300:
            raise PersistenceError(
                f"{method} {table} failed: {error_message(response)}",
                status=response.status_code,
            )
        if response.status_code == 204 or not (response.text or "").strip():
            return []
        try:
            return response.json()
        except ValueError as exc:
            raise PersistenceError(
                f"{method} {table} returned invalid JSON"
            ) from exc


class InMemoryDatastore:
    """Process-local datastore with the same semantics as the REST one.

    Rows get an ``id`` and ``created_at`` when the caller omits them, like
    the column defaults of the hosted schema.
    """

    def __init__(self) -> None:
        self._tables: dict[str, list[Row]] = {}

    def rows(self, table: str) -> list[Row]:
        return [copy.deepcopy(row) for row in self._tables.get(table, [])]

    def select(
        self,
        table: str,
        filters: Mapping[str, Any],
        *,
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        matches = [
            copy.deepcopy(row)
            for row in self._tables.get(table, [])
            if _matches(row, filters)
        ]
        if order:
            matches.sort(
                key=lambda row: _sort_key(row.get(order)),
                reverse=descending,
            )
        if limit is not None:
            matches = matches[:limit]
        return matches

    def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        stored = dict(copy.deepcopy(row))
        stored.setdefault("id", uuid.uuid4().hex)
        stored.setdefault("created_at", utc_now())
        self._tables.setdefault(table, []).append(stored)
        return copy.deepcopy(stored)

    def upsert(
        self, table: str, row: Mapping[str, Any], *, on_conflict: Sequence[str]
    ) -> Row:
        key = {column: row.get(column) for column in on_conflict}
        for existing in self._tables.get(table, []):
            if _matches(existing, key):
                existing.update(copy.deepcopy(dict(row)))
                return copy.deepcopy(existing)
        return self.insert(table, row)

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Mapping[str, Any],
    ) -> list[Row]:
        changed: list[Row] = []
        for existing in self._tables.get(table, []):
            if _matches(existing, filters):
                existing.update(copy.deepcopy(dict(values)))
                changed.append(copy.deepcopy(existing))
        return changed

    def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        rows = self._tables.get(table, [])
        kept = [row for row in rows if not _matches(row, filters)]
        self._tables[table] = kept
        return len(rows) - len(kept)


def _sort_key(value: Any) -> tuple[bool, Any]:
    return (value is None, "" if value is None else value)


def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    return all(row.get(column) == value for column, value in filters.items())


def _filter_params(filters: Mapping[str, Any]) -> dict[str, str]:
    return {column: f"eq.{value}" for column, value in filters.items()}


def _as_rows(payload: Any, table: str) -> list[Row]:
    if isinstance(payload, dict):
        return [payload]
    if not isinstance(payload, list):
        raise PersistenceError(f"Unexpected payload shape from {table}")
    return [dict(item) for item in payload if isinstance(item, Mapping)]


def _first_row(payload: Any, table: str) -> Row:
    rows = _as_rows(payload, table)
    if not rows:
        raise PersistenceError(f"Write to {table} returned no row")
    return rows[0]
