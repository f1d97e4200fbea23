from __future__ import annotations

import pytest
import requests

from fixtures import FakeResponse

from thinkforge.backend.datastore import RestDatastore
from thinkforge.backend.transport import error_message
from thinkforge.errors import NetworkError, PersistenceError


def test_transport_sends_key_and_bearer(transport, http):
    http.queue(FakeResponse(200, {"ok": True}))

    transport.request("GET", "/rest/v1/things", params={"a": "b"})

    call = http.last
    assert call.method == "GET"
    assert call.url == "https://backend.test/rest/v1/things"
    assert call.params == {"a": "b"}
    assert call.headers["apikey"] == "anon-key"
    assert call.headers["Authorization"] == "Bearer anon-key"


def test_transport_uses_user_token_when_given(transport, http):
    http.queue(FakeResponse(200, {}))

    transport.request("GET", "rest/v1/things", token="user-token")

    assert http.last.headers["Authorization"] == "Bearer user-token"


def test_transport_maps_connection_errors(transport, http):
    http.queue(requests.ConnectionError("refused"))

    with pytest.raises(NetworkError, match="Backend unreachable"):
        transport.request("GET", "rest/v1/things")


@pytest.mark.parametrize(
    "response, expected",
    [
        (FakeResponse(400, {"error_description": "Invalid login"}), "Invalid login"),
        (FakeResponse(422, {"msg": "Weak password"}), "Weak password"),
        (FakeResponse(500, text="upstream exploded"), "upstream exploded"),
        (FakeResponse(502, text=""), "HTTP 502"),
    ],
)
def test_error_message_prefers_structured_fields(response, expected):
    assert error_message(response) == expected


def test_select_builds_postgrest_query(transport, http):
    http.queue(FakeResponse(200, [{"id": "1", "subject": "Math"}]))
    store = RestDatastore(transport, access_token="tok")

    rows = store.select(
        "quiz_attempts",
        {"user_id": "u1"},
        order="created_at",
        descending=True,
        limit=10,
    )

    assert rows == [{"id": "1", "subject": "Math"}]
    call = http.last
    assert call.url == "https://backend.test/rest/v1/quiz_attempts"
    assert call.params == {
        "select": "*",
        "user_id": "eq.u1",
        "order": "created_at.desc",
        "limit": "10",
    }
    assert call.headers["Authorization"] == "Bearer tok"


def test_upsert_requests_merge(transport, http):
    http.queue(FakeResponse(201, [{"user_id": "u1", "subject": "Math"}]))
    store = RestDatastore(transport, access_token="tok")

    row = store.upsert(
        "subject_progress",
        {"user_id": "u1", "subject": "Math"},
        on_conflict=("user_id", "subject"),
    )

    assert row["subject"] == "Math"
    call = http.last
    assert call.method == "POST"
    assert call.params == {"on_conflict": "user_id,subject"}
    assert call.json == [{"user_id": "u1", "subject": "Math"}]
    assert "resolution=merge-duplicates" in call.headers["Prefer"]


def test_insert_returns_representation(transport, http):
    http.queue(FakeResponse(201, [{"id": "abc", "title": "Hi"}]))
    store = RestDatastore(transport, access_token="tok")

    row = store.insert("conversations", {"title": "Hi"})

    assert row == {"id": "abc", "title": "Hi"}
    assert http.last.headers["Prefer"] == "return=representation"


def test_update_and_delete_filter_rows(transport, http):
    http.queue(
        FakeResponse(200, [{"id": "c1"}]),
        FakeResponse(200, [{"id": "m1"}, {"id": "m2"}]),
    )
    store = RestDatastore(transport, access_token="tok")

    updated = store.update("conversations", {"title": "New"}, {"id": "c1"})
    removed = store.delete("chat_messages", {"conversation_id": "c1"})

    assert updated == [{"id": "c1"}]
    assert removed == 2
    assert http.calls[0].method == "PATCH"
    assert http.calls[0].params == {"id": "eq.c1"}
    assert http.calls[1].method == "DELETE"


def test_empty_body_is_no_rows(transport, http):
    http.queue(FakeResponse(204))
    store = RestDatastore(transport, access_token="tok")

    assert store.delete("chat_messages", {"conversation_id": "c1"}) == 0


def test_error_status_raises_persistence_error(transport, http):
    http.queue(FakeResponse(409, {"message": "duplicate key"}))
    store = RestDatastore(transport, access_token="tok")

    with pytest.raises(PersistenceError) as excinfo:
        store.insert("quiz_attempts", {"score": 1})

    assert excinfo.value.status == 409
    assert "duplicate key" in str(excinfo.value)


def test_write_without_row_raises(transport, http):
    http.queue(FakeResponse(201, []))
    store = RestDatastore(transport, access_token="tok")

    with pytest.raises(PersistenceError, match="returned no row"):
        store.insert("quiz_attempts", {"score": 1})
