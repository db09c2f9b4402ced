"""
HttpTaskApi envelope unwrapping and error mapping, over httpx.MockTransport.

Run with: python -m pytest tests/test_http_client.py -v
"""
from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from todoapp.domain.common.errors import ApiError, NotFoundError, TransportError, ValidationError
from todoapp.infra.http.client import HttpTaskApi
from todoapp.ui.telegram.main import check_api


def _api(handler) -> HttpTaskApi:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://api.test")
    return HttpTaskApi(client)


def _ok(data, status=200):
    return httpx.Response(status, json={"ok": True, "data": data, "request_id": "req-ok"})


def _err(code, message, status):
    return httpx.Response(
        status, json={"ok": False, "error": {"code": code, "message": message}, "request_id": "req-err"}
    )


def test_list_passes_owner_and_returns_rows():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _ok([{"id": "t1", "title": "x"}])

    rows = asyncio.run(_api(handler).list_tasks("Alice"))
    assert rows == [{"id": "t1", "title": "x"}]
    assert seen[0].method == "GET"
    assert seen[0].url.path == "/tasks"
    assert seen[0].url.params["owner"] == "Alice"


def test_update_sends_identifier_in_body():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _ok({"id": "t1", "completed": True})

    asyncio.run(_api(handler).update_task("t1", "alice", {"completed": True}))
    assert seen[0].method == "PATCH"
    assert seen[0].url.path == "/tasks/t1"
    assert json.loads(seen[0].content) == {"completed": True, "identifier": "alice"}


def test_delete_returns_deleted_id():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        assert request.url.params["owner"] == "alice"
        return _ok({"id": "t1"})

    assert asyncio.run(_api(handler).delete_task("t1", "alice")) == "t1"


def test_not_found_envelope_raises_not_found_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return _err("NOT_FOUND", "Task not found or permission denied", 404)

    with pytest.raises(NotFoundError) as info:
        asyncio.run(_api(handler).delete_task("t1", "bob"))
    assert isinstance(info.value, ApiError)
    assert info.value.request_id == "req-err"
    assert info.value.status == 404
    assert info.value.message == "Task not found or permission denied"


def test_validation_envelopes_raise_validation_flavoured_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return _err("BAD_REQUEST", "Invalid JSON", 400)

    with pytest.raises(ValidationError):
        asyncio.run(_api(handler).create_task("alice", {"title": "x"}))


def test_server_error_envelope_keeps_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return _err("DB_ERROR", "Database error", 500)

    with pytest.raises(ApiError) as info:
        asyncio.run(_api(handler).list_tasks("alice"))
    assert info.value.code == "DB_ERROR"
    assert not isinstance(info.value, (NotFoundError, ValidationError))


def test_connection_failure_becomes_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        asyncio.run(_api(handler).list_tasks("alice"))


def test_non_envelope_body_becomes_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad gateway</html>")

    with pytest.raises(TransportError):
        asyncio.run(_api(handler).list_tasks("alice"))


def test_startup_check_reports_api_health():
    def healthy(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/health"
        return _ok({"status": "healthy", "version": "1.0.0", "ts": "2024-05-01T12:00:00+00:00"})

    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert asyncio.run(check_api(_api(healthy))) is True
    assert asyncio.run(check_api(_api(down))) is False
