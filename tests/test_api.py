"""
HTTP surface: envelope, owner scoping, webhook signatures.

Uses a temporary DB file (in-memory SQLite would use a new DB per connection).
Run with: python -m pytest tests/test_api.py -v
"""
from __future__ import annotations

import asyncio
import json
import os
import tempfile
import uuid

from fakes import FakeClock
from fastapi.testclient import TestClient

from todoapp.api.app import create_app
from todoapp.api.signature import sign
from todoapp.domain.common.time import to_iso
from todoapp.domain.tasks.service import TaskService
from todoapp.infra.db.connection import Database
from todoapp.infra.db.repo.tasks_sqlite import TaskSqliteRepo
from todoapp.infra.db.schema_version import apply_migrations
from todoapp.infra.ids.uuid_gen import UuidGenerator

SECRET = "s3cret"


def _temp_db_path() -> str:
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    return path


def _cleanup(path: str) -> None:
    for p in (path, path + "-wal", path + "-shm"):
        if os.path.exists(p):
            os.unlink(p)


def _run_with_client(test_fn, secret=None):
    path = _temp_db_path()
    clock = FakeClock()
    try:
        db = Database(path)
        asyncio.run(apply_migrations(db, now_iso=to_iso(clock.now())))
        service = TaskService(TaskSqliteRepo(db), clock, UuidGenerator())
        with TestClient(create_app(service, signing_secret=secret, version="9.9.9")) as client:
            test_fn(client, clock)
    finally:
        _cleanup(path)


def _create(client, owner="alice", **body):
    body.setdefault("title", "Buy milk")
    resp = client.post("/tasks", params={"owner": owner}, json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _error(resp):
    payload = resp.json()
    assert payload["ok"] is False
    return payload["error"]["code"], payload["error"]["message"]


# ----- envelope / health -----


def test_health_reports_version_in_success_envelope():
    def run(client, _):
        payload = client.get("/health").json()
        assert payload["ok"] is True
        assert payload["data"]["status"] == "healthy"
        assert payload["data"]["version"] == "9.9.9"
        uuid.UUID(payload["request_id"])

    _run_with_client(run)


def test_every_response_gets_a_fresh_request_id():
    def run(client, _):
        ids = {client.get("/health").json()["request_id"] for _ in range(3)}
        ids.add(client.get("/tasks").json()["request_id"])
        assert len(ids) == 4

    _run_with_client(run)


# ----- create / list -----


def test_create_applies_defaults_and_normalizes_owner():
    def run(client, _):
        row = _create(client, owner="  Alice@Example.com ")
        assert row["identifier_raw"] == "Alice@Example.com"
        assert row["identifier_norm"] == "alice@example.com"
        assert row["priority"] == "P2"
        assert row["tags"] == []
        assert row["completed"] is False
        assert row["completed_at"] is None

    _run_with_client(run)


def test_create_validation_errors():
    def run(client, _):
        resp = client.post("/tasks", params={"owner": "alice"}, json={"title": ""})
        assert resp.status_code == 400
        assert _error(resp)[0] == "VALIDATION_ERROR"

        resp = client.post("/tasks", params={"owner": "alice"}, json={"title": "x", "priority": "P9"})
        assert resp.status_code == 400

        resp = client.post("/tasks", params={"owner": "   "}, json={"title": "x"})
        assert resp.status_code == 400
        assert _error(resp) == ("VALIDATION_ERROR", "Identifier is required.")

        resp = client.get("/tasks")
        assert resp.status_code == 400

    _run_with_client(run)


def test_list_is_scoped_to_owner_newest_first():
    def run(client, clock):
        _create(client, owner="alice", title="first")
        clock.advance(seconds=1)
        _create(client, owner="ALICE", title="second")
        _create(client, owner="bob", title="bob's")

        rows = client.get("/tasks", params={"owner": "alice"}).json()["data"]
        assert [r["title"] for r in rows] == ["second", "first"]
        assert [r["title"] for r in client.get("/tasks", params={"owner": "bob"}).json()["data"]] == ["bob's"]
        assert client.get("/tasks", params={"owner": "carol"}).json()["data"] == []

    _run_with_client(run)


# ----- patch / delete ownership -----


def test_patch_by_another_owner_is_not_found_and_changes_nothing():
    def run(client, _):
        row = _create(client, owner="alice")
        resp = client.patch(f"/tasks/{row['id']}", json={"identifier": "bob", "title": "hijacked"})
        assert resp.status_code == 404
        assert _error(resp) == ("NOT_FOUND", "Task not found or permission denied")

        rows = client.get("/tasks", params={"owner": "alice"}).json()["data"]
        assert rows[0]["title"] == "Buy milk"

    _run_with_client(run)


def test_patch_with_no_fields_is_rejected():
    def run(client, _):
        row = _create(client)
        resp = client.patch(f"/tasks/{row['id']}", json={"identifier": "alice"})
        assert resp.status_code == 400
        assert _error(resp) == ("VALIDATION_ERROR", "Request body cannot be empty")

        resp = client.patch(f"/tasks/{row['id']}", json={"identifier": "alice", "color": "red"})
        assert resp.status_code == 400

    _run_with_client(run)


def test_patch_completed_sets_and_clears_completed_at():
    def run(client, clock):
        row = _create(client)
        clock.advance(minutes=5)
        done = client.patch(f"/tasks/{row['id']}", json={"identifier": "Alice", "completed": True}).json()["data"]
        assert done["completed"] is True
        assert done["completed_at"] == to_iso(clock.now())
        assert done["updated_at"] == to_iso(clock.now())

        clock.advance(minutes=5)
        again = client.patch(f"/tasks/{row['id']}", json={"identifier": "alice", "title": "renamed"}).json()["data"]
        assert again["completed_at"] == done["completed_at"]

        undone = client.patch(f"/tasks/{row['id']}", json={"identifier": "alice", "completed": False}).json()["data"]
        assert undone["completed"] is False
        assert undone["completed_at"] is None

    _run_with_client(run)


def test_patch_can_clear_optional_fields():
    def run(client, _):
        row = _create(client, description="notes", tags=["a", "a"])
        assert row["tags"] == ["a", "a"]
        patched = client.patch(
            f"/tasks/{row['id']}", json={"identifier": "alice", "description": None, "tags": []}
        ).json()["data"]
        assert patched["description"] is None
        assert patched["tags"] == []

    _run_with_client(run)


def test_delete_requires_ownership():
    def run(client, _):
        row = _create(client, owner="alice")
        resp = client.delete(f"/tasks/{row['id']}", params={"owner": "bob"})
        assert resp.status_code == 404

        resp = client.delete(f"/tasks/{row['id']}", params={"owner": "alice"})
        assert resp.status_code == 200
        assert resp.json()["data"] == {"id": row["id"]}

        resp = client.delete(f"/tasks/{row['id']}", params={"owner": "alice"})
        assert resp.status_code == 404

    _run_with_client(run)


# ----- webhook -----


def _post_webhook(client, payload, signature=None):
    raw = json.dumps(payload).encode("utf-8")
    headers = {"content-type": "application/json"}
    if signature is not None:
        headers["x-workflow-signature"] = signature
    return client.post("/webhooks/enhance", content=raw, headers=headers), raw


def test_webhook_with_valid_signature_enriches_task():
    def run(client, clock):
        row = _create(client)
        clock.advance(minutes=1)
        payload = {"todo_id": row["id"], "enhanced_description": "Better", "steps": ["a", "b"]}
        raw = json.dumps(payload).encode("utf-8")
        resp = client.post(
            "/webhooks/enhance",
            content=raw,
            headers={"content-type": "application/json", "x-workflow-signature": sign(SECRET, raw)},
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["enhanced_description"] == "Better"
        assert data["steps"] == ["a", "b"]
        assert data["updated_at"] == to_iso(clock.now())

    _run_with_client(run, secret=SECRET)


def test_webhook_rejects_bad_or_missing_signature():
    def run(client, _):
        row = _create(client)
        resp, _ = _post_webhook(client, {"todo_id": row["id"], "steps": []}, signature="00" * 32)
        assert resp.status_code == 401
        assert _error(resp)[0] == "UNAUTHORIZED"

        resp, _ = _post_webhook(client, {"todo_id": row["id"], "steps": []})
        assert resp.status_code == 401

        rows = client.get("/tasks", params={"owner": "alice"}).json()["data"]
        assert rows[0]["steps"] is None

    _run_with_client(run, secret=SECRET)


def test_webhook_without_secret_skips_verification():
    def run(client, _):
        row = _create(client)
        resp, _ = _post_webhook(client, {"todo_id": row["id"], "enhanced_description": "ok"})
        assert resp.status_code == 200

    _run_with_client(run)


def test_webhook_payload_errors():
    def run(client, _):
        row = _create(client)
        resp, _ = _post_webhook(client, {"enhanced_description": "x"})
        assert resp.status_code == 400

        resp, _ = _post_webhook(client, {"todo_id": row["id"]})
        assert resp.status_code == 400

        resp, _ = _post_webhook(client, {"todo_id": "missing", "steps": ["x"]})
        assert resp.status_code == 404

        resp = client.post("/webhooks/enhance", content=b"{not json", headers={"content-type": "application/json"})
        assert resp.status_code == 400
        assert _error(resp)[0] == "BAD_REQUEST"

    _run_with_client(run)
