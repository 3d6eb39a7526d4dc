"""REST history endpoints with the SQL store swapped for an in-memory one."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from scribe.controllers.dependencies import get_session_store, get_state_machine
from scribe.main import app
from scribe.pipelines.session import SessionMode
from scribe.services.session_store import PersistenceError

from conftest import RecordingSink, make_runtime

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _row(**overrides):
    transcript = SimpleNamespace(
        id=uuid4(),
        content="Audio Transcript\n\n[00:00] hello",
        summary="Meeting Summary",
        timestamp_chunks=[{"time": 0, "text": "hello", "confidence": 0.9}],
        created_at=NOW,
    )
    values = dict(
        id=uuid4(),
        owner_id="owner",
        title="Weekly sync",
        mode="microphone",
        status="completed",
        duration=42,
        created_at=NOW,
        updated_at=NOW,
        transcripts=[transcript],
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class ListingStore:
    def __init__(self, rows, *, broken: bool = False) -> None:
        self.rows = {row.id: row for row in rows}
        self.broken = broken

    async def list_sessions(self):
        if self.broken:
            raise PersistenceError("database down")
        return list(self.rows.values())

    async def get_session(self, session_id):
        if self.broken:
            raise PersistenceError("database down")
        return self.rows.get(session_id)


@pytest.fixture
def row():
    return _row()


@pytest.fixture
def client(row):
    app.dependency_overrides[get_session_store] = lambda: ListingStore([row])
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_list_sessions_omits_transcript_content(client, row):
    response = client.get("/sessions")

    assert response.status_code == 200
    body = response.json()
    assert [item["id"] for item in body] == [str(row.id)]
    assert body[0]["transcripts"][0]["content"] == ""
    assert body[0]["transcripts"][0]["summary"] == "Meeting Summary"


def test_get_session_includes_content(client, row):
    response = client.get(f"/sessions/{row.id}")

    assert response.status_code == 200
    transcript = response.json()["transcripts"][0]
    assert transcript["content"].startswith("Audio Transcript")
    assert transcript["timestampChunks"][0]["text"] == "hello"


def test_unknown_session_is_404(client):
    assert client.get(f"/sessions/{uuid4()}").status_code == 404
    assert client.get(f"/sessions/{uuid4()}/download").status_code == 404


def test_download_is_a_text_attachment(client, row):
    response = client.get(f"/sessions/{row.id}/download")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "attachment" in response.headers["content-disposition"]
    assert "Meeting Summary" in response.text
    assert "[00:00] hello" in response.text


def test_storage_outage_is_503():
    app.dependency_overrides[get_session_store] = lambda: ListingStore([], broken=True)
    try:
        response = TestClient(app).get("/sessions")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503


def test_live_session_lookup():
    runtime = make_runtime()
    runtime.machine.connect("c1", RecordingSink())
    session = asyncio.run(runtime.machine.start("c1", "owner", SessionMode.TAB_AUDIO))
    app.dependency_overrides[get_state_machine] = lambda: runtime.machine
    try:
        client = TestClient(app)
        live = client.get(f"/sessions/live/{session.id}")
        missing = client.get(f"/sessions/live/{uuid4()}")
    finally:
        app.dependency_overrides.clear()

    assert live.status_code == 200
    assert live.json()["status"] == "recording"
    assert live.json()["mode"] == "tab-audio"
    assert missing.status_code == 404


def test_health_and_metrics():
    client = TestClient(app)

    assert client.get("/health").json()["status"] == "healthy"
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "scribe_session_transitions_total" in metrics.text
