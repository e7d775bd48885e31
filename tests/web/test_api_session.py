"""HTTP API tests for the recording session endpoints."""

from __future__ import annotations

import threading

import pytest
from fastapi.testclient import TestClient

from db.database import Database
from recorder.session import SessionCoordinator
from server.app import create_app
from tests.helpers import FakeRecorder, FakeTranscriber


@pytest.mark.web
class TestSessionLifecycle:
    """POST /api/session/start and /api/session/stop."""

    def test_status_idle(self, client: TestClient) -> None:
        response = client.get("/api/status")

        assert response.json() == {
            "is_listening": False,
            "session_id": None,
            "whisper_model_loaded": True,
        }

    def test_start_and_stop(self, client: TestClient, db: Database,
                            transcriber: FakeTranscriber) -> None:
        started = client.post("/api/session/start")
        assert started.status_code == 200
        assert started.json()["status"] == "listening"

        transcriber.emit("hel")
        transcriber.emit("hello")
        transcriber.emit("hello world")
        session = client.get("/api/session").json()
        assert session["is_listening"] is True
        assert session["live_text"] == "hello world"

        stopped = client.post("/api/session/stop").json()

        assert stopped["status"] == "idle"
        assert stopped["note"]["id"] == started.json()["id"]
        assert stopped["note"]["kind"] == "audio"
        assert stopped["note"]["content"] == "hello world"
        assert [n.content for n in db.list_notes()] == ["hello world"]

    def test_stop_without_transcript(self, client: TestClient, db: Database) -> None:
        client.post("/api/session/start")

        stopped = client.post("/api/session/stop").json()

        assert stopped == {"status": "idle", "note": None}
        assert db.list_notes() == []

    def test_stop_when_idle(self, client: TestClient) -> None:
        response = client.post("/api/session/stop")

        assert response.status_code == 200
        assert response.json()["note"] is None

    def test_double_start_conflict(self, client: TestClient) -> None:
        client.post("/api/session/start")

        assert client.post("/api/session/start").status_code == 409

    def test_capability_unavailable(self, db: Database, transcriber: FakeTranscriber,
                                    recordings_dir) -> None:
        coordinator = SessionCoordinator(db, FakeRecorder(available=False), transcriber,
                                         recordings_dir)
        client = TestClient(create_app(db, coordinator, transcriber))

        response = client.post("/api/session/start")

        assert response.status_code == 503
        assert client.get("/api/session").json()["is_listening"] is False


@pytest.mark.web
class TestSessionStream:
    """GET /api/session/stream."""

    def test_idle_stream_ends_immediately(self, client: TestClient) -> None:
        response = client.get("/api/session/stream")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.text == "event: end\ndata: \n\n"

    def test_stream_until_stop(self, client: TestClient, coordinator: SessionCoordinator,
                               transcriber: FakeTranscriber) -> None:
        client.post("/api/session/start")
        transcriber.emit("hello there")
        timer = threading.Timer(0.3, coordinator.stop_session)
        timer.start()

        response = client.get("/api/session/stream")
        timer.join()

        assert "data: hello there\n\n" in response.text
        assert response.text.endswith("event: end\ndata: \n\n")

    def test_quiet_stream_sends_keepalive(self, client: TestClient,
                                          coordinator: SessionCoordinator,
                                          transcriber: FakeTranscriber,
                                          monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("server.routes.STREAM_POLL_SECS", 0.05)
        client.post("/api/session/start")
        transcriber.emit("hi")
        timer = threading.Timer(0.3, coordinator.stop_session)
        timer.start()

        response = client.get("/api/session/stream")
        timer.join()

        assert response.text.startswith("data: hi\n\n")
        assert ": keepalive\n\n" in response.text
        assert response.text.endswith("event: end\ndata: \n\n")
