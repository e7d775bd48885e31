"""Fixtures for HTTP API tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from db.database import Database
from recorder.session import SessionCoordinator
from server.app import create_app
from tests.helpers import FakeTranscriber


@pytest.fixture
def client(db: Database, coordinator: SessionCoordinator,
           transcriber: FakeTranscriber) -> TestClient:
    return TestClient(create_app(db, coordinator, transcriber))
