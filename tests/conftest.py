"""Shared fixtures for IDS Note tests.

The microphone and speech engine are replaced by in-process fakes so the
session coordinator and the HTTP API can be driven deterministically.
"""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

from db.database import Database
from recorder.session import SessionCoordinator
from tests.helpers import FakeRecorder, FakeTranscriber


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "notes.db"


@pytest.fixture
def db(db_path: Path) -> Generator[Database, None, None]:
    database = Database(db_path)
    yield database
    database.close()


@pytest.fixture
def recordings_dir(tmp_path: Path) -> Path:
    return tmp_path / "data" / "recordings"


@pytest.fixture
def recorder() -> FakeRecorder:
    return FakeRecorder()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def coordinator(db: Database, recorder: FakeRecorder, transcriber: FakeTranscriber,
                recordings_dir: Path) -> SessionCoordinator:
    return SessionCoordinator(db, recorder, transcriber, recordings_dir, audio_format="mp3")
