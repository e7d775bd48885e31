"""Helpers shared by test modules."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional

from db.models import NoteItem

BASE_TIME = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def make_text_note(content: str, minutes: int = 0) -> NoteItem:
    """Build a text note created ``minutes`` after BASE_TIME."""
    return NoteItem.text(content, created_at=BASE_TIME + timedelta(minutes=minutes))


class FakeRecorder:
    """Audio capture stand-in that writes a placeholder file on start."""

    def __init__(self, available: bool = True, fail_on_start: bool = False) -> None:
        self.available = available
        self.fail_on_start = fail_on_start
        self.started_paths: List[Path] = []
        self.stop_calls = 0
        self._path: Optional[Path] = None

    def has_permission(self) -> bool:
        return self.available

    def start(self, path: Path) -> None:
        if self.fail_on_start:
            raise RuntimeError("No se encontro ningun dispositivo de audio")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"ID3fake-audio")
        self.started_paths.append(path)
        self._path = path

    def stop(self) -> dict:
        self.stop_calls += 1
        path, self._path = self._path, None
        return {"path": str(path), "duration_secs": 1}

    def is_recording(self) -> bool:
        return self._path is not None


class FakeTranscriber:
    """Speech engine stand-in; tests push partial results via ``emit``."""

    def __init__(self, available: bool = True, final_text: Optional[str] = None,
                 fail_on_stop: bool = False) -> None:
        self.available = available
        self.final_text = final_text
        self.fail_on_stop = fail_on_stop
        self.callback: Optional[Callable[[str], None]] = None
        self.stop_calls = 0

    @property
    def is_loaded(self) -> bool:
        return self.available

    def initialize(self) -> bool:
        return self.available

    def listen(self, on_partial_result: Callable[[str], None]) -> None:
        self.callback = on_partial_result

    def emit(self, text: str) -> None:
        assert self.callback is not None, "listen() was not called"
        self.callback(text)

    def stop(self) -> str:
        self.stop_calls += 1
        if self.fail_on_stop:
            self.callback = None
            raise RuntimeError("El motor de voz fallo al detenerse")
        if self.final_text is not None and self.callback is not None:
            self.callback(self.final_text)
        self.callback = None
        return self.final_text or ""


class SlowRecorder(FakeRecorder):
    """Recorder whose stop() takes a while and refuses to run twice."""

    def __init__(self, delay: float = 0.2) -> None:
        super().__init__()
        self.delay = delay

    def stop(self) -> dict:
        if self._path is None:
            raise RuntimeError("No hay grabacion en curso")
        time.sleep(self.delay)
        return super().stop()
