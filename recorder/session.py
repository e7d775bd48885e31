import logging
import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterator

from db.database import Database
from db.models import NoteItem
from errors import CapabilityUnavailableError, SessionActiveError

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    STOPPING = "stopping"


class SessionCoordinator:
    """Turns one microphone capture plus its live transcript into an audio note.

    Only one session runs at a time. Partial transcripts arrive from the
    transcriber's worker thread and replace ``live_text``; when the session
    stops with a non-blank transcript the note is inserted into ``db``.
    """

    def __init__(self, db: Database, recorder, transcriber,
                 recordings_dir: Path, audio_format: str = "mp3"):
        self.db = db
        self.recorder = recorder
        self.transcriber = transcriber
        self.recordings_dir = Path(recordings_dir)
        self.audio_format = audio_format
        self._cond = threading.Condition()
        self._state = SessionState.IDLE
        self._session_id: str | None = None
        self._audio_path: Path | None = None
        self._live_text = ""
        self._revision = 0

    @property
    def state(self) -> SessionState:
        return self._state

    def is_listening(self) -> bool:
        return self._state is SessionState.LISTENING

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def live_text(self) -> str:
        return self._live_text

    def start_session(self) -> str:
        with self._cond:
            if self._state is not SessionState.IDLE:
                raise SessionActiveError("Ya hay una grabacion en curso")

        if not self.recorder.has_permission():
            raise CapabilityUnavailableError("microphone")
        if not self.transcriber.initialize():
            raise CapabilityUnavailableError("speech")

        session_id = str(uuid.uuid4())
        audio_path = self.recordings_dir / f"{session_id}.{self.audio_format}"

        with self._cond:
            if self._state is not SessionState.IDLE:
                raise SessionActiveError("Ya hay una grabacion en curso")
            self._state = SessionState.LISTENING
            self._session_id = session_id
            self._audio_path = audio_path
            self._live_text = ""
            self._revision += 1
            self._cond.notify_all()

        try:
            self.recorder.start(audio_path)
        except (RuntimeError, OSError) as e:
            self._reset()
            raise CapabilityUnavailableError("microphone", str(e)) from e

        try:
            self.transcriber.listen(self._on_partial_result)
        except RuntimeError as e:
            self.recorder.stop()
            self._reset()
            audio_path.unlink(missing_ok=True)
            raise CapabilityUnavailableError("speech", str(e)) from e

        logger.info("Sesion %s iniciada, grabando en %s", session_id, audio_path)
        return session_id

    def _on_partial_result(self, text: str):
        with self._cond:
            if self._state is SessionState.IDLE:
                return
            self._live_text = text
            self._revision += 1
            self._cond.notify_all()

    def _reset(self):
        with self._cond:
            self._state = SessionState.IDLE
            self._session_id = None
            self._audio_path = None
            self._revision += 1
            self._cond.notify_all()

    def stop_session(self) -> NoteItem | None:
        with self._cond:
            if self._state is not SessionState.LISTENING:
                return None
            # STOPPING deja pasar el ultimo parcial pero bloquea un segundo stop
            self._state = SessionState.STOPPING
            session_id = self._session_id
            audio_path = self._audio_path

        try:
            result = self.recorder.stop() or {}
            if result.get("path"):
                audio_path = Path(result["path"])
        finally:
            try:
                # stop() del transcriptor entrega el ultimo parcial antes de volver
                self.transcriber.stop()
            finally:
                with self._cond:
                    text = self._live_text
                    self._live_text = ""
                self._reset()

        if not text.strip():
            logger.info("Sesion %s sin transcripcion, se descarta", session_id)
            audio_path.unlink(missing_ok=True)
            return None

        note = NoteItem.audio(
            session_id, text, str(audio_path), created_at=datetime.now(timezone.utc),
        )
        self.db.insert_note(note)
        logger.info("Nota de voz %s guardada (%d caracteres)", note.id, len(text))
        return note

    def iter_partials(self, timeout: float | None = None) -> Iterator[str | None]:
        """Yield the live transcript of the current session as it changes.

        The first value is the text at the time of the call. When ``timeout``
        seconds pass without a change, ``None`` is yielded so the caller can
        send a keepalive. The iterator finishes when the session ends; it is
        empty if no session is running.
        """
        with self._cond:
            if self._state is not SessionState.LISTENING:
                return
            session_id = self._session_id
            seen = None

        while True:
            with self._cond:
                self._cond.wait_for(
                    lambda: self._session_id != session_id or self._revision != seen,
                    timeout,
                )
                if self._session_id != session_id:
                    return
                changed = self._revision != seen
                seen = self._revision
                text = self._live_text
            yield text if changed else None
