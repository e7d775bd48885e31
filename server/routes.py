import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse, StreamingResponse
from pydantic import BaseModel

from db.database import Database
from db.models import NoteItem, NoteType
from errors import (
    CapabilityUnavailableError,
    MalformedRecordError,
    SessionActiveError,
    StorageUnavailableError,
)
from processing.transcriber import LiveTranscriber
from recorder.session import SessionCoordinator

logger = logging.getLogger(__name__)

STREAM_POLL_SECS = 15.0


class CreateNoteRequest(BaseModel):
    content: str


def note_to_json(note: NoteItem) -> dict:
    data = {
        "id": note.id,
        "kind": note.kind.name.lower(),
        "content": note.content,
        "created_at": note.created_at.isoformat(),
    }
    if note.kind is NoteType.AUDIO:
        data["audio_url"] = f"/api/notes/{note.id}/audio"
    else:
        data["audio_url"] = None
    return data


def create_router(db: Database, coordinator: SessionCoordinator,
                  transcriber: LiveTranscriber) -> APIRouter:
    router = APIRouter()

    def _storage_error(e: Exception):
        logger.error("Base de datos no disponible: %s", e)
        return HTTPException(503, "Almacenamiento no disponible")

    # -- Status --

    @router.get("/status")
    def get_status():
        return {
            "is_listening": coordinator.is_listening(),
            "session_id": coordinator.session_id,
            "whisper_model_loaded": transcriber.is_loaded,
        }

    # -- Notes --

    @router.get("/notes")
    def list_notes():
        try:
            notes = db.list_notes(skip_malformed=True)
        except StorageUnavailableError as e:
            raise _storage_error(e)
        return [note_to_json(n) for n in notes]

    @router.post("/notes", status_code=201)
    def create_note(body: CreateNoteRequest):
        try:
            note = db.add_text_note(body.content)
        except StorageUnavailableError as e:
            raise _storage_error(e)
        if note is None:
            raise HTTPException(400, "La nota esta vacia")
        return note_to_json(note)

    def _get_note_or_404(note_id: str) -> NoteItem:
        try:
            note = db.get_note(note_id)
        except StorageUnavailableError as e:
            raise _storage_error(e)
        except MalformedRecordError as e:
            logger.error("Registro corrupto %s: %s", note_id, e)
            raise HTTPException(500, "Registro corrupto")
        if note is None:
            raise HTTPException(404, "Nota no encontrada")
        return note

    @router.get("/notes/{note_id}")
    def get_note(note_id: str):
        return note_to_json(_get_note_or_404(note_id))

    @router.get("/notes/{note_id}/audio")
    def get_audio(note_id: str):
        note = _get_note_or_404(note_id)
        if note.kind is not NoteType.AUDIO:
            raise HTTPException(404, "La nota no tiene audio")

        audio_path = Path(note.audio_path)
        if not audio_path.exists():
            raise HTTPException(404, "Archivo de audio no encontrado")
        return FileResponse(str(audio_path))

    @router.delete("/notes/{note_id}")
    def delete_note(note_id: str):
        try:
            # Columna cruda: un registro corrupto tambien debe poder borrarse
            audio_path = db.get_audio_path(note_id)
            deleted = db.delete_note(note_id)
        except StorageUnavailableError as e:
            raise _storage_error(e)

        if deleted and audio_path:
            try:
                Path(audio_path).unlink(missing_ok=True)
            except OSError as e:
                logger.warning("No se pudo borrar el audio %s: %s", audio_path, e)
        return {"deleted": deleted}

    # -- Recording session --

    @router.get("/session")
    def get_session():
        return {
            "is_listening": coordinator.is_listening(),
            "session_id": coordinator.session_id,
            "live_text": coordinator.live_text,
        }

    @router.post("/session/start")
    def start_session():
        try:
            session_id = coordinator.start_session()
        except SessionActiveError as e:
            raise HTTPException(409, str(e))
        except CapabilityUnavailableError as e:
            logger.warning("No se pudo iniciar la grabacion: %s", e)
            raise HTTPException(503, str(e))
        return {"id": session_id, "status": coordinator.state.value}

    @router.post("/session/stop")
    def stop_session():
        try:
            note = coordinator.stop_session()
        except StorageUnavailableError as e:
            raise _storage_error(e)
        return {
            "status": coordinator.state.value,
            "note": note_to_json(note) if note else None,
        }

    @router.get("/session/stream")
    def stream_session():
        def events():
            for text in coordinator.iter_partials(timeout=STREAM_POLL_SECS):
                if text is None:
                    yield ": keepalive\n\n"
                    continue
                yield "data: " + text.replace("\n", " ") + "\n\n"
            yield "event: end\ndata: \n\n"

        return StreamingResponse(events(), media_type="text/event-stream")

    return router
