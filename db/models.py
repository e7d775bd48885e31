import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Mapping

from errors import MalformedRecordError

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS notes (
    id        TEXT PRIMARY KEY,
    type      INTEGER,
    content   TEXT,
    audioPath TEXT NULL,
    createdAt TEXT
);
"""

REQUIRED_FIELDS = ("id", "type", "content", "createdAt")


class NoteType(IntEnum):
    TEXT = 0
    AUDIO = 1


@dataclass(frozen=True)
class NoteItem:
    """A single note, either typed text or a transcribed voice recording.

    Notes are never edited after creation: they are inserted once and
    eventually deleted. ``created_at`` is kept in UTC; naive datetimes are
    taken to be UTC already.
    """

    id: str
    kind: NoteType
    content: str
    created_at: datetime
    audio_path: str | None = None

    def __post_init__(self):
        if not isinstance(self.kind, NoteType):
            object.__setattr__(self, "kind", NoteType(self.kind))
        if self.created_at.tzinfo is None:
            object.__setattr__(self, "created_at", self.created_at.replace(tzinfo=timezone.utc))
        if self.kind is NoteType.AUDIO and not self.audio_path:
            raise ValueError("Una nota de audio requiere audio_path")
        if self.kind is NoteType.TEXT and self.audio_path is not None:
            raise ValueError("Una nota de texto no puede tener audio_path")

    @classmethod
    def text(cls, content: str, created_at: datetime | None = None) -> "NoteItem":
        if not content or not content.strip():
            raise ValueError("El contenido de la nota esta vacio")
        return cls(
            id=str(uuid.uuid4()),
            kind=NoteType.TEXT,
            content=content,
            created_at=created_at or datetime.now(timezone.utc),
        )

    @classmethod
    def audio(cls, note_id: str, content: str, audio_path: str,
              created_at: datetime | None = None) -> "NoteItem":
        if not content or not content.strip():
            raise ValueError("La transcripcion esta vacia")
        return cls(
            id=note_id,
            kind=NoteType.AUDIO,
            content=content,
            audio_path=str(audio_path),
            created_at=created_at or datetime.now(timezone.utc),
        )

    def to_record(self) -> dict[str, Any]:
        created = self.created_at.astimezone(timezone.utc)
        return {
            "id": self.id,
            "type": int(self.kind),
            "content": self.content,
            "audioPath": self.audio_path,
            "createdAt": created.isoformat(timespec="microseconds"),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "NoteItem":
        missing = [k for k in REQUIRED_FIELDS if k not in record or record[k] is None]
        if missing:
            raise MalformedRecordError(f"Faltan campos: {', '.join(missing)}")

        try:
            kind = NoteType(int(record["type"]))
        except (TypeError, ValueError):
            raise MalformedRecordError(f"Tipo de nota invalido: {record['type']!r}") from None

        try:
            created_at = datetime.fromisoformat(record["createdAt"])
        except (TypeError, ValueError):
            raise MalformedRecordError(f"Fecha invalida: {record['createdAt']!r}") from None

        try:
            return cls(
                id=record["id"],
                kind=kind,
                content=record["content"],
                audio_path=record.get("audioPath"),
                created_at=created_at,
            )
        except ValueError as e:
            raise MalformedRecordError(str(e)) from e
