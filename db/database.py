import logging
import sqlite3
import threading
from pathlib import Path

from db.models import SCHEMA_SQL, SCHEMA_VERSION, NoteItem
from errors import MalformedRecordError, StorageUnavailableError

logger = logging.getLogger(__name__)


class Database:
    """Single-table note store.

    One instance is created by the application root and shared by reference.
    The connection is opened on first use and kept for the life of the
    process; a lock serializes access from the server's worker threads.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            conn = None
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL")
                self._init_schema(conn)
            except (sqlite3.Error, OSError) as e:
                if conn is not None:
                    conn.close()
                raise StorageUnavailableError(f"No se pudo abrir {self.db_path}: {e}") from e
            self._conn = conn
            logger.info("Base de datos abierta en %s", self.db_path)
        return self._conn

    def _init_schema(self, conn: sqlite3.Connection):
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        conn.executescript(SCHEMA_SQL)
        if version < SCHEMA_VERSION:
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        conn.commit()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def execute(self, sql: str, params: tuple | dict = ()) -> sqlite3.Cursor:
        with self._lock:
            conn = self._get_conn()
            try:
                cursor = conn.execute(sql, params)
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StorageUnavailableError(f"Error escribiendo en la base de datos: {e}") from e
            return cursor

    def fetchone(self, sql: str, params: tuple = ()) -> dict | None:
        with self._lock:
            try:
                row = self._get_conn().execute(sql, params).fetchone()
            except sqlite3.Error as e:
                raise StorageUnavailableError(f"Error leyendo la base de datos: {e}") from e
            return dict(row) if row else None

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        with self._lock:
            try:
                rows = self._get_conn().execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageUnavailableError(f"Error leyendo la base de datos: {e}") from e
            return [dict(row) for row in rows]

    def insert_note(self, note: NoteItem) -> NoteItem:
        record = note.to_record()
        self.execute(
            "INSERT OR REPLACE INTO notes (id, type, content, audioPath, createdAt) "
            "VALUES (:id, :type, :content, :audioPath, :createdAt)",
            record,
        )
        return note

    def add_text_note(self, content: str) -> NoteItem | None:
        if not content or not content.strip():
            return None
        return self.insert_note(NoteItem.text(content))

    def get_note(self, note_id: str) -> NoteItem | None:
        row = self.fetchone("SELECT * FROM notes WHERE id = ?", (note_id,))
        return NoteItem.from_record(row) if row else None

    def list_notes(self, skip_malformed: bool = False) -> list[NoteItem]:
        rows = self.fetchall("SELECT * FROM notes ORDER BY createdAt DESC")
        if not skip_malformed:
            return [NoteItem.from_record(r) for r in rows]

        notes = []
        for row in rows:
            try:
                notes.append(NoteItem.from_record(row))
            except MalformedRecordError as e:
                logger.warning("Registro %s ignorado: %s", row.get("id"), e)
        return notes

    def get_audio_path(self, note_id: str) -> str | None:
        row = self.fetchone("SELECT audioPath FROM notes WHERE id = ?", (note_id,))
        return row["audioPath"] if row else None

    def delete_note(self, note_id: str) -> bool:
        cursor = self.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        return cursor.rowcount > 0

    def close(self):
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
