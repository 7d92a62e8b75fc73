"""
Read-only SQLite note store.

Works against the notes database written by the indexer:

    notes(id, title, content, path, frontmatter_json, created_at,
          updated_at, tags_json, embedding_id)
    embeddings(id, note_id, embedding BLOB float32, created_at)
    notes_fts  fts5(title, content, tags)    -- optional

The connection is opened with mode=ro. Queries run in the default executor
so the event loop never blocks, serialized by an asyncio.Lock.
"""

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

from cortex.core.exceptions import StoreUnavailableError
from cortex.core.logging import logger
from cortex.core.utils.datetime_utils import parse_iso_datetime
from cortex.embeddings.types import EmbeddingVector
from cortex.models.note import NoteRecord

T = TypeVar("T")

NOTE_COLUMNS = (
    "id, title, content, path, frontmatter_json, created_at, updated_at, tags_json"
)

QUERY_TIMEOUT_SECONDS = 30.0


def _classify_sqlite_error(sqlite_error: sqlite3.Error, operation: str) -> StoreUnavailableError:
    """
    Wrap a sqlite3 error with hints that match its cause.

    - locked/busy: another process holds a write lock
    - no such table: not a notes database, or not indexed yet
    - unable to open: missing file or permissions
    """
    error_msg = str(sqlite_error)
    lowered = error_msg.lower()
    exc = StoreUnavailableError(
        f"Note store {operation} failed: {error_msg}",
        context={
            "operation": operation,
            "sqlite_code": getattr(sqlite_error, "sqlite_errorcode", None),
            "original_error": error_msg,
        },
        cause=sqlite_error,
    )
    if "locked" in lowered or "busy" in lowered:
        exc.add_suggestion("Wait for the indexer to finish writing")
    elif "no such table" in lowered:
        exc.add_suggestion("Run the indexer to create the notes database")
    elif "unable to open" in lowered:
        exc.add_suggestion("Check the database path and file permissions")
    return exc


def _fts_query(query: str) -> str:
    """Quote every term so user text never parses as FTS5 syntax."""
    terms = [term.replace('"', '""') for term in query.split()]
    return " ".join(f'"{term}"' for term in terms if term)


class SQLiteNoteStore:
    """NoteStore over the notes SQLite database."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()
        self._has_fts: Optional[bool] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Lazily open the read-only connection.

        check_same_thread=False is safe because every access goes through
        _run(), which holds the asyncio lock.
        """
        if self._connection is None:
            if not self.db_path.is_file():
                raise StoreUnavailableError(
                    f"Notes database not found: {self.db_path}",
                    context={"db_path": str(self.db_path)},
                )
            uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
            self._connection = sqlite3.connect(uri, uri=True, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
        return self._connection

    async def _run(self, operation: str, func: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``func`` in the executor with the connection, under the lock."""
        async with self._lock:
            loop = asyncio.get_running_loop()

            def _execute() -> T:
                try:
                    return func(self._get_connection())
                except sqlite3.Error as e:
                    raise _classify_sqlite_error(e, operation) from e

            try:
                return await asyncio.wait_for(
                    loop.run_in_executor(None, _execute), timeout=QUERY_TIMEOUT_SECONDS
                )
            except asyncio.TimeoutError as e:
                logger.error("Note store query timed out", operation=operation)
                raise StoreUnavailableError(
                    f"Note store {operation} timed out after {QUERY_TIMEOUT_SECONDS:.0f} seconds",
                    context={"operation": operation},
                    cause=e,
                ) from e
            except StoreUnavailableError as e:
                logger.warning("Note store query failed", operation=operation, error=e.message)
                raise

    @staticmethod
    def _rows(conn: sqlite3.Connection, sql: str, params: tuple = ()) -> List[Dict[str, Any]]:
        cursor = conn.execute(sql, params)
        try:
            return [dict(row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    async def fetch_all(self) -> List[NoteRecord]:
        rows = await self._run(
            "fetch_all",
            lambda conn: self._rows(
                conn, f"SELECT {NOTE_COLUMNS} FROM notes ORDER BY updated_at DESC"
            ),
        )
        return [NoteRecord.from_row(row) for row in rows]

    async def fetch_by_id(self, note_id: str) -> Optional[NoteRecord]:
        rows = await self._run(
            "fetch_by_id",
            lambda conn: self._rows(conn, f"SELECT {NOTE_COLUMNS} FROM notes WHERE id = ?", (note_id,)),
        )
        return NoteRecord.from_row(rows[0]) if rows else None

    async def fetch_all_embeddings(self) -> List[EmbeddingVector]:
        rows = await self._run(
            "fetch_all_embeddings",
            lambda conn: self._rows(
                conn, "SELECT id, note_id, embedding, created_at FROM embeddings ORDER BY id"
            ),
        )

        embeddings: List[EmbeddingVector] = []
        for row in rows:
            blob = row["embedding"]
            if not blob or len(blob) % 4 != 0:
                logger.warning(
                    "Skipping unreadable embedding blob",
                    embedding_id=row["id"],
                    note_id=row["note_id"],
                    size=len(blob or b""),
                )
                continue
            created_at = parse_iso_datetime(row["created_at"]) if row.get("created_at") else None
            embeddings.append(
                EmbeddingVector.from_blob(str(row["note_id"]), blob, created_at=created_at, id=row["id"])
            )
        return embeddings

    async def search_text(self, query: str, limit: int = 50) -> List[NoteRecord]:
        """FTS5 match when notes_fts exists, LIKE on title/content/tags otherwise."""
        if not query.strip():
            return []

        if self._has_fts is None:
            tables = await self._run(
                "inspect_schema",
                lambda conn: self._rows(
                    conn, "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'notes_fts'"
                ),
            )
            self._has_fts = bool(tables)

        if self._has_fts:
            sql = (
                "SELECT " + ", ".join(f"notes.{c.strip()}" for c in NOTE_COLUMNS.split(",")) +
                " FROM notes_fts JOIN notes ON notes.rowid = notes_fts.rowid"
                " WHERE notes_fts MATCH ? ORDER BY rank LIMIT ?"
            )
            params: tuple = (_fts_query(query), limit)
        else:
            pattern = f"%{query.strip()}%"
            sql = (
                f"SELECT {NOTE_COLUMNS} FROM notes"
                " WHERE title LIKE ? OR content LIKE ? OR tags_json LIKE ?"
                " ORDER BY updated_at DESC LIMIT ?"
            )
            params = (pattern, pattern, pattern, limit)

        rows = await self._run("search_text", lambda conn: self._rows(conn, sql, params))
        return [NoteRecord.from_row(row) for row in rows]

    async def close(self) -> None:
        async with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
