"""SQLite-backed document store.

Persists one metadata row per ingested document to a local SQLite
database at ``data/documents.db``.  Uses ``aiosqlite`` for async I/O.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.document_store import IDocumentStore
from src.models.ingestion import DocumentRecord
from src.utils.errors import ConstraintViolationError, StoreConnectionError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id               TEXT PRIMARY KEY,
    filename         TEXT NOT NULL,
    file_type        TEXT NOT NULL,
    collection_id    TEXT NOT NULL,
    content_preview  TEXT NOT NULL DEFAULT '',
    content          TEXT NOT NULL DEFAULT '',
    first_point_id   TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_created ON documents(created_at);",
]

_INSERT_SQL = """\
INSERT INTO documents
    (id, filename, file_type, collection_id, content_preview, content,
     first_point_id, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_COLUMNS = (
    "id, filename, file_type, collection_id, content_preview, content, "
    "first_point_id, created_at, updated_at"
)


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed document metadata persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreConnectionError(
                message=f"Could not initialize document store: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("documents_db_initialized", path=str(self._db_path))

    async def insert_document(self, record: DocumentRecord) -> str:
        """Insert one row.  Duplicate ids raise ConstraintViolationError."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SQL,
                    (
                        record.id,
                        record.filename,
                        record.file_type,
                        record.collection_id,
                        record.content_preview,
                        record.content,
                        record.first_point_id,
                        record.created_at.isoformat(),
                        record.updated_at.isoformat(),
                    ),
                )
                await db.commit()
        except aiosqlite.IntegrityError as exc:
            raise ConstraintViolationError(
                message=f"Document insert rejected: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except aiosqlite.Error as exc:
            raise StoreConnectionError(
                message=f"Document insert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "document_inserted",
            document_id=record.id,
            filename=record.filename,
            collection_id=record.collection_id,
        )
        return record.id

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM documents WHERE id = ?",
                (document_id,),
            )
            row = await cursor.fetchone()
        return _row_to_record(dict(row)) if row else None

    async def list_documents(self, collection_id: str | None = None) -> list[DocumentRecord]:
        """Return rows newest first, optionally filtered by collection."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            if collection_id is not None:
                cursor = await db.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM documents "
                    "WHERE collection_id = ? ORDER BY created_at DESC",
                    (collection_id,),
                )
            else:
                cursor = await db.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM documents ORDER BY created_at DESC"
                )
            rows = await cursor.fetchall()
        return [_row_to_record(dict(r)) for r in rows]

    async def delete_document(self, document_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        logger.info("document_deleted", document_id=document_id, deleted=deleted)
        return deleted

    def get_provider_name(self) -> str:
        return "sqlite"


def _row_to_record(row: dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        id=row["id"],
        filename=row["filename"],
        file_type=row["file_type"],
        collection_id=row["collection_id"],
        content_preview=row["content_preview"],
        content=row["content"],
        first_point_id=row["first_point_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )
