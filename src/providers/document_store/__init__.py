"""Relational document store implementations.

SQLite (via aiosqlite) is the only implementation; the database lives at
DOCUMENTS_DB_PATH (default data/documents.db).
"""

from src.providers.document_store.sqlite_document_store import SQLiteDocumentStore

__all__ = ["SQLiteDocumentStore"]
