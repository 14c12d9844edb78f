"""Abstract base class for the relational document store.

Defines the contract for persisting one metadata row per ingested
document.  Implementations may use SQLite (local), PostgreSQL, or any
other storage backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.ingestion import DocumentRecord


# Concrete implementation: SQLiteDocumentStore (src/providers/document_store/)
class IDocumentStore(ABC):
    """Contract for document-metadata persistence.

    All operations are async to support network-backed stores.  A row is
    written once per ingestion run and never updated afterwards.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""

    @abstractmethod
    async def insert_document(self, record: DocumentRecord) -> str:
        """Insert *record* and return its id.

        Raises
        ------
        src.utils.errors.ConstraintViolationError
            If a row with the same id already exists.
        src.utils.errors.StoreConnectionError
            If the database cannot be reached.
        """

    @abstractmethod
    async def get_document(self, document_id: str) -> DocumentRecord | None:
        """Return the row for *document_id*, or ``None``."""

    @abstractmethod
    async def list_documents(self, collection_id: str | None = None) -> list[DocumentRecord]:
        """Return rows newest first, optionally limited to one collection."""

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Delete the row.  Returns ``False`` if it did not exist."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite"``."""
