"""Abstract base class for vector-index providers.

Defines the contract for storing, searching and deleting embedded chunks.
Implementations may wrap ChromaDB (local/free), Qdrant, Pinecone or any
other vector database.  Each *namespace* is a collection holding vectors
of exactly one dimensionality.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.ingestion import EmbeddingRecord


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-index services used by the store writer.

    All methods are async so network-backed stores never block the event
    loop.  Writes are not coordinated with the relational store; a caller
    that needs both must tolerate one succeeding without the other.
    """

    @abstractmethod
    async def ensure_collection(self, namespace: str, dimension: int) -> bool:
        """Create *namespace* with cosine distance if it does not exist.

        Parameters
        ----------
        namespace:
            Collection name.
        dimension:
            Vector size the collection accepts.

        Returns
        -------
        bool
            ``True`` if the collection was created, ``False`` if it
            already existed.

        Raises
        ------
        src.utils.errors.SchemaMismatchError
            If the collection exists with a different dimension.
        """

    @abstractmethod
    async def upsert(self, namespace: str, records: list[EmbeddingRecord]) -> int:
        """Insert or replace *records* in *namespace* in one call.

        Returns
        -------
        int
            Number of records written.

        Raises
        ------
        src.utils.errors.CollectionMissingError
            If *namespace* has not been created.
        src.utils.errors.SchemaMismatchError
            If a vector's length differs from the collection dimension.
        src.utils.errors.VectorStoreError
            For any other backend failure.
        """

    @abstractmethod
    async def search(
        self,
        namespace: str,
        vector: list[float],
        top_k: int = 5,
    ) -> list[dict[str, Any]]:
        """Return the *top_k* nearest records as ``{id, score, payload}`` dicts."""

    @abstractmethod
    async def delete_by_ids(self, namespace: str, ids: list[str]) -> int:
        """Delete specific points.  Returns the number of ids requested."""

    @abstractmethod
    async def delete_by_document(self, namespace: str, document_id: str) -> int:
        """Delete every point whose payload references *document_id*.

        Returns
        -------
        int
            Number of points deleted (``0`` if the namespace is missing).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backend can be reached."""
