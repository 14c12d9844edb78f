"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement
:class:`IVectorStoreProvider`.  Each namespace maps to one ChromaDB
collection using cosine distance; the vector dimension is recorded in the
collection metadata when the collection is created and enforced on every
upsert.  Fully local, no external service required.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
import re
from typing import Any

# ChromaDB's bundled PostHog telemetry client breaks on some installed
# posthog versions; disable it before chromadb is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import chromadb.errors
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.ingestion import EmbeddingRecord
from src.utils.errors import (
    CollectionMissingError,
    SchemaMismatchError,
    VectorStoreError,
)

logger = structlog.get_logger(logger_name=__name__)

_DIMENSION_KEY = "dimension"
_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_VALID_NAME = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9._-]{1,61}[a-zA-Z0-9]")
_NAME_DIGEST_LEN = 8


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never meant to run.

    All vectors are computed by our own embedding provider and passed to
    ``upsert`` explicitly; this keeps ChromaDB from loading its default
    ONNX model.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "ingestflow passes pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence."""

    def __init__(self, persist_directory: str = "./data/chromadb") -> None:
        self._persist_directory = persist_directory
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def ensure_collection(self, namespace: str, dimension: int) -> bool:
        """Create the collection for *namespace* unless it already exists.

        An existing collection created with a different dimension raises
        :class:`SchemaMismatchError`; the stored vectors could never be
        compared with the new ones.
        """
        name = self.collection_name(namespace)
        existing = await asyncio.to_thread(self._get_collection, name)
        if existing is not None:
            stored_dim = (existing.metadata or {}).get(_DIMENSION_KEY)
            if stored_dim is not None and int(stored_dim) != dimension:
                raise SchemaMismatchError(
                    message=(
                        f"Collection '{name}' holds {stored_dim}-dim vectors "
                        f"but the embedding provider produces {dimension}-dim vectors"
                    ),
                    provider_name=self.get_provider_name(),
                )
            logger.debug("chromadb_collection_exists", collection=name, dimension=stored_dim)
            return False

        try:
            await asyncio.to_thread(self._create_collection, name, dimension)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB create_collection failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chromadb_collection_created", collection=name, dimension=dimension)
        return True

    async def upsert(self, namespace: str, records: list[EmbeddingRecord]) -> int:
        """Write all *records* to the namespace's collection in one call."""
        if not records:
            return 0

        name = self.collection_name(namespace)
        collection = await asyncio.to_thread(self._get_collection, name)
        if collection is None:
            raise CollectionMissingError(
                message=f"Collection '{name}' does not exist",
                provider_name=self.get_provider_name(),
            )

        expected_dim = (collection.metadata or {}).get(_DIMENSION_KEY)
        if expected_dim is not None:
            for record in records:
                if len(record.vector) != int(expected_dim):
                    raise SchemaMismatchError(
                        message=(
                            f"Vector size {len(record.vector)} does not match "
                            f"collection '{name}' size {expected_dim}"
                        ),
                        provider_name=self.get_provider_name(),
                    )

        try:
            await asyncio.to_thread(
                collection.upsert,
                ids=[r.id for r in records],
                embeddings=[r.vector for r in records],
                documents=[r.text for r in records],
                metadatas=[r.payload() for r in records],
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_upsert", collection=name, count=len(records))
        return len(records)

    async def search(
        self,
        namespace: str,
        vector: list[float],
        top_k: int = 5,
    ) -> list[dict[str, Any]]:
        """Return nearest neighbours with ``score = 1 - cosine distance``."""
        name = self.collection_name(namespace)
        collection = await asyncio.to_thread(self._get_collection, name)
        if collection is None:
            raise CollectionMissingError(
                message=f"Collection '{name}' does not exist",
                provider_name=self.get_provider_name(),
            )

        try:
            results = await asyncio.to_thread(
                collection.query,
                query_embeddings=[vector],
                n_results=top_k,
                include=["metadatas", "distances"],
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        distances = results["distances"][0] if results["distances"] else [0.0] * len(ids)
        return [
            {
                "id": point_id,
                "score": max(0.0, min(1.0, 1.0 - distance)),
                "payload": dict(meta or {}),
            }
            for point_id, meta, distance in zip(ids, metadatas, distances, strict=True)
        ]

    async def delete_by_ids(self, namespace: str, ids: list[str]) -> int:
        if not ids:
            return 0
        collection = await asyncio.to_thread(self._get_collection, self.collection_name(namespace))
        if collection is None:
            return 0
        try:
            await asyncio.to_thread(collection.delete, ids=ids)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(ids)

    async def delete_by_document(self, namespace: str, document_id: str) -> int:
        """Delete all points whose payload carries *document_id*."""
        name = self.collection_name(namespace)
        collection = await asyncio.to_thread(self._get_collection, name)
        if collection is None:
            return 0
        try:
            existing = await asyncio.to_thread(
                collection.get, where={"document_id": document_id}, include=[]
            )
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                await asyncio.to_thread(collection.delete, where={"document_id": document_id})
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_delete_by_document",
            collection=name,
            document_id=document_id,
            deleted_count=count,
        )
        return count

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB client answers a heartbeat."""
        try:
            self._client.heartbeat()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def collection_name(namespace: str) -> str:
        """Map a namespace onto ChromaDB's collection naming rules.

        Names must be 3-63 characters of ``[a-zA-Z0-9._-]``, start and end
        with an alphanumeric character and contain no ``..``.  A namespace
        that already satisfies this is used as is.  Anything else is
        sanitized and suffixed with a short SHA-256 digest of the raw
        namespace, so distinct namespaces never share a collection.
        """
        if _VALID_NAME.fullmatch(namespace) and ".." not in namespace:
            return namespace

        digest = hashlib.sha256(namespace.encode("utf-8")).hexdigest()[:_NAME_DIGEST_LEN]
        base = _INVALID_NAME_CHARS.sub("_", namespace)
        base = re.sub(r"\.{2,}", ".", base).strip("._-")
        base = base[: 63 - _NAME_DIGEST_LEN - 1].rstrip("._-")
        return f"{base or 'ns'}-{digest}"

    def _get_collection(self, name: str) -> Any | None:
        try:
            return self._client.get_collection(
                name=name,
                embedding_function=_NoopEmbeddingFunction(),
            )
        except (ValueError, chromadb.errors.ChromaError):
            # Raised both for a missing collection and, on some ChromaDB
            # versions, for an embedding-function conflict; retry without.
            try:
                return self._client.get_collection(name=name)
            except (ValueError, chromadb.errors.ChromaError):
                return None

    def _create_collection(self, name: str, dimension: int) -> Any:
        return self._client.get_or_create_collection(
            name=name,
            metadata={"hnsw:space": "cosine", _DIMENSION_KEY: dimension},
            embedding_function=_NoopEmbeddingFunction(),
        )
