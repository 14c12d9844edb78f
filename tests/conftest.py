"""Shared pytest fixtures and in-memory fakes for the ingestflow test suite."""

from __future__ import annotations

import hashlib
import math
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from src.config.settings import Settings
from src.interfaces.document_store import IDocumentStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.ingestion import Chunk, DocumentMeta, DocumentRecord, EmbeddingRecord
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.extraction.text_extractor import TextExtractor
from src.services.ingestion.chunker import DocumentChunker
from src.services.ingestion.embedding_batcher import BatchEmbeddingGenerator
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.store_writer import StoreWriter
from src.utils.errors import (
    CollectionMissingError,
    ConstraintViolationError,
    EmbeddingError,
    SchemaMismatchError,
    StoreConnectionError,
    VectorStoreError,
)

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic hash-based embeddings.

    ``fail_on_calls`` holds 1-based call numbers of :meth:`embed_single`
    that raise :class:`EmbeddingError`.
    """

    def __init__(self, dimension: int = 8, fail_on_calls: set[int] | None = None) -> None:
        self._dimension = dimension
        self._fail_on_calls = fail_on_calls or set()
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        if len(self.calls) in self._fail_on_calls:
            raise EmbeddingError(message="simulated outage", provider_name="fake")
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [b / 255.0 for b in digest[: self._dimension]]

    async def resolve_dimension(self) -> int:
        return self._dimension

    def get_dimension(self) -> int | None:
        return self._dimension

    def get_provider_name(self) -> str:
        return "fake_embedding"

    def is_available(self) -> bool:
        return True


class InMemoryVectorStore(IVectorStoreProvider):
    """Dict-backed vector index with the same error contract as ChromaDB."""

    def __init__(self, fail_upsert: bool = False) -> None:
        self.collections: dict[str, dict[str, Any]] = {}
        self.fail_upsert = fail_upsert
        self.upsert_calls = 0

    async def ensure_collection(self, namespace: str, dimension: int) -> bool:
        existing = self.collections.get(namespace)
        if existing is not None:
            if existing["dimension"] != dimension:
                raise SchemaMismatchError(
                    message=f"{namespace} has dimension {existing['dimension']}",
                    provider_name="memory",
                )
            return False
        self.collections[namespace] = {"dimension": dimension, "points": {}}
        return True

    async def upsert(self, namespace: str, records: list[EmbeddingRecord]) -> int:
        self.upsert_calls += 1
        if self.fail_upsert:
            raise VectorStoreError(message="index offline", provider_name="memory")
        collection = self.collections.get(namespace)
        if collection is None:
            raise CollectionMissingError(message=namespace, provider_name="memory")
        for record in records:
            if len(record.vector) != collection["dimension"]:
                raise SchemaMismatchError(message="bad vector size", provider_name="memory")
        for record in records:
            collection["points"][record.id] = record
        return len(records)

    async def search(
        self,
        namespace: str,
        vector: list[float],
        top_k: int = 5,
    ) -> list[dict[str, Any]]:
        collection = self.collections.get(namespace)
        if collection is None:
            return []

        def _cosine(a: list[float], b: list[float]) -> float:
            dot = sum(x * y for x, y in zip(a, b))
            norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
            return dot / norm if norm else 0.0

        scored = [
            {"id": r.id, "score": _cosine(vector, r.vector), "payload": r.payload()}
            for r in collection["points"].values()
        ]
        scored.sort(key=lambda item: item["score"], reverse=True)
        return scored[:top_k]

    async def delete_by_ids(self, namespace: str, ids: list[str]) -> int:
        points = self.collections.get(namespace, {}).get("points", {})
        for point_id in ids:
            points.pop(point_id, None)
        return len(ids)

    async def delete_by_document(self, namespace: str, document_id: str) -> int:
        points = self.collections.get(namespace, {}).get("points", {})
        doomed = [pid for pid, r in points.items() if r.document_id == document_id]
        for pid in doomed:
            del points[pid]
        return len(doomed)

    def points(self, namespace: str) -> list[EmbeddingRecord]:
        return list(self.collections.get(namespace, {}).get("points", {}).values())

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True


class InMemoryDocumentStore(IDocumentStore):
    """Dict-backed document store; ``fail_insert`` simulates an outage."""

    def __init__(self, fail_insert: bool = False) -> None:
        self.rows: dict[str, DocumentRecord] = {}
        self.fail_insert = fail_insert
        self.initialized = False

    async def initialize(self) -> None:
        self.initialized = True

    async def insert_document(self, record: DocumentRecord) -> str:
        if self.fail_insert:
            raise StoreConnectionError(message="database is locked", provider_name="memory")
        if record.id in self.rows:
            raise ConstraintViolationError(message=record.id, provider_name="memory")
        self.rows[record.id] = record
        return record.id

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        return self.rows.get(document_id)

    async def list_documents(self, collection_id: str | None = None) -> list[DocumentRecord]:
        rows = [r for r in self.rows.values() if collection_id in (None, r.collection_id)]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def delete_document(self, document_id: str) -> bool:
        return self.rows.pop(document_id, None) is not None

    def get_provider_name(self) -> str:
        return "memory"


# ---------------------------------------------------------------------------
# Text builders
# ---------------------------------------------------------------------------


def make_paragraphs(count: int, length: int) -> str:
    """Return *count* distinct paragraphs of exactly *length* chars, blank-line separated."""
    paragraphs = []
    for i in range(count):
        head = f"Paragraph {i:03d} "
        body = ("lorem ipsum dolor sit amet " * (length // 10 + 1))[: length - len(head) - 1]
        paragraphs.append(f"{head}{body}.")
    return "\n\n".join(paragraphs)


def make_chunks(count: int, size: int = 20) -> list[Chunk]:
    return [
        Chunk(index=i, total=count, text=f"chunk {i:02d} ".ljust(size, "x"), size_chars=size)
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every store at ``tmp_path`` and with no API keys."""
    return Settings(
        _env_file=None,
        openai_api_key="",
        anthropic_api_key="",
        chromadb_persist_dir=str(tmp_path / "chromadb"),
        documents_db_path=str(tmp_path / "documents.db"),
        embed_batch_delay_ms=0,
    )


@pytest.fixture
def embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def progress_tracker() -> ProgressTracker:
    return ProgressTracker()


@pytest.fixture
def document_meta() -> DocumentMeta:
    return DocumentMeta(
        filename="notes.txt",
        file_type="txt",
        collection_id="research",
        content="Some content for the document.",
    )


@pytest.fixture
def build_service(
    vector_store: InMemoryVectorStore,
    document_store: InMemoryDocumentStore,
    progress_tracker: ProgressTracker,
) -> Callable[..., IngestionService]:
    """Factory for an :class:`IngestionService` wired to in-memory fakes.

    Batches are not delayed so tests run instantly.
    """

    def _build(
        provider: IEmbeddingProvider | None = None,
        max_size: int = 4000,
        overlap: int = 1000,
        recursive_threshold: int = 10000,
        batch_size: int = 5,
        extractor: TextExtractor | None = None,
    ) -> IngestionService:
        provider = provider or FakeEmbeddingProvider()
        return IngestionService(
            chunker=DocumentChunker(
                max_size=max_size,
                overlap=overlap,
                recursive_threshold=recursive_threshold,
            ),
            embedder=BatchEmbeddingGenerator(provider, batch_size=batch_size, batch_delay_ms=0),
            store_writer=StoreWriter(
                vector_store=vector_store,
                document_store=document_store,
                embedding_provider=provider,
            ),
            document_store=document_store,
            vector_store=vector_store,
            extractor=extractor or TextExtractor(),
            progress_tracker=progress_tracker,
        )

    return _build
