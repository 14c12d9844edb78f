"""Unit tests for StoreWriter -- vector upsert then relational row."""

from __future__ import annotations

import pytest

from src.models.ingestion import DocumentMeta, EmbeddingRecord, IngestionStage
from src.pipeline.progress_reporter import ProgressReporter
from src.services.ingestion.store_writer import StoreWriter
from src.utils.errors import DocumentStoreError, StoreConnectionError
from tests.conftest import FakeEmbeddingProvider, InMemoryDocumentStore, InMemoryVectorStore


def _records(meta: DocumentMeta, count: int, dimension: int = 8) -> list[EmbeddingRecord]:
    return [
        EmbeddingRecord(
            vector=[0.1] * dimension,
            chunk_index=i,
            chunk_total=count,
            source_filename=meta.filename,
            collection_id=meta.collection_id,
            file_type=meta.file_type,
            document_id=meta.id,
            text=f"chunk {i}",
        )
        for i in range(count)
    ]


def _writer(
    vector_store: InMemoryVectorStore,
    document_store: InMemoryDocumentStore,
    dimension: int = 8,
) -> StoreWriter:
    return StoreWriter(
        vector_store=vector_store,
        document_store=document_store,
        embedding_provider=FakeEmbeddingProvider(dimension=dimension),
    )


class TestStoreWriter:
    @pytest.mark.asyncio
    async def test_happy_path_writes_both_stores(
        self,
        vector_store: InMemoryVectorStore,
        document_store: InMemoryDocumentStore,
        document_meta: DocumentMeta,
    ) -> None:
        records = _records(document_meta, 3)

        record, stored, skipped = await _writer(vector_store, document_store).write(
            records, document_meta
        )

        assert (stored, skipped) == (3, 0)
        assert len(vector_store.points("research")) == 3
        assert document_store.rows[record.id] == record
        assert record.id == document_meta.id
        assert record.first_point_id == records[0].id
        assert record.content_preview == document_meta.content[:500]

    @pytest.mark.asyncio
    async def test_creates_collection_with_provider_dimension(
        self,
        vector_store: InMemoryVectorStore,
        document_store: InMemoryDocumentStore,
        document_meta: DocumentMeta,
    ) -> None:
        await _writer(vector_store, document_store, dimension=8).write(
            _records(document_meta, 1), document_meta
        )

        assert vector_store.collections["research"]["dimension"] == 8

    @pytest.mark.asyncio
    async def test_vector_failure_counts_all_as_skipped(
        self,
        document_store: InMemoryDocumentStore,
        document_meta: DocumentMeta,
    ) -> None:
        failing = InMemoryVectorStore(fail_upsert=True)
        reporter = ProgressReporter()

        record, stored, skipped = await _writer(failing, document_store).write(
            _records(document_meta, 4), document_meta, reporter
        )

        assert (stored, skipped) == (0, 4)
        assert record.first_point_id is None
        assert record.id in document_store.rows
        warnings = [e for e in reporter.history if e.stage is IngestionStage.WARNING]
        assert len(warnings) == 1

    @pytest.mark.asyncio
    async def test_dimension_mismatch_is_recoverable(
        self,
        vector_store: InMemoryVectorStore,
        document_store: InMemoryDocumentStore,
        document_meta: DocumentMeta,
    ) -> None:
        await vector_store.ensure_collection("research", 16)

        record, stored, skipped = await _writer(vector_store, document_store, dimension=8).write(
            _records(document_meta, 2), document_meta
        )

        assert (stored, skipped) == (0, 2)
        assert record.id in document_store.rows

    @pytest.mark.asyncio
    async def test_relational_failure_propagates(
        self,
        vector_store: InMemoryVectorStore,
        document_meta: DocumentMeta,
    ) -> None:
        failing_docs = InMemoryDocumentStore(fail_insert=True)

        with pytest.raises(DocumentStoreError) as exc_info:
            await _writer(vector_store, failing_docs).write(
                _records(document_meta, 2), document_meta
            )

        assert isinstance(exc_info.value, StoreConnectionError)
        # No compensating delete: the vectors stay behind.
        assert len(vector_store.points("research")) == 2

    @pytest.mark.asyncio
    async def test_no_records_still_creates_row(
        self,
        vector_store: InMemoryVectorStore,
        document_store: InMemoryDocumentStore,
    ) -> None:
        meta = DocumentMeta(filename="empty.txt", file_type="txt", collection_id="c", content="")

        record, stored, skipped = await _writer(vector_store, document_store).write([], meta)

        assert (stored, skipped) == (0, 0)
        assert record.content_preview == ""
        assert record.first_point_id is None
        assert vector_store.upsert_calls == 0

    @pytest.mark.asyncio
    async def test_preview_truncated_to_500_chars(
        self,
        vector_store: InMemoryVectorStore,
        document_store: InMemoryDocumentStore,
    ) -> None:
        meta = DocumentMeta(filename="long.txt", file_type="txt", collection_id="c", content="a" * 900)

        record, _, _ = await _writer(vector_store, document_store).write([], meta)

        assert record.content_preview == "a" * 500
        assert record.content == "a" * 900

    @pytest.mark.asyncio
    async def test_emits_storing_checkpoint(
        self,
        vector_store: InMemoryVectorStore,
        document_store: InMemoryDocumentStore,
        document_meta: DocumentMeta,
    ) -> None:
        reporter = ProgressReporter()

        await _writer(vector_store, document_store).write(
            _records(document_meta, 1), document_meta, reporter
        )

        assert reporter.history[0].stage is IngestionStage.STORING
        assert reporter.history[0].progress_percent == 75.0
