"""Unit tests for BatchEmbeddingGenerator -- batching, pacing, failure isolation."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from src.models.ingestion import Chunk, DocumentMeta, IngestionStage
from src.pipeline.progress_reporter import ProgressReporter
from src.services.ingestion.embedding_batcher import BatchEmbeddingGenerator
from src.utils.text import MAX_EMBED_BYTES
from tests.conftest import FakeEmbeddingProvider, make_chunks


def _stages(reporter: ProgressReporter) -> list[IngestionStage]:
    return [e.stage for e in reporter.history]


class TestConstruction:
    def test_rejects_non_positive_batch_size(self) -> None:
        with pytest.raises(ValueError):
            BatchEmbeddingGenerator(FakeEmbeddingProvider(), batch_size=0)

    def test_rejects_negative_delay(self) -> None:
        with pytest.raises(ValueError):
            BatchEmbeddingGenerator(FakeEmbeddingProvider(), batch_delay_ms=-1)


class TestEmbedAll:
    @pytest.mark.asyncio
    async def test_all_chunks_embedded_in_order(self, document_meta: DocumentMeta) -> None:
        provider = FakeEmbeddingProvider()
        generator = BatchEmbeddingGenerator(provider, batch_size=5, batch_delay_ms=0)
        chunks = make_chunks(7)

        result = await generator.embed_all(chunks, document_meta)

        assert result.stored == 7
        assert result.skipped == 0
        assert result.failed_batches == []
        assert [r.chunk_index for r in result.records] == list(range(7))
        assert provider.calls == [c.text for c in chunks]

    @pytest.mark.asyncio
    async def test_records_carry_document_payload(self, document_meta: DocumentMeta) -> None:
        generator = BatchEmbeddingGenerator(FakeEmbeddingProvider(), batch_delay_ms=0)

        result = await generator.embed_all(make_chunks(2), document_meta)
        payload = result.records[1].payload()

        assert payload["document_id"] == document_meta.id
        assert payload["collection_id"] == "research"
        assert payload["filename"] == "notes.txt"
        assert payload["chunk_index"] == 1
        assert payload["chunk_total"] == 2
        assert payload["document_type"] == "document"
        assert len(result.records[0].vector) == 8

    @pytest.mark.asyncio
    async def test_failed_batch_is_skipped_and_others_continue(
        self, document_meta: DocumentMeta
    ) -> None:
        # Call 6 is the first request of batch 2 (12 chunks, batches of 5).
        provider = FakeEmbeddingProvider(fail_on_calls={6})
        generator = BatchEmbeddingGenerator(provider, batch_size=5, batch_delay_ms=0)
        reporter = ProgressReporter()

        result = await generator.embed_all(make_chunks(12), document_meta, reporter)

        assert result.stored == 7
        assert result.skipped == 5
        assert result.failed_batches == [2]
        assert [r.chunk_index for r in result.records] == [0, 1, 2, 3, 4, 10, 11]

        warnings = [e for e in reporter.history if e.stage is IngestionStage.WARNING]
        assert len(warnings) == 1
        assert "batch 2" in warnings[0].message
        assert warnings[0].extra["batch"] == 2

    @pytest.mark.asyncio
    async def test_failure_on_last_call_of_batch_skips_whole_batch(
        self, document_meta: DocumentMeta
    ) -> None:
        provider = FakeEmbeddingProvider(fail_on_calls={5})
        generator = BatchEmbeddingGenerator(provider, batch_size=5, batch_delay_ms=0)

        result = await generator.embed_all(make_chunks(6), document_meta)

        assert result.skipped == 5
        assert result.stored == 1
        assert result.records[0].chunk_index == 5

    @pytest.mark.asyncio
    async def test_every_batch_failing_still_returns(self, document_meta: DocumentMeta) -> None:
        provider = FakeEmbeddingProvider(fail_on_calls={1, 2, 3})
        generator = BatchEmbeddingGenerator(provider, batch_size=1, batch_delay_ms=0)

        result = await generator.embed_all(make_chunks(3), document_meta)

        assert result.stored == 0
        assert result.skipped == 3
        assert result.failed_batches == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_sleeps_between_batches_only(self, document_meta: DocumentMeta) -> None:
        generator = BatchEmbeddingGenerator(
            FakeEmbeddingProvider(), batch_size=5, batch_delay_ms=500
        )
        with patch(
            "src.services.ingestion.embedding_batcher.asyncio.sleep",
            new_callable=AsyncMock,
        ) as mock_sleep:
            await generator.embed_all(make_chunks(12), document_meta)

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    async def test_no_sleep_for_single_batch(self, document_meta: DocumentMeta) -> None:
        generator = BatchEmbeddingGenerator(FakeEmbeddingProvider(), batch_delay_ms=500)
        with patch(
            "src.services.ingestion.embedding_batcher.asyncio.sleep",
            new_callable=AsyncMock,
        ) as mock_sleep:
            await generator.embed_all(make_chunks(3), document_meta)

        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_progress_spans_thirty_to_seventy(self, document_meta: DocumentMeta) -> None:
        generator = BatchEmbeddingGenerator(FakeEmbeddingProvider(), batch_delay_ms=0)
        reporter = ProgressReporter()

        await generator.embed_all(make_chunks(10), document_meta, reporter)

        percents = [e.progress_percent for e in reporter.history]
        assert percents[0] == 30.0
        assert percents[-1] == 70.0
        assert percents == sorted(percents)
        assert set(_stages(reporter)) == {IngestionStage.EMBEDDING}

    @pytest.mark.asyncio
    async def test_empty_chunk_list(self, document_meta: DocumentMeta) -> None:
        provider = FakeEmbeddingProvider()
        generator = BatchEmbeddingGenerator(provider, batch_delay_ms=0)
        reporter = ProgressReporter()

        result = await generator.embed_all([], document_meta, reporter)

        assert result.stored == 0
        assert result.skipped == 0
        assert provider.calls == []
        assert reporter.history == []

    @pytest.mark.asyncio
    async def test_cancellation_skips_remaining_batches(self, document_meta: DocumentMeta) -> None:
        cancel = asyncio.Event()

        class _CancellingProvider(FakeEmbeddingProvider):
            async def embed_single(self, text: str) -> list[float]:
                vector = await super().embed_single(text)
                if len(self.calls) == 5:
                    cancel.set()
                return vector

        generator = BatchEmbeddingGenerator(_CancellingProvider(), batch_size=5, batch_delay_ms=0)
        reporter = ProgressReporter()

        result = await generator.embed_all(make_chunks(12), document_meta, reporter, cancel)

        assert result.cancelled is True
        assert result.stored == 5
        assert result.skipped == 7
        assert any(
            e.stage is IngestionStage.WARNING and "cancelled" in e.message
            for e in reporter.history
        )

    @pytest.mark.asyncio
    async def test_oversized_chunk_truncated_before_embedding(
        self, document_meta: DocumentMeta
    ) -> None:
        provider = FakeEmbeddingProvider()
        generator = BatchEmbeddingGenerator(provider, batch_delay_ms=0)
        big = "é" * 20_000  # 40,000 bytes of UTF-8
        chunk = Chunk(index=0, total=1, text=big, size_chars=len(big))

        result = await generator.embed_all([chunk], document_meta)

        assert len(provider.calls[0].encode("utf-8")) <= MAX_EMBED_BYTES
        assert result.records[0].text == big
