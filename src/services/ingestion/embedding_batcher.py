"""Batched embedding generation with pacing and per-batch failure isolation.

Chunks are embedded in fixed-size batches (default 5).  Inside a batch
each chunk is embedded with its own request, one after another; between
batches the generator sleeps a fixed delay (default 500 ms) to keep the
request rate under provider limits.

Failure policy: if any request in a batch raises, the whole batch is
counted as skipped, a ``warning`` progress event names the batch, and the
next batch runs as usual.  One bad batch never aborts the document.
"""

from __future__ import annotations

import asyncio

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.ingestion import (
    Chunk,
    DocumentMeta,
    EmbeddingBatchResult,
    EmbeddingRecord,
    IngestionStage,
)
from src.pipeline.progress_reporter import (
    EMBEDDING_START_PERCENT,
    ProgressReporter,
    embedding_percent,
)
from src.utils.text import truncate_utf8

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_MS = 500


class BatchEmbeddingGenerator:
    """Turns an ordered chunk list into embedding records, batch by batch.

    Parameters
    ----------
    embedding_provider:
        Provider whose :meth:`embed_single` is called once per chunk.
    batch_size:
        Chunks per batch.
    batch_delay_ms:
        Pause between batches; not applied after the last batch.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_ms: int = DEFAULT_BATCH_DELAY_MS,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if batch_delay_ms < 0:
            raise ValueError(f"batch_delay_ms must be >= 0, got {batch_delay_ms}")
        self._embedding_provider = embedding_provider
        self._batch_size = batch_size
        self._batch_delay = batch_delay_ms / 1000.0

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def embed_all(
        self,
        chunks: list[Chunk],
        meta: DocumentMeta,
        reporter: ProgressReporter | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> EmbeddingBatchResult:
        """Embed every chunk and return the records plus stored/skipped tallies.

        Parameters
        ----------
        chunks:
            Chunks in document order.
        meta:
            The document the chunks belong to; copied into each payload.
        reporter:
            Receives one ``embedding`` event per batch and a ``warning``
            per failed batch.
        cancel_event:
            Checked before each batch.  Once set, the remaining chunks are
            counted as skipped and the result is returned early so the
            caller can still persist what was embedded.

        Returns
        -------
        EmbeddingBatchResult
            ``stored + skipped == len(chunks)`` always holds.
        """
        total = len(chunks)
        total_batches = (total + self._batch_size - 1) // self._batch_size
        records: list[EmbeddingRecord] = []
        failed_batches: list[int] = []
        skipped = 0
        cancelled = False

        if reporter is not None and total_batches:
            await reporter.emit(
                IngestionStage.EMBEDDING,
                f"Generating embeddings for {total} chunks in {total_batches} batches",
                EMBEDDING_START_PERCENT,
                total_chunks=total,
                total_batches=total_batches,
            )

        for batch_number, start in enumerate(range(0, total, self._batch_size), start=1):
            if cancel_event is not None and cancel_event.is_set():
                remaining = total - start
                skipped += remaining
                cancelled = True
                logger.warning(
                    "embedding_cancelled",
                    document_id=meta.id,
                    at_batch=batch_number,
                    chunks_skipped=remaining,
                )
                if reporter is not None:
                    await reporter.warning(
                        f"Ingestion cancelled before batch {batch_number}; "
                        f"{remaining} chunks not embedded",
                        batch=batch_number,
                        chunks_skipped=remaining,
                    )
                break

            batch = chunks[start : start + self._batch_size]
            try:
                vectors = [
                    await self._embedding_provider.embed_single(truncate_utf8(chunk.text))
                    for chunk in batch
                ]
            except Exception as exc:
                skipped += len(batch)
                failed_batches.append(batch_number)
                logger.warning(
                    "embedding_batch_failed",
                    document_id=meta.id,
                    batch=batch_number,
                    total_batches=total_batches,
                    chunks_skipped=len(batch),
                    error=str(exc),
                )
                if reporter is not None:
                    await reporter.warning(
                        f"Embedding batch {batch_number} of {total_batches} failed: {exc}",
                        batch=batch_number,
                        chunks_skipped=len(batch),
                    )
            else:
                records.extend(
                    EmbeddingRecord(
                        vector=vector,
                        chunk_index=chunk.index,
                        chunk_total=chunk.total,
                        source_filename=meta.filename,
                        collection_id=meta.collection_id,
                        file_type=meta.file_type,
                        document_id=meta.id,
                        text=chunk.text,
                    )
                    for chunk, vector in zip(batch, vectors, strict=True)
                )

            if reporter is not None:
                await reporter.emit(
                    IngestionStage.EMBEDDING,
                    f"Processed batch {batch_number} of {total_batches}",
                    embedding_percent(batch_number, total_batches),
                    batch=batch_number,
                    total_batches=total_batches,
                    chunks_embedded=len(records),
                )

            if batch_number < total_batches and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)

        logger.info(
            "embedding_complete",
            document_id=meta.id,
            total_chunks=total,
            stored=len(records),
            skipped=skipped,
            failed_batches=failed_batches,
            cancelled=cancelled,
        )
        return EmbeddingBatchResult(
            records=records,
            stored=len(records),
            skipped=skipped,
            failed_batches=failed_batches,
            cancelled=cancelled,
        )
