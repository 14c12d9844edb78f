"""Orchestrator for one document ingestion run.

Pipeline stages: **validate -> extract -> chunk -> embed -> store -> finalize**.

The :class:`IngestionService` implements the **Orchestrator pattern**: it
coordinates the text extractor, chunker, batch embedding generator and
store writer without any of them knowing about each other.  Both public
``ingest_*`` methods end in the same flow:

    1. DocumentChunker -- boundary-aware or recursive split by length
    2. BatchEmbeddingGenerator -- paced batches, failed batches skipped
    3. StoreWriter -- vector upsert (recoverable), then the document row (fatal)
    4. IngestionSummary -- stored/skipped counts, mirrored as ``complete``

Every run gets its own :class:`ProgressReporter`.  Unrecoverable failures
(missing or unsupported file, extraction failure, relational insert
failure) emit an ``error`` event and are re-raised to the caller.

All dependencies are injected via constructor, so providers can be
swapped (e.g. OpenAI -> Ollama) without changing this class.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from src.models.ingestion import (
    DocumentMeta,
    DocumentRecord,
    IngestionStage,
    IngestionSummary,
    ProcessingMethod,
)
from src.pipeline.progress_reporter import (
    CHUNKING_PERCENT,
    EXTRACTED_PERCENT,
    EXTRACTION_IMAGE_PERCENT,
    EXTRACTION_TEXT_PERCENT,
    FINALIZING_PERCENT,
    VALIDATION_PERCENT,
    ProgressReporter,
    ProgressSink,
)
from src.utils.errors import ConfigurationError, PipelineError

if TYPE_CHECKING:
    from src.interfaces.document_store import IDocumentStore
    from src.interfaces.text_extractor import ITextExtractor
    from src.interfaces.vector_store_provider import IVectorStoreProvider
    from src.pipeline.progress_tracker import ProgressTracker
    from src.services.ingestion.chunker import DocumentChunker
    from src.services.ingestion.embedding_batcher import BatchEmbeddingGenerator
    from src.services.ingestion.store_writer import StoreWriter

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Runs the ingestion state machine for typed notes and uploaded files.

    Parameters
    ----------
    chunker:
        Splits raw text into :class:`~src.models.ingestion.Chunk` objects.
    embedder:
        Embeds chunks batch by batch.
    store_writer:
        Persists vectors and the document row.
    document_store:
        Relational store, used directly for lookups and deletion.
    vector_store:
        Vector index, used directly for cascade deletion.
    extractor:
        File-to-text extractor; required only by :meth:`ingest_file`.
    progress_tracker:
        Optional session fan-out; runs started with a ``session_id``
        publish their events there.
    """

    def __init__(
        self,
        chunker: DocumentChunker,
        embedder: BatchEmbeddingGenerator,
        store_writer: StoreWriter,
        document_store: IDocumentStore,
        vector_store: IVectorStoreProvider,
        extractor: ITextExtractor | None = None,
        progress_tracker: ProgressTracker | None = None,
    ) -> None:
        self._chunker = chunker
        self._embedder = embedder
        self._store_writer = store_writer
        self._document_store = document_store
        self._vector_store = vector_store
        self._extractor = extractor
        self._progress_tracker = progress_tracker

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_text(
        self,
        filename: str,
        content: str,
        collection_id: str,
        file_type: str = "txt",
        session_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
        progress_sink: ProgressSink | None = None,
    ) -> IngestionSummary:
        """Ingest a typed note.

        Empty *content* is accepted: no chunks are embedded but the
        document row is still created.

        Returns
        -------
        IngestionSummary
            Counts and timing for the run.
        """
        start = time.monotonic()
        reporter = self._make_reporter(session_id, progress_sink)
        try:
            await reporter.emit(IngestionStage.VALIDATION, "Validating document", VALIDATION_PERCENT)
            self._validate(filename, collection_id)
            await reporter.emit(
                IngestionStage.EXTRACTING,
                f"Received {len(content)} characters of text",
                EXTRACTED_PERCENT,
                content_length=len(content),
            )
            meta = DocumentMeta(
                filename=filename,
                file_type=file_type,
                collection_id=collection_id,
                content=content,
            )
            return await self._run(meta, reporter, start, cancel_event)
        except Exception as exc:
            await self._fail(reporter, exc, filename=filename, collection_id=collection_id)
            raise

    async def ingest_file(
        self,
        path: str | Path,
        collection_id: str,
        filename: str | None = None,
        session_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
        progress_sink: ProgressSink | None = None,
    ) -> IngestionSummary:
        """Extract the text of *path* and ingest it.

        Parameters
        ----------
        path:
            File on disk (for uploads, the spooled temporary file).
        collection_id:
            Target collection; also the vector namespace.
        filename:
            Original name of the upload.  Its extension selects the
            extractor and it is what gets stored.  Defaults to the name
            of *path*.

        Raises
        ------
        src.utils.errors.ExtractionError
            If the file is missing, unsupported or unparsable.
        src.utils.errors.DocumentStoreError
            If the document row cannot be inserted.
        """
        start = time.monotonic()
        name = filename or Path(path).name
        reporter = self._make_reporter(session_id, progress_sink)
        try:
            await reporter.emit(IngestionStage.VALIDATION, f"Validating {name}", VALIDATION_PERCENT)
            self._validate(name, collection_id)
            if self._extractor is None:
                raise ConfigurationError(message="No text extractor configured")

            if self._extractor.is_image(name):
                await reporter.emit(
                    IngestionStage.EXTRACTING,
                    f"Generating image description for {name}",
                    EXTRACTION_IMAGE_PERCENT,
                )
            else:
                await reporter.emit(
                    IngestionStage.EXTRACTING,
                    f"Extracting text from {name}",
                    EXTRACTION_TEXT_PERCENT,
                )

            extracted = await self._extractor.extract(path, name)
            await reporter.emit(
                IngestionStage.EXTRACTING,
                f"Extracted {len(extracted.text)} characters",
                EXTRACTED_PERCENT,
                content_length=len(extracted.text),
                method=extracted.method,
            )

            meta = DocumentMeta(
                filename=name,
                file_type=extracted.file_type,
                collection_id=collection_id,
                content=extracted.text,
            )
            return await self._run(meta, reporter, start, cancel_event)
        except Exception as exc:
            await self._fail(reporter, exc, filename=name, collection_id=collection_id)
            raise

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document's vectors, then its row.

        A vector-side failure is logged and the row is deleted anyway.

        Returns
        -------
        bool
            ``False`` if no such document exists.
        """
        record = await self._document_store.get_document(document_id)
        if record is None:
            return False

        try:
            removed = await self._vector_store.delete_by_document(
                record.collection_id, document_id
            )
            logger.info(
                "document_vectors_deleted",
                document_id=document_id,
                collection_id=record.collection_id,
                vectors_deleted=removed,
            )
        except Exception as exc:
            logger.warning(
                "document_vectors_delete_failed",
                document_id=document_id,
                collection_id=record.collection_id,
                error=str(exc),
            )

        deleted = await self._document_store.delete_document(document_id)
        logger.info("document_deleted", document_id=document_id, deleted=deleted)
        return deleted

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        return await self._document_store.get_document(document_id)

    async def list_documents(self, collection_id: str | None = None) -> list[DocumentRecord]:
        return await self._document_store.list_documents(collection_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _make_reporter(
        self,
        session_id: str | None,
        progress_sink: ProgressSink | None,
    ) -> ProgressReporter:
        sink = progress_sink
        if sink is None and session_id and self._progress_tracker is not None:
            sink = self._progress_tracker.sink_for(session_id)
        return ProgressReporter(sink=sink, run_id=session_id)

    @staticmethod
    def _validate(filename: str, collection_id: str) -> None:
        if not filename or not filename.strip():
            raise PipelineError(message="A filename is required")
        if not collection_id or not collection_id.strip():
            raise PipelineError(message="A collection id is required")

    async def _run(
        self,
        meta: DocumentMeta,
        reporter: ProgressReporter,
        start: float,
        cancel_event: asyncio.Event | None,
    ) -> IngestionSummary:
        """Chunk, embed, store and summarize an already-extracted document."""
        await reporter.emit(IngestionStage.CHUNKING, "Splitting text into chunks", CHUNKING_PERCENT)
        chunks, method = self._chunker.chunk(meta.content)
        if method is ProcessingMethod.RECURSIVE:
            logger.info(
                "recursive_chunking_used",
                document_id=meta.id,
                content_length=len(meta.content),
            )

        batch_result = await self._embedder.embed_all(chunks, meta, reporter, cancel_event)
        record, stored, vector_skipped = await self._store_writer.write(
            batch_result.records, meta, reporter
        )

        await reporter.emit(IngestionStage.FINALIZING, "Finalizing document", FINALIZING_PERCENT)

        skipped = batch_result.skipped + vector_skipped
        summary = IngestionSummary(
            document=record,
            chunks_stored=stored,
            chunks_skipped=skipped,
            total_chunks=len(chunks),
            processing_time_ms=int((time.monotonic() - start) * 1000),
            content_length=len(meta.content),
            processing_method=method,
        )

        if skipped:
            message = f"Ingested {stored} of {len(chunks)} chunks ({skipped} skipped)"
        else:
            message = f"Ingested {stored} chunks"
        await reporter.complete(
            message,
            document_id=record.id,
            chunks_stored=stored,
            chunks_skipped=skipped,
            total_chunks=len(chunks),
            processing_time_ms=summary.processing_time_ms,
            processing_method=method.value,
        )

        logger.info(
            "ingestion_complete",
            document_id=record.id,
            collection_id=meta.collection_id,
            filename=meta.filename,
            chunks_stored=stored,
            chunks_skipped=skipped,
            total_chunks=len(chunks),
            processing_method=method.value,
            processing_time_ms=summary.processing_time_ms,
        )
        return summary

    @staticmethod
    async def _fail(
        reporter: ProgressReporter,
        exc: Exception,
        filename: str,
        collection_id: str,
    ) -> None:
        logger.error(
            "ingestion_failed",
            filename=filename,
            collection_id=collection_id,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        await reporter.error(str(exc), error_type=type(exc).__name__)
