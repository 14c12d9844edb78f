"""Two-phase persistence of an ingestion run: vector index, then relational row.

The two stores are written one after the other with no shared
transaction:

    1. Vector index -- ensure the collection exists at the provider's
       dimension, then upsert every surviving record in one call.  A
       failure here is recoverable: it is logged, reported as a
       ``warning``, and every record counts as skipped.
    2. Relational store -- insert exactly one :class:`DocumentRecord`.
       A failure here is fatal and propagates to the caller.

Vectors already upserted are never removed if step 2 fails.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.interfaces.document_store import IDocumentStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.ingestion import (
    DocumentMeta,
    DocumentRecord,
    EmbeddingRecord,
    IngestionStage,
)
from src.pipeline.progress_reporter import STORING_PERCENT, ProgressReporter
from src.utils.text import build_preview

logger = structlog.get_logger(logger_name=__name__)


class StoreWriter:
    """Writes embedded chunks and the document row for one run.

    Parameters
    ----------
    vector_store:
        Vector index; the document's ``collection_id`` is used as namespace.
    document_store:
        Relational store receiving the document row.
    embedding_provider:
        Source of the vector dimension used when creating a collection.
    """

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        document_store: IDocumentStore,
        embedding_provider: IEmbeddingProvider,
    ) -> None:
        self._vector_store = vector_store
        self._document_store = document_store
        self._embedding_provider = embedding_provider

    async def write(
        self,
        records: list[EmbeddingRecord],
        meta: DocumentMeta,
        reporter: ProgressReporter | None = None,
    ) -> tuple[DocumentRecord, int, int]:
        """Persist *records* and the row described by *meta*.

        Parameters
        ----------
        records:
            Embedded chunks that survived the embedding stage.
        meta:
            Document identity and full content.
        reporter:
            Receives the ``storing`` checkpoint and any vector warning.

        Returns
        -------
        tuple[DocumentRecord, int, int]
            The inserted row, the number of vectors stored, and the number
            of records skipped because the vector write failed.

        Raises
        ------
        src.utils.errors.DocumentStoreError
            If the relational insert fails.
        """
        if reporter is not None:
            await reporter.emit(
                IngestionStage.STORING,
                f"Storing {len(records)} embeddings",
                STORING_PERCENT,
                records=len(records),
            )

        stored, skipped = await self._write_vectors(records, meta, reporter)
        first_point_id = records[0].id if stored and records else None

        now = datetime.now(tz=timezone.utc)
        record = DocumentRecord(
            id=meta.id,
            filename=meta.filename,
            file_type=meta.file_type,
            collection_id=meta.collection_id,
            content_preview=build_preview(meta.content),
            content=meta.content,
            first_point_id=first_point_id,
            created_at=now,
            updated_at=now,
        )
        await self._document_store.insert_document(record)

        logger.info(
            "document_stored",
            document_id=meta.id,
            collection_id=meta.collection_id,
            vectors_stored=stored,
            vectors_skipped=skipped,
        )
        return record, stored, skipped

    async def _write_vectors(
        self,
        records: list[EmbeddingRecord],
        meta: DocumentMeta,
        reporter: ProgressReporter | None,
    ) -> tuple[int, int]:
        if not records:
            return 0, 0

        namespace = meta.collection_id
        try:
            dimension = await self._embedding_provider.resolve_dimension()
            created = await self._vector_store.ensure_collection(namespace, dimension)
            if created:
                logger.info("collection_created", namespace=namespace, dimension=dimension)
            stored = await self._vector_store.upsert(namespace, records)
        except Exception as exc:
            logger.warning(
                "vector_write_failed",
                document_id=meta.id,
                namespace=namespace,
                records=len(records),
                error=str(exc),
            )
            if reporter is not None:
                await reporter.warning(
                    f"Failed to store {len(records)} embeddings: {exc}",
                    chunks_skipped=len(records),
                )
            return 0, len(records)

        return stored, len(records) - stored
