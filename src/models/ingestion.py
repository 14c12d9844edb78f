"""Data models for the ingestion pipeline.

Defines Pydantic v2 models for chunks, embedding records, document rows,
progress events and run summaries.  All models are frozen; a run builds
new instances instead of mutating old ones.

Pipeline overview:

    1. EXTRACTION: a file (or a typed note) becomes one raw text string.
    2. CHUNKING: the text is cut into :class:`Chunk` windows.
    3. EMBEDDING: each chunk becomes an :class:`EmbeddingRecord`.
    4. STORING: records go to the vector index, then one
       :class:`DocumentRecord` row goes to the relational store.
    5. SUMMARY: an :class:`IngestionSummary` reports stored/skipped counts.

Every step emits :class:`IngestionProgressEvent` objects along the way.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Chunk -- the unit handed to the embedding step.
# ---------------------------------------------------------------------------
class Chunk(BaseModel):
    """A bounded substring of a source document.

    ``index`` is the chunk's 0-based position and ``total`` the number of
    chunks produced for the document, so ``0 <= index < total``.
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="0-based position in document order.")
    total: int = Field(ge=1, description="Number of chunks in the document.")
    text: str = Field(description="The chunk's textual content.")
    size_chars: int = Field(ge=0, description="len(text), cached for payloads.")

    @model_validator(mode="after")
    def _index_within_total(self) -> Chunk:
        if self.index >= self.total:
            raise ValueError(f"chunk index {self.index} must be < total {self.total}")
        return self


# ---------------------------------------------------------------------------
# EmbeddingRecord -- one vector plus the payload stored beside it.
# ---------------------------------------------------------------------------
class EmbeddingRecord(BaseModel):
    """A chunk's embedding vector and its standalone payload.

    The payload duplicates filename and collection so a vector hit can be
    shown without a relational lookup; the relational row stays the
    source of truth.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    vector: list[float]
    chunk_index: int = Field(ge=0)
    chunk_total: int = Field(ge=1)
    source_filename: str
    collection_id: str
    file_type: str
    document_id: str
    text: str
    created_at: datetime = Field(default_factory=_utcnow)

    def payload(self) -> dict[str, str | int]:
        """Return the metadata stored next to the vector."""
        return {
            "text": self.text,
            "filename": self.source_filename,
            "document_id": self.document_id,
            "collection_id": self.collection_id,
            "chunk_index": self.chunk_index,
            "chunk_total": self.chunk_total,
            "file_type": self.file_type,
            "chunk_size": len(self.text),
            "created_at": self.created_at.isoformat(),
            "document_type": "document",
        }


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------
class DocumentMeta(BaseModel):
    """Everything the store writer needs to create the relational row.

    The ``id`` is allocated before embedding so vector payloads can
    reference the document.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    filename: str
    file_type: str
    collection_id: str
    content: str


class DocumentRecord(BaseModel):
    """A persisted document row."""

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    file_type: str
    collection_id: str
    content_preview: str = Field(max_length=500)
    content: str
    first_point_id: str | None = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------
class IngestionStage(str, Enum):  # noqa: UP042
    """Stages of one ingestion run.

    Runs move VALIDATION -> EXTRACTING -> CHUNKING -> EMBEDDING ->
    STORING -> FINALIZING -> COMPLETE.  ERROR can follow any stage;
    WARNING events interleave without changing the stage order.
    """

    VALIDATION = "validation"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    STORING = "storing"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    ERROR = "error"
    WARNING = "warning"

    @property
    def is_terminal(self) -> bool:
        return self in (IngestionStage.COMPLETE, IngestionStage.ERROR)


class IngestionProgressEvent(BaseModel):
    """One progress notification pushed to the caller."""

    model_config = ConfigDict(frozen=True)

    stage: IngestionStage
    message: str
    progress_percent: float = Field(ge=0.0, le=100.0)
    extra: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
class EmbeddingBatchResult(BaseModel):
    """Output of the batch embedding stage."""

    model_config = ConfigDict(frozen=True)

    records: list[EmbeddingRecord] = Field(default_factory=list)
    stored: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    failed_batches: list[int] = Field(
        default_factory=list,
        description="1-based numbers of the batches that failed.",
    )
    cancelled: bool = False


class ProcessingMethod(str, Enum):  # noqa: UP042
    """Which chunker handled the document."""

    STANDARD = "standard"
    RECURSIVE = "recursive"


class IngestionSummary(BaseModel):
    """Final report of one ingestion run.

    ``chunks_skipped > 0`` is still a successful run; callers detect the
    shortfall from the counts.
    """

    model_config = ConfigDict(frozen=True)

    document: DocumentRecord
    chunks_stored: int = Field(ge=0)
    chunks_skipped: int = Field(ge=0)
    total_chunks: int = Field(ge=0)
    processing_time_ms: int = Field(ge=0)
    content_length: int = Field(ge=0)
    processing_method: ProcessingMethod
