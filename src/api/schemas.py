"""Pydantic request/response schemas for the ingestflow API.

Defines the public contract for all REST endpoints: text ingestion, file
upload, document listing and lookup, deletion, session status and health.

Convention: request schemas end with "Request", response schemas end
with "Response".  Ingestion summaries are serialized with camelCase keys
(``chunksStored``, ``processingTime``, ...) to match the web client.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.ingestion import DocumentRecord, IngestionSummary


class CreateTextRequest(BaseModel):
    """A typed note to ingest into a collection."""

    filename: str = Field(..., min_length=1, max_length=255)
    content: str = Field(default="", description="Raw text; may be empty.")
    file_type: str = Field(default="txt", min_length=1, max_length=32)
    session_id: str | None = Field(
        default=None,
        description="Progress session to publish events to (see /ws/progress).",
    )


class DocumentResponse(BaseModel):
    """Document metadata without the full content."""

    id: str
    filename: str
    file_type: str
    collection_id: str
    content_preview: str
    first_point_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: DocumentRecord) -> DocumentResponse:
        return cls(
            id=record.id,
            filename=record.filename,
            file_type=record.file_type,
            collection_id=record.collection_id,
            content_preview=record.content_preview,
            first_point_id=record.first_point_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class DocumentDetailResponse(DocumentResponse):
    """Document metadata including the full extracted content."""

    content: str

    @classmethod
    def from_record(cls, record: DocumentRecord) -> DocumentDetailResponse:
        return cls(
            **DocumentResponse.from_record(record).model_dump(),
            content=record.content,
        )


class DocumentListResponse(BaseModel):
    """Documents of one collection, newest first."""

    collection_id: str
    documents: list[DocumentResponse]
    total: int


class IngestionResponse(BaseModel):
    """Result of one ingestion run."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")
    document: DocumentResponse
    chunks_stored: int = Field(alias="chunksStored")
    chunks_skipped: int = Field(alias="chunksSkipped")
    total_chunks: int = Field(alias="totalChunks")
    processing_time_ms: int = Field(alias="processingTime")
    content_length: int = Field(alias="contentLength")
    processing_method: str = Field(alias="processingMethod")

    @classmethod
    def from_summary(
        cls,
        summary: IngestionSummary,
        session_id: str | None = None,
    ) -> IngestionResponse:
        return cls(
            session_id=session_id,
            document=DocumentResponse.from_record(summary.document),
            chunks_stored=summary.chunks_stored,
            chunks_skipped=summary.chunks_skipped,
            total_chunks=summary.total_chunks,
            processing_time_ms=summary.processing_time_ms,
            content_length=summary.content_length,
            processing_method=summary.processing_method.value,
        )


class DeleteResponse(BaseModel):
    """Confirmation of a cascade delete."""

    document_id: str
    deleted: bool


class StatusResponse(BaseModel):
    """Latest progress snapshot of an ingestion session."""

    session_id: str
    stage: str
    progress: float = Field(ge=0.0, le=100.0)
    message: str
    extra: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
