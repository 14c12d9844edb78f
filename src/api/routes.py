"""FastAPI API routes for ingestflow.

Provides REST endpoints for text ingestion, file upload, document lookup
and deletion, session progress polling, and health checks.  Service
dependencies are resolved from ``app.state`` via FastAPI's ``Depends``
using the ``Annotated`` pattern.

    Endpoint                                          Method  Description
    -------------------------------------------------------------------------
    /api/v1/collections/{cid}/documents/text          POST    Ingest a typed note
    /api/v1/collections/{cid}/documents/upload        POST    Upload + extract + ingest
    /api/v1/collections/{cid}/documents               GET     List documents
    /api/v1/documents/{doc_id}                        GET     One document
    /api/v1/documents/{doc_id}                        DELETE  Delete vectors + row
    /api/v1/sessions/{sid}/status                     GET     Latest progress snapshot
    /api/v1/health                                    GET     Health + provider status
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
import uuid
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, UploadFile

from src.api.schemas import (
    CreateTextRequest,
    DeleteResponse,
    DocumentDetailResponse,
    DocumentListResponse,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    IngestionResponse,
    StatusResponse,
)
from src.pipeline.progress_tracker import ProgressTracker
from src.services.ingestion.ingestion_service import IngestionService
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# Uploads are streamed in 64 KB pieces so an oversized file is rejected
# without buffering all of it.
_UPLOAD_CHUNK_SIZE = 64 * 1024

# How often a running ingestion checks whether its HTTP caller went away.
_DISCONNECT_POLL_SECONDS = 0.5


# ---------------------------------------------------------------------------
# Dependency injection helpers -- resolve singletons from app.state
# ---------------------------------------------------------------------------
# NOTE: FastAPI dependency injection
#   1. A helper pulls one component off app.state (set by the lifespan).
#   2. An Annotated alias binds it: XDep = Annotated[X, Depends(helper)].
#   3. Routes declare XDep parameters and FastAPI calls the helper.
# Tests swap components by giving create_app() a lifespan that puts
# fakes on app.state.
# ---------------------------------------------------------------------------


def _get_ingestion_service(request: Request) -> IngestionService:
    """Return the ingestion service from application state."""
    return request.app.state.ingestion_service


def _get_progress_tracker(request: Request) -> ProgressTracker:
    """Return the progress tracker from application state."""
    return request.app.state.progress_tracker


def _get_max_upload_bytes(request: Request) -> int:
    return getattr(request.app.state, "max_upload_bytes", _DEFAULT_MAX_UPLOAD_BYTES)


IngestionServiceDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
TrackerDep = Annotated[ProgressTracker, Depends(_get_progress_tracker)]
MaxUploadDep = Annotated[int, Depends(_get_max_upload_bytes)]


@contextlib.asynccontextmanager
async def _cancel_on_disconnect(request: Request) -> AsyncIterator[asyncio.Event]:
    """Yield an event that is set once the client disconnects.

    The ingestion pipeline checks the event before each embedding batch,
    so an abandoned request stops embedding but still persists what it
    already has.
    """
    cancel_event = asyncio.Event()

    async def _watch() -> None:
        while not cancel_event.is_set():
            if await request.is_disconnected():
                _logger.info("client_disconnected", path=request.url.path)
                cancel_event.set()
                return
            await asyncio.sleep(_DISCONNECT_POLL_SECONDS)

    watcher = asyncio.create_task(_watch())
    try:
        yield cancel_event
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post(
    "/collections/{collection_id}/documents/text",
    response_model=IngestionResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Ingest a typed note",
)
async def create_text_document(
    request: Request,
    collection_id: str,
    body: CreateTextRequest,
    service: IngestionServiceDep,
) -> IngestionResponse:
    """Chunk, embed and store the posted text as a new document."""
    session_id = body.session_id or str(uuid.uuid4())
    async with _cancel_on_disconnect(request) as cancel_event:
        summary = await service.ingest_text(
            filename=body.filename,
            content=body.content,
            collection_id=collection_id,
            file_type=body.file_type,
            session_id=session_id,
            cancel_event=cancel_event,
        )
    return IngestionResponse.from_summary(summary, session_id=session_id)


@router.post(
    "/collections/{collection_id}/documents/upload",
    response_model=IngestionResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Upload a file, extract its text, and ingest it",
)
async def upload_document(
    request: Request,
    collection_id: str,
    file: UploadFile,
    service: IngestionServiceDep,
    max_upload_bytes: MaxUploadDep,
    session_id: Annotated[str | None, Query()] = None,
) -> IngestionResponse:
    """Spool the upload to a temporary file and run the extraction path."""
    filename = file.filename or "upload"
    session_id = session_id or str(uuid.uuid4())

    fd, tmp_name = tempfile.mkstemp(suffix=Path(filename).suffix.lower())
    try:
        total_size = 0
        with os.fdopen(fd, "wb") as tmp:
            while True:
                chunk = await file.read(_UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                total_size += len(chunk)
                if total_size > max_upload_bytes:
                    raise HTTPException(
                        status_code=413,
                        detail=(
                            f"File too large: >{max_upload_bytes // (1024 * 1024)} MB. "
                            f"Maximum: {max_upload_bytes} bytes."
                        ),
                    )
                tmp.write(chunk)

        _logger.info(
            "upload_received",
            filename=filename,
            collection_id=collection_id,
            size_bytes=total_size,
            session_id=session_id,
        )
        async with _cancel_on_disconnect(request) as cancel_event:
            summary = await service.ingest_file(
                tmp_name,
                collection_id=collection_id,
                filename=filename,
                session_id=session_id,
                cancel_event=cancel_event,
            )
    finally:
        Path(tmp_name).unlink(missing_ok=True)

    return IngestionResponse.from_summary(summary, session_id=session_id)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.get(
    "/collections/{collection_id}/documents",
    response_model=DocumentListResponse,
    summary="List the documents of a collection",
)
async def list_documents(
    collection_id: str,
    service: IngestionServiceDep,
) -> DocumentListResponse:
    records = await service.list_documents(collection_id)
    return DocumentListResponse(
        collection_id=collection_id,
        documents=[DocumentResponse.from_record(r) for r in records],
        total=len(records),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get one document",
)
async def get_document(
    document_id: str,
    service: IngestionServiceDep,
) -> DocumentDetailResponse:
    record = await service.get_document(document_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return DocumentDetailResponse.from_record(record)


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document and its vectors",
)
async def delete_document(
    document_id: str,
    service: IngestionServiceDep,
) -> DeleteResponse:
    deleted = await service.delete_document(document_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return DeleteResponse(document_id=document_id, deleted=True)


# ---------------------------------------------------------------------------
# Progress / health
# ---------------------------------------------------------------------------


@router.get(
    "/sessions/{session_id}/status",
    response_model=StatusResponse,
    summary="Poll ingestion progress",
)
async def session_status(session_id: str, tracker: TrackerDep) -> StatusResponse:
    """Return the latest progress snapshot for *session_id*.

    Unknown sessions report stage ``pending`` at 0 percent.
    """
    return StatusResponse(session_id=session_id, **tracker.get_status(session_id))


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)

    embedding_ok = providers.get("embedding", False)
    vector_ok = providers.get("vector_store", False)

    if embedding_ok and vector_ok:
        status = "healthy"
    elif vector_ok:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(
        status=status,
        version=getattr(request.app.state, "version", "0.1.0"),
        providers=providers,
    )
