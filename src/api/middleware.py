"""API middleware -- CORS, request logging, and error handling.

Provides helper functions and middleware classes to configure cross-origin
resource sharing, structured request logging (via structlog), and automatic
conversion of ``IngestFlowError`` subclasses into JSON ``ErrorResponse``
bodies.

# --- MIDDLEWARE EXECUTION ORDER -----------------------------------------
#
# Starlette middleware is a stack (last added, first executed):
#
#   In main.py:
#     app.add_middleware(ErrorHandlingMiddleware)    # added 1st -> inner
#     app.add_middleware(RequestLoggingMiddleware)   # added 2nd -> outer
#     configure_cors(app)                            # added last -> outermost
#
#   Request flow:
#     Client -> CORS -> RequestLogging -> ErrorHandling -> route handler
#   Response flow:
#     Client <- CORS <- RequestLogging <- ErrorHandling <- route handler
#
# RequestLoggingMiddleware therefore logs the status code *after*
# ErrorHandling has turned an IngestFlowError into a 400/500 JSON body.
#
# Each middleware extends BaseHTTPMiddleware and overrides dispatch();
# call_next(request) hands the request to the next layer inward.
# -----------------------------------------------------------------------
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import ExtractionError, IngestFlowError, PipelineError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    # NOTE: What CORS does here
    # Browsers refuse cross-origin fetches unless the server answers with
    # CORS headers.  The upload form and the progress WebSocket client may
    # be served from another origin than the API, so the headers are
    # always sent.  Development allows ["*"]; a deployment should pass
    # its own origin list.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]`` for
        development; override with specific origins in production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,  # cookies / auth headers
        allow_methods=["*"],     # GET, POST, DELETE, ...
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        # Stays None if call_next raised; the finally block then logs 500.
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


def status_for_error(exc: IngestFlowError) -> int:
    """Map an application error to an HTTP status code.

    Bad input (unsupported or unreadable files, missing names) is the
    client's problem; everything else is a server-side failure.

        ExtractionError (UnsupportedTypeError, ExtractionFailedError) -> 400
        PipelineError (blank filename or collection id)              -> 400
        DocumentStoreError, VectorStoreError, EmbeddingError, ...    -> 500

    Oversized uploads never get here: the route raises HTTP 413 itself.
    """
    if isinstance(exc, (ExtractionError, PipelineError)):
        return 400
    return 500


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch ``IngestFlowError`` subclasses and return structured JSON errors.

    Stack traces are logged server-side only; the client sees the
    exception class name and its message.

    # NOTE: Error sanitization
    #   1. Internal details (stack traces, file paths) stay in the logs.
    #   2. The client gets {"error": <class name>, "detail": <message>}.
    #   3. Only IngestFlowError subclasses are caught here; anything else
    #      falls through to FastAPI's default 500 handler.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except IngestFlowError as exc:
            status_code = status_for_error(exc)
            # Full details server-side only
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            # Sanitized body for the client
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.message,
            )
            return JSONResponse(
                status_code=status_code,
                content=body.model_dump(),
            )
