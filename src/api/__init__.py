"""ingestflow API layer -- routes, schemas, WebSocket, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
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
from src.api.websocket import websocket_progress

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "websocket_progress",
    "CreateTextRequest",
    "DeleteResponse",
    "DocumentDetailResponse",
    "DocumentListResponse",
    "DocumentResponse",
    "ErrorResponse",
    "HealthResponse",
    "IngestionResponse",
    "StatusResponse",
]
