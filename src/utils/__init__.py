"""Utility modules for ingestflow.

- **errors** -- Exception hierarchy rooted at IngestFlowError; each
  pipeline stage raises its own subclass so the orchestrator can tell a
  batch-local failure from a run-level one.
- **logging** -- structlog setup with a dual renderer: coloured console
  output in development, JSON in production.
- **text** -- Small text helpers shared by the chunkers and the store
  writer (UTF-8 truncation, preview building).
"""

from src.utils.errors import (
    CollectionMissingError,
    ConfigurationError,
    ConstraintViolationError,
    DocumentStoreError,
    EmbeddingError,
    ExtractionError,
    ExtractionFailedError,
    IngestFlowError,
    PipelineError,
    RateLimitError,
    SchemaMismatchError,
    StoreConnectionError,
    UnsupportedTypeError,
    VectorStoreError,
)
from src.utils.logging import configure_logging, get_logger
from src.utils.text import build_preview, truncate_utf8

__all__ = [
    "CollectionMissingError",
    "ConfigurationError",
    "ConstraintViolationError",
    "DocumentStoreError",
    "EmbeddingError",
    "ExtractionError",
    "ExtractionFailedError",
    "IngestFlowError",
    "PipelineError",
    "RateLimitError",
    "SchemaMismatchError",
    "StoreConnectionError",
    "UnsupportedTypeError",
    "VectorStoreError",
    "build_preview",
    "configure_logging",
    "get_logger",
    "truncate_utf8",
]
