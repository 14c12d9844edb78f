"""ingestflow domain models -- re-exports all public model classes.

Other parts of the codebase can import directly from ``src.models``
(e.g. ``from src.models import Chunk``) instead of the submodule.
"""

from __future__ import annotations

from src.models.ingestion import (
    Chunk,
    DocumentMeta,
    DocumentRecord,
    EmbeddingBatchResult,
    EmbeddingRecord,
    IngestionProgressEvent,
    IngestionStage,
    IngestionSummary,
    ProcessingMethod,
)

__all__ = [
    "Chunk",
    "DocumentMeta",
    "DocumentRecord",
    "EmbeddingBatchResult",
    "EmbeddingRecord",
    "IngestionProgressEvent",
    "IngestionStage",
    "IngestionSummary",
    "ProcessingMethod",
]
