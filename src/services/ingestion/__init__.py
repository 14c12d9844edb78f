"""Document ingestion pipeline.

Orchestrates the full pipeline: **chunk -> embed -> store**.

1. **Chunk** (chunker.py / DocumentChunker) -- boundary-aware overlapping
   windows for ordinary documents, a recursive separator split for very
   long ones.

2. **Embed** (embedding_batcher.py / BatchEmbeddingGenerator) -- paced
   fixed-size batches; a failing batch is skipped, not fatal.

3. **Store** (store_writer.py / StoreWriter) -- vector upsert first, then
   one relational document row.

The IngestionService class runs the per-document state machine and
provides the ``ingest_text`` / ``ingest_file`` entry points.
"""

from src.services.ingestion.chunker import (
    BoundaryAwareChunker,
    DocumentChunker,
    RecursiveChunker,
)
from src.services.ingestion.embedding_batcher import BatchEmbeddingGenerator
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.store_writer import StoreWriter

__all__ = [
    "BatchEmbeddingGenerator",
    "BoundaryAwareChunker",
    "DocumentChunker",
    "IngestionService",
    "RecursiveChunker",
    "StoreWriter",
]
