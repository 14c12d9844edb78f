"""Custom exception hierarchy for ingestflow.

All application exceptions inherit from :class:`IngestFlowError`, which
carries an optional ``provider_name`` so error handlers can identify which
external collaborator (e.g. "openai", "chromadb", "sqlite") caused the
failure.

The hierarchy is organized by pipeline stage:

    IngestFlowError  (base -- catch-all for any ingestflow error)
    +-- ExtractionError              (file -> raw text)
    |   +-- UnsupportedTypeError     (no extractor for this file type)
    |   +-- ExtractionFailedError    (missing file or parser blew up)
    +-- EmbeddingError               (text -> vector provider failure)
    |   +-- RateLimitError           (provider rate-limit exceeded)
    +-- VectorStoreError             (vector index failure)
    |   +-- CollectionMissingError   (namespace does not exist)
    |   +-- SchemaMismatchError      (vector size != collection size)
    +-- DocumentStoreError           (relational store failure)
    |   +-- ConstraintViolationError (duplicate id, NOT NULL, ...)
    |   +-- StoreConnectionError     (database unreachable / locked)
    +-- PipelineError                (orchestration / run aborted)
    +-- ConfigurationError           (startup / missing config)

The ingestion pipeline treats these very differently: an
``EmbeddingError`` only skips one batch, a ``VectorStoreError`` only
produces a warning, but ``ExtractionError`` and ``DocumentStoreError``
end the run with an ``error`` event.
"""


class IngestFlowError(Exception):
    """Base exception for all ingestflow errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        # Private attributes behind read-only properties: handlers may
        # inspect an error but never rewrite it on the way up.
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        # Provider prefix makes log lines easy to scan, e.g. "[chromadb] ..."
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Extraction errors
# ---------------------------------------------------------------------------

class ExtractionError(IngestFlowError):
    """Raised when text cannot be obtained from a source file."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedTypeError(ExtractionError):
    """Raised when no extractor handles the file's extension."""

    def __init__(
        self,
        message: str = "Unsupported file type",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionFailedError(ExtractionError):
    """Raised when the file is missing or its parser raises."""

    def __init__(
        self,
        message: str = "Failed to extract text from file",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Embedding errors
# ---------------------------------------------------------------------------

class EmbeddingError(IngestFlowError):
    """Raised when the embedding provider fails to return a vector."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(EmbeddingError):
    """Raised when an embedding API rate limit is exceeded.

    The batch embedding generator absorbs this like any other embedding
    failure; the inter-batch delay is what keeps it rare.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Vector index errors
# ---------------------------------------------------------------------------

class VectorStoreError(IngestFlowError):
    """Raised when a vector index operation fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CollectionMissingError(VectorStoreError):
    """Raised when writing to a collection that has not been created."""

    def __init__(
        self,
        message: str = "Vector collection does not exist",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SchemaMismatchError(VectorStoreError):
    """Raised when vector dimensionality differs from the collection's."""

    def __init__(
        self,
        message: str = "Vector dimension does not match collection",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Relational store errors
# ---------------------------------------------------------------------------

class DocumentStoreError(IngestFlowError):
    """Raised when the relational document store fails."""

    def __init__(
        self,
        message: str = "Document store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConstraintViolationError(DocumentStoreError):
    """Raised when an insert violates a table constraint."""

    def __init__(
        self,
        message: str = "Document store constraint violated",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreConnectionError(DocumentStoreError):
    """Raised when the document database cannot be opened or queried."""

    def __init__(
        self,
        message: str = "Document store is unreachable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(IngestFlowError):
    """Raised when an ingestion run cannot continue."""

    def __init__(
        self,
        message: str = "Ingestion pipeline failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(IngestFlowError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
