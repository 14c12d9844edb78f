"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into embedding vectors.
Implementations may wrap OpenAI ``text-embedding-3-small``, Nomic
``nomic-embed-text`` (local via Ollama), or any other embedding backend.
The ingestion pipeline only ever sees this interface, so providers are
interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider -- text-embedding-3-small (requires API key)
#   NomicEmbeddingProvider  -- nomic-embed-text via Ollama (local)
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the ingestion pipeline.

    Embeddings are handed to
    :class:`~src.interfaces.vector_store_provider.IVectorStoreProvider`
    for storage.  Providers are fallible and rate-limited; the batch
    embedding generator isolates their failures per batch.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for several texts in one call.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        src.utils.errors.RateLimitError
            If the provider throttled the request.
        src.utils.errors.EmbeddingError
            If the embedding API call fails for any other reason.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        The ingestion pipeline calls this once per chunk, sequentially,
        so a provider's rate limit sees one request at a time.

        Parameters
        ----------
        text:
            The text string to embed.

        Returns
        -------
        list[float]
            The embedding vector.

        Raises
        ------
        src.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    async def resolve_dimension(self) -> int:
        """Return the vector dimensionality, probing the provider if needed.

        Implementations memoize the answer on the instance and guard the
        probe with an :class:`asyncio.Lock` so concurrent runs trigger at
        most one probe request.
        """

    @abstractmethod
    def get_dimension(self) -> int | None:
        """Return the known dimensionality, or ``None`` before it is resolved.

        Example values: ``1536`` (OpenAI ``text-embedding-3-small``),
        ``768`` (Nomic ``nomic-embed-text``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable."""
