"""Public interface definitions for all external collaborators.

Every external service in the ingestion pipeline is accessed exclusively
through the abstract base classes defined in this package.  Concrete
adapters live in ``src/providers/`` and are wired together in
``src/main.py`` at startup.

CONCRETE PROVIDER MAP:
    Interface                  ->  Concrete implementations (in src/providers/)
    -------------------------------------------------------------------------
    IEmbeddingProvider         ->  OpenAIEmbeddingProvider, NomicEmbeddingProvider
    IVectorStoreProvider       ->  ChromaDBProvider
    IDocumentStore             ->  SQLiteDocumentStore
    ITextExtractor             ->  TextExtractor
    ILLMProvider               ->  OpenAILLMProvider, AnthropicLLMProvider
"""

from src.interfaces.document_store import IDocumentStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.text_extractor import ExtractedText, ITextExtractor
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ExtractedText",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "ITextExtractor",
    "IVectorStoreProvider",
]
