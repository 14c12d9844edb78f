"""ingestflow FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.

Also exposes :func:`build_components` so the CLI assembles exactly the same
providers as the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.api.websocket import websocket_progress
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.pipeline.progress_tracker import (
    DEFAULT_MAX_SESSIONS,
    DEFAULT_RETENTION_SECONDS,
    ProgressTracker,
)
from src.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.extraction.text_extractor import TextExtractor
from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.ingestion.chunker import RECURSIVE_SEPARATORS, DocumentChunker
from src.services.ingestion.embedding_batcher import BatchEmbeddingGenerator
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.store_writer import StoreWriter
from src.utils.logging import configure_logging, get_logger

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=config.get("logging", {}).get("level", settings.log_level),
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the embedding provider.

    Priority: OpenAI/OpenAI-compatible (if API key set) -> Nomic/Ollama.
    Nomic is returned even when Ollama is unreachable; its failures then
    surface as skipped batches instead of blocking startup.
    """
    if app_settings.openai_api_key:
        provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider

    provider = NomicEmbeddingProvider(settings=app_settings)
    if not provider.is_available():
        _logger.warning(
            "embedding_provider_unavailable",
            provider=provider.get_provider_name(),
            base_url=app_settings.ollama_base_url,
        )
    return provider


def _build_vision_provider(app_settings: Settings) -> ILLMProvider | None:
    """Select the image-description provider.

    Priority: OpenAI -> Anthropic.  Returns ``None`` when neither key is
    configured; images are then ingested under their filename only.
    """
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    return None


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_progress_tracker(app_config: dict[str, Any]) -> ProgressTracker:
    """Build the session tracker with the ``progress`` retention settings."""
    progress_cfg = app_config.get("progress", {})
    return ProgressTracker(
        retention_seconds=float(
            progress_cfg.get("retention_seconds", DEFAULT_RETENTION_SECONDS)
        ),
        max_sessions=int(progress_cfg.get("max_sessions", DEFAULT_MAX_SESSIONS)),
    )


def build_components(
    app_settings: Settings,
    progress_tracker: ProgressTracker | None = None,
    app_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance.

    *app_config* is the merged dict from :func:`load_config`; it is loaded
    from ``config/config.yaml`` when omitted.  Returns a flat dict of named
    components; the web app stores them on ``app.state`` and the CLI uses
    them directly.
    """
    if app_config is None:
        app_config = load_config(settings=app_settings)
    chunking_cfg = app_config.get("chunking", {})
    batching_cfg = app_config.get("batching", {})
    uploads_cfg = app_config.get("uploads", {})

    embedding_provider = _build_embedding_provider(app_settings)
    vision_provider = _build_vision_provider(app_settings)

    vector_store = ChromaDBProvider(persist_directory=app_settings.chromadb_persist_dir)
    document_store = SQLiteDocumentStore(db_path=app_settings.documents_db_path)
    extractor = TextExtractor(
        vision_provider=vision_provider,
        extensions=uploads_cfg.get("extensions"),
    )

    chunker = DocumentChunker(
        max_size=chunking_cfg.get("max_size", app_settings.chunk_max_size),
        overlap=chunking_cfg.get("overlap", app_settings.chunk_overlap),
        recursive_threshold=chunking_cfg.get(
            "recursive_threshold", app_settings.recursive_threshold
        ),
        separators=tuple(chunking_cfg.get("separators", RECURSIVE_SEPARATORS)),
    )
    embedder = BatchEmbeddingGenerator(
        embedding_provider,
        batch_size=batching_cfg.get("batch_size", app_settings.embed_batch_size),
        batch_delay_ms=batching_cfg.get("delay_ms", app_settings.embed_batch_delay_ms),
    )
    store_writer = StoreWriter(
        vector_store=vector_store,
        document_store=document_store,
        embedding_provider=embedding_provider,
    )
    ingestion_service = IngestionService(
        chunker=chunker,
        embedder=embedder,
        store_writer=store_writer,
        document_store=document_store,
        vector_store=vector_store,
        extractor=extractor,
        progress_tracker=progress_tracker,
    )

    provider_registry: dict[str, Any] = {
        "embedding": embedding_provider.is_available(),
        "embedding_name": embedding_provider.get_provider_name(),
        "vector_store": vector_store.is_available(),
        "document_store": document_store.get_provider_name(),
        "vision": vision_provider.get_provider_name() if vision_provider else None,
    }

    return {
        "embedding_provider": embedding_provider,
        "vision_provider": vision_provider,
        "vector_store": vector_store,
        "document_store": document_store,
        "extractor": extractor,
        "chunker": chunker,
        "ingestion_service": ingestion_service,
        "progress_tracker": progress_tracker,
        "provider_registry": provider_registry,
        "max_upload_bytes": uploads_cfg.get("max_bytes", app_settings.max_upload_bytes),
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup."""
    components = build_components(
        settings,
        progress_tracker=build_progress_tracker(config),
        app_config=config,
    )

    for key, value in components.items():
        setattr(application.state, key, value)
    application.state.version = __version__

    await application.state.document_store.initialize()

    _logger.info(
        "app_startup",
        app_name=config.get("app", {}).get("name", "ingestflow"),
        version=__version__,
        environment=settings.app_env,
        embedding=components["provider_registry"]["embedding_name"],
        vision=components["provider_registry"]["vision"],
    )

    yield

    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(lifespan: Any = _lifespan) -> FastAPI:
    """Build and configure the FastAPI application.

    Parameters
    ----------
    lifespan:
        Startup/shutdown context manager; tests pass their own to inject
        fake providers.
    """
    application = FastAPI(
        title=f"{config.get('app', {}).get('name', 'ingestflow')} API",
        version=__version__,
        description=(
            "Ingest notes and uploaded files: extract text, split it into "
            "overlapping chunks, embed each chunk and store the vectors "
            "alongside document metadata, with live progress over WebSocket."
        ),
        lifespan=lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    # -- WebSocket --
    @application.websocket("/ws/progress/{session_id}")
    async def ws_progress(websocket: WebSocket, session_id: str) -> None:
        await websocket_progress(websocket, session_id)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
