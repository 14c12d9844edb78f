"""Unit tests for factory functions in src/main.py.

Tests the embedding and vision provider selection, build_components
assembly, and the create_app factory, with the Ollama reachability probe
patched so no real network calls or API keys are required.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest
from fastapi import FastAPI

from src.config.settings import Settings

_HTTPX_GET = "src.providers.embedding.nomic_embedding_provider.httpx.get"


# ======================================================================
# Shared helpers
# ======================================================================


def _settings(tmp_path: Path, **overrides) -> Settings:
    """Build Settings with every store under *tmp_path* and no API keys."""
    defaults = {
        "_env_file": None,
        "openai_api_key": "",
        "openai_base_url": "",
        "openai_embedding_model": "",
        "openai_vision_model": "",
        "anthropic_api_key": "",
        "ollama_base_url": "http://localhost:11434",
        "chromadb_persist_dir": str(tmp_path / "chroma"),
        "documents_db_path": str(tmp_path / "documents.db"),
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


# ======================================================================
# _build_embedding_provider
# ======================================================================


class TestBuildEmbeddingProvider:
    def test_openai_when_key_set(self, tmp_path: Path) -> None:
        from src.main import _build_embedding_provider

        provider = _build_embedding_provider(_settings(tmp_path, openai_api_key="sk-test"))

        assert provider.get_provider_name() == "openai_embedding"

    def test_falls_back_to_nomic(self, tmp_path: Path) -> None:
        from src.main import _build_embedding_provider

        with patch(_HTTPX_GET, return_value=MagicMock(status_code=200)):
            provider = _build_embedding_provider(_settings(tmp_path))

        assert provider.get_provider_name() == "nomic_embedding"

    def test_nomic_returned_even_when_unreachable(self, tmp_path: Path) -> None:
        from src.main import _build_embedding_provider

        with patch(_HTTPX_GET, side_effect=httpx.ConnectError("refused")):
            provider = _build_embedding_provider(_settings(tmp_path))

        assert provider.get_provider_name() == "nomic_embedding"


# ======================================================================
# _build_vision_provider
# ======================================================================


class TestBuildVisionProvider:
    def test_openai_priority(self, tmp_path: Path) -> None:
        from src.main import _build_vision_provider

        provider = _build_vision_provider(
            _settings(tmp_path, openai_api_key="sk-test", anthropic_api_key="sk-ant")
        )

        assert provider is not None
        assert provider.get_provider_name() == "openai"

    def test_anthropic_second(self, tmp_path: Path) -> None:
        from src.main import _build_vision_provider

        provider = _build_vision_provider(_settings(tmp_path, anthropic_api_key="sk-ant"))

        assert provider is not None
        assert provider.get_provider_name() == "anthropic"

    def test_none_without_keys(self, tmp_path: Path) -> None:
        from src.main import _build_vision_provider

        assert _build_vision_provider(_settings(tmp_path)) is None


# ======================================================================
# build_components / create_app
# ======================================================================


class TestBuildComponents:
    @pytest.fixture()
    def components(self, tmp_path: Path) -> dict:
        from src.main import build_components
        from src.pipeline.progress_tracker import ProgressTracker

        with patch(_HTTPX_GET, side_effect=httpx.ConnectError("refused")):
            return build_components(
                _settings(tmp_path, max_upload_bytes=1024),
                progress_tracker=ProgressTracker(),
            )

    def test_all_components_present(self, components: dict) -> None:
        expected = {
            "embedding_provider",
            "vision_provider",
            "vector_store",
            "document_store",
            "extractor",
            "ingestion_service",
            "progress_tracker",
            "provider_registry",
            "max_upload_bytes",
        }
        assert expected <= set(components)
        assert components["max_upload_bytes"] == 1024

    def test_provider_registry(self, components: dict) -> None:
        registry = components["provider_registry"]

        assert registry["embedding"] is False
        assert registry["embedding_name"] == "nomic_embedding"
        assert registry["vector_store"] is True
        assert registry["document_store"] == "sqlite"
        assert registry["vision"] is None

    @pytest.mark.asyncio
    async def test_service_ingests_through_real_stores(self, components: dict) -> None:
        from unittest.mock import AsyncMock

        provider = components["embedding_provider"]
        provider.embed_single = AsyncMock(return_value=[0.1] * 768)
        await components["document_store"].initialize()

        summary = await components["ingestion_service"].ingest_text(
            "note.txt", "Hello from the factory test.", "factory"
        )

        assert summary.chunks_stored == 1
        stored = await components["document_store"].get_document(summary.document.id)
        assert stored is not None
        assert stored.first_point_id is not None


class TestConfigDrivenComponents:
    def test_yaml_values_reach_components(self, tmp_path: Path) -> None:
        from src.main import build_components

        app_config = {
            "chunking": {
                "max_size": 10,
                "overlap": 2,
                "recursive_threshold": 5,
                "separators": ["|", ""],
            },
            "batching": {"batch_size": 2, "delay_ms": 0},
            "uploads": {"max_bytes": 2048, "extensions": [".txt", ".md"]},
        }

        with patch(_HTTPX_GET, side_effect=httpx.ConnectError("refused")):
            components = build_components(_settings(tmp_path), app_config=app_config)

        assert components["max_upload_bytes"] == 2048
        assert components["extractor"].supported_extensions() == frozenset({".txt", ".md"})
        chunks, _ = components["chunker"].chunk("aaaa|bbbb|cccc")
        assert [c.text for c in chunks] == ["aaaa|bbbb", "cccc"]

    def test_defaults_loaded_from_config_file(self, tmp_path: Path) -> None:
        from src.main import build_components

        with patch(_HTTPX_GET, side_effect=httpx.ConnectError("refused")):
            components = build_components(_settings(tmp_path, max_upload_bytes=4096))

        assert components["max_upload_bytes"] == 4096
        assert ".pdf" in components["extractor"].supported_extensions()

    @pytest.mark.asyncio
    async def test_progress_tracker_from_config(self) -> None:
        from src.main import build_progress_tracker
        from src.models.ingestion import IngestionProgressEvent, IngestionStage

        tracker = build_progress_tracker({"progress": {"max_sessions": 3}})
        done = IngestionProgressEvent(
            stage=IngestionStage.COMPLETE, message="done", progress_percent=100.0
        )
        for i in range(5):
            await tracker.publish(f"s{i}", done)

        assert tracker.session_count == 3


class TestCreateApp:
    def test_routes_registered(self) -> None:
        from src.main import create_app

        app = create_app()
        paths = {route.path for route in app.routes}

        assert isinstance(app, FastAPI)
        assert "/api/v1/collections/{collection_id}/documents/text" in paths
        assert "/api/v1/health" in paths
        assert "/ws/progress/{session_id}" in paths
