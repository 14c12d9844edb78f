"""Unit tests for ingestion models, error hierarchy, text helpers and config loading."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from src.config.loader import load_config
from src.config.settings import Settings
from src.models.ingestion import (
    Chunk,
    DocumentMeta,
    DocumentRecord,
    IngestionProgressEvent,
    IngestionStage,
)
from src.utils.errors import (
    CollectionMissingError,
    ConstraintViolationError,
    DocumentStoreError,
    EmbeddingError,
    ExtractionError,
    IngestFlowError,
    RateLimitError,
    UnsupportedTypeError,
    VectorStoreError,
)
from src.utils.text import build_preview, truncate_utf8

# ======================================================================
# Models
# ======================================================================


class TestChunk:
    def test_index_must_be_below_total(self) -> None:
        with pytest.raises(ValidationError):
            Chunk(index=3, total=3, text="x", size_chars=1)

    def test_is_frozen(self) -> None:
        chunk = Chunk(index=0, total=1, text="x", size_chars=1)
        with pytest.raises(ValidationError):
            chunk.text = "y"  # type: ignore[misc]


class TestDocumentModels:
    def test_meta_allocates_unique_ids(self) -> None:
        a = DocumentMeta(filename="a.txt", file_type="txt", collection_id="c", content="")
        b = DocumentMeta(filename="a.txt", file_type="txt", collection_id="c", content="")
        assert a.id != b.id

    def test_record_preview_limited_to_500(self) -> None:
        now = datetime.now(tz=timezone.utc)
        with pytest.raises(ValidationError):
            DocumentRecord(
                id="d",
                filename="a.txt",
                file_type="txt",
                collection_id="c",
                content_preview="x" * 501,
                content="x" * 501,
                created_at=now,
                updated_at=now,
            )


class TestProgressEvent:
    def test_percent_bounds(self) -> None:
        with pytest.raises(ValidationError):
            IngestionProgressEvent(stage=IngestionStage.EMBEDDING, message="m", progress_percent=101)

    @pytest.mark.parametrize(
        ("stage", "terminal"),
        [
            (IngestionStage.COMPLETE, True),
            (IngestionStage.ERROR, True),
            (IngestionStage.WARNING, False),
            (IngestionStage.STORING, False),
        ],
    )
    def test_terminal_stages(self, stage: IngestionStage, terminal: bool) -> None:
        assert stage.is_terminal is terminal


# ======================================================================
# Errors
# ======================================================================


class TestErrorHierarchy:
    def test_str_prefixes_provider(self) -> None:
        assert str(EmbeddingError(message="boom", provider_name="openai")) == "[openai] boom"
        assert str(EmbeddingError(message="boom")) == "boom"

    @pytest.mark.parametrize(
        ("exc", "parent"),
        [
            (RateLimitError(), EmbeddingError),
            (UnsupportedTypeError(), ExtractionError),
            (CollectionMissingError(), VectorStoreError),
            (ConstraintViolationError(), DocumentStoreError),
        ],
    )
    def test_subclassing(self, exc: IngestFlowError, parent: type) -> None:
        assert isinstance(exc, parent)
        assert isinstance(exc, IngestFlowError)
        assert exc.message


# ======================================================================
# Text helpers
# ======================================================================


class TestTextHelpers:
    def test_preview(self) -> None:
        assert build_preview("a" * 600) == "a" * 500
        assert build_preview("short") == "short"

    def test_truncate_keeps_short_text(self) -> None:
        assert truncate_utf8("hello", max_bytes=10) == "hello"

    def test_truncate_never_splits_multibyte_chars(self) -> None:
        text = "€" * 10  # 3 bytes each

        result = truncate_utf8(text, max_bytes=10)

        assert result == "€" * 3
        assert len(result.encode("utf-8")) <= 10


# ======================================================================
# Configuration
# ======================================================================


class TestConfig:
    def test_settings_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.chunk_max_size == 4000
        assert settings.chunk_overlap == 1000
        assert settings.recursive_threshold == 10000
        assert settings.embed_batch_size == 5
        assert settings.embed_batch_delay_ms == 500
        assert settings.max_upload_bytes == 10 * 1024 * 1024

    def test_env_overrides_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_MAX_SIZE", "2000")

        assert Settings(_env_file=None).chunk_max_size == 2000

    def test_available_embedding_providers(self) -> None:
        settings = Settings(_env_file=None, openai_api_key="sk-x", ollama_base_url="")

        assert settings.get_available_embedding_providers() == ["openai"]

    def test_load_config_merges_settings_over_yaml(self, project_root: Path) -> None:
        settings = Settings(_env_file=None, chunk_overlap=250)

        config = load_config(str(project_root / "config" / "config.yaml"), settings=settings)

        assert config["app"]["name"] == "ingestflow"
        assert config["chunking"]["overlap"] == 250
        assert config["chunking"]["separators"][0] == "\n\n"
        assert config["progress"]["retention_seconds"] == 600
        assert config["uploads"]["extensions"][0] == ".txt"

    def test_load_config_missing_file(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "nope.yaml"), settings=Settings(_env_file=None))

        assert config["batching"]["batch_size"] == 5
        assert config["uploads"]["max_bytes"] == 10 * 1024 * 1024
