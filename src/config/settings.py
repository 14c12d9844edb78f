"""Application settings loaded from environment variables via pydantic-settings.

Values come from (highest priority first):

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. The ``.env`` file in the working directory
  3. The defaults below

Field ``chunk_max_size`` maps to env var ``CHUNK_MAX_SIZE`` and so on;
pydantic-settings matches names case-insensitively.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ingestflow application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Embedding / vision providers ===
    # Empty string = "not configured"; main.py falls through to the next
    # provider when a key is empty.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, vLLM, ...)
    openai_embedding_model: str = ""  # Defaults to text-embedding-3-small
    openai_vision_model: str = ""  # Defaults to gpt-4o-mini; used for image descriptions
    anthropic_api_key: str = ""  # Second choice for image descriptions
    anthropic_model: str = "claude-sonnet-4-20250514"
    ollama_base_url: str = "http://localhost:11434"
    ollama_embedding_model: str = "nomic-embed-text"

    # === Chunking ===
    chunk_max_size: int = 4000
    chunk_overlap: int = 1000
    recursive_threshold: int = 10000

    # === Embedding batches ===
    embed_batch_size: int = 5
    embed_batch_delay_ms: int = 500

    # === Stores ===
    chromadb_persist_dir: str = "./data/chromadb"
    documents_db_path: str = "data/documents.db"

    # === Uploads ===
    max_upload_bytes: int = 10 * 1024 * 1024

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_embedding_providers(self) -> list[str]:
        """Return the embedding backends that have enough configuration to try."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
