"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers win):

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local developer overrides
  3. Environment vars    -- deployment overrides

``load_config`` reads the YAML file, then deep-merges the values resolved
by :class:`~src.config.settings.Settings` on top.
"""

from pathlib import Path

import yaml

from src.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is
              treated as empty.
        settings: Pre-built settings; a fresh ``Settings()`` is read
                  from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "embedding": {
            "openai_base_url": settings.openai_base_url,
            "openai_model": settings.openai_embedding_model,
            "ollama_base_url": settings.ollama_base_url,
            "available_providers": settings.get_available_embedding_providers(),
        },
        "chunking": {
            "max_size": settings.chunk_max_size,
            "overlap": settings.chunk_overlap,
            "recursive_threshold": settings.recursive_threshold,
        },
        "batching": {
            "batch_size": settings.embed_batch_size,
            "delay_ms": settings.embed_batch_delay_ms,
        },
        "storage": {
            "chromadb_persist_dir": settings.chromadb_persist_dir,
            "documents_db_path": settings.documents_db_path,
        },
        "uploads": {
            "max_bytes": settings.max_upload_bytes,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
