"""Configuration package: ``Settings``, ``load_config`` and a shared ``settings`` instance."""

from src.config.loader import load_config
from src.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "load_config", "settings"]
