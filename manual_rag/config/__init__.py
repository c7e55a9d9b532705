"""Application configuration."""

from manual_rag.config.settings import Settings

__all__ = ["Settings"]
