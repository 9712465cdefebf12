"""User configuration package."""

from .service import ConfigError, ConfigService

__all__ = ["ConfigError", "ConfigService"]
