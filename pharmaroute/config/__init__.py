"""Configuration module -- exports Settings, load_config, and a module-level singleton."""

from pharmaroute.config.loader import load_config
from pharmaroute.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "load_config", "settings"]
