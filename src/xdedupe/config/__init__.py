"""Application configuration helpers."""

from __future__ import annotations

from .dedupe import DedupeConfig, get_dedupe_config, parse_retention
from .env import optional_env_var
from .errors import ConfigurationError
from .logging import configure_logging
from .profile import DedupeProfile, StrategySpec, load_profile
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "DedupeConfig",
    "DedupeProfile",
    "StorageConfig",
    "StrategySpec",
    "configure_logging",
    "get_database_config",
    "get_dedupe_config",
    "get_storage_config",
    "load_profile",
    "optional_env_var",
    "parse_retention",
]
