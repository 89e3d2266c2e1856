"""Configuration error definitions."""

from __future__ import annotations

from xdedupe.domain.errors import XdedupeError


class ConfigurationError(XdedupeError, RuntimeError):
    """Raised when configuration values or profiles are invalid."""
