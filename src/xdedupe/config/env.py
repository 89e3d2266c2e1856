"""Environment variable access shared by the config loaders."""

from __future__ import annotations

import os


def optional_env_var(name: str) -> str | None:
    """Return a stripped environment variable, treating blank values as unset."""

    value = os.getenv(name, "").strip()
    return value or None
