"""Defaults for discovery runs and merge sessions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from xdedupe.domain.merge import DEFAULT_MERGE_ACTIVITY_WINDOW
from xdedupe.domain.model import (
    DEFAULT_CONFLICT_LOCATION_TYPE,
    DEFAULT_MERGE_ACTIVITY_TYPE,
    DEFAULT_RUN_RETENTION,
)

from .env import optional_env_var
from .errors import ConfigurationError

_RETENTION_PATTERN = re.compile(
    r"^\s*(?P<amount>\d+)\s*(?P<unit>second|minute|hour|day|week)s?\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class DedupeConfig:
    run_retention: timedelta = DEFAULT_RUN_RETENTION
    conflict_location_type: str = DEFAULT_CONFLICT_LOCATION_TYPE
    merge_activity_type: str = DEFAULT_MERGE_ACTIVITY_TYPE
    merge_activity_window: timedelta = DEFAULT_MERGE_ACTIVITY_WINDOW
    merge_log: Path | None = None


def parse_retention(value: str) -> timedelta:
    """Parse a horizon such as ``"2 days"`` or ``"36 hours"``."""

    match = _RETENTION_PATTERN.match(value)
    if match is None:
        raise ConfigurationError(f"Invalid retention period: {value!r}")
    amount = int(match["amount"])
    unit = match["unit"].lower()
    return timedelta(**{f"{unit}s": amount})


def get_dedupe_config() -> DedupeConfig:
    retention = optional_env_var("XDEDUPE_RUN_RETENTION")
    merge_log = optional_env_var("XDEDUPE_MERGE_LOG")
    return DedupeConfig(
        run_retention=parse_retention(retention) if retention else DEFAULT_RUN_RETENTION,
        conflict_location_type=(
            optional_env_var("XDEDUPE_CONFLICT_LOCATION_TYPE") or DEFAULT_CONFLICT_LOCATION_TYPE
        ),
        merge_activity_type=(
            optional_env_var("XDEDUPE_MERGE_ACTIVITY_TYPE") or DEFAULT_MERGE_ACTIVITY_TYPE
        ),
        merge_log=Path(merge_log) if merge_log else None,
    )
