"""Dedupe profiles: one stored discovery and merge configuration."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from xdedupe.domain.model import ContactType

from .errors import ConfigurationError

if TYPE_CHECKING:
    from pathlib import Path


class ProfileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class StrategySpec(ProfileModel):
    """A registered finder or filter name plus its keyword parameters."""

    name: str
    params: dict[str, Any] = Field(default_factory=dict)


class DedupeProfile(ProfileModel):
    name: str
    description: str | None = None
    contact_type: ContactType | None = None
    finders: list[StrategySpec] = Field(min_length=1)
    filters: list[StrategySpec] = Field(default_factory=list)
    resolvers: list[str] = Field(default_factory=list)
    pickers: list[str] = Field(default_factory=list)
    force_merge: bool = False
    merge_log: str | None = None


def load_profile(path: Path) -> DedupeProfile:
    """Read and validate a JSON profile; any problem raises ``ConfigurationError``."""

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot read profile {path}: {exc}") from exc
    try:
        return DedupeProfile.model_validate(payload)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid profile {path}: {exc}") from exc
