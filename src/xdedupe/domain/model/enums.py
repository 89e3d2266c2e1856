"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ContactType(StrEnum):
    INDIVIDUAL = "Individual"
    ORGANIZATION = "Organization"
    HOUSEHOLD = "Household"


class MergeMode(StrEnum):
    """How the store's merge primitive treats conflicting fields."""

    SAFE = "safe"
    AGGRESSIVE = "aggressive"
