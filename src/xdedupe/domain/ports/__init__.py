"""Domain port definitions for adapters."""

from __future__ import annotations

from .candidates import MainRecordPicker, MergeOutcomeRecorder
from .entity_store import EntityStore
from .unit_of_work import (
    DedupeRepositories,
    DedupeUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "DedupeRepositories",
    "DedupeUnitOfWork",
    "EntityStore",
    "MainRecordPicker",
    "MergeOutcomeRecorder",
    "RepositoryCollection",
    "UnitOfWork",
]
