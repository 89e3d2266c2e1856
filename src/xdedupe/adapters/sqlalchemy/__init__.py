"""SQLAlchemy adapter package for xdedupe."""

from __future__ import annotations

from .mappings import create_all_tables, metadata
from .entity_store import SqlAlchemyEntityStore  # noqa: I001
from .strategies import (
    FILTERS,
    FINDERS,
    DiscoveryQuery,
    FilterStrategy,
    MatchStrategy,
    build_filters,
    build_finders,
)
from .candidate_set import CandidateSet, ReapResult, reap_stale_runs
from .unit_of_work import SqlAlchemyDedupeUnitOfWork, shutdown, startup

__all__ = [
    "FILTERS",
    "FINDERS",
    "CandidateSet",
    "DiscoveryQuery",
    "FilterStrategy",
    "MatchStrategy",
    "ReapResult",
    "SqlAlchemyDedupeUnitOfWork",
    "SqlAlchemyEntityStore",
    "build_filters",
    "build_finders",
    "create_all_tables",
    "metadata",
    "reap_stale_runs",
    "shutdown",
    "startup",
]
