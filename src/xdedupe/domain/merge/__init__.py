"""Merge session: engine, cache, statistics and audit log."""

from __future__ import annotations

from .audit import MergeLog
from .cache import BASELINE_ATTRIBUTES, RecordCache, required_attributes
from .engine import DEFAULT_MERGE_ACTIVITY_WINDOW, MergeEngine
from .stats import FailedTuple, MergeStats, MergeStatsSummary

__all__ = [
    "BASELINE_ATTRIBUTES",
    "DEFAULT_MERGE_ACTIVITY_WINDOW",
    "FailedTuple",
    "MergeEngine",
    "MergeLog",
    "MergeStats",
    "MergeStatsSummary",
    "RecordCache",
    "required_attributes",
]
