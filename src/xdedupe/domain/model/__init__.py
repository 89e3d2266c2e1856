"""Public domain model surface."""

from __future__ import annotations

from xdedupe.domain.model.candidates import (
    CandidateTuple,
    DiscoveryCriteria,
    format_member_ids,
    parse_member_ids,
)
from xdedupe.domain.model.contact import (
    DEFAULT_CONFLICT_LOCATION_TYPE,
    DEFAULT_MERGE_ACTIVITY_TYPE,
    Activity,
    Address,
    ContactId,
    MergeConflictReport,
    MergeResult,
    Note,
    RecordSnapshot,
    is_blank,
)
from xdedupe.domain.model.enums import ContactType, MergeMode
from xdedupe.domain.model.runs import (
    DEFAULT_RUN_RETENTION,
    RUN_TABLE_PREFIX,
    RunIdentifier,
)

__all__ = [  # noqa: RUF022
    # candidates
    "CandidateTuple",
    "DiscoveryCriteria",
    "format_member_ids",
    "parse_member_ids",
    # contacts
    "Activity",
    "Address",
    "ContactId",
    "MergeConflictReport",
    "MergeResult",
    "Note",
    "RecordSnapshot",
    "is_blank",
    "DEFAULT_CONFLICT_LOCATION_TYPE",
    "DEFAULT_MERGE_ACTIVITY_TYPE",
    # enums
    "ContactType",
    "MergeMode",
    # runs
    "DEFAULT_RUN_RETENTION",
    "RUN_TABLE_PREFIX",
    "RunIdentifier",
]
