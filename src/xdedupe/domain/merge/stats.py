"""Statistics accumulated over one merge session."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from xdedupe.domain.model import ContactId  # noqa: TC001

type FailedTuple = tuple[ContactId, tuple[ContactId, ...]]


@dataclass(frozen=True, slots=True)
class MergeStatsSummary:
    """Stats with ``errors`` collapsed to message counts and ``failed`` to a count."""

    tuples_merged: int
    contacts_merged: int
    conflicts_resolved: int
    aborted: str | None
    errors: dict[str, int]
    failed: int


@dataclass(slots=True)
class MergeStats:
    tuples_merged: int = 0
    contacts_merged: int = 0
    conflicts_resolved: int = 0
    aborted: str | None = None
    errors: list[str] = field(default_factory=list[str])
    failed: list[FailedTuple] = field(default_factory=list[FailedTuple])

    def summary(self) -> MergeStatsSummary:
        return MergeStatsSummary(
            tuples_merged=self.tuples_merged,
            contacts_merged=self.contacts_merged,
            conflicts_resolved=self.conflicts_resolved,
            aborted=self.aborted,
            errors=dict(Counter(self.errors)),
            failed=len(self.failed),
        )
