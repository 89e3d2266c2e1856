"""Candidate tuples produced by a discovery run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .contact import ContactId
    from .enums import ContactType


@dataclass(frozen=True, slots=True)
class CandidateTuple:
    """One cluster of duplicate contacts.

    ``member_ids`` is ascending and contains the survivor. The stored survivor is
    always the lowest id; main-record pickers may choose differently when paging.
    ``member_count`` is the count stored alongside the ids; left at 0 it is
    taken from ``member_ids``.
    """

    survivor_id: ContactId
    member_ids: tuple[ContactId, ...]
    merged_count: int | None = None
    member_count: int = 0

    def __post_init__(self) -> None:
        if self.survivor_id not in self.member_ids:
            raise ValueError(
                f"Survivor {self.survivor_id} is not a member of {list(self.member_ids)}"
            )
        if len(set(self.member_ids)) != len(self.member_ids):
            raise ValueError(f"Duplicate member ids in {list(self.member_ids)}")
        if self.member_count == 0:
            object.__setattr__(self, "member_count", len(self.member_ids))
        elif self.member_count != len(self.member_ids):
            raise ValueError(
                f"Tuple [{self.survivor_id}] stores member_count {self.member_count} "
                f"for {len(self.member_ids)} ids"
            )

    @classmethod
    def from_member_ids(
        cls,
        member_ids: Iterable[ContactId],
        *,
        merged_count: int | None = None,
    ) -> CandidateTuple:
        ordered = tuple(sorted(set(member_ids)))
        if not ordered:
            raise ValueError("A candidate tuple needs at least one member")
        return cls(survivor_id=ordered[0], member_ids=ordered, merged_count=merged_count)

    @property
    def is_merged(self) -> bool:
        return self.merged_count is not None

    def others(self, main_id: ContactId) -> list[ContactId]:
        """Return every member except ``main_id``."""

        return [member_id for member_id in self.member_ids if member_id != main_id]


@dataclass(frozen=True, slots=True)
class DiscoveryCriteria:
    """Base restrictions applied to every discovery query."""

    contact_type: ContactType | None = None


def parse_member_ids(value: str) -> tuple[ContactId, ...]:
    """Parse a comma separated id list as stored in a run table."""

    return tuple(sorted({int(part) for part in value.split(",") if part.strip()}))


def format_member_ids(member_ids: Iterable[ContactId]) -> str:
    return ",".join(str(member_id) for member_id in sorted(set(member_ids)))
