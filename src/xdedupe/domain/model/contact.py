"""Contact projections and sub-records as seen by the merge pipeline."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Final

if TYPE_CHECKING:
    from datetime import datetime

type ContactId = int
type RecordSnapshot = Mapping[str, object]

DEFAULT_CONFLICT_LOCATION_TYPE: Final[str] = "conflict"
DEFAULT_MERGE_ACTIVITY_TYPE: Final[str] = "Contact Merged"


def is_blank(value: object) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


@dataclass(slots=True, kw_only=True)
class Address:
    """Postal address owned by one contact."""

    POSTAL_FIELDS: ClassVar[tuple[str, ...]] = (
        "street_address",
        "supplemental_address_1",
        "supplemental_address_2",
        "supplemental_address_3",
        "city",
        "postal_code",
        "country",
    )

    id: int | None = None
    contact_id: ContactId
    location_type: str
    is_primary: bool = False
    street_address: str | None = None
    supplemental_address_1: str | None = None
    supplemental_address_2: str | None = None
    supplemental_address_3: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None

    def matches(self, other: Address) -> bool:
        """Return whether both addresses describe the same postal location."""

        for name in self.POSTAL_FIELDS:
            if (getattr(self, name) or "") != (getattr(other, name) or ""):
                return False
        return True


@dataclass(slots=True, kw_only=True)
class Activity:
    id: int
    activity_type: str
    target_contact_id: ContactId
    subject: str | None = None
    details: str | None = None
    activity_date_time: datetime | None = None


@dataclass(slots=True, kw_only=True)
class Note:
    id: int
    contact_id: ContactId
    subject: str
    note: str
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class MergeResult:
    """Outcome reported by the store's merge primitive."""

    success: bool
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class MergeConflictReport:
    """Field-level conflicts between two contacts, grouped by entity kind.

    ``conflicts`` maps an entity kind (``contact``, ``address``, ``email``) to a
    mapping of field name to a human readable description.
    """

    conflicts: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return any(self.conflicts.values())

    def __iter__(self) -> Iterator[tuple[str, str, str]]:
        for entity, fields in self.conflicts.items():
            for field_name, description in fields.items():
                yield entity, field_name, description
