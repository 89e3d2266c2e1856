"""Port for the relational store that owns contacts and performs merges."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from contextlib import AbstractContextManager
    from datetime import datetime

    from xdedupe.domain.model import (
        Activity,
        Address,
        ContactId,
        MergeConflictReport,
        MergeMode,
        MergeResult,
        Note,
        RecordSnapshot,
    )


@runtime_checkable
class EntityStore(Protocol):
    """Contact storage, merge primitive and sub-record CRUD.

    Implementations raise :class:`xdedupe.domain.errors.EntityStoreError` for
    storage failures so callers never depend on a driver's exception types.
    """

    def load_contacts(
        self,
        contact_ids: Collection[ContactId],
        attributes: Sequence[str],
    ) -> dict[ContactId, RecordSnapshot]:
        """Fetch the given contacts in one call, projected to ``attributes``."""
        ...

    def get_live_contact(self, contact_id: ContactId) -> RecordSnapshot | None:
        """Return the contact if it exists and is not flagged deleted."""
        ...

    def transaction(self) -> AbstractContextManager[None]:
        """Scope whose mutations commit together or roll back together."""
        ...

    def get_merge_conflicts(
        self,
        survivor_id: ContactId,
        member_id: ContactId,
    ) -> MergeConflictReport: ...

    def merge_contacts(
        self,
        survivor_id: ContactId,
        member_id: ContactId,
        *,
        mode: MergeMode,
    ) -> MergeResult: ...

    def get_addresses(self, contact_id: ContactId) -> list[Address]: ...

    def update_address(self, address: Address) -> None: ...

    def delete_address(self, address_id: int) -> None: ...

    def count_activities(self, contact_ids: Collection[ContactId]) -> dict[ContactId, int]: ...

    def find_latest_activity(
        self,
        contact_id: ContactId,
        activity_type: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> Activity | None: ...

    def update_activity_details(self, activity_id: int, details: str) -> None: ...

    def create_note(self, contact_id: ContactId, *, subject: str, note: str) -> Note: ...

    def add_exclusions(self, contact_ids: Collection[ContactId]) -> int:
        """Record every pair of ``contact_ids`` as a known non-duplicate."""
        ...
