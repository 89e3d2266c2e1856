"""Run-scoped cache of contact snapshots."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

    from xdedupe.domain.model import ContactId, RecordSnapshot
    from xdedupe.domain.ports import EntityStore

log = logging.getLogger(__name__)

BASELINE_ATTRIBUTES: Final[tuple[str, ...]] = ("is_deleted", "contact_type")


def required_attributes(*attribute_lists: Iterable[str]) -> tuple[str, ...]:
    """Union of the baseline projection and every given list, in first-seen order."""

    merged: dict[str, None] = dict.fromkeys(BASELINE_ATTRIBUTES)
    for attributes in attribute_lists:
        merged.update(dict.fromkeys(attributes))
    return tuple(merged)


class RecordCache:
    """Snapshots of contacts loaded with a fixed attribute projection.

    There is no change notification: whoever mutates a contact must call
    :meth:`invalidate` right after, so the next :meth:`get` reads it again.
    """

    def __init__(self, store: EntityStore, attributes: Iterable[str] = ()) -> None:
        self._store = store
        self.attributes = required_attributes(attributes)
        self._snapshots: dict[ContactId, RecordSnapshot] = {}

    def load(self, contact_ids: Iterable[ContactId]) -> list[ContactId]:
        """Fetch the ids not cached yet in one batch; return the ids requested from the store."""

        to_load = [
            contact_id for contact_id in dict.fromkeys(contact_ids)
            if contact_id not in self._snapshots
        ]
        if to_load:
            loaded = self._store.load_contacts(to_load, self.attributes)
            self._snapshots.update(loaded)
            log.debug("Loaded %s of %s requested contacts", len(loaded), len(to_load))
        return to_load

    def get(self, contact_id: ContactId) -> RecordSnapshot | None:
        if contact_id not in self._snapshots:
            self.load([contact_id])
        return self._snapshots.get(contact_id)

    def invalidate(self, contact_id: ContactId) -> None:
        self._snapshots.pop(contact_id, None)

    def clear(self) -> None:
        self._snapshots.clear()

    def __contains__(self, contact_id: object) -> bool:
        return contact_id in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)
