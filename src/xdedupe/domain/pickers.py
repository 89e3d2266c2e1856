"""Main-record pickers: choose which member of a tuple survives the merge."""

from __future__ import annotations

from typing import TYPE_CHECKING

from xdedupe.domain.registry import Registry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from xdedupe.domain.model import ContactId
    from xdedupe.domain.ports import EntityStore, MainRecordPicker


class LowestIdPicker:
    name = "Oldest contact"

    def select_main(self, contact_ids: Sequence[ContactId]) -> ContactId | None:
        return min(contact_ids, default=None)


class HighestIdPicker:
    name = "Newest contact"

    def select_main(self, contact_ids: Sequence[ContactId]) -> ContactId | None:
        return max(contact_ids, default=None)


class MostActivitiesPicker:
    """Prefer the contact with the most activities; abstain on a tie for first place."""

    name = "Most activities"

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def select_main(self, contact_ids: Sequence[ContactId]) -> ContactId | None:
        if not contact_ids:
            return None
        counts = self._store.count_activities(contact_ids)
        ranked = sorted(contact_ids, key=lambda contact_id: counts.get(contact_id, 0), reverse=True)
        if len(ranked) > 1 and counts.get(ranked[0], 0) == counts.get(ranked[1], 0):
            return None
        return ranked[0]


type PickerFactory = Callable[[EntityStore], MainRecordPicker]

PICKERS: Registry[PickerFactory] = Registry("picker")
PICKERS.register("lowest_id", lambda _store: LowestIdPicker())
PICKERS.register("highest_id", lambda _store: HighestIdPicker())
PICKERS.register("most_activities", MostActivitiesPicker)


def build_pickers(names: Iterable[str], store: EntityStore) -> list[MainRecordPicker]:
    """Instantiate pickers in the given order; unknown names raise ``UnknownStrategyError``."""

    return [PICKERS.get(name)(store) for name in names]
