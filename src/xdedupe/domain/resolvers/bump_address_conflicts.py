"""Move conflicting member addresses out of the way of a merge."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from xdedupe.domain.errors import EntityStoreError

from .base import Resolver

if TYPE_CHECKING:
    from collections.abc import Sequence

    from xdedupe.domain.model import Address, ContactId

log = logging.getLogger(__name__)


class BumpAddressConflicts(Resolver):
    """Re-type same-type member addresses that differ from the survivor's to ``conflict``.

    Identical same-type addresses on the member side are deleted instead, and
    addresses already parked under the conflict type are first moved back to a
    regular type when the contact holds a matching regular address. A store
    error on one address becomes an ``ERROR:`` merge detail and the remaining
    addresses are still handled.
    """

    name = "Bump Address Conflicts"
    help = (
        "If there are conflicting addresses with the same type, the address will be "
        "changed to the (new) location type 'conflict'"
    )

    def resolve(self, survivor_id: ContactId, member_ids: Sequence[ContactId]) -> bool:
        changes_made = self._reconcile_parked_addresses(survivor_id)
        survivor_addresses = self.store.get_addresses(survivor_id)

        for member_id in member_ids:
            changes_made |= self._reconcile_parked_addresses(member_id)
            for member_address in self.store.get_addresses(member_id):
                same_type = next(
                    (
                        address
                        for address in survivor_addresses
                        if address.location_type == member_address.location_type
                    ),
                    None,
                )
                if same_type is None:
                    continue
                if member_address.matches(same_type):
                    changes_made |= self._drop_duplicate(member_address)
                else:
                    changes_made |= self._bump(member_address)

        return changes_made

    def _reconcile_parked_addresses(self, contact_id: ContactId) -> bool:
        conflict_type = self.context.conflict_location_type
        addresses = self.store.get_addresses(contact_id)
        changed = False
        for address in addresses:
            if address.location_type != conflict_type:
                continue
            regular = next(
                (
                    candidate
                    for candidate in addresses
                    if candidate.location_type != conflict_type and candidate.matches(address)
                ),
                None,
            )
            if regular is None:
                continue
            self.store.update_address(replace(address, location_type=regular.location_type))
            self.add_merge_detail(
                f"Updated conflict address [{address.id}] to match existing address type"
            )
            self.changed(contact_id)
            changed = True
        return changed

    def _drop_duplicate(self, address: Address) -> bool:
        if address.id is None:
            return False
        try:
            self.store.delete_address(address.id)
        except EntityStoreError as exc:
            self._report_failure(
                f"Failed to remove duplicate address [{address.id}] "
                f"from contact [{address.contact_id}]",
                exc,
            )
            return False
        self.add_merge_detail(
            f"Removed duplicate address [{address.id}] from contact [{address.contact_id}] "
            "as it was identical to main contact's address."
        )
        self.changed(address.contact_id)
        return True

    def _bump(self, address: Address) -> bool:
        try:
            self.store.update_address(
                replace(address, location_type=self.context.conflict_location_type)
            )
        except EntityStoreError as exc:
            self._report_failure(
                f"Failed to resolve address conflict for address [{address.id}] "
                f"from contact [{address.contact_id}]",
                exc,
            )
            return False
        self.add_merge_detail(
            f"Address [{address.id}] from contact [{address.contact_id}] was bumped to "
            f"'{self.context.conflict_location_type}' location type (preserved primary status: "
            f"{'yes' if address.is_primary else 'no'})."
        )
        self.changed(address.contact_id)
        return True

    def _report_failure(self, what: str, exc: EntityStoreError) -> None:
        # one failed address must not stop the remaining ones
        log.warning("%s: %s", what, exc)
        self.add_merge_detail(f"ERROR: {what}: {exc}")
