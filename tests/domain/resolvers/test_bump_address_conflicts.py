from __future__ import annotations

import pytest

from xdedupe.domain.errors import EntityStoreError
from xdedupe.domain.merge import RecordCache
from xdedupe.domain.model import Address
from xdedupe.domain.resolvers import BumpAddressConflicts, ResolverContext
from tests.support.fake_store import FakeEntityStore


class LockedAddressStore(FakeEntityStore):
    def __init__(self, locked: set[int]) -> None:
        super().__init__()
        self.locked = locked

    def update_address(self, address: Address) -> None:
        if address.id in self.locked:
            raise EntityStoreError("address is locked")
        super().update_address(address)

    def delete_address(self, address_id: int) -> None:
        if address_id in self.locked:
            raise EntityStoreError("address is locked")
        super().delete_address(address_id)


def _resolver(store: FakeEntityStore, details: list[str]) -> BumpAddressConflicts:
    cache = RecordCache(store)
    return BumpAddressConflicts(
        ResolverContext(store=store, cache=cache, add_detail=details.append)
    )


def _address(contact_id: int, location_type: str, street: str, **fields: object) -> Address:
    return Address(
        contact_id=contact_id,
        location_type=location_type,
        street_address=street,
        city="Springfield",
        **fields,  # type: ignore[arg-type]
    )


def test_differing_same_type_address_is_bumped(fake_store: FakeEntityStore) -> None:
    fake_store.add_address(_address(1, "Home", "Main Street 1"))
    bumped = fake_store.add_address(_address(2, "Home", "Elm Street 5", is_primary=True))
    details: list[str] = []

    assert _resolver(fake_store, details).resolve(1, [2]) is True

    stored = fake_store.addresses[bumped.id]  # type: ignore[index]
    assert stored.location_type == "conflict"
    assert stored.is_primary is True
    assert details == [
        f"Address [{bumped.id}] from contact [2] was bumped to 'conflict' location type "
        "(preserved primary status: yes)."
    ]


def test_identical_same_type_address_is_removed(fake_store: FakeEntityStore) -> None:
    fake_store.add_address(_address(1, "Home", "Main Street 1"))
    duplicate = fake_store.add_address(_address(2, "Home", "Main Street 1"))
    details: list[str] = []

    assert _resolver(fake_store, details).resolve(1, [2]) is True

    assert duplicate.id not in fake_store.addresses
    assert "identical to main contact's address" in details[0]


def test_other_location_types_are_left_alone(fake_store: FakeEntityStore) -> None:
    fake_store.add_address(_address(1, "Home", "Main Street 1"))
    work = fake_store.add_address(_address(2, "Work", "Office Park 3"))
    details: list[str] = []

    assert _resolver(fake_store, details).resolve(1, [2]) is False

    assert fake_store.addresses[work.id].location_type == "Work"  # type: ignore[index]
    assert details == []


def test_parked_conflict_address_returns_to_regular_type(fake_store: FakeEntityStore) -> None:
    fake_store.add_address(_address(1, "Home", "Main Street 1"))
    parked = fake_store.add_address(_address(1, "conflict", "Main Street 1"))
    details: list[str] = []

    assert _resolver(fake_store, details).resolve(1, []) is True

    assert fake_store.addresses[parked.id].location_type == "Home"  # type: ignore[index]
    assert details == [f"Updated conflict address [{parked.id}] to match existing address type"]


def test_changed_contacts_are_invalidated(fake_store: FakeEntityStore) -> None:
    fake_store.add_contact(1)
    fake_store.add_contact(2)
    fake_store.add_address(_address(1, "Home", "Main Street 1"))
    fake_store.add_address(_address(2, "Home", "Elm Street 5"))
    cache = RecordCache(fake_store)
    cache.load([1, 2])
    details: list[str] = []
    resolver = BumpAddressConflicts(
        ResolverContext(store=fake_store, cache=cache, add_detail=details.append)
    )

    resolver.resolve(1, [2])

    assert 1 in cache
    assert 2 not in cache


def test_custom_conflict_location_type(fake_store: FakeEntityStore) -> None:
    fake_store.add_address(_address(1, "Home", "Main Street 1"))
    bumped = fake_store.add_address(_address(2, "Home", "Elm Street 5"))
    context = ResolverContext(
        store=fake_store,
        cache=RecordCache(fake_store),
        add_detail=lambda _detail: None,
        conflict_location_type="Other",
    )

    BumpAddressConflicts(context).resolve(1, [2])

    assert fake_store.addresses[bumped.id].location_type == "Other"  # type: ignore[index]


def test_failed_address_change_is_reported_and_others_continue(
    caplog: pytest.LogCaptureFixture,
) -> None:
    store = LockedAddressStore(locked=set())
    store.add_address(_address(1, "Home", "Main Street 1"))
    store.add_address(_address(1, "Work", "Office Park 3"))
    locked = store.add_address(_address(2, "Home", "Elm Street 5"))
    duplicate = store.add_address(_address(2, "Work", "Office Park 3"))
    store.locked.add(locked.id)  # type: ignore[arg-type]
    details: list[str] = []

    assert _resolver(store, details).resolve(1, [2]) is True

    assert store.addresses[locked.id].location_type == "Home"  # type: ignore[index]
    assert duplicate.id not in store.addresses
    assert details[0] == (
        f"ERROR: Failed to resolve address conflict for address [{locked.id}] "
        "from contact [2]: address is locked"
    )
    assert "identical to main contact's address" in details[1]
    assert "address is locked" in caplog.text


def test_failed_duplicate_removal_makes_no_change() -> None:
    store = LockedAddressStore(locked=set())
    store.add_address(_address(1, "Home", "Main Street 1"))
    duplicate = store.add_address(_address(2, "Home", "Main Street 1"))
    store.locked.add(duplicate.id)  # type: ignore[arg-type]
    details: list[str] = []

    assert _resolver(store, details).resolve(1, [2]) is False

    assert duplicate.id in store.addresses
    assert details == [
        f"ERROR: Failed to remove duplicate address [{duplicate.id}] "
        "from contact [2]: address is locked"
    ]
