from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from xdedupe.adapters.sqlalchemy.mappings import note_table
from xdedupe.domain.errors import EntityStoreError, UnknownAttributeError
from xdedupe.domain.model import Address, MergeMode
from tests.support.contacts import (
    activity_rows,
    add_activity,
    add_address,
    add_contact,
    add_email,
    add_exception,
    address_rows,
    contact_row,
    exception_pairs,
    note_rows,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from xdedupe.adapters.sqlalchemy import SqlAlchemyEntityStore

STORE_TYPE = "Contact Merged"


def test_load_contacts_projects_requested_attributes(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1, first_name="Anna", last_name="Smith")
    add_contact(sqlite_engine, contact_id=2, first_name="Bob", is_deleted=True)

    records = entity_store.load_contacts([1, 2, 3], ["first_name", "is_deleted"])

    assert records == {
        1: {"id": 1, "first_name": "Anna", "is_deleted": False},
        2: {"id": 2, "first_name": "Bob", "is_deleted": True},
    }
    assert entity_store.load_contacts([], ["first_name"]) == {}


def test_load_contacts_rejects_unknown_attributes(entity_store: SqlAlchemyEntityStore) -> None:
    with pytest.raises(UnknownAttributeError, match="shoe_size"):
        entity_store.load_contacts([1], ["first_name", "shoe_size"])


def test_get_live_contact_skips_deleted(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1, first_name="Anna")
    add_contact(sqlite_engine, contact_id=2, is_deleted=True)

    live = entity_store.get_live_contact(1)

    assert live is not None
    assert live["first_name"] == "Anna"
    assert entity_store.get_live_contact(2) is None
    assert entity_store.get_live_contact(3) is None


def test_transaction_commits_on_success(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1)
    address_id = add_address(sqlite_engine, 1)
    [address] = entity_store.get_addresses(1)
    address.city = "Shelbyville"

    with entity_store.transaction():
        entity_store.update_address(address)

    assert address_rows(sqlite_engine, 1)[0]["id"] == address_id
    assert address_rows(sqlite_engine, 1)[0]["city"] == "Shelbyville"


def test_transaction_rolls_back_on_error(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1)
    address_id = add_address(sqlite_engine, 1)
    [address] = entity_store.get_addresses(1)
    address.location_type = "conflict"

    with pytest.raises(RuntimeError, match="boom"), entity_store.transaction():
        entity_store.update_address(address)
        entity_store.create_note(1, subject="Merge Details", note="half done")
        raise RuntimeError("boom")

    [row] = address_rows(sqlite_engine, 1)
    assert row["id"] == address_id
    assert row["location_type"] == "Home"
    assert note_rows(sqlite_engine, 1) == []


def test_address_crud(sqlite_engine: Engine, entity_store: SqlAlchemyEntityStore) -> None:
    add_contact(sqlite_engine, contact_id=1)

    with entity_store.transaction():
        created = entity_store.add_address(
            Address(contact_id=1, location_type="Work", city="Springfield", country="USA")
        )
    assert created.id is not None
    assert entity_store.get_addresses(1) == [created]

    with entity_store.transaction():
        entity_store.delete_address(created.id)
    assert address_rows(sqlite_engine, 1) == []


def test_update_address_requires_an_id(entity_store: SqlAlchemyEntityStore) -> None:
    with pytest.raises(EntityStoreError, match="without an id"):
        entity_store.update_address(Address(contact_id=1, location_type="Home"))


def test_conflicts_compare_non_blank_contact_fields(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1, first_name="Anna", last_name="Smith")
    add_contact(
        sqlite_engine,
        contact_id=2,
        first_name="Anne",
        last_name="Smith",
        birth_date=date(1980, 1, 2),
    )

    report = entity_store.get_merge_conflicts(1, 2)

    assert list(report) == [("contact", "first_name", "First name ('Anna' / 'Anne')")]


def test_conflicts_report_same_type_sub_records(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1)
    add_contact(sqlite_engine, contact_id=2)
    add_address(sqlite_engine, 1, location_type="Home")
    add_address(sqlite_engine, 2, location_type="Home", street_address="Elm Road 5")
    add_address(sqlite_engine, 1, location_type="Work")
    add_address(sqlite_engine, 2, location_type="Work")
    add_email(sqlite_engine, 1, "anna@example.org")
    add_email(sqlite_engine, 2, "other@example.org")

    report = entity_store.get_merge_conflicts(1, 2)

    assert report.conflicts == {
        "address": {"Home": "Home address"},
        "email": {"Home": "Home email"},
    }


def test_conflicts_require_live_contacts(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1)
    add_contact(sqlite_engine, contact_id=2, is_deleted=True)

    with pytest.raises(EntityStoreError, match=r"Contact \[2\] not found or is deleted"):
        entity_store.get_merge_conflicts(1, 2)


def test_safe_merge_refuses_conflicts(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1, first_name="Anna")
    add_contact(sqlite_engine, contact_id=2, first_name="Anne")

    with entity_store.transaction():
        result = entity_store.merge_contacts(1, 2, mode=MergeMode.SAFE)

    assert not result.success
    assert result.error_message == "Conflicts in contact prevent a safe merge"
    assert contact_row(sqlite_engine, 2)["is_deleted"] is False


def test_merge_reports_missing_contacts(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1)

    result = entity_store.merge_contacts(1, 9, mode=MergeMode.AGGRESSIVE)

    assert not result.success
    assert result.error_message == "Contact [9] not found or is deleted"


def test_safe_merge_moves_sub_records(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1, first_name="Anna", last_name="Smith")
    add_contact(
        sqlite_engine,
        contact_id=2,
        first_name="Anna",
        last_name="Smith",
        birth_date=date(1980, 1, 2),
    )
    add_contact(sqlite_engine, contact_id=3)
    add_address(sqlite_engine, 1, location_type="Home", is_primary=True)
    add_address(sqlite_engine, 2, location_type="Home", is_primary=True)
    work_id = add_address(sqlite_engine, 2, location_type="Work", is_primary=True)
    add_email(sqlite_engine, 1, "anna@example.org")
    add_email(sqlite_engine, 2, "ANNA@example.org", location_type="Work")
    add_email(sqlite_engine, 2, "anna.smith@example.org", location_type="Other")
    activity_id = add_activity(sqlite_engine, 2, "Meeting")
    add_exception(sqlite_engine, 2, 3)
    with entity_store.transaction():
        entity_store.create_note(2, subject="Call", note="Called back")

    with entity_store.transaction():
        result = entity_store.merge_contacts(1, 2, mode=MergeMode.SAFE)

    assert result.success
    survivor = contact_row(sqlite_engine, 1)
    assert survivor["birth_date"] == date(1980, 1, 2)
    assert contact_row(sqlite_engine, 2)["is_deleted"] is True
    addresses = address_rows(sqlite_engine, 1)
    assert [(row["location_type"], row["is_primary"]) for row in addresses] == [
        ("Home", True),
        ("Work", False),
    ]
    assert addresses[1]["id"] == work_id
    assert address_rows(sqlite_engine, 2) == []
    assert [note["subject"] for note in note_rows(sqlite_engine, 1)] == ["Call"]
    assert exception_pairs(sqlite_engine) == set()
    activities = activity_rows(sqlite_engine, 1)
    assert activities[0]["id"] == activity_id
    assert activities[-1]["activity_type"] == STORE_TYPE
    assert activities[-1]["subject"] == "Contact [2] merged into [1] (safe)"
    assert entity_store.count_activities([1, 2]) == {1: 2, 2: 0}


def test_aggressive_merge_keeps_survivor_values(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1, first_name="Anna")
    add_contact(sqlite_engine, contact_id=2, first_name="Anne", last_name="Smith")
    add_address(sqlite_engine, 1, location_type="Home")
    add_address(sqlite_engine, 2, location_type="Home", street_address="Elm Road 5")

    with entity_store.transaction():
        result = entity_store.merge_contacts(1, 2, mode=MergeMode.AGGRESSIVE)

    assert result.success
    survivor = contact_row(sqlite_engine, 1)
    assert (survivor["first_name"], survivor["last_name"]) == ("Anna", "Smith")
    assert [row["street_address"] for row in address_rows(sqlite_engine, 1)] == ["Main Street 1"]
    assert activity_rows(sqlite_engine, 1)[-1]["subject"] == (
        "Contact [2] merged into [1] (aggressive)"
    )


def test_find_latest_activity_honours_window(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    now = datetime(2026, 5, 10, 12, 0, tzinfo=UTC)
    add_contact(sqlite_engine, contact_id=1)
    add_activity(sqlite_engine, 1, STORE_TYPE, when=now - timedelta(minutes=5))
    inside = add_activity(sqlite_engine, 1, STORE_TYPE, when=now - timedelta(seconds=3))
    add_activity(sqlite_engine, 1, "Meeting", when=now)

    found = entity_store.find_latest_activity(
        1,
        STORE_TYPE,
        since=now - timedelta(seconds=10),
        until=now + timedelta(seconds=10),
    )
    assert found is not None
    assert found.id == inside
    assert found.activity_date_time == now - timedelta(seconds=3)
    assert entity_store.find_latest_activity(1, "Phone Call") is None

    with entity_store.transaction():
        entity_store.update_activity_details(inside, "details")

    assert [row["details"] for row in activity_rows(sqlite_engine, 1)] == [None, "details", None]


def test_create_note(sqlite_engine: Engine, entity_store: SqlAlchemyEntityStore) -> None:
    add_contact(sqlite_engine, contact_id=1)

    with entity_store.transaction():
        note = entity_store.create_note(1, subject="Merge Details", note="line one\nline two")

    [row] = note_rows(sqlite_engine, 1)
    assert row["id"] == note.id
    assert row["note"] == "line one\nline two"


def test_add_exclusions_inserts_missing_pairs(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    for contact_id in (1, 2, 3):
        add_contact(sqlite_engine, contact_id=contact_id)
    add_exception(sqlite_engine, 1, 3)

    with entity_store.transaction():
        added = entity_store.add_exclusions([3, 2, 1])
    with entity_store.transaction():
        repeated = entity_store.add_exclusions([1, 2])

    assert added == 2
    assert repeated == 0
    assert exception_pairs(sqlite_engine) == {(1, 2), (1, 3), (2, 3)}
    assert entity_store.add_exclusions([1]) == 0


def test_database_errors_are_translated(
    sqlite_engine: Engine,
    entity_store: SqlAlchemyEntityStore,
) -> None:
    add_contact(sqlite_engine, contact_id=1)
    note_table.drop(sqlite_engine)

    with pytest.raises(EntityStoreError, match="Database error"), entity_store.transaction():
        entity_store.create_note(1, subject="Merge Details", note="lost")
