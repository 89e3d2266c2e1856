from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.dialects import sqlite

from xdedupe.adapters.sqlalchemy import (
    FILTERS,
    FINDERS,
    CandidateSet,
    DiscoveryQuery,
    build_filters,
    build_finders,
)
from xdedupe.adapters.sqlalchemy.strategies import MaxTupleSizeFilter, NameFinder
from xdedupe.config import ConfigurationError
from xdedupe.domain.errors import UnknownStrategyError
from xdedupe.domain.model import ContactType, DiscoveryCriteria
from tests.support.contacts import add_address, add_contact, add_email, add_exception

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from xdedupe.adapters.sqlalchemy.strategies import StrategyRequest


def _member_sets(
    engine: Engine,
    finders: list[StrategyRequest],
    filters: list[StrategyRequest] | None = None,
) -> list[tuple[int, ...]]:
    candidates = CandidateSet(engine)
    candidates.discover(DiscoveryCriteria(), build_finders(finders), build_filters(filters or []))
    return [candidate.member_ids for candidate in candidates.tuples()]


def test_registries_expose_builtin_names() -> None:
    assert set(FINDERS.names()) == {
        "name",
        "email",
        "birth_date",
        "organization_name",
        "address",
    }
    assert set(FILTERS.names()) == {"has_email", "max_tuple_size", "dedupe_exception"}


def test_build_finders_assigns_aliases() -> None:
    finders = build_finders(["name", "email"])

    assert [finder.alias for finder in finders] == ["finder0", "finder1"]
    assert isinstance(finders[0], NameFinder)


def test_build_filters_passes_parameters() -> None:
    [size_filter] = build_filters([("max_tuple_size", {"max_size": 3})])

    assert isinstance(size_filter, MaxTupleSizeFilter)
    assert size_filter.max_size == 3


def test_build_rejects_unknown_names() -> None:
    with pytest.raises(UnknownStrategyError, match="Unknown finder 'nope'"):
        build_finders(["nope"])
    with pytest.raises(UnknownStrategyError, match="Unknown filter 'nope'"):
        build_filters(["nope"])


@pytest.mark.parametrize(
    "params",
    [{"max_size": 1}, {"unexpected": True}],
)
def test_build_rejects_invalid_parameters(params: dict[str, object]) -> None:
    with pytest.raises(ConfigurationError, match="Invalid parameters for filter 'max_tuple_size'"):
        build_filters([("max_tuple_size", params)])


def test_query_without_finder_cannot_build() -> None:
    with pytest.raises(ValueError, match="at least one finder"):
        DiscoveryQuery(DiscoveryCriteria()).build(sqlite.dialect())


def test_email_finder_ignores_case(sqlite_engine: Engine) -> None:
    for contact_id, email in ((1, "Anna@Example.org"), (2, "anna@example.org"), (3, "bob@x.org")):
        add_contact(sqlite_engine, contact_id=contact_id)
        add_email(sqlite_engine, contact_id, email)

    assert _member_sets(sqlite_engine, ["email"]) == [(1, 2)]


def test_combined_finders_intersect(sqlite_engine: Engine) -> None:
    add_contact(sqlite_engine, contact_id=1, first_name="Anna", last_name="Smith")
    add_contact(sqlite_engine, contact_id=2, first_name="Anna", last_name="Smith")
    add_contact(sqlite_engine, contact_id=3, first_name="Anna", last_name="Smith")
    add_email(sqlite_engine, 1, "anna@example.org")
    add_email(sqlite_engine, 2, "ANNA@example.org")
    add_email(sqlite_engine, 3, "other@example.org")

    assert _member_sets(sqlite_engine, ["name", "email"]) == [(1, 2)]


def test_birth_date_finder(sqlite_engine: Engine) -> None:
    add_contact(sqlite_engine, contact_id=1, birth_date=date(1980, 1, 2))
    add_contact(sqlite_engine, contact_id=2, birth_date=date(1980, 1, 2))
    add_contact(sqlite_engine, contact_id=3)
    add_contact(sqlite_engine, contact_id=4)

    assert _member_sets(sqlite_engine, ["birth_date"]) == [(1, 2)]


def test_organization_name_finder(sqlite_engine: Engine) -> None:
    for contact_id in (1, 2):
        add_contact(
            sqlite_engine,
            contact_id=contact_id,
            organization_name="Acme",
            contact_type=ContactType.ORGANIZATION,
        )
    add_contact(sqlite_engine, contact_id=3, organization_name="")
    add_contact(sqlite_engine, contact_id=4, organization_name="")

    assert _member_sets(sqlite_engine, ["organization_name"]) == [(1, 2)]


def test_address_finder(sqlite_engine: Engine) -> None:
    for contact_id in (1, 2, 3):
        add_contact(sqlite_engine, contact_id=contact_id)
    add_address(sqlite_engine, 1)
    add_address(sqlite_engine, 2)
    add_address(sqlite_engine, 3, street_address="Elm Road 5")

    assert _member_sets(sqlite_engine, ["address"]) == [(1, 2)]


def test_has_email_filter_drops_contacts_without_primary_email(sqlite_engine: Engine) -> None:
    for contact_id in (1, 2, 3):
        add_contact(sqlite_engine, contact_id=contact_id, first_name="Anna", last_name="Smith")
    add_email(sqlite_engine, 1, "a@example.org")
    add_email(sqlite_engine, 2, "b@example.org")
    add_email(sqlite_engine, 3, "c@example.org", is_primary=False)

    assert _member_sets(sqlite_engine, ["name"], ["has_email"]) == [(1, 2)]


def test_max_tuple_size_filter(sqlite_engine: Engine) -> None:
    for contact_id in (1, 2, 3):
        add_contact(sqlite_engine, contact_id=contact_id, first_name="Anna", last_name="Smith")
    for contact_id in (4, 5):
        add_contact(sqlite_engine, contact_id=contact_id, first_name="Bob", last_name="Jones")

    assert _member_sets(sqlite_engine, ["name"], [("max_tuple_size", {"max_size": 2})]) == [(4, 5)]


def test_dedupe_exception_filter_splits_known_pairs(sqlite_engine: Engine) -> None:
    for contact_id in (1, 2, 3):
        add_contact(sqlite_engine, contact_id=contact_id, first_name="Anna", last_name="Smith")
    for contact_id in (4, 5):
        add_contact(sqlite_engine, contact_id=contact_id, first_name="Bob", last_name="Jones")
    add_exception(sqlite_engine, 2, 1)
    add_exception(sqlite_engine, 4, 5)

    assert _member_sets(sqlite_engine, ["name"], ["dedupe_exception"]) == [(1, 3)]
