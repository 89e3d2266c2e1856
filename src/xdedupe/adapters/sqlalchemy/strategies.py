"""Finders and filters that compose the discovery query of a run."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import and_, false, func, or_, select, true

from xdedupe.config.errors import ConfigurationError
from xdedupe.domain.registry import Registry

from .dialects import aggregate_ids
from .mappings import address_table, contact_table, dedupe_exception_table, email_table

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import ColumnElement, FromClause, Select
    from sqlalchemy.engine import Connection, Dialect

    from xdedupe.domain.model import ContactId, DiscoveryCriteria

    from .candidate_set import CandidateSet

log = logging.getLogger(__name__)

type StrategyRequest = str | tuple[str, Mapping[str, Any]]


class DiscoveryQuery:
    """Accumulates joins, predicates and grouping keys over the contact table."""

    def __init__(self, criteria: DiscoveryCriteria) -> None:
        self.contact = contact_table
        self._from: FromClause = contact_table
        self.predicates: list[ColumnElement[bool]] = [
            or_(contact_table.c.is_deleted == false(), contact_table.c.is_deleted.is_(None)),
        ]
        if criteria.contact_type is not None:
            self.predicates.append(contact_table.c.contact_type == criteria.contact_type)
        self.group_keys: list[ColumnElement[Any]] = []

    def join(
        self,
        target: FromClause,
        onclause: ColumnElement[bool],
        *,
        outer: bool = False,
    ) -> None:
        self._from = self._from.join(target, onclause, isouter=outer)

    def where(self, *predicates: ColumnElement[bool]) -> None:
        self.predicates.extend(predicates)

    def group_by(self, *keys: ColumnElement[Any]) -> None:
        self.group_keys.extend(keys)

    def build(self, dialect: Dialect) -> Select[Any]:
        """Return ``(survivor_id, member_count, member_ids)`` for every group of two or more."""

        if not self.group_keys:
            raise ValueError("Discovery needs at least one finder contributing a group key")
        contact_id = self.contact.c.id
        member_count = func.count(contact_id.distinct())
        return (
            select(
                func.min(contact_id).label("survivor_id"),
                member_count.label("member_count"),
                aggregate_ids(contact_id, dialect).label("member_ids"),
            )
            .select_from(self._from)
            .where(and_(*self.predicates))
            .group_by(*self.group_keys)
            .having(member_count > 1)
        )


class MatchStrategy(ABC):
    """A finder: contributes joins, predicates and group keys that define 'same contact'."""

    name: ClassVar[str]
    help: ClassVar[str]

    def __init__(self, alias: str) -> None:
        self.alias = alias

    @abstractmethod
    def contribute(self, query: DiscoveryQuery) -> None: ...


class FilterStrategy(ABC):
    """Restricts discovery through predicates, or prunes stored tuples afterwards."""

    name: ClassVar[str]
    help: ClassVar[str]

    def __init__(self, alias: str) -> None:
        self.alias = alias

    def contribute(self, query: DiscoveryQuery) -> None:
        _ = query

    def purge_results(self, candidates: CandidateSet) -> None:
        _ = candidates


# Finders ---------------------------------------------------------------------


def _present(column: ColumnElement[Any]) -> ColumnElement[bool]:
    return and_(column.is_not(None), column != "")


class NameFinder(MatchStrategy):
    name = "Identical name"
    help = "Contacts with the same first and last name"

    def contribute(self, query: DiscoveryQuery) -> None:
        contact = query.contact
        query.where(_present(contact.c.first_name), _present(contact.c.last_name))
        query.group_by(contact.c.first_name, contact.c.last_name)


class EmailFinder(MatchStrategy):
    name = "Identical email"
    help = "Contacts sharing an email address (case insensitive)"

    def contribute(self, query: DiscoveryQuery) -> None:
        email = email_table.alias(f"{self.alias}_email")
        query.join(email, email.c.contact_id == query.contact.c.id)
        query.where(_present(email.c.email))
        query.group_by(func.lower(email.c.email))


class BirthDateFinder(MatchStrategy):
    name = "Identical birth date"
    help = "Contacts with the same birth date"

    def contribute(self, query: DiscoveryQuery) -> None:
        birth_date = query.contact.c.birth_date
        query.where(birth_date.is_not(None))
        query.group_by(birth_date)


class OrganizationNameFinder(MatchStrategy):
    name = "Identical organization name"
    help = "Contacts with the same organization name"

    def contribute(self, query: DiscoveryQuery) -> None:
        organization_name = query.contact.c.organization_name
        query.where(_present(organization_name))
        query.group_by(organization_name)


class AddressFinder(MatchStrategy):
    name = "Identical address"
    help = "Contacts with an address on the same street, postal code and city"

    def contribute(self, query: DiscoveryQuery) -> None:
        address = address_table.alias(f"{self.alias}_address")
        query.join(address, address.c.contact_id == query.contact.c.id)
        query.where(
            _present(address.c.street_address),
            _present(address.c.postal_code),
            _present(address.c.city),
        )
        query.group_by(address.c.street_address, address.c.postal_code, address.c.city)


# Filters ---------------------------------------------------------------------


class HasEmailFilter(FilterStrategy):
    name = "Has primary email"
    help = "Only consider contacts with a primary email address"

    def contribute(self, query: DiscoveryQuery) -> None:
        email = email_table.alias(f"{self.alias}_email")
        query.where(
            select(email.c.id)
            .where(email.c.contact_id == query.contact.c.id, email.c.is_primary == true())
            .exists()
        )


class MaxTupleSizeFilter(FilterStrategy):
    name = "Maximum tuple size"
    help = "Drop clusters with more members than the given size"

    def __init__(self, alias: str, *, max_size: int = 10) -> None:
        super().__init__(alias)
        if max_size < 2:  # noqa: PLR2004
            raise ValueError(f"max_size must be at least 2, got {max_size}")
        self.max_size = max_size

    def purge_results(self, candidates: CandidateSet) -> None:
        for candidate in candidates.tuples():
            if candidate.is_merged or candidate.member_count <= self.max_size:
                continue
            candidates.remove(candidate.survivor_id)


class DedupeExceptionFilter(FilterStrategy):
    name = "Exclude known non-duplicates"
    help = "Split up clusters containing pairs recorded as dedupe exceptions"

    def purge_results(self, candidates: CandidateSet) -> None:
        purged = 0
        for candidate in candidates.tuples():
            if candidate.is_merged:
                continue
            with candidates.engine.connect() as connection:
                excluded = _excluded_pairs(connection, candidate.member_ids)
            if not excluded:
                continue
            kept: list[ContactId] = []
            for member_id in candidate.member_ids:
                if all((min(k, member_id), max(k, member_id)) not in excluded for k in kept):
                    kept.append(member_id)
            candidates.replace(candidate.survivor_id, kept)
            purged += 1
        log.info("Dedupe exceptions affected %s tuples", purged)


def _excluded_pairs(
    connection: Connection,
    member_ids: Iterable[ContactId],
) -> set[tuple[ContactId, ContactId]]:
    ids = list(member_ids)
    table = dedupe_exception_table
    rows = connection.execute(
        select(table.c.contact_id1, table.c.contact_id2).where(
            table.c.contact_id1.in_(ids), table.c.contact_id2.in_(ids)
        )
    )
    return {(row.contact_id1, row.contact_id2) for row in rows}


# Registries ------------------------------------------------------------------

FINDERS: Registry[type[MatchStrategy]] = Registry("finder")
FINDERS.register("name", NameFinder)
FINDERS.register("email", EmailFinder)
FINDERS.register("birth_date", BirthDateFinder)
FINDERS.register("organization_name", OrganizationNameFinder)
FINDERS.register("address", AddressFinder)

FILTERS: Registry[type[FilterStrategy]] = Registry("filter")
FILTERS.register("has_email", HasEmailFilter)
FILTERS.register("max_tuple_size", MaxTupleSizeFilter)
FILTERS.register("dedupe_exception", DedupeExceptionFilter)


def _split_request(request: StrategyRequest) -> tuple[str, Mapping[str, Any]]:
    if isinstance(request, str):
        return request, {}
    return request


def build_finders(requests: Iterable[StrategyRequest]) -> list[MatchStrategy]:
    finders: list[MatchStrategy] = []
    for index, request in enumerate(requests):
        name, params = _split_request(request)
        finder_class = FINDERS.get(name)
        try:
            finders.append(finder_class(f"finder{index}", **params))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid parameters for finder '{name}': {exc}") from exc
    return finders


def build_filters(requests: Iterable[StrategyRequest]) -> list[FilterStrategy]:
    filters: list[FilterStrategy] = []
    for index, request in enumerate(requests):
        name, params = _split_request(request)
        filter_class = FILTERS.get(name)
        try:
            filters.append(filter_class(f"filter{index}", **params))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid parameters for filter '{name}': {exc}") from exc
    return filters
