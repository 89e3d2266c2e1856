"""Per-run working table holding the candidate tuples of one discovery."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    and_,
    delete,
    func,
    inspect,
    select,
    update,
)

from xdedupe.domain.errors import MissingRunError
from xdedupe.domain.model import (
    DEFAULT_RUN_RETENTION,
    RUN_TABLE_PREFIX,
    CandidateTuple,
    RunIdentifier,
    format_member_ids,
    parse_member_ids,
)

from .dialects import insert_ignore
from .strategies import DiscoveryQuery

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence
    from datetime import timedelta

    from sqlalchemy import ColumnElement
    from sqlalchemy.engine import Connection, Engine, Row

    from xdedupe.domain.model import ContactId, DiscoveryCriteria
    from xdedupe.domain.ports import MainRecordPicker

    from .strategies import FilterStrategy, MatchStrategy

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReapResult:
    dropped: list[str] = field(default_factory=list[str])
    unrecognised: list[str] = field(default_factory=list[str])


def _member_count_index_name(table_name: str) -> str:
    # PostgreSQL caps identifiers at 63 characters, MySQL at 64
    return f"ix_{table_name[-32:]}_members"


def run_table(name: str) -> Table:
    """Schema of a run's working table: tuples keyed by their lowest contact id."""

    return Table(
        name,
        MetaData(),
        Column("survivor_id", Integer, primary_key=True, autoincrement=False),
        Column("member_count", Integer, nullable=False),
        Column("member_ids", Text, nullable=False),
        Column("merged_count", Integer, nullable=True),
        Index(_member_count_index_name(name), "member_count"),
    )


def _tuple_from_row(row: Row[Any]) -> CandidateTuple:
    return CandidateTuple(
        survivor_id=row.survivor_id,
        member_ids=parse_member_ids(row.member_ids),
        merged_count=row.merged_count,
        member_count=row.member_count,
    )


class CandidateSet:
    """Candidate tuples of one discovery run, keyed by their lowest contact id."""

    def __init__(self, engine: Engine, run_id: RunIdentifier | None = None) -> None:
        self.engine = engine
        self.run_id = run_id or RunIdentifier.new()
        self.table = run_table(self.run_id.table_name)
        self.last_discovery_runtime: float | None = None
        self.ensure_storage()

    @classmethod
    def open(cls, engine: Engine, run_id: RunIdentifier | str) -> CandidateSet:
        """Attach to an existing run; raise ``MissingRunError`` if its table is gone."""

        identifier = run_id if isinstance(run_id, RunIdentifier) else RunIdentifier(run_id)
        if not inspect(engine).has_table(identifier.table_name):
            raise MissingRunError(f"Discovery run '{identifier}' does not exist")
        return cls(engine, identifier)

    @property
    def table_name(self) -> str:
        return self.table.name

    def ensure_storage(self) -> None:
        self.table.create(self.engine, checkfirst=True)

    # -- discovery ---------------------------------------------------------

    def discover(
        self,
        criteria: DiscoveryCriteria,
        finders: Sequence[MatchStrategy],
        filters: Sequence[FilterStrategy] = (),
    ) -> int:
        """Insert every new duplicate group; existing survivors are left untouched.

        Returns the number of tuples in the run afterwards.
        """

        query = DiscoveryQuery(criteria)
        for finder in finders:
            finder.contribute(query)
        for candidate_filter in filters:
            candidate_filter.contribute(query)

        started = time.monotonic()
        with self.engine.begin() as connection:
            statement = insert_ignore(self.table, connection.dialect).from_select(
                ["survivor_id", "member_count", "member_ids"],
                query.build(connection.dialect),
            )
            connection.execute(statement)
        self.last_discovery_runtime = time.monotonic() - started

        for candidate_filter in filters:
            candidate_filter.purge_results(self)

        total = self.count()
        log.info(
            "Discovery run %s found %s tuples in %.3fs",
            self.run_id,
            total,
            self.last_discovery_runtime,
        )
        return total

    # -- reading -----------------------------------------------------------

    def count(self) -> int:
        with self.engine.connect() as connection:
            return connection.execute(select(func.count()).select_from(self.table)).scalar_one()

    def total_members(self) -> int:
        statement = select(func.coalesce(func.sum(self.table.c.member_count), 0))
        with self.engine.connect() as connection:
            return int(connection.execute(statement).scalar_one())

    def tuples(self) -> list[CandidateTuple]:
        statement = select(self.table).order_by(self.table.c.survivor_id)
        with self.engine.connect() as connection:
            rows = connection.execute(statement).all()
        return [_tuple_from_row(row) for row in rows]

    def get(self, survivor_id: ContactId) -> CandidateTuple | None:
        statement = select(self.table).where(self.table.c.survivor_id == survivor_id)
        with self.engine.connect() as connection:
            row = connection.execute(statement).first()
        return None if row is None else _tuple_from_row(row)

    def find_containing(self, contact_id: ContactId) -> CandidateTuple | None:
        """Return the tuple keyed by ``contact_id``, else the unmerged tuple listing it."""

        keyed = self.get(contact_id)
        if keyed is not None:
            return keyed
        for candidate in self.tuples():
            if not candidate.is_merged and contact_id in candidate.member_ids:
                return candidate
        return None

    def page(
        self,
        count: int,
        offset: int = 0,
        pickers: Sequence[MainRecordPicker] = (),
    ) -> dict[ContactId, list[ContactId]]:
        """Return ``{main id: [other ids]}`` for up to ``count`` tuples in key order."""

        statement = (
            select(self.table.c.survivor_id, self.table.c.member_ids)
            .order_by(self.table.c.survivor_id)
            .limit(count)
            .offset(offset)
        )
        with self.engine.connect() as connection:
            rows = connection.execute(statement).all()

        result: dict[ContactId, list[ContactId]] = {}
        for row in rows:
            member_ids = parse_member_ids(row.member_ids)
            main_id = row.survivor_id
            for picker in pickers:
                choice = picker.select_main(member_ids)
                if choice is not None and choice in member_ids:
                    main_id = choice
                    break
            result[main_id] = [member_id for member_id in member_ids if member_id != main_id]
        return result

    # -- maintenance -------------------------------------------------------

    def remove(self, survivor_id: ContactId) -> None:
        with self.engine.begin() as connection:
            connection.execute(delete(self.table).where(self.table.c.survivor_id == survivor_id))

    def replace(self, old_survivor_id: ContactId, new_member_ids: Iterable[ContactId]) -> bool:
        """Rewrite an unmerged tuple under its new lowest id; return whether a row remains.

        Fewer than two remaining ids remove the tuple. If the new key is already
        taken by another tuple that one wins and the old row is dropped.
        """

        member_ids = sorted(set(new_member_ids))
        table = self.table
        with self.engine.begin() as connection:
            unmerged = _unmerged(table, old_survivor_id)
            if len(member_ids) < 2:  # noqa: PLR2004
                connection.execute(delete(table).where(unmerged))
                return False

            new_survivor_id = member_ids[0]
            if new_survivor_id != old_survivor_id and self._exists(connection, new_survivor_id):
                log.debug(
                    "Tuple [%s] collides with existing tuple [%s]; dropping it",
                    old_survivor_id,
                    new_survivor_id,
                )
                connection.execute(delete(table).where(unmerged))
                return False

            result = connection.execute(
                update(table)
                .where(unmerged)
                .values(
                    survivor_id=new_survivor_id,
                    member_count=len(member_ids),
                    member_ids=format_member_ids(member_ids),
                )
            )
            return result.rowcount > 0

    def record_merge_outcome(self, survivor_id: ContactId, merged_count: int) -> None:
        with self.engine.begin() as connection:
            connection.execute(
                update(self.table)
                .where(_unmerged(self.table, survivor_id))
                .values(merged_count=merged_count)
            )

    def clear(self) -> None:
        with self.engine.begin() as connection:
            connection.execute(delete(self.table))

    def drop(self) -> None:
        self.table.drop(self.engine, checkfirst=True)

    def _exists(self, connection: Connection, survivor_id: ContactId) -> bool:
        statement = select(self.table.c.survivor_id).where(self.table.c.survivor_id == survivor_id)
        return connection.execute(statement).first() is not None

    # -- housekeeping ------------------------------------------------------

    def reap_stale_runs(
        self,
        retention: timedelta = DEFAULT_RUN_RETENTION,
        *,
        now: datetime | None = None,
    ) -> ReapResult:
        """Drop run tables older than ``retention``; never this run's own table."""

        return reap_stale_runs(self.engine, retention, keep=(self.table_name,), now=now)


def _unmerged(table: Table, survivor_id: ContactId) -> ColumnElement[bool]:
    return and_(table.c.survivor_id == survivor_id, table.c.merged_count.is_(None))


def reap_stale_runs(
    engine: Engine,
    retention: timedelta = DEFAULT_RUN_RETENTION,
    *,
    keep: Collection[str] = (),
    now: datetime | None = None,
) -> ReapResult:
    """Drop run tables whose embedded timestamp is older than ``retention``.

    Tables that carry the run prefix but not a parseable run name are logged
    and reported, never dropped.
    """

    horizon = (now or datetime.now(UTC)) - retention
    result = ReapResult()
    for table_name in inspect(engine).get_table_names():
        if not table_name.startswith(RUN_TABLE_PREFIX) or table_name in keep:
            continue
        run_id = RunIdentifier.from_table_name(table_name)
        if run_id is None or run_id.created_at is None:
            log.warning("Unrecognised table found: '%s'. Please clean up manually.", table_name)
            result.unrecognised.append(table_name)
            continue
        if run_id.created_at < horizon:
            run_table(table_name).drop(engine, checkfirst=True)
            log.info("Dropped stale discovery run table %s", table_name)
            result.dropped.append(table_name)
    return result
