"""Engine lifecycle for the SQLAlchemy adapter and the dedupe unit of work."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from xdedupe.adapters.sqlalchemy.entity_store import SqlAlchemyEntityStore
from xdedupe.adapters.sqlalchemy.mappings import create_all_tables
from xdedupe.adapters.sqlalchemy.migrations import upgrade_head
from xdedupe.config.storage import get_database_uri
from xdedupe.domain.model import DEFAULT_MERGE_ACTIVITY_TYPE
from xdedupe.domain.ports import DedupeRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the adapter is used before ``startup`` or configured twice."""


@dataclass(slots=True)
class _EngineState:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = field(default=None, repr=False)

    def attach(self, engine: Engine) -> None:
        if self.engine is not None and self.engine is not engine:
            self.engine.dispose()
        self.engine = engine
        self.sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def detach(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.sessions = None

    def new_session(self) -> Session:
        if self.sessions is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call "
                "xdedupe.adapters.sqlalchemy.startup() before opening a unit of work."
            )
        return self.sessions()


_STATE = _EngineState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
    migrate: bool = True,
) -> Engine:
    """Bind the adapter to an engine and bring the schema up to date.

    ``migrate=False`` creates the tables straight from metadata instead of
    running Alembic, which is what throwaway test databases want.
    """

    if _STATE.engine is not None and not force:
        raise StartupError("SQLAlchemy adapter already initialised. Pass force=True to rebind.")

    bound = engine or create_engine(database_uri or get_database_uri())
    if migrate:
        upgrade_head(engine=bound)
    else:
        create_all_tables(bound)
    _STATE.attach(bound)
    log.debug("SQLAlchemy adapter bound to %s", bound.url)
    return bound


def configured_engine() -> Engine | None:
    """Return the engine the adapter is bound to, if any."""

    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the bound engine and forget it (primarily for tests)."""

    _STATE.detach()


class SqlAlchemyDedupeUnitOfWork:
    """One session handing out the entity store for a merge or exclusion session.

    The store commits its own ``transaction()`` scopes; leaving the unit of
    work with an exception rolls back whatever is still pending.
    """

    def __init__(self, *, merge_activity_type: str = DEFAULT_MERGE_ACTIVITY_TYPE) -> None:
        if _STATE.engine is None:
            raise StartupError("SQLAlchemy adapter not initialised")
        self.merge_activity_type = merge_activity_type
        self._session: Session | None = None
        self._repositories: DedupeRepositories | None = None

    @property
    def engine(self) -> Engine:
        if _STATE.engine is None:
            raise StartupError("SQLAlchemy adapter not initialised")
        return _STATE.engine

    @property
    def repositories(self) -> DedupeRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work is not open")
        return self._repositories

    def __enter__(self) -> SqlAlchemyDedupeUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        self._session = _STATE.new_session()
        self._repositories = DedupeRepositories(
            contacts=SqlAlchemyEntityStore(
                self._session,
                merge_activity_type=self.merge_activity_type,
            ),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self._session
        self._session = None
        self._repositories = None
        if session is not None:
            if exc_type is not None:
                session.rollback()
            session.close()
        return False

    def commit(self) -> None:
        if self._session is None:
            raise StartupError("Unit of work is not open")
        self._session.commit()

    def rollback(self) -> None:
        if self._session is not None:
            self._session.rollback()


if TYPE_CHECKING:
    from xdedupe.domain.ports import DedupeUnitOfWork

    _uow_check: DedupeUnitOfWork = SqlAlchemyDedupeUnitOfWork()
