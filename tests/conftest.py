from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from xdedupe.adapters.sqlalchemy import SqlAlchemyEntityStore, create_all_tables
from xdedupe.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyDedupeUnitOfWork,
    shutdown,
    startup,
)
from tests.support.fake_store import FakeEntityStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    # file backed: run tables and the entity store use separate connections
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'xdedupe.db'}")
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def entity_store(sqlite_session: Session) -> SqlAlchemyEntityStore:
    return SqlAlchemyEntityStore(sqlite_session)


@pytest.fixture
def fake_store() -> FakeEntityStore:
    return FakeEntityStore()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyDedupeUnitOfWork]]:
    startup(engine=sqlite_engine, force=True, migrate=False)

    def factory() -> SqlAlchemyDedupeUnitOfWork:
        return SqlAlchemyDedupeUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()
