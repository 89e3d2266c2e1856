"""Dialect-specific SQL pieces used by discovery runs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Text, cast, func, insert, literal
from sqlalchemy.dialects import postgresql

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement, Table
    from sqlalchemy.engine import Dialect
    from sqlalchemy.sql.dml import Insert


def insert_ignore(table: Table, dialect: Dialect) -> Insert:
    """INSERT that silently skips rows colliding with an existing primary key."""

    if dialect.name == "postgresql":
        return postgresql.insert(table).on_conflict_do_nothing()
    if dialect.name in {"mysql", "mariadb"}:
        return insert(table).prefix_with("IGNORE")
    return insert(table).prefix_with("OR IGNORE")


def aggregate_ids(column: ColumnElement[Any], dialect: Dialect) -> ColumnElement[str]:
    """Comma separated list of the distinct values of ``column`` within a group."""

    if dialect.name == "postgresql":
        return func.string_agg(cast(column, Text).distinct(), literal(","))
    return func.group_concat(column.distinct())
