"""SQLAlchemy table metadata for contacts and their sub-records."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    false,
)

from xdedupe.domain.model import ContactType

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

# Core tables -----------------------------------------------------------------

contact_table = Table(
    "contact",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "contact_type",
        Enum(
            ContactType,
            native_enum=False,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
    ),
    Column("first_name", String, nullable=True),
    Column("last_name", String, nullable=True),
    Column("organization_name", String, nullable=True),
    Column("display_name", String, nullable=True),
    Column("birth_date", Date, nullable=True),
    Column("is_deleted", Boolean, nullable=False, default=False, server_default=false()),
    Column("created_date", UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)),
    Column("modified_date", UTCDateTime, nullable=True, onupdate=lambda: datetime.now(UTC)),
)

email_table = Table(
    "email",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "contact_id",
        Integer,
        ForeignKey("contact.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("email", String, nullable=False),
    Column("location_type", String, nullable=False),
    Column("is_primary", Boolean, nullable=False, default=False, server_default=false()),
)

address_table = Table(
    "address",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "contact_id",
        Integer,
        ForeignKey("contact.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("location_type", String, nullable=False),
    Column("is_primary", Boolean, nullable=False, default=False, server_default=false()),
    Column("street_address", String, nullable=True),
    Column("supplemental_address_1", String, nullable=True),
    Column("supplemental_address_2", String, nullable=True),
    Column("supplemental_address_3", String, nullable=True),
    Column("city", String, nullable=True),
    Column("postal_code", String, nullable=True),
    Column("country", String(3), nullable=True),
)

activity_table = Table(
    "activity",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("activity_type", String, nullable=False),
    Column(
        "target_contact_id",
        Integer,
        ForeignKey("contact.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("subject", String, nullable=True),
    Column("details", Text, nullable=True),
    Column(
        "activity_date_time",
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(UTC),
    ),
    Index("ix_activity_target_type", "target_contact_id", "activity_type"),
)

note_table = Table(
    "note",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "contact_id",
        Integer,
        ForeignKey("contact.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("subject", String, nullable=False),
    Column("note", Text, nullable=False),
    Column("created_at", UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)),
)

dedupe_exception_table = Table(
    "dedupe_exception",
    metadata,
    Column(
        "contact_id1",
        Integer,
        ForeignKey("contact.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "contact_id2",
        Integer,
        ForeignKey("contact.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    CheckConstraint("contact_id1 < contact_id2", name="ordered_pair"),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the contact metadata."""

    log.info("Creating all tables")
    metadata.create_all(engine)
