"""Initial contact schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from xdedupe.adapters.sqlalchemy.mappings import UTCDateTime

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "contact",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "contact_type",
            sa.Enum(
                "Individual",
                "Organization",
                "Household",
                name="contacttype",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("organization_name", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_date", UTCDateTime(), nullable=False),
        sa.Column("modified_date", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_contact")),
    )
    op.create_table(
        "email",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("location_type", sa.String(), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(
            ["contact_id"],
            ["contact.id"],
            name=op.f("fk_email_contact_id_contact"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_email")),
    )
    op.create_index(op.f("ix_email_contact_id"), "email", ["contact_id"])
    op.create_table(
        "address",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.Column("location_type", sa.String(), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("street_address", sa.String(), nullable=True),
        sa.Column("supplemental_address_1", sa.String(), nullable=True),
        sa.Column("supplemental_address_2", sa.String(), nullable=True),
        sa.Column("supplemental_address_3", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("postal_code", sa.String(), nullable=True),
        sa.Column("country", sa.String(length=3), nullable=True),
        sa.ForeignKeyConstraint(
            ["contact_id"],
            ["contact.id"],
            name=op.f("fk_address_contact_id_contact"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_address")),
    )
    op.create_index(op.f("ix_address_contact_id"), "address", ["contact_id"])
    op.create_table(
        "activity",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("activity_type", sa.String(), nullable=False),
        sa.Column("target_contact_id", sa.Integer(), nullable=False),
        sa.Column("subject", sa.String(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("activity_date_time", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["target_contact_id"],
            ["contact.id"],
            name=op.f("fk_activity_target_contact_id_contact"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_activity")),
    )
    op.create_index(
        "ix_activity_target_type",
        "activity",
        ["target_contact_id", "activity_type"],
    )
    op.create_table(
        "note",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["contact_id"],
            ["contact.id"],
            name=op.f("fk_note_contact_id_contact"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_note")),
    )
    op.create_index(op.f("ix_note_contact_id"), "note", ["contact_id"])
    op.create_table(
        "dedupe_exception",
        sa.Column("contact_id1", sa.Integer(), nullable=False),
        sa.Column("contact_id2", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "contact_id1 < contact_id2",
            name=op.f("ck_dedupe_exception_ordered_pair"),
        ),
        sa.ForeignKeyConstraint(
            ["contact_id1"],
            ["contact.id"],
            name=op.f("fk_dedupe_exception_contact_id1_contact"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["contact_id2"],
            ["contact.id"],
            name=op.f("fk_dedupe_exception_contact_id2_contact"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("contact_id1", "contact_id2", name=op.f("pk_dedupe_exception")),
    )


def downgrade() -> None:
    op.drop_table("dedupe_exception")
    op.drop_index(op.f("ix_note_contact_id"), table_name="note")
    op.drop_table("note")
    op.drop_index("ix_activity_target_type", table_name="activity")
    op.drop_table("activity")
    op.drop_index(op.f("ix_address_contact_id"), table_name="address")
    op.drop_table("address")
    op.drop_index(op.f("ix_email_contact_id"), table_name="email")
    op.drop_table("email")
    op.drop_table("contact")
