"""Entity store backed by SQLAlchemy Core statements on a session."""

from __future__ import annotations

import functools
import itertools
import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import delete, false, func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from xdedupe.domain.errors import EntityStoreError, UnknownAttributeError
from xdedupe.domain.model import (
    DEFAULT_MERGE_ACTIVITY_TYPE,
    Activity,
    Address,
    MergeConflictReport,
    MergeMode,
    MergeResult,
    Note,
    is_blank,
)

from .mappings import (
    activity_table,
    address_table,
    contact_table,
    dedupe_exception_table,
    email_table,
    note_table,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterator, Sequence

    from sqlalchemy import Row
    from sqlalchemy.orm import Session

    from xdedupe.domain.model import ContactId, RecordSnapshot

log = logging.getLogger(__name__)

CONFLICT_FIELDS: Final[dict[str, str]] = {
    "contact_type": "Contact type",
    "first_name": "First name",
    "last_name": "Last name",
    "organization_name": "Organization name",
    "birth_date": "Birth date",
}
FILL_FIELDS: Final[tuple[str, ...]] = (
    "first_name",
    "last_name",
    "organization_name",
    "display_name",
    "birth_date",
)


def _translate_errors[**P, R](method: Callable[P, R]) -> Callable[P, R]:
    @functools.wraps(method)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return method(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise EntityStoreError(f"Database error: {getattr(exc, 'orig', None) or exc}") from exc

    return wrapper


def _address_from_row(row: Row[Any]) -> Address:
    mapping = row._mapping  # noqa: SLF001
    return Address(**{column.name: mapping[column.name] for column in address_table.columns})


class SqlAlchemyEntityStore:
    """Contacts and their sub-records in the relational schema of ``mappings``.

    Mutations only become visible to other connections once the surrounding
    :meth:`transaction` scope commits.
    """

    def __init__(
        self,
        session: Session,
        *,
        merge_activity_type: str = DEFAULT_MERGE_ACTIVITY_TYPE,
    ) -> None:
        self.session = session
        self.merge_activity_type = merge_activity_type

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
        except BaseException:
            self.session.rollback()
            raise
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise EntityStoreError(f"Commit failed: {getattr(exc, 'orig', None) or exc}") from exc

    # -- contacts ----------------------------------------------------------

    @_translate_errors
    def load_contacts(
        self,
        contact_ids: Collection[ContactId],
        attributes: Sequence[str],
    ) -> dict[ContactId, RecordSnapshot]:
        unknown = [name for name in attributes if name not in contact_table.c]
        if unknown:
            raise UnknownAttributeError(f"Unknown contact attributes: {', '.join(unknown)}")
        if not contact_ids:
            return {}
        columns = [contact_table.c.id]
        columns.extend(contact_table.c[name] for name in attributes if name != "id")
        rows = self.session.execute(select(*columns).where(contact_table.c.id.in_(contact_ids)))
        return {row.id: dict(row._mapping) for row in rows}  # noqa: SLF001

    @_translate_errors
    def get_live_contact(self, contact_id: ContactId) -> RecordSnapshot | None:
        row = self.session.execute(
            select(contact_table).where(
                contact_table.c.id == contact_id,
                or_(contact_table.c.is_deleted == false(), contact_table.c.is_deleted.is_(None)),
            )
        ).first()
        return None if row is None else dict(row._mapping)  # noqa: SLF001

    def _require_live(self, contact_id: ContactId) -> RecordSnapshot:
        contact = self.get_live_contact(contact_id)
        if contact is None:
            raise EntityStoreError(f"Contact [{contact_id}] not found or is deleted")
        return contact

    # -- merging -----------------------------------------------------------

    @_translate_errors
    def get_merge_conflicts(
        self,
        survivor_id: ContactId,
        member_id: ContactId,
    ) -> MergeConflictReport:
        survivor = self._require_live(survivor_id)
        member = self._require_live(member_id)

        contact_conflicts: dict[str, str] = {}
        for field_name, title in CONFLICT_FIELDS.items():
            kept, removed = survivor.get(field_name), member.get(field_name)
            if is_blank(kept) or is_blank(removed) or kept == removed:
                continue
            contact_conflicts[field_name] = f"{title} ('{kept}' / '{removed}')"

        address_conflicts: dict[str, str] = {}
        survivor_addresses = {a.location_type: a for a in self.get_addresses(survivor_id)}
        for address in self.get_addresses(member_id):
            same_type = survivor_addresses.get(address.location_type)
            if same_type is not None and not same_type.matches(address):
                address_conflicts[address.location_type] = f"{address.location_type} address"

        email_conflicts: dict[str, str] = {}
        survivor_emails = {row.location_type: row.email for row in self._emails(survivor_id)}
        for row in self._emails(member_id):
            same_type = survivor_emails.get(row.location_type)
            if same_type is not None and same_type.lower() != row.email.lower():
                email_conflicts[row.location_type] = f"{row.location_type} email"

        conflicts = {
            entity: fields
            for entity, fields in (
                ("contact", contact_conflicts),
                ("address", address_conflicts),
                ("email", email_conflicts),
            )
            if fields
        }
        return MergeConflictReport(conflicts)

    @_translate_errors
    def merge_contacts(
        self,
        survivor_id: ContactId,
        member_id: ContactId,
        *,
        mode: MergeMode,
    ) -> MergeResult:
        """Fold ``member_id`` into ``survivor_id`` and flag the member as deleted.

        Safe mode refuses conflicting contacts. Aggressive mode keeps the
        survivor's values and drops the member's conflicting addresses.
        """

        survivor = self.get_live_contact(survivor_id)
        member = self.get_live_contact(member_id)
        if survivor is None or member is None:
            missing = survivor_id if survivor is None else member_id
            return MergeResult(False, f"Contact [{missing}] not found or is deleted")

        report = self.get_merge_conflicts(survivor_id, member_id)
        if report and mode is MergeMode.SAFE:
            entities = ", ".join(sorted(report.conflicts))
            return MergeResult(False, f"Conflicts in {entities} prevent a safe merge")

        fills = {
            name: member[name]
            for name in FILL_FIELDS
            if is_blank(survivor.get(name)) and not is_blank(member.get(name))
        }
        if fills:
            self.session.execute(
                update(contact_table).where(contact_table.c.id == survivor_id).values(**fills)
            )

        self._move_addresses(survivor_id, member_id)
        self._move_emails(survivor_id, member_id)
        self.session.execute(
            update(note_table)
            .where(note_table.c.contact_id == member_id)
            .values(contact_id=survivor_id)
        )
        self.session.execute(
            update(activity_table)
            .where(activity_table.c.target_contact_id == member_id)
            .values(target_contact_id=survivor_id)
        )
        self.session.execute(
            delete(dedupe_exception_table).where(
                or_(
                    dedupe_exception_table.c.contact_id1 == member_id,
                    dedupe_exception_table.c.contact_id2 == member_id,
                )
            )
        )
        self.session.execute(
            update(contact_table).where(contact_table.c.id == member_id).values(is_deleted=True)
        )
        self.session.execute(
            insert(activity_table).values(
                activity_type=self.merge_activity_type,
                target_contact_id=survivor_id,
                subject=f"Contact [{member_id}] merged into [{survivor_id}] ({mode})",
                activity_date_time=datetime.now(UTC),
            )
        )
        log.debug("Merged contact %s into %s (%s)", member_id, survivor_id, mode)
        return MergeResult(True)

    def _move_addresses(self, survivor_id: ContactId, member_id: ContactId) -> None:
        survivor_addresses = self.get_addresses(survivor_id)
        has_primary = any(address.is_primary for address in survivor_addresses)
        by_type = {address.location_type: address for address in survivor_addresses}
        for address in self.get_addresses(member_id):
            if address.id is None:
                continue
            if address.location_type in by_type:
                # identical duplicates and aggressive-mode conflicts both go
                self.delete_address(address.id)
                continue
            self.session.execute(
                update(address_table)
                .where(address_table.c.id == address.id)
                .values(contact_id=survivor_id, is_primary=address.is_primary and not has_primary)
            )
            has_primary = has_primary or address.is_primary

    def _move_emails(self, survivor_id: ContactId, member_id: ContactId) -> None:
        survivor_emails = self._emails(survivor_id)
        known = {row.email.lower() for row in survivor_emails}
        has_primary = any(row.is_primary for row in survivor_emails)
        for row in self._emails(member_id):
            if row.email.lower() in known:
                self.session.execute(delete(email_table).where(email_table.c.id == row.id))
                continue
            self.session.execute(
                update(email_table)
                .where(email_table.c.id == row.id)
                .values(contact_id=survivor_id, is_primary=row.is_primary and not has_primary)
            )
            known.add(row.email.lower())
            has_primary = has_primary or row.is_primary

    def _emails(self, contact_id: ContactId) -> list[Row[Any]]:
        statement = (
            select(email_table)
            .where(email_table.c.contact_id == contact_id)
            .order_by(email_table.c.id)
        )
        return list(self.session.execute(statement).all())

    # -- addresses ---------------------------------------------------------

    @_translate_errors
    def get_addresses(self, contact_id: ContactId) -> list[Address]:
        statement = (
            select(address_table)
            .where(address_table.c.contact_id == contact_id)
            .order_by(address_table.c.id)
        )
        return [_address_from_row(row) for row in self.session.execute(statement)]

    @_translate_errors
    def add_address(self, address: Address) -> Address:
        values = {
            column.name: getattr(address, column.name)
            for column in address_table.columns
            if column.name != "id"
        }
        result = self.session.execute(insert(address_table).values(**values))
        address.id = result.inserted_primary_key[0]
        return address

    @_translate_errors
    def update_address(self, address: Address) -> None:
        if address.id is None:
            raise EntityStoreError("Cannot update an address without an id")
        values = {
            column.name: getattr(address, column.name)
            for column in address_table.columns
            if column.name != "id"
        }
        self.session.execute(
            update(address_table).where(address_table.c.id == address.id).values(**values)
        )

    @_translate_errors
    def delete_address(self, address_id: int) -> None:
        self.session.execute(delete(address_table).where(address_table.c.id == address_id))

    # -- activities and notes ----------------------------------------------

    @_translate_errors
    def count_activities(self, contact_ids: Collection[ContactId]) -> dict[ContactId, int]:
        counts = dict.fromkeys(contact_ids, 0)
        if not counts:
            return counts
        statement = (
            select(activity_table.c.target_contact_id, func.count(activity_table.c.id))
            .where(activity_table.c.target_contact_id.in_(counts))
            .group_by(activity_table.c.target_contact_id)
        )
        for contact_id, count in self.session.execute(statement):
            counts[contact_id] = count
        return counts

    @_translate_errors
    def find_latest_activity(
        self,
        contact_id: ContactId,
        activity_type: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> Activity | None:
        statement = select(activity_table).where(
            activity_table.c.target_contact_id == contact_id,
            activity_table.c.activity_type == activity_type,
        )
        if since is not None:
            statement = statement.where(activity_table.c.activity_date_time >= since)
        if until is not None:
            statement = statement.where(activity_table.c.activity_date_time <= until)
        row = self.session.execute(statement.order_by(activity_table.c.id.desc()).limit(1)).first()
        if row is None:
            return None
        return Activity(
            id=row.id,
            activity_type=row.activity_type,
            target_contact_id=row.target_contact_id,
            subject=row.subject,
            details=row.details,
            activity_date_time=row.activity_date_time,
        )

    @_translate_errors
    def update_activity_details(self, activity_id: int, details: str) -> None:
        self.session.execute(
            update(activity_table).where(activity_table.c.id == activity_id).values(details=details)
        )

    @_translate_errors
    def create_note(self, contact_id: ContactId, *, subject: str, note: str) -> Note:
        created_at = datetime.now(UTC)
        result = self.session.execute(
            insert(note_table).values(
                contact_id=contact_id,
                subject=subject,
                note=note,
                created_at=created_at,
            )
        )
        return Note(
            id=result.inserted_primary_key[0],
            contact_id=contact_id,
            subject=subject,
            note=note,
            created_at=created_at,
        )

    # -- exclusions --------------------------------------------------------

    @_translate_errors
    def add_exclusions(self, contact_ids: Collection[ContactId]) -> int:
        pairs = set(itertools.combinations(sorted(set(contact_ids)), 2))
        if not pairs:
            return 0
        ids = sorted(set(contact_ids))
        existing = {
            (row.contact_id1, row.contact_id2)
            for row in self.session.execute(
                select(dedupe_exception_table).where(
                    dedupe_exception_table.c.contact_id1.in_(ids),
                    dedupe_exception_table.c.contact_id2.in_(ids),
                )
            )
        }
        missing = sorted(pairs - existing)
        if missing:
            self.session.execute(
                insert(dedupe_exception_table),
                [{"contact_id1": first, "contact_id2": second} for first, second in missing],
            )
        return len(missing)
