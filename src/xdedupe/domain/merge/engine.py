"""Per-tuple merge orchestration with resolvers, conflict checks and rollback."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Self

from xdedupe.domain.errors import (
    EntityStoreError,
    MergeAbortedError,
    MergeConflictError,
    MergeFailedError,
    MergeVerificationError,
    MissingContactError,
    ResolverError,
    SelfMergeError,
    UnknownStrategyError,
)
from xdedupe.domain.model import (
    DEFAULT_CONFLICT_LOCATION_TYPE,
    DEFAULT_MERGE_ACTIVITY_TYPE,
    MergeMode,
)
from xdedupe.domain.resolvers import RESOLVERS, Resolver, ResolverContext

from .audit import MergeLog
from .cache import RecordCache
from .stats import MergeStats, MergeStatsSummary

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from types import TracebackType

    from xdedupe.domain.model import ContactId, Note
    from xdedupe.domain.ports import EntityStore, MergeOutcomeRecorder

log = logging.getLogger(__name__)

DEFAULT_MERGE_ACTIVITY_WINDOW = timedelta(seconds=10)

type ResolverSpec = str | type[Resolver]


class MergeEngine:
    """One merge session over an entity store.

    Every pairwise merge runs inside its own store transaction. A pair either
    commits completely or leaves no trace in the store; the session keeps going
    with the next pair either way and records the outcome in :attr:`stats`.
    """

    def __init__(  # noqa: PLR0913
        self,
        store: EntityStore,
        *,
        resolvers: Iterable[ResolverSpec] = (),
        force_merge: bool = False,
        merge_log: MergeLog | None = None,
        cache: RecordCache | None = None,
        outcomes: MergeOutcomeRecorder | None = None,
        conflict_location_type: str = DEFAULT_CONFLICT_LOCATION_TYPE,
        merge_activity_type: str = DEFAULT_MERGE_ACTIVITY_TYPE,
        merge_activity_window: timedelta = DEFAULT_MERGE_ACTIVITY_WINDOW,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.force_merge = force_merge
        self.stats = MergeStats()
        self.merge_log = merge_log or MergeLog()
        self.outcomes = outcomes
        self.merge_activity_type = merge_activity_type
        self.merge_activity_window = merge_activity_window
        self._now = now_provider or _aware_now
        self._merge_details: list[str] = []

        resolver_classes = [self._resolve_class(spec) for spec in resolvers]
        attributes = [attr for cls in resolver_classes for attr in cls.required_attributes]
        if cache is None:
            cache = RecordCache(store, attributes)
        self.cache = cache
        self.context = ResolverContext(
            store=store,
            cache=cache,
            add_detail=self.add_merge_detail,
            conflict_location_type=conflict_location_type,
        )
        self.resolvers: list[Resolver] = [cls(self.context) for cls in resolver_classes]

        self.log(
            "Initialised merger: resolvers="
            f"{[type(resolver).__name__ for resolver in self.resolvers]} "
            f"force_merge={force_merge}"
        )

    def _resolve_class(self, spec: ResolverSpec) -> type[Resolver]:
        if not isinstance(spec, str):
            return spec
        try:
            return RESOLVERS.get(spec.strip())
        except UnknownStrategyError:
            self.log_error(f"Resolver class '{spec}' not found!")
            raise

    # -- session lifecycle -------------------------------------------------

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self.merge_log.close()

    # -- statistics and logging --------------------------------------------

    def get_stats(self, *, summary: bool = False) -> MergeStats | MergeStatsSummary:
        if summary:
            return self.stats.summary()
        return self.stats

    def set_aborted(self, reason: str) -> None:
        self.stats.aborted = reason

    def log(self, message: str) -> None:
        self.merge_log.write(message)

    def log_error(self, message: str) -> None:
        self.stats.errors.append(message)
        self.log(f"ERROR: {message}")

    # -- merging -----------------------------------------------------------

    def merge_tuple(self, survivor_id: ContactId, member_ids: Sequence[ContactId]) -> bool:
        """Merge every member into ``survivor_id``; ``True`` only if all pairs merged."""

        members = tuple(member_ids)
        if survivor_id in members:
            raise SelfMergeError(f"Cannot merge contact [{survivor_id}] with itself")

        self.log(
            f"Merging into contact [{survivor_id}]: "
            f"[{','.join(str(member_id) for member_id in members)}]"
        )
        self.cache.load([survivor_id, *members])
        survivor = self.cache.get(survivor_id)
        if survivor is None or survivor.get("is_deleted"):
            self.log_error(f"Main contact [{survivor_id}] is deleted. This is wrong!")
            self.stats.failed.append((survivor_id, members))
            return False

        succeeded = True
        for member_id in members:
            succeeded &= self.merge_pair(survivor_id, member_id)

        if not succeeded:
            self.stats.failed.append((survivor_id, members))
            return False

        self.stats.tuples_merged += 1
        if self.outcomes is not None:
            self.outcomes.record_merge_outcome(min(survivor_id, *members), len(members))
        return True

    def merge_pair(
        self,
        survivor_id: ContactId,
        member_id: ContactId,
        force_merge: bool | None = None,
    ) -> bool:
        """Merge ``member_id`` into ``survivor_id`` inside one store transaction."""

        if survivor_id == member_id:
            raise SelfMergeError(f"Cannot merge contact [{survivor_id}] with itself")
        force = self.force_merge if force_merge is None else force_merge

        try:
            self._require_live(survivor_id, "Main")
            self._require_live(member_id, "Other")
            with self.store.transaction():
                self._run_resolvers(survivor_id, member_id, force=force)
                self._check_conflicts(survivor_id, member_id, force=force)
                self._merge_records(survivor_id, member_id, force=force)
                self._verify_absorbed(member_id, force=force)
        except (MergeAbortedError, EntityStoreError) as exc:
            message = f"Merge failed: {exc}"
            self.add_merge_detail(f"ERROR: {message}")
            self.log_error(message)
            self.cache.invalidate(survivor_id)
            self.cache.invalidate(member_id)
            return False

        self.cache.invalidate(survivor_id)
        self.cache.invalidate(member_id)
        self._post_process(survivor_id)

        self.add_merge_detail(f"Successfully merged contact [{member_id}] into [{survivor_id}]")
        self.stats.contacts_merged += 1
        return True

    def _require_live(self, contact_id: ContactId, role: str) -> None:
        if self.store.get_live_contact(contact_id) is None:
            message = f"{role} contact [{contact_id}] not found or is deleted"
            self.add_merge_detail(message)
            raise MissingContactError(message)

    def _run_resolvers(self, survivor_id: ContactId, member_id: ContactId, *, force: bool) -> None:
        for resolver in self.resolvers:
            resolver_name = type(resolver).__name__
            try:
                changed = resolver.resolve(survivor_id, [member_id])
            except Exception as exc:  # noqa: BLE001
                self.add_merge_detail(f"ERROR: Resolver {resolver_name} failed: {exc}")
                log.warning("Resolver %s failed: %s", resolver_name, exc)
                if not force:
                    raise ResolverError(f"Resolver {resolver_name} failed: {exc}") from exc
                continue
            if changed:
                self.stats.conflicts_resolved += 1

    def _check_conflicts(
        self,
        survivor_id: ContactId,
        member_id: ContactId,
        *,
        force: bool,
    ) -> None:
        try:
            report = self.store.get_merge_conflicts(survivor_id, member_id)
        except EntityStoreError as exc:
            self.add_merge_detail(f"WARNING: Could not check for conflicts: {exc}")
            if not force:
                raise
            return

        if not report:
            return
        self.add_merge_detail("Found conflicts before merge:")
        for entity, _field, description in report:
            self.add_merge_detail(f"Potential conflict in {entity}: {description}")
        if not force:
            raise MergeConflictError(survivor_id, member_id, report)

    def _merge_records(self, survivor_id: ContactId, member_id: ContactId, *, force: bool) -> None:
        mode = MergeMode.AGGRESSIVE if force else MergeMode.SAFE
        result = self.store.merge_contacts(survivor_id, member_id, mode=mode)
        if not result.success:
            raise MergeFailedError(result.error_message or "merge primitive reported an error")

    def _verify_absorbed(self, member_id: ContactId, *, force: bool) -> None:
        if self.store.get_live_contact(member_id) is None:
            return
        self.add_merge_detail(f"WARNING: Other contact [{member_id}] still exists after merge")
        if not force:
            raise MergeVerificationError("Merge verification failed - other contact still exists")

    def _post_process(self, survivor_id: ContactId) -> None:
        for resolver in self.resolvers:
            resolver_name = type(resolver).__name__
            try:
                with self.store.transaction():
                    resolver.post_process(survivor_id)
            except Exception as exc:  # noqa: BLE001
                self.add_merge_detail(
                    f"WARNING: Post-process for resolver {resolver_name} failed: {exc}"
                )
                log.warning("Post-process for resolver %s failed: %s", resolver_name, exc)

    # -- merge details -----------------------------------------------------

    def reset_merge_details(self) -> None:
        self._merge_details = []

    def add_merge_detail(self, information: str) -> None:
        self._merge_details.append(information)

    def merge_details(self) -> list[str]:
        return list(self._merge_details)

    def create_merge_detail_note(
        self,
        contact_id: ContactId,
        subject: str = "Merge Details",
    ) -> Note | None:
        """Store the collected details as a note on ``contact_id``; ``None`` if there are none."""

        if not self._merge_details:
            return None
        with self.store.transaction():
            return self.store.create_note(
                contact_id,
                subject=subject,
                note="\n".join(self._merge_details),
            )

    def update_merge_activity(self, contact_id: ContactId) -> bool:
        """Append the collected details to the latest merge activity targeting ``contact_id``."""

        if not self._merge_details:
            return False
        now = self._now()
        with self.store.transaction():
            activity = self.store.find_latest_activity(
                contact_id,
                self.merge_activity_type,
                since=now - self.merge_activity_window,
                until=now + self.merge_activity_window,
            )
            if activity is None:
                return False
            details = "<br/>".join(self._merge_details)
            if activity.details:
                details = f"{activity.details}<br/>{details}"
            self.store.update_activity_details(activity.id, details)
        return True


def _aware_now() -> datetime:
    return datetime.now().astimezone()
