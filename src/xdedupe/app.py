"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from xdedupe.adapters.sqlalchemy import (
    FILTERS,
    FINDERS,
    CandidateSet,
    SqlAlchemyDedupeUnitOfWork,
    build_filters,
    build_finders,
    reap_stale_runs,
)
from xdedupe.adapters.sqlalchemy.unit_of_work import configured_engine, startup
from xdedupe.config import DedupeConfig, DedupeProfile, get_dedupe_config, load_profile
from xdedupe.domain.errors import XdedupeError
from xdedupe.domain.merge import MergeEngine, MergeLog
from xdedupe.domain.model import DiscoveryCriteria, RunIdentifier
from xdedupe.domain.pickers import PICKERS, build_pickers
from xdedupe.domain.resolvers import RESOLVERS

if TYPE_CHECKING:
    from datetime import timedelta
    from pathlib import Path

    from sqlalchemy.engine import Engine

    from xdedupe.adapters.sqlalchemy import ReapResult
    from xdedupe.domain.merge import MergeStatsSummary
    from xdedupe.domain.model import ContactId
    from xdedupe.domain.ports import DedupeUnitOfWork

type UnitOfWorkFactory = Callable[[], DedupeUnitOfWork]


log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FindResult:
    run_id: RunIdentifier
    tuple_count: int
    contact_count: int
    runtime_seconds: float | None


def _ensure_started(engine: Engine | None = None) -> Engine:
    if engine is not None:
        return engine
    return configured_engine() or startup()


def _default_unit_of_work(config: DedupeConfig) -> UnitOfWorkFactory:
    def factory() -> DedupeUnitOfWork:
        return SqlAlchemyDedupeUnitOfWork(merge_activity_type=config.merge_activity_type)

    return factory


def load_dedupe_profile(path: Path) -> DedupeProfile:
    """Load a profile and check every strategy name against its registry."""

    profile = load_profile(path)
    for finder in profile.finders:
        FINDERS.get(finder.name)
    for candidate_filter in profile.filters:
        FILTERS.get(candidate_filter.name)
    for resolver in profile.resolvers:
        RESOLVERS.get(resolver)
    for picker in profile.pickers:
        PICKERS.get(picker)
    return profile


def find_duplicates(
    profile: DedupeProfile,
    *,
    run_id: RunIdentifier | None = None,
    engine: Engine | None = None,
) -> FindResult:
    """Run discovery for ``profile`` into a (new or existing) run table."""

    resolved_engine = _ensure_started(engine)
    finders = build_finders((spec.name, spec.params) for spec in profile.finders)
    filters = build_filters((spec.name, spec.params) for spec in profile.filters)
    candidates = CandidateSet(resolved_engine, run_id)
    log.info(
        "Starting discovery '%s' into run %s: finders=%s, filters=%s",
        profile.name,
        candidates.run_id,
        [spec.name for spec in profile.finders],
        [spec.name for spec in profile.filters],
    )
    candidates.discover(DiscoveryCriteria(contact_type=profile.contact_type), finders, filters)
    return FindResult(
        run_id=candidates.run_id,
        tuple_count=candidates.count(),
        contact_count=candidates.total_members(),
        runtime_seconds=candidates.last_discovery_runtime,
    )


def list_tuples(
    run_id: RunIdentifier | str,
    *,
    count: int = 20,
    offset: int = 0,
    pickers: tuple[str, ...] = (),
    engine: Engine | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> dict[ContactId, list[ContactId]]:
    resolved_engine = _ensure_started(engine)
    candidates = CandidateSet.open(resolved_engine, run_id)
    if not pickers:
        return candidates.page(count, offset)
    effective_uow = unit_of_work_factory or _default_unit_of_work(get_dedupe_config())
    with effective_uow() as uow:
        store = uow.repositories.contacts
        return candidates.page(count, offset, build_pickers(pickers, store))


def merge_tuples(  # noqa: PLR0913
    run_id: RunIdentifier | str,
    *,
    count: int = 20,
    offset: int = 0,
    resolvers: tuple[str, ...] = (),
    pickers: tuple[str, ...] = (),
    force_merge: bool = False,
    merge_log: Path | None = None,
    config: DedupeConfig | None = None,
    engine: Engine | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> MergeStatsSummary:
    """Merge one page of tuples and return the session statistics.

    Per-tuple failures are counted in the statistics. Anything else stops the
    batch and is reported as ``aborted``.
    """

    resolved_engine = _ensure_started(engine)
    effective_config = config or get_dedupe_config()
    effective_uow = unit_of_work_factory or _default_unit_of_work(effective_config)
    candidates = CandidateSet.open(resolved_engine, run_id)
    log_path = merge_log or effective_config.merge_log

    with effective_uow() as uow:
        store = uow.repositories.contacts
        page = candidates.page(count, offset, build_pickers(pickers, store))
        log.info("Merging %s tuples of run %s", len(page), candidates.run_id)
        with MergeEngine(
            store,
            resolvers=resolvers,
            force_merge=force_merge,
            merge_log=MergeLog.open(log_path) if log_path else None,
            outcomes=candidates,
            conflict_location_type=effective_config.conflict_location_type,
            merge_activity_type=effective_config.merge_activity_type,
            merge_activity_window=effective_config.merge_activity_window,
        ) as merger:
            for main_id, other_ids in page.items():
                merger.reset_merge_details()
                try:
                    merged = merger.merge_tuple(main_id, other_ids)
                    if merged and not merger.update_merge_activity(main_id):
                        merger.create_merge_detail_note(main_id)
                except XdedupeError as exc:
                    merger.set_aborted(str(exc))
                    merger.log_error(f"Batch aborted: {exc}")
                    log.exception("Merge batch aborted at tuple [%s]", main_id)
                    break
            summary = merger.stats.summary()

    log.info(
        "Finished merging: tuples=%s, contacts=%s, conflicts_resolved=%s, failed=%s",
        summary.tuples_merged,
        summary.contacts_merged,
        summary.conflicts_resolved,
        summary.failed,
    )
    return summary


def exclude_tuple(
    run_id: RunIdentifier | str,
    contact_id: ContactId,
    *,
    engine: Engine | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> int:
    """Record every member pair of a tuple as non-duplicates and drop the tuple from the run.

    ``contact_id`` may be any member, so the main id printed by ``show`` works
    whichever picker chose it.
    """

    resolved_engine = _ensure_started(engine)
    candidates = CandidateSet.open(resolved_engine, run_id)
    candidate = candidates.find_containing(contact_id)
    if candidate is None:
        raise ValueError(f"Run {candidates.run_id} has no tuple containing [{contact_id}]")

    effective_uow = unit_of_work_factory or _default_unit_of_work(get_dedupe_config())
    with effective_uow() as uow:
        store = uow.repositories.contacts
        with store.transaction():
            added = store.add_exclusions(candidate.member_ids)
    candidates.remove(candidate.survivor_id)
    log.info("Excluded tuple [%s]: %s new exception pairs", candidate.survivor_id, added)
    return added


def cleanup_runs(
    retention: timedelta | None = None,
    *,
    keep: tuple[RunIdentifier, ...] = (),
    engine: Engine | None = None,
) -> ReapResult:
    resolved_engine = _ensure_started(engine)
    horizon = retention if retention is not None else get_dedupe_config().run_retention
    result = reap_stale_runs(
        resolved_engine,
        horizon,
        keep=tuple(run.table_name for run in keep),
    )
    log.info(
        "Cleanup dropped %s run tables, %s unrecognised",
        len(result.dropped),
        len(result.unrecognised),
    )
    return result
