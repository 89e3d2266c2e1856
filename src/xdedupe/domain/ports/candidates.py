"""Ports over a discovery run's stored candidate tuples."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from xdedupe.domain.model import ContactId


@runtime_checkable
class MainRecordPicker(Protocol):
    """Choose the surviving contact of a tuple, or abstain with ``None``."""

    name: str

    def select_main(self, contact_ids: Sequence[ContactId]) -> ContactId | None: ...


@runtime_checkable
class MergeOutcomeRecorder(Protocol):
    def record_merge_outcome(self, survivor_id: ContactId, merged_count: int) -> None: ...
