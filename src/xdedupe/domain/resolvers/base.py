"""Contract for pre-merge and post-merge conflict resolvers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from xdedupe.domain.model import DEFAULT_CONFLICT_LOCATION_TYPE

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from xdedupe.domain.merge.cache import RecordCache
    from xdedupe.domain.model import ContactId
    from xdedupe.domain.ports import EntityStore


@dataclass(slots=True)
class ResolverContext:
    """What a resolver may touch: the store, the session cache and the detail stack."""

    store: EntityStore
    cache: RecordCache
    add_detail: Callable[[str], None]
    conflict_location_type: str = DEFAULT_CONFLICT_LOCATION_TYPE


class Resolver(ABC):
    """Pluggable hook run around every pairwise merge.

    ``resolve`` may change either contact through the store and must invalidate
    every contact it changes in ``context.cache``. Raising from ``resolve``
    signals an unresolved conflict; ``post_process`` is best-effort cleanup.
    """

    name: ClassVar[str]
    help: ClassVar[str]
    required_attributes: ClassVar[tuple[str, ...]] = ()

    def __init__(self, context: ResolverContext) -> None:
        self.context = context

    @property
    def store(self) -> EntityStore:
        return self.context.store

    def add_merge_detail(self, information: str) -> None:
        self.context.add_detail(information)

    def changed(self, contact_id: ContactId) -> None:
        self.context.cache.invalidate(contact_id)

    @abstractmethod
    def resolve(self, survivor_id: ContactId, member_ids: Sequence[ContactId]) -> bool:
        """Edit the contacts so they can merge; return whether anything changed."""
        ...

    def post_process(self, survivor_id: ContactId) -> None:
        _ = survivor_id
