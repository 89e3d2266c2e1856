"""Error hierarchy shared by discovery and merge code."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from xdedupe.domain.model import ContactId, MergeConflictReport


class XdedupeError(Exception):
    """Base class for all deduplication errors."""


class UnknownStrategyError(XdedupeError, LookupError):
    """Raised when a finder, filter, resolver or picker name is not registered."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"Unknown {kind} '{name}'")
        self.kind = kind
        self.name = name


class UnknownAttributeError(XdedupeError, LookupError):
    """Raised when a projection asks for a contact attribute the store does not have."""


class MissingRunError(XdedupeError):
    """Raised when a discovery run's working table does not exist."""


class EntityStoreError(XdedupeError):
    """Raised by entity store adapters when the underlying storage fails."""


class SelfMergeError(XdedupeError, ValueError):
    """Raised when a contact is asked to absorb itself."""


class MergeAbortedError(XdedupeError):
    """Base class for conditions that abort a single pairwise merge."""


class MissingContactError(MergeAbortedError):
    """One side of a merge is missing or already deleted."""


class ResolverError(MergeAbortedError):
    """A pre-merge resolver could not resolve its conflicts."""


class MergeConflictError(MergeAbortedError):
    """The store reported field conflicts and the merge is not forced."""

    def __init__(
        self,
        survivor_id: ContactId,
        member_id: ContactId,
        report: MergeConflictReport,
    ) -> None:
        super().__init__("Merge aborted due to conflicts")
        self.survivor_id = survivor_id
        self.member_id = member_id
        self.report = report


class MergeFailedError(MergeAbortedError):
    """The store's merge primitive reported an error."""


class MergeVerificationError(MergeAbortedError):
    """The absorbed contact still exists after the merge call."""
