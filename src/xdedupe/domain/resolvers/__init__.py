"""Registered merge resolvers."""

from __future__ import annotations

from xdedupe.domain.registry import Registry

from .base import Resolver, ResolverContext
from .bump_address_conflicts import BumpAddressConflicts

RESOLVERS: Registry[type[Resolver]] = Registry("resolver")
RESOLVERS.register("bump_address_conflicts", BumpAddressConflicts)

__all__ = [
    "RESOLVERS",
    "BumpAddressConflicts",
    "Resolver",
    "ResolverContext",
]
