"""Name-keyed registries for pluggable finders, filters, resolvers and pickers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from xdedupe.domain.errors import UnknownStrategyError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


class Registry[T]:
    """Static mapping from a configuration name to an implementation."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._entries: dict[str, T] = {}

    def register(self, name: str, entry: T) -> T:
        if name in self._entries:
            raise ValueError(f"{self.kind} '{name}' is already registered")
        self._entries[name] = entry
        return entry

    def entry(self, name: str) -> Callable[[T], T]:
        """Decorator form of :meth:`register`."""

        def decorator(entry: T) -> T:
            return self.register(name, entry)

        return decorator

    def get(self, name: str) -> T:
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownStrategyError(self.kind, name) from None

    def names(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
