"""Append-only audit log for merge sessions."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

log = logging.getLogger("xdedupe.merge")

LOG_TIMESTAMP_FORMAT = "[%Y-%m-%d %H:%M:%S] "


def _local_now() -> datetime:
    return datetime.now().astimezone()


class MergeLog:
    """Timestamped line sink; falls back to the ``xdedupe.merge`` logger without a stream."""

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        owns_stream: bool = False,
        now_provider: Callable[[], datetime] = _local_now,
    ) -> None:
        self._stream = stream
        self._owns_stream = owns_stream
        self._now = now_provider

    @classmethod
    def open(
        cls,
        path: Path,
        *,
        now_provider: Callable[[], datetime] = _local_now,
    ) -> MergeLog:
        path.parent.mkdir(parents=True, exist_ok=True)
        stream = path.open("a", encoding="utf-8")
        return cls(stream, owns_stream=True, now_provider=now_provider)

    @property
    def has_sink(self) -> bool:
        return self._stream is not None

    def write(self, message: str) -> None:
        if self._stream is None:
            log.info("XMERGE: %s", message)
            return
        self._stream.write(self._now().strftime(LOG_TIMESTAMP_FORMAT) + message + "\n")
        self._stream.flush()

    def close(self) -> None:
        if self._stream is not None and self._owns_stream:
            self._stream.close()
        self._stream = None
