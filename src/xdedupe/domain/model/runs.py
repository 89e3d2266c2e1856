"""Identifiers for discovery runs and their working tables."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Final

RUN_TABLE_PREFIX: Final[str] = "tmp_xdedupe_"
RUN_TIMESTAMP_FORMAT: Final[str] = "%Y%m%d%H%M%S"
DEFAULT_RUN_RETENTION: Final[timedelta] = timedelta(days=2)
# PostgreSQL identifier limit; MySQL allows one more character
MAX_TABLE_NAME_LENGTH: Final[int] = 63

_IDENTIFIER_PATTERN = re.compile(r"^[0-9A-Za-z_]+$")
_RUN_TABLE_PATTERN = re.compile(r"^tmp_xdedupe_(?P<date>[0-9]{14})_(?P<hash>[0-9a-f]{32})$")


@dataclass(frozen=True, slots=True)
class RunIdentifier:
    """Sortable run id: ``<YYYYmmddHHMMSS>_<32 hex chars>`` (UTC)."""

    value: str

    def __post_init__(self) -> None:
        too_long = len(self.table_name) > MAX_TABLE_NAME_LENGTH
        if too_long or not _IDENTIFIER_PATTERN.match(self.value):
            raise ValueError(f"Invalid run identifier: {self.value!r}")

    def __str__(self) -> str:
        return self.value

    @classmethod
    def new(cls, *, now: datetime | None = None) -> RunIdentifier:
        moment = (now or datetime.now(UTC)).astimezone(UTC)
        return cls(f"{moment.strftime(RUN_TIMESTAMP_FORMAT)}_{uuid.uuid4().hex}")

    @classmethod
    def from_table_name(cls, table_name: str) -> RunIdentifier | None:
        """Return the run owning ``table_name``, or ``None`` if it is not a run table."""

        match = _RUN_TABLE_PATTERN.match(table_name)
        if match is None:
            return None
        identifier = cls(table_name.removeprefix(RUN_TABLE_PREFIX))
        if identifier.created_at is None:
            return None
        return identifier

    @property
    def table_name(self) -> str:
        return f"{RUN_TABLE_PREFIX}{self.value}"

    @property
    def created_at(self) -> datetime | None:
        stamp = self.value.split("_", 1)[0]
        try:
            parsed = datetime.strptime(stamp, RUN_TIMESTAMP_FORMAT)  # noqa: DTZ007
        except ValueError:
            return None
        return parsed.replace(tzinfo=UTC)
