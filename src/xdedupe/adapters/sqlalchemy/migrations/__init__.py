"""Alembic entry points for the xdedupe schema.

Settings live under ``[tool.alembic]`` in the project's pyproject.toml. When
the package runs from an installed wheel there is no pyproject beside it and
the revisions shipped in this package directory are used as they are.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config

from xdedupe.config.storage import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

SCRIPT_DIR: Final[Path] = Path(__file__).resolve().parent
SOURCE_ROOT: Final[Path] = SCRIPT_DIR.parents[4]
PYPROJECT_PATH: Final[Path] = SOURCE_ROOT / "pyproject.toml"

_PATH_OPTIONS: Final = frozenset({"script_location", "prepend_sys_path"})


def read_alembic_options(pyproject: Path = PYPROJECT_PATH) -> dict[str, str]:
    if not pyproject.is_file():
        return {}
    with pyproject.open("rb") as handle:
        section = tomllib.load(handle).get("tool", {}).get("alembic", {})
    return {str(key): str(value) for key, value in section.items()}


def _under_source_root(raw: str) -> Path:
    path = Path(raw)
    return path if path.is_absolute() else (SOURCE_ROOT / path).resolve()


def alembic_config(url: str | None = None) -> Config:
    """Build the Alembic ``Config`` used by :func:`upgrade_head`."""

    options = read_alembic_options()
    config = Config()

    scripts = SCRIPT_DIR
    if "script_location" in options:
        scripts = _under_source_root(options["script_location"])
    config.set_main_option("script_location", str(scripts if scripts.is_dir() else SCRIPT_DIR))
    prepend = _under_source_root(options.get("prepend_sys_path", "."))
    config.set_main_option("prepend_sys_path", str(prepend))
    for key, value in options.items():
        if key not in _PATH_OPTIONS:
            config.set_main_option(key, value)
    if url is not None:
        config.set_main_option("sqlalchemy.url", url)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Bring the schema to the newest revision.

    With an engine the upgrade runs on one of its connections, so in-process
    SQLite databases see the result. Otherwise a fresh connection is opened to
    ``database_uri`` or the configured default.
    """

    if engine is None:
        command.upgrade(alembic_config(database_uri or get_database_uri()), "head")
        return
    config = alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
