"""Shared connection handling for the SQLite-backed stores.

All SQLite stores share one database file.  Each operation opens its own
``aiosqlite`` connection, the same way the stores have always been written,
and driver errors surface as :class:`BackendUnavailableError` so callers
never need to import ``aiosqlite``.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from designvault.utils.errors import BackendUnavailableError, DesignVaultError

_DEFAULT_DB_PATH = Path("data/designvault.db")


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text matches literally (use with ESCAPE '\\')."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_pattern(value: str) -> str:
    return f"%{escape_like(value)}%"


def placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def dumps_json(value: Any) -> str | None:
    return None if value is None else json.dumps(value)


def loads_json(value: str | None) -> Any:
    if value is None or value == "":
        return None
    return json.loads(value)


class SQLiteStoreBase:
    """Base class holding the database path and the connection helper."""

    _error_class: type[DesignVaultError] = BackendUnavailableError

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    @asynccontextmanager
    async def _connect(
        self,
        error_class: type[DesignVaultError] | None = None,
    ) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection with Row access and foreign keys enforced."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys = ON")
                yield db
        except aiosqlite.Error as exc:
            raise (error_class or self._error_class)(
                message=f"SQLite error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _ensure_parent_dir(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    def get_provider_name(self) -> str:
        return "sqlite"
