"""Shared engine handling for the PostgreSQL-backed stores.

The stores share one SQLAlchemy ``AsyncEngine`` (asyncpg driver) created by
the composition root.  Statements are plain SQL through ``text()`` with
named parameters; list parameters bind as arrays for ``= ANY(:param)``.
Driver errors surface as :class:`BackendUnavailableError`.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from designvault.utils.errors import BackendUnavailableError, DesignVaultError


def create_postgres_engine(dsn: str, pool_size: int = 5) -> AsyncEngine:
    """Create the shared async engine (``postgresql+asyncpg://`` URLs)."""
    return create_async_engine(
        dsn,
        pool_size=pool_size,
        max_overflow=pool_size * 2,
        pool_pre_ping=True,
    )


def escape_like(value: str) -> str:
    """Escape LIKE wildcards; PostgreSQL's default LIKE escape is backslash."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresStoreBase:
    """Base class holding the engine and the transaction helper."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @asynccontextmanager
    async def _transaction(
        self,
        error_class: type[DesignVaultError] = BackendUnavailableError,
    ) -> AsyncIterator[AsyncConnection]:
        """Yield a connection inside a transaction that commits on exit."""
        try:
            async with self._engine.begin() as conn:
                yield conn
        except (SQLAlchemyError, OSError) as exc:
            raise error_class(
                message=f"PostgreSQL error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def _run_ddl(self, statements: list[str]) -> None:
        async with self._transaction() as conn:
            for statement in statements:
                await conn.execute(text(statement))

    def get_provider_name(self) -> str:
        return "postgres"
