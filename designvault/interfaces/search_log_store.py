"""Abstract base class for the append-only search audit log."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from designvault.models.search import PopularQuery, SearchQueryRecord, SearchStats


# Concrete implementations: SQLiteSearchLogStore, PostgresSearchLogStore
class ISearchLogStore(ABC):
    """Contract for writing and reading search query records.

    Records are never updated or deleted.  :meth:`append` raises
    :class:`~designvault.utils.errors.TelemetryWriteError` on failure; the
    read methods raise
    :class:`~designvault.utils.errors.BackendUnavailableError`.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create the search_queries table if missing."""

    @abstractmethod
    async def append(self, record: SearchQueryRecord) -> None:
        """Persist one record."""

    @abstractmethod
    async def recent(
        self,
        user_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 20,
    ) -> list[SearchQueryRecord]:
        """Return the user's most recent records, newest first."""

    @abstractmethod
    async def popular(
        self,
        user_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 10,
    ) -> list[PopularQuery]:
        """Return the user's most frequent queries with average latency."""

    @abstractmethod
    async def stats(
        self,
        user_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> SearchStats:
        """Return search count, average latency, and average result count."""
