"""Read access to the append-only search log, scoped to the requesting user."""

from __future__ import annotations

from datetime import datetime

from designvault.interfaces.search_log_store import ISearchLogStore
from designvault.models.search import SearchAnalytics, SearchQueryRecord
from designvault.utils.errors import QueryValidationError
from designvault.utils.timestamps import as_utc


class AuditService:
    def __init__(self, log_store: ISearchLogStore) -> None:
        self._store = log_store

    async def history(
        self,
        user_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 20,
    ) -> list[SearchQueryRecord]:
        """Most recent searches by *user_id*, newest first; *limit* is clamped to 1..100."""
        return await self._store.recent(user_id, date_from, date_to, limit=max(1, min(limit, 100)))

    async def analytics(
        self,
        user_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        recent_limit: int = 20,
        popular_limit: int = 10,
    ) -> SearchAnalytics:
        """Recent records, top queries and totals for *user_id* in an optional date range."""
        if date_from and date_to and as_utc(date_from) > as_utc(date_to):
            raise QueryValidationError(message="date_from must not be after date_to")

        recent = await self.history(user_id, date_from, date_to, limit=recent_limit)
        popular = await self._store.popular(user_id, date_from, date_to, limit=popular_limit)
        stats = await self._store.stats(user_id, date_from, date_to)
        return SearchAnalytics(recent=recent, popular=popular, stats=stats)
