"""PostgreSQL-backed search audit log (append-only)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import text

from designvault.interfaces.search_log_store import ISearchLogStore
from designvault.models.search import PopularQuery, SearchQueryRecord, SearchStats, SearchTier
from designvault.providers.store.postgres_base import PostgresStoreBase
from designvault.providers.store.sqlite_base import dumps_json, loads_json
from designvault.utils.errors import TelemetryWriteError
from designvault.utils.timestamps import as_utc, from_db_timestamp

logger = structlog.get_logger(logger_name=__name__)

_SCHEMA_SQL = [
    """\
CREATE TABLE IF NOT EXISTS search_queries (
    id            TEXT             PRIMARY KEY,
    user_id       TEXT             NOT NULL,
    query         TEXT             NOT NULL,
    filters       TEXT,
    result_count  INTEGER          NOT NULL DEFAULT 0,
    latency_ms    DOUBLE PRECISION NOT NULL DEFAULT 0,
    tier          TEXT             NOT NULL DEFAULT 'none',
    created_at    TIMESTAMPTZ      NOT NULL
)
""",
    "CREATE INDEX IF NOT EXISTS idx_search_queries_user_created "
    "ON search_queries(user_id, created_at)",
]


def _scope(user_id: str, date_from: datetime | None, date_to: datetime | None) -> tuple[str, dict[str, Any]]:
    clauses = ["user_id = :user_id"]
    params: dict[str, Any] = {"user_id": user_id}
    if date_from:
        clauses.append("created_at >= :date_from")
        params["date_from"] = as_utc(date_from)
    if date_to:
        clauses.append("created_at <= :date_to")
        params["date_to"] = as_utc(date_to)
    return " AND ".join(clauses), params


class PostgresSearchLogStore(PostgresStoreBase, ISearchLogStore):
    """PostgreSQL-backed append-only search log."""

    async def initialize(self) -> None:
        await self._run_ddl(_SCHEMA_SQL)
        logger.info("search_log_initialized", backend="postgres")

    async def append(self, record: SearchQueryRecord) -> None:
        async with self._transaction(error_class=TelemetryWriteError) as conn:
            await conn.execute(
                text(
                    "INSERT INTO search_queries "
                    "(id, user_id, query, filters, result_count, latency_ms, tier, created_at) VALUES "
                    "(:id, :user_id, :query, :filters, :result_count, :latency_ms, :tier, :created_at)"
                ),
                {
                    "id": record.id,
                    "user_id": record.user_id,
                    "query": record.query,
                    "filters": dumps_json(record.filters),
                    "result_count": record.result_count,
                    "latency_ms": record.latency_ms,
                    "tier": record.tier.value,
                    "created_at": as_utc(record.created_at),
                },
            )

    async def recent(
        self,
        user_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 20,
    ) -> list[SearchQueryRecord]:
        where, params = _scope(user_id, date_from, date_to)
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    "SELECT id, user_id, query, filters, result_count, latency_ms, tier, created_at "
                    f"FROM search_queries WHERE {where} ORDER BY created_at DESC, id DESC LIMIT :limit"
                ),
                {**params, "limit": limit},
            )
            rows = result.mappings().all()
        return [
            SearchQueryRecord(
                id=r["id"],
                user_id=r["user_id"],
                query=r["query"],
                filters=loads_json(r["filters"]) or {},
                result_count=r["result_count"],
                latency_ms=r["latency_ms"],
                tier=SearchTier(r["tier"]),
                created_at=from_db_timestamp(r["created_at"]),
            )
            for r in rows
        ]

    async def popular(
        self,
        user_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 10,
    ) -> list[PopularQuery]:
        where, params = _scope(user_id, date_from, date_to)
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    "SELECT query, COUNT(*) AS count, AVG(latency_ms) AS avg_latency "
                    f"FROM search_queries WHERE {where} "
                    "GROUP BY query ORDER BY count DESC, query ASC LIMIT :limit"
                ),
                {**params, "limit": limit},
            )
            rows = result.mappings().all()
        return [
            PopularQuery(
                query=r["query"],
                count=r["count"],
                avg_latency_ms=round(float(r["avg_latency"] or 0.0), 2),
            )
            for r in rows
        ]

    async def stats(
        self,
        user_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> SearchStats:
        where, params = _scope(user_id, date_from, date_to)
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    "SELECT COUNT(*) AS total, AVG(latency_ms) AS avg_latency, "
                    f"AVG(result_count) AS avg_results FROM search_queries WHERE {where}"
                ),
                params,
            )
            row = result.mappings().one()
        return SearchStats(
            total_searches=row["total"],
            avg_latency_ms=round(float(row["avg_latency"] or 0.0), 2),
            avg_result_count=round(float(row["avg_results"] or 0.0), 2),
        )
