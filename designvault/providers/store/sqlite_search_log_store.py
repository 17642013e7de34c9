"""SQLite-backed search audit log.

Records are inserted once and never updated or deleted.  Write failures
raise :class:`TelemetryWriteError`, which the telemetry worker logs and
discards.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from designvault.interfaces.search_log_store import ISearchLogStore
from designvault.models.search import PopularQuery, SearchQueryRecord, SearchStats, SearchTier
from designvault.providers.store.sqlite_base import SQLiteStoreBase, dumps_json, loads_json
from designvault.utils.errors import TelemetryWriteError
from designvault.utils.timestamps import from_db_timestamp, to_db_timestamp

logger = structlog.get_logger(logger_name=__name__)

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS search_queries (
    id            TEXT    PRIMARY KEY,
    user_id       TEXT    NOT NULL,
    query         TEXT    NOT NULL,
    filters       TEXT,
    result_count  INTEGER NOT NULL DEFAULT 0,
    latency_ms    REAL    NOT NULL DEFAULT 0,
    tier          TEXT    NOT NULL DEFAULT 'none',
    created_at    TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_search_queries_user_created "
    "ON search_queries(user_id, created_at);",
]

_INSERT_SQL = """\
INSERT INTO search_queries (id, user_id, query, filters, result_count, latency_ms, tier, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""


def _scope(user_id: str, date_from: datetime | None, date_to: datetime | None) -> tuple[str, list[Any]]:
    clauses = ["user_id = ?"]
    params: list[Any] = [user_id]
    if date_from:
        clauses.append("created_at >= ?")
        params.append(to_db_timestamp(date_from))
    if date_to:
        clauses.append("created_at <= ?")
        params.append(to_db_timestamp(date_to))
    return " AND ".join(clauses), params


class SQLiteSearchLogStore(SQLiteStoreBase, ISearchLogStore):
    """SQLite-backed append-only search log."""

    async def initialize(self) -> None:
        self._ensure_parent_dir()
        async with self._connect() as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("search_log_initialized", path=str(self._db_path))

    async def append(self, record: SearchQueryRecord) -> None:
        async with self._connect(error_class=TelemetryWriteError) as db:
            await db.execute(
                _INSERT_SQL,
                (
                    record.id,
                    record.user_id,
                    record.query,
                    dumps_json(record.filters),
                    record.result_count,
                    record.latency_ms,
                    record.tier.value,
                    to_db_timestamp(record.created_at),
                ),
            )
            await db.commit()

    async def recent(
        self,
        user_id: str,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 20,
    ) -> list[SearchQueryRecord]:
        where, params = _scope(user_id, date_from, date_to)
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, user_id, query, filters, result_count, latency_ms, tier, created_at "
                f"FROM search_queries WHERE {where} ORDER BY created_at DESC, id DESC LIMIT ?",
                [*params, limit],
            )
            rows = await cursor.fetchall()
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
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT query, COUNT(*) AS count, AVG(latency_ms) AS avg_latency "
                f"FROM search_queries WHERE {where} "
                "GROUP BY query ORDER BY count DESC, query ASC LIMIT ?",
                [*params, limit],
            )
            rows = await cursor.fetchall()
        return [
            PopularQuery(
                query=r["query"],
                count=r["count"],
                avg_latency_ms=round(r["avg_latency"] or 0.0, 2),
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
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) AS total, AVG(latency_ms) AS avg_latency, "
                f"AVG(result_count) AS avg_results FROM search_queries WHERE {where}",
                params,
            )
            row = await cursor.fetchone()
        return SearchStats(
            total_searches=row["total"],
            avg_latency_ms=round(row["avg_latency"] or 0.0, 2),
            avg_result_count=round(row["avg_results"] or 0.0, 2),
        )
