"""PostgreSQL-backed asset store.

Tier-2 lexical search uses native text search: the filename, display name,
description and tag string are folded into one English ``tsvector``
(backed by a GIN expression index) and matched against an OR-combined
prefix ``tsquery``, ranked by ``ts_rank``.  Stemming and stop-word removal
mean matches differ from Tier-1's plain substring semantics in both
directions; see the SQLite store for the embedded equivalent.
"""

from __future__ import annotations

import re
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.engine import RowMapping

from designvault.interfaces.asset_store import IAssetStore
from designvault.models.asset import Asset, AssetCategory, ProcessingStatus
from designvault.models.classification import ClassificationFailure, ClassificationResult
from designvault.models.search import AssetFilter, AssetPage, SortField, SortOrder, SuggestionSource
from designvault.providers.store.postgres_base import PostgresStoreBase, escape_like
from designvault.providers.store.sqlite_base import dumps_json, loads_json
from designvault.utils.timestamps import as_utc, from_db_timestamp, utcnow

logger = structlog.get_logger(logger_name=__name__)

_DOCUMENT_SQL = (
    "to_tsvector('english', {a}filename || ' ' || {a}display_name || ' ' || "
    "COALESCE({a}ai_description, '') || ' ' || COALESCE({a}ai_tags, ''))"
)

_SCHEMA_SQL = [
    """\
CREATE TABLE IF NOT EXISTS assets (
    id                 TEXT        PRIMARY KEY,
    filename           TEXT        NOT NULL,
    display_name       TEXT        NOT NULL,
    storage_key        TEXT        NOT NULL,
    mime_type          TEXT        NOT NULL,
    size_bytes         BIGINT      NOT NULL,
    category           TEXT        NOT NULL,
    site_id            TEXT        NOT NULL,
    uploaded_by        TEXT        NOT NULL,
    processing_status  TEXT        NOT NULL DEFAULT 'pending',
    ai_description     TEXT,
    ai_tags            TEXT,
    metadata           TEXT,
    created_at         TIMESTAMPTZ NOT NULL,
    updated_at         TIMESTAMPTZ NOT NULL
)
""",
    "CREATE INDEX IF NOT EXISTS idx_assets_site ON assets(site_id)",
    "CREATE INDEX IF NOT EXISTS idx_assets_status ON assets(processing_status)",
    "CREATE INDEX IF NOT EXISTS idx_assets_created ON assets(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_assets_category ON assets(category)",
    "CREATE INDEX IF NOT EXISTS idx_assets_fulltext ON assets USING GIN ("
    + _DOCUMENT_SQL.format(a="")
    + ")",
]

_SELECT_COLUMNS = (
    "{a}id, {a}filename, {a}display_name, {a}storage_key, {a}mime_type, {a}size_bytes, "
    "{a}category, {a}site_id, {a}uploaded_by, {a}processing_status, {a}ai_description, "
    "{a}ai_tags, {a}metadata, {a}created_at, {a}updated_at"
)

_SORT_COLUMNS: dict[SortField, str] = {
    SortField.RELEVANCE: "created_at",
    SortField.CREATED_AT: "created_at",
    SortField.NAME: "display_name",
    SortField.SIZE: "size_bytes",
}

_TSQUERY_TOKEN_RE = re.compile(r"[^\W_]+")


def _columns(alias: str = "") -> str:
    return _SELECT_COLUMNS.format(a=alias)


def _term_clause(param: str, alias: str = "") -> str:
    return (
        f"({alias}filename ILIKE :{param} OR {alias}display_name ILIKE :{param} "
        f"OR COALESCE({alias}ai_description, '') ILIKE :{param} "
        f"OR COALESCE({alias}ai_tags, '') ILIKE :{param})"
    )


def build_where(criteria: AssetFilter, terms: list[str], alias: str = "") -> tuple[str, dict[str, Any]]:
    """Translate an :class:`AssetFilter` plus substring terms into SQL and params."""
    clauses = [f"{alias}site_id = ANY(:site_ids)"]
    params: dict[str, Any] = {"site_ids": list(criteria.site_ids)}

    if criteria.categories:
        clauses.append(f"{alias}category = ANY(:categories)")
        params["categories"] = [c.value for c in criteria.categories]
    if criteria.date_from:
        clauses.append(f"{alias}created_at >= :date_from")
        params["date_from"] = as_utc(criteria.date_from)
    if criteria.date_to:
        clauses.append(f"{alias}created_at <= :date_to")
        params["date_to"] = as_utc(criteria.date_to)
    if criteria.mime_types:
        clauses.append(f"{alias}mime_type = ANY(:mime_types)")
        params["mime_types"] = list(criteria.mime_types)
    if criteria.mime_type_contains:
        clauses.append(f"{alias}mime_type ILIKE :mime_type_contains")
        params["mime_type_contains"] = f"%{escape_like(criteria.mime_type_contains)}%"
    if criteria.site_id_contains:
        clauses.append(f"{alias}site_id ILIKE :site_id_contains")
        params["site_id_contains"] = f"%{escape_like(criteria.site_id_contains)}%"

    for i, term in enumerate(terms):
        name = f"term_{i}"
        clauses.append(_term_clause(name, alias))
        params[name] = f"%{escape_like(term)}%"

    return " AND ".join(clauses), params


def tsquery_expression(query_text: str) -> str | None:
    """Build a ``to_tsquery`` input: every token as a prefix match, OR-combined."""
    tokens = list(dict.fromkeys(t.lower() for t in _TSQUERY_TOKEN_RE.findall(query_text)))
    if not tokens:
        return None
    return " | ".join(f"{token}:*" for token in tokens)


def _row_to_asset(row: RowMapping, score: float | None = None) -> Asset:
    return Asset(
        id=row["id"],
        filename=row["filename"],
        display_name=row["display_name"],
        storage_key=row["storage_key"],
        mime_type=row["mime_type"],
        size_bytes=row["size_bytes"],
        category=AssetCategory(row["category"]),
        site_id=row["site_id"],
        uploaded_by=row["uploaded_by"],
        processing_status=ProcessingStatus(row["processing_status"]),
        ai_description=row["ai_description"],
        ai_tags=loads_json(row["ai_tags"]),
        metadata=loads_json(row["metadata"]),
        created_at=from_db_timestamp(row["created_at"]),
        updated_at=from_db_timestamp(row["updated_at"]),
        relevance_score=score,
    )


class PostgresAssetStore(PostgresStoreBase, IAssetStore):
    """PostgreSQL-backed asset persistence and search primitives."""

    async def initialize(self) -> None:
        await self._run_ddl(_SCHEMA_SQL)
        logger.info("asset_store_initialized", backend="postgres", lexical_mode="tsvector")

    async def insert_asset(self, asset: Asset) -> Asset:
        async with self._transaction() as conn:
            await conn.execute(
                text(
                    "INSERT INTO assets (id, filename, display_name, storage_key, mime_type, "
                    "size_bytes, category, site_id, uploaded_by, processing_status, "
                    "ai_description, ai_tags, metadata, created_at, updated_at) VALUES "
                    "(:id, :filename, :display_name, :storage_key, :mime_type, :size_bytes, "
                    ":category, :site_id, :uploaded_by, :processing_status, :ai_description, "
                    ":ai_tags, :metadata, :created_at, :updated_at)"
                ),
                {
                    "id": asset.id,
                    "filename": asset.filename,
                    "display_name": asset.display_name,
                    "storage_key": asset.storage_key,
                    "mime_type": asset.mime_type,
                    "size_bytes": asset.size_bytes,
                    "category": asset.category.value,
                    "site_id": asset.site_id,
                    "uploaded_by": asset.uploaded_by,
                    "processing_status": asset.processing_status.value,
                    "ai_description": asset.ai_description,
                    "ai_tags": dumps_json(asset.ai_tags),
                    "metadata": dumps_json(asset.metadata),
                    "created_at": as_utc(asset.created_at),
                    "updated_at": as_utc(asset.updated_at),
                },
            )
        logger.info("asset_inserted", asset_id=asset.id, site_id=asset.site_id)
        return asset

    async def get_asset(self, asset_id: str) -> Asset | None:
        async with self._transaction() as conn:
            result = await conn.execute(
                text(f"SELECT {_columns()} FROM assets WHERE id = :id"), {"id": asset_id}
            )
            row = result.mappings().first()
        return _row_to_asset(row) if row else None

    async def update_asset_details(
        self,
        asset_id: str,
        display_name: str | None = None,
        category: AssetCategory | None = None,
    ) -> Asset | None:
        assignments: list[str] = []
        params: dict[str, Any] = {"id": asset_id, "updated_at": utcnow()}
        if display_name is not None:
            assignments.append("display_name = :display_name")
            params["display_name"] = display_name
        if category is not None:
            assignments.append("category = :category")
            params["category"] = category.value
        if not assignments:
            return await self.get_asset(asset_id)

        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    f"UPDATE assets SET {', '.join(assignments)}, updated_at = :updated_at "
                    f"WHERE id = :id RETURNING {_columns()}"
                ),
                params,
            )
            row = result.mappings().first()
        if row is None:
            return None
        logger.info("asset_updated", asset_id=asset_id, fields=len(assignments))
        return _row_to_asset(row)

    async def delete_asset(self, asset_id: str) -> bool:
        async with self._transaction() as conn:
            result = await conn.execute(text("DELETE FROM assets WHERE id = :id"), {"id": asset_id})
            deleted = result.rowcount == 1
        if deleted:
            logger.info("asset_deleted", asset_id=asset_id)
        return deleted

    # ------------------------------------------------------------------
    # Classification writes
    # ------------------------------------------------------------------

    async def _conditional_update(self, assignments: str, params: dict[str, Any]) -> bool:
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    f"UPDATE assets SET {assignments}, updated_at = :updated_at "
                    "WHERE id = :id AND processing_status = :expected"
                ),
                {**params, "updated_at": utcnow()},
            )
            return result.rowcount == 1

    async def begin_processing(self, asset_id: str) -> bool:
        return await self._conditional_update(
            "processing_status = :status",
            {
                "id": asset_id,
                "status": ProcessingStatus.PROCESSING.value,
                "expected": ProcessingStatus.PENDING.value,
            },
        )

    async def record_classification(self, asset_id: str, result: ClassificationResult) -> bool:
        return await self._conditional_update(
            "processing_status = :status, ai_description = :description, "
            "ai_tags = :tags, metadata = :metadata",
            {
                "id": asset_id,
                "status": ProcessingStatus.COMPLETED.value,
                "expected": ProcessingStatus.PROCESSING.value,
                "description": result.description,
                "tags": dumps_json(result.tags),
                "metadata": dumps_json(result.model_dump()),
            },
        )

    async def record_failure(self, asset_id: str, failure: ClassificationFailure) -> bool:
        return await self._conditional_update(
            "processing_status = :status, ai_description = NULL, ai_tags = NULL, "
            "metadata = :metadata",
            {
                "id": asset_id,
                "status": ProcessingStatus.FAILED.value,
                "expected": ProcessingStatus.PROCESSING.value,
                "metadata": dumps_json({"failure": failure.model_dump(mode="json")}),
            },
        )

    async def reset_failed(self, asset_ids: list[str] | None = None) -> list[str]:
        sql = (
            "UPDATE assets SET processing_status = :pending, updated_at = :updated_at "
            "WHERE processing_status = :failed"
        )
        params: dict[str, Any] = {
            "pending": ProcessingStatus.PENDING.value,
            "failed": ProcessingStatus.FAILED.value,
            "updated_at": utcnow(),
        }
        if asset_ids is not None:
            if not asset_ids:
                return []
            sql += " AND id = ANY(:asset_ids)"
            params["asset_ids"] = list(asset_ids)
        sql += " RETURNING id"

        async with self._transaction() as conn:
            result = await conn.execute(text(sql), params)
            reset_ids = sorted(row[0] for row in result.fetchall())
        logger.info("failed_assets_reset", count=len(reset_ids))
        return reset_ids

    async def fail_interrupted(self, failure: ClassificationFailure) -> list[str]:
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    "UPDATE assets SET processing_status = :failed, ai_description = NULL, "
                    "ai_tags = NULL, metadata = :metadata, updated_at = :updated_at "
                    "WHERE processing_status = :processing RETURNING id"
                ),
                {
                    "failed": ProcessingStatus.FAILED.value,
                    "processing": ProcessingStatus.PROCESSING.value,
                    "metadata": dumps_json({"failure": failure.model_dump(mode="json")}),
                    "updated_at": utcnow(),
                },
            )
            return sorted(row[0] for row in result.fetchall())

    async def list_ids_by_status(self, status: ProcessingStatus, limit: int = 1000) -> list[str]:
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    "SELECT id FROM assets WHERE processing_status = :status "
                    "ORDER BY created_at ASC, id ASC LIMIT :limit"
                ),
                {"status": status.value, "limit": limit},
            )
            return [row[0] for row in result.fetchall()]

    async def list_failed(self, offset: int = 0, limit: int = 20) -> AssetPage:
        params = {"failed": ProcessingStatus.FAILED.value, "limit": limit, "offset": offset}
        async with self._transaction() as conn:
            count = await conn.execute(
                text("SELECT COUNT(*) FROM assets WHERE processing_status = :failed"), params
            )
            total = count.scalar_one()
            result = await conn.execute(
                text(
                    f"SELECT {_columns()} FROM assets WHERE processing_status = :failed "
                    "ORDER BY updated_at DESC, id ASC LIMIT :limit OFFSET :offset"
                ),
                params,
            )
            rows = result.mappings().all()
        return AssetPage(assets=[_row_to_asset(r) for r in rows], total=total)

    async def count_by_status(self) -> dict[ProcessingStatus, int]:
        async with self._transaction() as conn:
            result = await conn.execute(
                text("SELECT processing_status, COUNT(*) AS total FROM assets GROUP BY processing_status")
            )
            rows = result.mappings().all()
        counts = {status: 0 for status in ProcessingStatus}
        for row in rows:
            counts[ProcessingStatus(row["processing_status"])] = row["total"]
        return counts

    # ------------------------------------------------------------------
    # Search primitives
    # ------------------------------------------------------------------

    async def filter_assets(
        self,
        criteria: AssetFilter,
        terms: list[str],
        sort_by: SortField = SortField.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
        offset: int = 0,
        limit: int = 20,
    ) -> AssetPage:
        where, params = build_where(criteria, terms)
        direction = "ASC" if sort_order == SortOrder.ASC else "DESC"
        order_by = f"{_SORT_COLUMNS[sort_by]} {direction}, id ASC"

        async with self._transaction() as conn:
            count = await conn.execute(text(f"SELECT COUNT(*) FROM assets WHERE {where}"), params)
            total = count.scalar_one()
            result = await conn.execute(
                text(
                    f"SELECT {_columns()} FROM assets WHERE {where} "
                    f"ORDER BY {order_by} LIMIT :limit OFFSET :offset"
                ),
                {**params, "limit": limit, "offset": offset},
            )
            rows = result.mappings().all()
        return AssetPage(assets=[_row_to_asset(r) for r in rows], total=total)

    async def lexical_search(self, criteria: AssetFilter, query_text: str, limit: int = 50) -> list[Asset]:
        tsquery = tsquery_expression(query_text)
        if tsquery is None:
            return []
        where, params = build_where(criteria, [], alias="a.")
        document = _DOCUMENT_SQL.format(a="a.")
        sql = (
            f"SELECT {_columns('a.')}, ts_rank({document}, q) AS rank "
            "FROM assets a, to_tsquery('english', :tsquery) q "
            f"WHERE {document} @@ q AND {where} "
            "ORDER BY rank DESC, a.created_at DESC, a.id ASC LIMIT :limit"
        )
        async with self._transaction() as conn:
            result = await conn.execute(text(sql), {**params, "tsquery": tsquery, "limit": limit})
            rows = result.mappings().all()
        return [_row_to_asset(r, score=round(float(r["rank"]), 6)) for r in rows]

    async def semantic_candidates(self, criteria: AssetFilter, limit: int) -> list[Asset]:
        where, params = build_where(criteria, [])
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    f"SELECT {_columns()} FROM assets WHERE {where} "
                    "AND ai_description IS NOT NULL AND btrim(ai_description) <> '' "
                    "ORDER BY created_at DESC, id ASC LIMIT :limit"
                ),
                {**params, "limit": limit},
            )
            rows = result.mappings().all()
        return [_row_to_asset(r) for r in rows]

    async def suggestion_sources(
        self,
        site_ids: list[str],
        partial: str,
        limit: int,
    ) -> list[SuggestionSource]:
        if not site_ids:
            return []
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    "SELECT filename, display_name, ai_tags FROM assets "
                    f"WHERE site_id = ANY(:site_ids) AND {_term_clause('partial')} "
                    "ORDER BY created_at DESC, id ASC LIMIT :limit"
                ),
                {
                    "site_ids": list(site_ids),
                    "partial": f"%{escape_like(partial)}%",
                    "limit": limit,
                },
            )
            rows = result.mappings().all()
        return [
            SuggestionSource(
                filename=r["filename"],
                display_name=r["display_name"],
                ai_tags=loads_json(r["ai_tags"]),
            )
            for r in rows
        ]
