"""SQLite-backed asset store.

Persists assets to the shared DesignVault SQLite file via ``aiosqlite``.

Tier-2 lexical search uses an FTS5 external-content index over filename,
display name, description and tags, kept in sync by triggers and ranked
with ``bm25``.  Python builds without FTS5 (or deployments that disable it)
fall back to OR-combined substring matching ranked by how many query terms
hit.  The fallback finds every asset Tier-1 finds for the same terms; the
FTS5 path does not, because FTS5 matches token prefixes rather than
arbitrary substrings ("ofa" finds "sofa" in Tier-1 but not in FTS5).
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from designvault.interfaces.asset_store import IAssetStore
from designvault.models.asset import Asset, AssetCategory, ProcessingStatus
from designvault.models.classification import ClassificationFailure, ClassificationResult
from designvault.models.search import AssetFilter, AssetPage, SortField, SortOrder, SuggestionSource
from designvault.providers.store.sqlite_base import (
    _DEFAULT_DB_PATH,
    SQLiteStoreBase,
    contains_pattern,
    dumps_json,
    loads_json,
    placeholders,
)
from designvault.utils.timestamps import from_db_timestamp, to_db_timestamp, utcnow

logger = structlog.get_logger(logger_name=__name__)

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS assets (
    id                 TEXT    PRIMARY KEY,
    filename           TEXT    NOT NULL,
    display_name       TEXT    NOT NULL,
    storage_key        TEXT    NOT NULL,
    mime_type          TEXT    NOT NULL,
    size_bytes         INTEGER NOT NULL,
    category           TEXT    NOT NULL,
    site_id            TEXT    NOT NULL,
    uploaded_by        TEXT    NOT NULL,
    processing_status  TEXT    NOT NULL DEFAULT 'pending',
    ai_description     TEXT,
    ai_tags            TEXT,
    metadata           TEXT,
    created_at         TEXT    NOT NULL,
    updated_at         TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_assets_site ON assets(site_id);",
    "CREATE INDEX IF NOT EXISTS idx_assets_status ON assets(processing_status);",
    "CREATE INDEX IF NOT EXISTS idx_assets_created ON assets(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_assets_category ON assets(category);",
]

_CREATE_FTS_SQL = """\
CREATE VIRTUAL TABLE assets_fts USING fts5(
    filename, display_name, ai_description, ai_tags,
    content='assets', content_rowid='rowid'
);
"""

_CREATE_FTS_TRIGGERS_SQL = [
    """\
CREATE TRIGGER IF NOT EXISTS assets_fts_insert AFTER INSERT ON assets BEGIN
    INSERT INTO assets_fts(rowid, filename, display_name, ai_description, ai_tags)
    VALUES (new.rowid, new.filename, new.display_name, new.ai_description, new.ai_tags);
END;
""",
    """\
CREATE TRIGGER IF NOT EXISTS assets_fts_delete AFTER DELETE ON assets BEGIN
    INSERT INTO assets_fts(assets_fts, rowid, filename, display_name, ai_description, ai_tags)
    VALUES ('delete', old.rowid, old.filename, old.display_name, old.ai_description, old.ai_tags);
END;
""",
    """\
CREATE TRIGGER IF NOT EXISTS assets_fts_update
AFTER UPDATE OF filename, display_name, ai_description, ai_tags ON assets BEGIN
    INSERT INTO assets_fts(assets_fts, rowid, filename, display_name, ai_description, ai_tags)
    VALUES ('delete', old.rowid, old.filename, old.display_name, old.ai_description, old.ai_tags);
    INSERT INTO assets_fts(rowid, filename, display_name, ai_description, ai_tags)
    VALUES (new.rowid, new.filename, new.display_name, new.ai_description, new.ai_tags);
END;
""",
]

_INSERT_SQL = """\
INSERT INTO assets (
    id, filename, display_name, storage_key, mime_type, size_bytes, category,
    site_id, uploaded_by, processing_status, ai_description, ai_tags, metadata,
    created_at, updated_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_COLUMNS = (
    "id, filename, display_name, storage_key, mime_type, size_bytes, category, "
    "site_id, uploaded_by, processing_status, ai_description, ai_tags, metadata, "
    "created_at, updated_at"
)

_SORT_COLUMNS: dict[SortField, str] = {
    SortField.RELEVANCE: "created_at",
    SortField.CREATED_AT: "created_at",
    SortField.NAME: "display_name",
    SortField.SIZE: "size_bytes",
}

# FTS5's unicode61 tokenizer splits on anything that is not a letter or digit.
_FTS_TOKEN_RE = re.compile(r"[^\W_]+")

_TEXT_FIELDS = ("filename", "display_name", "COALESCE({a}ai_description, '')", "COALESCE({a}ai_tags, '')")


def _term_clause(alias: str) -> str:
    """One term matched as a substring of any text field."""
    parts = []
    for field in _TEXT_FIELDS:
        column = field.format(a=alias) if "{a}" in field else f"{alias}{field}"
        parts.append(f"{column} LIKE ? ESCAPE '\\'")
    return "(" + " OR ".join(parts) + ")"


def _build_where(criteria: AssetFilter, terms: list[str], alias: str = "") -> tuple[str, list[Any]]:
    clauses = [f"{alias}site_id IN ({placeholders(len(criteria.site_ids))})"]
    params: list[Any] = list(criteria.site_ids)

    if criteria.categories:
        clauses.append(f"{alias}category IN ({placeholders(len(criteria.categories))})")
        params.extend(c.value for c in criteria.categories)
    if criteria.date_from:
        clauses.append(f"{alias}created_at >= ?")
        params.append(to_db_timestamp(criteria.date_from))
    if criteria.date_to:
        clauses.append(f"{alias}created_at <= ?")
        params.append(to_db_timestamp(criteria.date_to))
    if criteria.mime_types:
        clauses.append(f"{alias}mime_type IN ({placeholders(len(criteria.mime_types))})")
        params.extend(criteria.mime_types)
    if criteria.mime_type_contains:
        clauses.append(f"{alias}mime_type LIKE ? ESCAPE '\\'")
        params.append(contains_pattern(criteria.mime_type_contains))
    if criteria.site_id_contains:
        clauses.append(f"{alias}site_id LIKE ? ESCAPE '\\'")
        params.append(contains_pattern(criteria.site_id_contains))

    for term in terms:
        clauses.append(_term_clause(alias))
        params.extend([contains_pattern(term)] * len(_TEXT_FIELDS))

    return " AND ".join(clauses), params


def fts_match_expression(text: str) -> str | None:
    """Build an FTS5 MATCH expression: every token as a quoted prefix, OR-combined."""
    tokens = list(dict.fromkeys(t.lower() for t in _FTS_TOKEN_RE.findall(text)))
    if not tokens:
        return None
    return " OR ".join(f'"{token}"*' for token in tokens)


def _row_to_asset(row: aiosqlite.Row, score: float | None = None) -> Asset:
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


class SQLiteAssetStore(SQLiteStoreBase, IAssetStore):
    """SQLite-backed asset persistence and search primitives."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, fts_enabled: bool = True) -> None:
        super().__init__(db_path)
        self._fts_requested = fts_enabled
        self._fts_active = False

    @property
    def fts_active(self) -> bool:
        """``True`` once :meth:`initialize` has confirmed FTS5 is usable."""
        return self._fts_active

    async def initialize(self) -> None:
        """Create the assets table, indices, and (if possible) the FTS5 index."""
        self._ensure_parent_dir()
        async with self._connect() as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
            if self._fts_requested:
                self._fts_active = await self._initialize_fts(db)
        logger.info(
            "asset_store_initialized",
            path=str(self._db_path),
            lexical_mode="fts5" if self._fts_active else "substring",
        )

    async def _initialize_fts(self, db: aiosqlite.Connection) -> bool:
        cursor = await db.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'assets_fts'"
        )
        exists = await cursor.fetchone() is not None
        try:
            if not exists:
                await db.execute(_CREATE_FTS_SQL)
                # Index rows written before the FTS table existed.
                await db.execute("INSERT INTO assets_fts(assets_fts) VALUES ('rebuild')")
            for trigger_sql in _CREATE_FTS_TRIGGERS_SQL:
                await db.execute(trigger_sql)
            await db.commit()
        except aiosqlite.OperationalError as exc:
            # "no such module: fts5" on builds compiled without it.
            await db.rollback()
            logger.warning("fts5_unavailable", error=str(exc))
            return False
        return True

    async def insert_asset(self, asset: Asset) -> Asset:
        async with self._connect() as db:
            await db.execute(
                _INSERT_SQL,
                (
                    asset.id,
                    asset.filename,
                    asset.display_name,
                    asset.storage_key,
                    asset.mime_type,
                    asset.size_bytes,
                    asset.category.value,
                    asset.site_id,
                    asset.uploaded_by,
                    asset.processing_status.value,
                    asset.ai_description,
                    dumps_json(asset.ai_tags),
                    dumps_json(asset.metadata),
                    to_db_timestamp(asset.created_at),
                    to_db_timestamp(asset.updated_at),
                ),
            )
            await db.commit()
        logger.info("asset_inserted", asset_id=asset.id, site_id=asset.site_id)
        return asset

    async def get_asset(self, asset_id: str) -> Asset | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM assets WHERE id = ?", (asset_id,)
            )
            row = await cursor.fetchone()
        return _row_to_asset(row) if row else None

    async def update_asset_details(
        self,
        asset_id: str,
        display_name: str | None = None,
        category: AssetCategory | None = None,
    ) -> Asset | None:
        assignments: list[str] = []
        params: list[Any] = []
        if display_name is not None:
            assignments.append("display_name = ?")
            params.append(display_name)
        if category is not None:
            assignments.append("category = ?")
            params.append(category.value)
        if not assignments:
            return await self.get_asset(asset_id)
        assignments.append("updated_at = ?")
        params.append(to_db_timestamp(utcnow()))

        async with self._connect() as db:
            cursor = await db.execute(
                f"UPDATE assets SET {', '.join(assignments)} WHERE id = ? RETURNING {_SELECT_COLUMNS}",
                [*params, asset_id],
            )
            row = await cursor.fetchone()
            await db.commit()
        if row is None:
            return None
        logger.info("asset_updated", asset_id=asset_id, fields=len(assignments) - 1)
        return _row_to_asset(row)

    async def delete_asset(self, asset_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM assets WHERE id = ?", (asset_id,))
            await db.commit()
            deleted = cursor.rowcount == 1
        if deleted:
            logger.info("asset_deleted", asset_id=asset_id)
        return deleted

    # ------------------------------------------------------------------
    # Classification writes
    # ------------------------------------------------------------------

    async def begin_processing(self, asset_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE assets SET processing_status = ?, updated_at = ? "
                "WHERE id = ? AND processing_status = ?",
                (
                    ProcessingStatus.PROCESSING.value,
                    to_db_timestamp(utcnow()),
                    asset_id,
                    ProcessingStatus.PENDING.value,
                ),
            )
            await db.commit()
            return cursor.rowcount == 1

    async def record_classification(self, asset_id: str, result: ClassificationResult) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE assets SET processing_status = ?, ai_description = ?, ai_tags = ?, "
                "metadata = ?, updated_at = ? WHERE id = ? AND processing_status = ?",
                (
                    ProcessingStatus.COMPLETED.value,
                    result.description,
                    dumps_json(result.tags),
                    dumps_json(result.model_dump()),
                    to_db_timestamp(utcnow()),
                    asset_id,
                    ProcessingStatus.PROCESSING.value,
                ),
            )
            await db.commit()
            return cursor.rowcount == 1

    async def record_failure(self, asset_id: str, failure: ClassificationFailure) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE assets SET processing_status = ?, ai_description = NULL, ai_tags = NULL, "
                "metadata = ?, updated_at = ? WHERE id = ? AND processing_status = ?",
                (
                    ProcessingStatus.FAILED.value,
                    dumps_json({"failure": failure.model_dump(mode="json")}),
                    to_db_timestamp(utcnow()),
                    asset_id,
                    ProcessingStatus.PROCESSING.value,
                ),
            )
            await db.commit()
            return cursor.rowcount == 1

    async def reset_failed(self, asset_ids: list[str] | None = None) -> list[str]:
        sql = "UPDATE assets SET processing_status = ?, updated_at = ? WHERE processing_status = ?"
        params: list[Any] = [
            ProcessingStatus.PENDING.value,
            to_db_timestamp(utcnow()),
            ProcessingStatus.FAILED.value,
        ]
        if asset_ids is not None:
            if not asset_ids:
                return []
            sql += f" AND id IN ({placeholders(len(asset_ids))})"
            params.extend(asset_ids)
        sql += " RETURNING id"

        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
            await db.commit()
        reset_ids = sorted(row["id"] for row in rows)
        logger.info("failed_assets_reset", count=len(reset_ids))
        return reset_ids

    async def fail_interrupted(self, failure: ClassificationFailure) -> list[str]:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE assets SET processing_status = ?, ai_description = NULL, ai_tags = NULL, "
                "metadata = ?, updated_at = ? WHERE processing_status = ? RETURNING id",
                (
                    ProcessingStatus.FAILED.value,
                    dumps_json({"failure": failure.model_dump(mode="json")}),
                    to_db_timestamp(utcnow()),
                    ProcessingStatus.PROCESSING.value,
                ),
            )
            rows = await cursor.fetchall()
            await db.commit()
        return sorted(row["id"] for row in rows)

    async def list_ids_by_status(self, status: ProcessingStatus, limit: int = 1000) -> list[str]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id FROM assets WHERE processing_status = ? "
                "ORDER BY created_at ASC, id ASC LIMIT ?",
                (status.value, limit),
            )
            rows = await cursor.fetchall()
        return [row["id"] for row in rows]

    async def list_failed(self, offset: int = 0, limit: int = 20) -> AssetPage:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) AS total FROM assets WHERE processing_status = ?",
                (ProcessingStatus.FAILED.value,),
            )
            total = (await cursor.fetchone())["total"]
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM assets WHERE processing_status = ? "
                "ORDER BY updated_at DESC, id ASC LIMIT ? OFFSET ?",
                (ProcessingStatus.FAILED.value, limit, offset),
            )
            rows = await cursor.fetchall()
        return AssetPage(assets=[_row_to_asset(r) for r in rows], total=total)

    async def count_by_status(self) -> dict[ProcessingStatus, int]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT processing_status, COUNT(*) AS total FROM assets GROUP BY processing_status"
            )
            rows = await cursor.fetchall()
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
        where, params = _build_where(criteria, terms)
        direction = "ASC" if sort_order == SortOrder.ASC else "DESC"
        order_by = f"{_SORT_COLUMNS[sort_by]} {direction}, id ASC"

        async with self._connect() as db:
            cursor = await db.execute(f"SELECT COUNT(*) AS total FROM assets WHERE {where}", params)
            total = (await cursor.fetchone())["total"]
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM assets WHERE {where} "
                f"ORDER BY {order_by} LIMIT ? OFFSET ?",
                [*params, limit, offset],
            )
            rows = await cursor.fetchall()
        return AssetPage(assets=[_row_to_asset(r) for r in rows], total=total)

    async def lexical_search(self, criteria: AssetFilter, text: str, limit: int = 50) -> list[Asset]:
        if self._fts_active:
            return await self._fts_search(criteria, text, limit)
        return await self._substring_search(criteria, text, limit)

    async def _fts_search(self, criteria: AssetFilter, text: str, limit: int) -> list[Asset]:
        match = fts_match_expression(text)
        if match is None:
            return []
        where, params = _build_where(criteria, [], alias="a.")
        columns = ", ".join(f"a.{c.strip()}" for c in _SELECT_COLUMNS.split(","))
        sql = (
            f"SELECT {columns}, bm25(assets_fts) AS bm25_rank "
            "FROM assets_fts JOIN assets a ON a.rowid = assets_fts.rowid "
            f"WHERE assets_fts MATCH ? AND {where} "
            "ORDER BY bm25_rank ASC, a.created_at DESC, a.id ASC LIMIT ?"
        )
        async with self._connect() as db:
            cursor = await db.execute(sql, [match, *params, limit])
            rows = await cursor.fetchall()
        # bm25() is negative; more negative means more relevant.
        return [_row_to_asset(r, score=round(-r["bm25_rank"], 6)) for r in rows]

    async def _substring_search(self, criteria: AssetFilter, text: str, limit: int) -> list[Asset]:
        terms = list(dict.fromkeys(text.split()))
        if not terms:
            return []
        where, params = _build_where(criteria, [])
        hit_sql = " + ".join(f"(CASE WHEN {_term_clause('')} THEN 1 ELSE 0 END)" for _ in terms)
        hit_params: list[Any] = []
        for term in terms:
            hit_params.extend([contains_pattern(term)] * len(_TEXT_FIELDS))
        sql = (
            f"SELECT * FROM (SELECT {_SELECT_COLUMNS}, ({hit_sql}) AS hits "
            f"FROM assets WHERE {where}) WHERE hits > 0 "
            "ORDER BY hits DESC, created_at DESC, id ASC LIMIT ?"
        )
        async with self._connect() as db:
            cursor = await db.execute(sql, [*hit_params, *params, limit])
            rows = await cursor.fetchall()
        return [_row_to_asset(r, score=round(r["hits"] / len(terms), 6)) for r in rows]

    async def semantic_candidates(self, criteria: AssetFilter, limit: int) -> list[Asset]:
        where, params = _build_where(criteria, [])
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM assets WHERE {where} "
                "AND ai_description IS NOT NULL AND TRIM(ai_description) != '' "
                "ORDER BY created_at DESC, id ASC LIMIT ?",
                [*params, limit],
            )
            rows = await cursor.fetchall()
        return [_row_to_asset(r) for r in rows]

    async def suggestion_sources(
        self,
        site_ids: list[str],
        partial: str,
        limit: int,
    ) -> list[SuggestionSource]:
        if not site_ids:
            return []
        pattern = contains_pattern(partial)
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT filename, display_name, ai_tags FROM assets "
                f"WHERE site_id IN ({placeholders(len(site_ids))}) AND {_term_clause('')} "
                "ORDER BY created_at DESC, id ASC LIMIT ?",
                [*site_ids, *([pattern] * len(_TEXT_FIELDS)), limit],
            )
            rows = await cursor.fetchall()
        return [
            SuggestionSource(
                filename=r["filename"],
                display_name=r["display_name"],
                ai_tags=loads_json(r["ai_tags"]),
            )
            for r in rows
        ]
