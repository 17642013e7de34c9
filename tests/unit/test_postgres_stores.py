"""Unit tests for the PostgreSQL stores against a mocked SQLAlchemy engine.

No server is needed: ``engine.begin()`` yields a fake connection whose
``execute`` returns canned results, and the tests assert on the SQL text
and bound parameters the stores send.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from designvault.models.asset import AssetCategory, ProcessingStatus
from designvault.models.classification import ClassificationFailure, FailureCode
from designvault.models.search import AssetFilter, SearchQueryRecord, SearchTier
from designvault.providers.store.postgres_asset_store import (
    PostgresAssetStore,
    build_where,
    tsquery_expression,
)
from designvault.providers.store.postgres_directory_store import PostgresDirectoryStore
from designvault.providers.store.postgres_search_log_store import PostgresSearchLogStore
from designvault.utils.errors import BackendUnavailableError, TelemetryWriteError

_CREATED = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


def _mock_engine(result: Any = None, error: Exception | None = None) -> tuple[MagicMock, MagicMock]:
    conn = MagicMock()
    conn.execute = AsyncMock(return_value=result, side_effect=error)

    @asynccontextmanager
    async def begin():
        yield conn

    engine = MagicMock()
    engine.begin = begin
    return engine, conn


def _sql(conn: MagicMock, call: int = -1) -> str:
    return str(conn.execute.call_args_list[call].args[0])


def _params(conn: MagicMock, call: int = -1) -> dict[str, Any]:
    return conn.execute.call_args_list[call].args[1]


def _asset_row(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": "a-sofa",
        "filename": "sofa_modern.jpg",
        "display_name": "sofa_modern.jpg",
        "storage_key": "sites/site-north/furniture/2026/01/15/a-sofa_sofa_modern.jpg",
        "mime_type": "image/jpeg",
        "size_bytes": 2048,
        "category": "furniture",
        "site_id": "site-north",
        "uploaded_by": "user-alice",
        "processing_status": "completed",
        "ai_description": "Modern grey sectional sofa.",
        "ai_tags": '["sofa", "grey"]',
        "metadata": None,
        "created_at": _CREATED,
        "updated_at": _CREATED,
    }
    row.update(overrides)
    return row


def _mappings_result(rows: list[dict[str, Any]]) -> MagicMock:
    result = MagicMock()
    result.mappings.return_value.all.return_value = rows
    result.mappings.return_value.first.return_value = rows[0] if rows else None
    return result


# ======================================================================
# SQL builders
# ======================================================================


class TestBuildWhere:
    def test_scope_only(self) -> None:
        sql, params = build_where(AssetFilter(site_ids=["s1", "s2"]), [])
        assert sql == "site_id = ANY(:site_ids)"
        assert params == {"site_ids": ["s1", "s2"]}

    def test_all_filters_and_terms(self) -> None:
        criteria = AssetFilter(
            site_ids=["s1"],
            categories=[AssetCategory.LIGHTING],
            date_from=_CREATED,
            mime_types=["image/png"],
            mime_type_contains="png",
            site_id_contains="north",
        )
        sql, params = build_where(criteria, ["grey", "50%_off"], alias="a.")

        assert "a.category = ANY(:categories)" in sql
        assert "a.created_at >= :date_from" in sql
        assert "a.mime_type ILIKE :mime_type_contains" in sql
        assert "a.site_id ILIKE :site_id_contains" in sql
        assert "a.filename ILIKE :term_0" in sql
        assert "a.filename ILIKE :term_1" in sql
        assert params["categories"] == ["lighting"]
        assert params["term_0"] == "%grey%"
        assert params["term_1"] == "%50\\%\\_off%"
        assert params["date_from"] == _CREATED


class TestTsqueryExpression:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("grey sofa", "grey:* | sofa:*"),
            ("Sofa SOFA sofa", "sofa:*"),
            ("brass_lamp 'quoted'", "brass:* | lamp:* | quoted:*"),
            ("!!! &&", None),
        ],
    )
    def test_tokens(self, raw: str, expected: str | None) -> None:
        assert tsquery_expression(raw) == expected


# ======================================================================
# Asset store
# ======================================================================


class TestPostgresAssetStore:
    @pytest.mark.asyncio
    async def test_begin_processing_is_conditional(self) -> None:
        result = MagicMock(rowcount=1)
        engine, conn = _mock_engine(result)
        store = PostgresAssetStore(engine)

        assert await store.begin_processing("a1") is True
        assert "WHERE id = :id AND processing_status = :expected" in _sql(conn)
        params = _params(conn)
        assert params["status"] == ProcessingStatus.PROCESSING.value
        assert params["expected"] == ProcessingStatus.PENDING.value

        result.rowcount = 0
        assert await store.begin_processing("a1") is False

    @pytest.mark.asyncio
    async def test_get_asset_maps_row(self) -> None:
        engine, _ = _mock_engine(_mappings_result([_asset_row()]))
        asset = await PostgresAssetStore(engine).get_asset("a-sofa")

        assert asset.id == "a-sofa"
        assert asset.category == AssetCategory.FURNITURE
        assert asset.ai_tags == ["sofa", "grey"]
        assert asset.created_at == _CREATED

    @pytest.mark.asyncio
    async def test_get_asset_missing(self) -> None:
        engine, _ = _mock_engine(_mappings_result([]))
        assert await PostgresAssetStore(engine).get_asset("nope") is None

    @pytest.mark.asyncio
    async def test_lexical_search_uses_tsquery_and_rank(self) -> None:
        engine, conn = _mock_engine(_mappings_result([_asset_row(rank=0.0607927)]))
        store = PostgresAssetStore(engine)

        hits = await store.lexical_search(AssetFilter(site_ids=["site-north"]), "grey sofa", 25)

        sql = _sql(conn)
        assert "to_tsquery('english', :tsquery)" in sql
        assert "ts_rank(" in sql
        assert "a.site_id = ANY(:site_ids)" in sql
        assert _params(conn)["tsquery"] == "grey:* | sofa:*"
        assert _params(conn)["limit"] == 25
        assert hits[0].relevance_score == 0.060793

    @pytest.mark.asyncio
    async def test_lexical_search_without_tokens_skips_query(self) -> None:
        engine, conn = _mock_engine()
        assert await PostgresAssetStore(engine).lexical_search(AssetFilter(site_ids=["s"]), "--", 10) == []
        conn.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_reset_failed_by_ids(self) -> None:
        result = MagicMock()
        result.fetchall.return_value = [("b",), ("a",)]
        engine, conn = _mock_engine(result)

        assert await PostgresAssetStore(engine).reset_failed(["a", "b"]) == ["a", "b"]
        assert "id = ANY(:asset_ids)" in _sql(conn)
        assert "RETURNING id" in _sql(conn)
        assert _params(conn)["asset_ids"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_reset_failed_empty_list_is_noop(self) -> None:
        engine, conn = _mock_engine()
        assert await PostgresAssetStore(engine).reset_failed([]) == []
        conn.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_filter_assets_counts_then_pages(self) -> None:
        result = _mappings_result([_asset_row()])
        result.scalar_one.return_value = 7
        engine, conn = _mock_engine(result)

        page = await PostgresAssetStore(engine).filter_assets(
            AssetFilter(site_ids=["site-north"]), ["grey"], offset=5, limit=5
        )

        assert page.total == 7
        assert [a.id for a in page.assets] == ["a-sofa"]
        assert "COUNT(*)" in _sql(conn, 0)
        assert _params(conn, 1)["offset"] == 5
        assert _params(conn, 1)["term_0"] == "%grey%"

    @pytest.mark.asyncio
    async def test_fail_interrupted_targets_processing(self) -> None:
        result = MagicMock()
        result.fetchall.return_value = [("p2",), ("p1",)]
        engine, conn = _mock_engine(result)
        failure = ClassificationFailure(code=FailureCode.API_ERROR, message="restart", retryable=True)

        assert await PostgresAssetStore(engine).fail_interrupted(failure) == ["p1", "p2"]
        assert "WHERE processing_status = :processing RETURNING id" in _sql(conn)
        params = _params(conn)
        assert params["failed"] == ProcessingStatus.FAILED.value
        assert params["processing"] == ProcessingStatus.PROCESSING.value
        assert '"retryable": true' in params["metadata"]

    @pytest.mark.asyncio
    async def test_list_ids_by_status_oldest_first(self) -> None:
        result = MagicMock()
        result.fetchall.return_value = [("a1",), ("a2",)]
        engine, conn = _mock_engine(result)

        assert await PostgresAssetStore(engine).list_ids_by_status(ProcessingStatus.PENDING, limit=50) == ["a1", "a2"]
        assert "ORDER BY created_at ASC, id ASC" in _sql(conn)
        assert _params(conn) == {"status": "pending", "limit": 50}

    @pytest.mark.asyncio
    async def test_update_asset_details_sets_only_given_fields(self) -> None:
        engine, conn = _mock_engine(_mappings_result([_asset_row(display_name="Chesterfield")]))

        asset = await PostgresAssetStore(engine).update_asset_details("a-sofa", display_name="Chesterfield")

        assert asset.display_name == "Chesterfield"
        sql = _sql(conn)
        assert "display_name = :display_name" in sql
        assert "category =" not in sql
        assert "RETURNING" in sql
        assert _params(conn)["id"] == "a-sofa"

    @pytest.mark.asyncio
    async def test_update_asset_details_unknown_id(self) -> None:
        engine, _ = _mock_engine(_mappings_result([]))
        store = PostgresAssetStore(engine)
        assert await store.update_asset_details("ghost", category=AssetCategory.LIGHTING) is None

    @pytest.mark.asyncio
    async def test_delete_asset_reports_rowcount(self) -> None:
        result = MagicMock(rowcount=1)
        engine, conn = _mock_engine(result)
        store = PostgresAssetStore(engine)

        assert await store.delete_asset("a1") is True
        assert "DELETE FROM assets WHERE id = :id" in _sql(conn)
        result.rowcount = 0
        assert await store.delete_asset("a1") is False

    @pytest.mark.asyncio
    async def test_driver_error_becomes_backend_unavailable(self) -> None:
        engine, _ = _mock_engine(error=SQLAlchemyError("connection refused"))

        with pytest.raises(BackendUnavailableError) as exc_info:
            await PostgresAssetStore(engine).get_asset("a1")
        assert exc_info.value.provider_name == "postgres"

    @pytest.mark.asyncio
    async def test_os_error_becomes_backend_unavailable(self) -> None:
        engine, _ = _mock_engine(error=ConnectionRefusedError("refused"))
        with pytest.raises(BackendUnavailableError):
            await PostgresAssetStore(engine).count_by_status()


# ======================================================================
# Directory and search log
# ======================================================================


class TestPostgresDirectoryStore:
    @pytest.mark.asyncio
    async def test_list_sites_binds_array(self) -> None:
        engine, conn = _mock_engine(
            _mappings_result(
                [{"id": "s1", "name": "North", "client_name": "", "description": None, "is_active": True}]
            )
        )
        sites = await PostgresDirectoryStore(engine).list_sites(["s1"])

        assert [s.id for s in sites] == ["s1"]
        assert "id = ANY(:site_ids)" in _sql(conn)
        assert _params(conn)["site_ids"] == ["s1"]

    @pytest.mark.asyncio
    async def test_read_error_propagates_as_backend_unavailable(self) -> None:
        engine, _ = _mock_engine(error=SQLAlchemyError("down"))
        with pytest.raises(BackendUnavailableError):
            await PostgresDirectoryStore(engine).get_principal("u1")


class TestPostgresSearchLogStore:
    @pytest.mark.asyncio
    async def test_append_inserts_record(self) -> None:
        engine, conn = _mock_engine(MagicMock())
        record = SearchQueryRecord(
            id="r1",
            user_id="u1",
            query="sofa",
            filters={"site_ids": None},
            result_count=3,
            latency_ms=12.5,
            tier=SearchTier.FULLTEXT,
            created_at=_CREATED,
        )

        await PostgresSearchLogStore(engine).append(record)

        params = _params(conn)
        assert params["tier"] == "fulltext"
        assert params["filters"] == '{"site_ids": null}'
        assert "INSERT INTO search_queries" in _sql(conn)

    @pytest.mark.asyncio
    async def test_append_failure_raises_telemetry_write_error(self) -> None:
        engine, _ = _mock_engine(error=SQLAlchemyError("down"))
        record = SearchQueryRecord(id="r1", user_id="u1", query="sofa", created_at=_CREATED)

        with pytest.raises(TelemetryWriteError):
            await PostgresSearchLogStore(engine).append(record)
