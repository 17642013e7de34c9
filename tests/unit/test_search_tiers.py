"""Unit tests for the three search tiers and the shared filter builder."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from designvault.interfaces.asset_store import IAssetStore
from designvault.interfaces.semantic_ranker import ISemanticRanker, RankedIndex
from designvault.models.asset import AssetCategory
from designvault.models.options import EscalationPolicy
from designvault.models.search import AssetFilter, AssetPage, SearchRequest, SortField, SortOrder
from designvault.services.lexical_search import LexicalSearch
from designvault.services.query_parser import parse_query
from designvault.services.semantic_search import SemanticSearch
from designvault.services.structured_search import StructuredSearch, build_asset_filter
from designvault.utils.errors import BackendUnavailableError, InferenceError
from tests.conftest import make_asset

_SCOPE = AssetFilter(site_ids=["site-north"])


def _store() -> MagicMock:
    store = MagicMock(spec=IAssetStore)
    store.filter_assets = AsyncMock(return_value=AssetPage())
    store.lexical_search = AsyncMock(return_value=[])
    store.semantic_candidates = AsyncMock(return_value=[])
    return store


def _ranker(scores: list[RankedIndex] | None = None, error: Exception | None = None) -> MagicMock:
    ranker = MagicMock(spec=ISemanticRanker)
    ranker.rank = AsyncMock(return_value=scores or [], side_effect=error)
    return ranker


def _candidates(count: int):  # noqa: ANN202
    return [
        make_asset(f"c{i}", description=f"description {i}", minutes=count - i)
        for i in range(count)
    ]


# ======================================================================
# build_asset_filter
# ======================================================================


class TestBuildAssetFilter:
    def test_request_filters_carry_over(self) -> None:
        request = SearchRequest(
            query="sofa",
            categories=[AssetCategory.FURNITURE],
            mime_types=["image/jpeg"],
            date_from=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        criteria = build_asset_filter(request, parse_query(request.query), ["site-north"])

        assert criteria.site_ids == ["site-north"]
        assert criteria.categories == [AssetCategory.FURNITURE]
        assert criteria.mime_types == ["image/jpeg"]
        assert criteria.date_from == request.date_from

    def test_category_query_filter(self) -> None:
        request = SearchRequest(query="category:Lighting brass")
        criteria = build_asset_filter(request, parse_query(request.query), ["s"])
        assert criteria.categories == [AssetCategory.LIGHTING]

    def test_category_filter_narrows_request_categories(self) -> None:
        request = SearchRequest(
            query="category:lighting",
            categories=[AssetCategory.LIGHTING, AssetCategory.FURNITURE],
        )
        criteria = build_asset_filter(request, parse_query(request.query), ["s"])
        assert criteria.categories == [AssetCategory.LIGHTING]

    def test_contradicting_category_returns_none(self) -> None:
        request = SearchRequest(query="category:lighting", categories=[AssetCategory.FURNITURE])
        assert build_asset_filter(request, parse_query(request.query), ["s"]) is None

    def test_unknown_category_is_ignored(self) -> None:
        request = SearchRequest(query="category:spaceships sofa")
        criteria = build_asset_filter(request, parse_query(request.query), ["s"])
        assert criteria.categories is None

    def test_type_and_site_filters(self) -> None:
        request = SearchRequest(query="type:png site:north lamp")
        criteria = build_asset_filter(request, parse_query(request.query), ["s"])
        assert criteria.mime_type_contains == "png"
        assert criteria.site_id_contains == "north"


# ======================================================================
# Tier-1 and Tier-2
# ======================================================================


class TestStructuredSearch:
    @pytest.mark.asyncio
    async def test_passes_sort_and_window(self) -> None:
        store = _store()
        request = SearchRequest(query="x", page=3, limit=10, sort_by=SortField.SIZE, sort_order=SortOrder.ASC)

        await StructuredSearch(store).search(_SCOPE, ["grey"], request)

        store.filter_assets.assert_awaited_once_with(
            _SCOPE, ["grey"], sort_by=SortField.SIZE, sort_order=SortOrder.ASC, offset=20, limit=10
        )

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self) -> None:
        store = _store()
        store.filter_assets = AsyncMock(side_effect=BackendUnavailableError(message="down"))
        with pytest.raises(BackendUnavailableError):
            await StructuredSearch(store).search(_SCOPE, [], SearchRequest(query="x"))


class TestLexicalSearch:
    @pytest.mark.asyncio
    async def test_pages_through_ranked_list(self) -> None:
        store = _store()
        store.lexical_search = AsyncMock(return_value=_candidates(5))
        lexical = LexicalSearch(store, max_results=40)

        page = await lexical.search(_SCOPE, "grey sofa", SearchRequest(query="grey sofa", page=2, limit=2))

        assert page.total == 5
        assert [a.id for a in page.assets] == ["c2", "c3"]
        store.lexical_search.assert_awaited_once_with(_SCOPE, "grey sofa", limit=40)

    @pytest.mark.asyncio
    async def test_blank_text_skips_store(self) -> None:
        store = _store()
        page = await LexicalSearch(store).search(_SCOPE, "  ", SearchRequest(query="x"))
        assert page.total == 0
        store.lexical_search.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self) -> None:
        store = _store()
        store.lexical_search = AsyncMock(side_effect=BackendUnavailableError(message="down"))
        with pytest.raises(BackendUnavailableError):
            await LexicalSearch(store).search(_SCOPE, "sofa", SearchRequest(query="sofa"))


# ======================================================================
# Tier-3
# ======================================================================


class TestSemanticSearch:
    @pytest.mark.asyncio
    async def test_filters_dedupes_and_sorts(self) -> None:
        store = _store()
        store.semantic_candidates = AsyncMock(return_value=_candidates(4))
        ranker = _ranker(
            [
                RankedIndex(index=2, score=0.9),
                RankedIndex(index=0, score=0.5),
                RankedIndex(index=0, score=0.8),
                RankedIndex(index=1, score=0.2),
                RankedIndex(index=3, score=0.8),
                RankedIndex(index=9, score=1.0),
                RankedIndex(index=-1, score=1.0),
            ]
        )
        semantic = SemanticSearch(store, ranker, EscalationPolicy(semantic_min_score=0.3))

        page = await semantic.search(_SCOPE, "cosy sofa", SearchRequest(query="cosy sofa"))

        assert [a.id for a in page.assets] == ["c2", "c0", "c3"]
        assert [a.relevance_score for a in page.assets] == [0.9, 0.8, 0.8]
        assert page.total == 3
        ranker.rank.assert_awaited_once_with(
            "cosy sofa", ["description 0", "description 1", "description 2", "description 3"]
        )

    @pytest.mark.asyncio
    async def test_candidate_cap_is_passed(self) -> None:
        store = _store()
        semantic = SemanticSearch(store, _ranker(), EscalationPolicy(semantic_candidate_cap=7))
        await semantic.search(_SCOPE, "sofa", SearchRequest(query="sofa"))
        store.semantic_candidates.assert_awaited_once_with(_SCOPE, limit=7)

    @pytest.mark.asyncio
    async def test_no_candidates_skips_ranker(self) -> None:
        ranker = _ranker()
        page = await SemanticSearch(_store(), ranker).search(_SCOPE, "sofa", SearchRequest(query="sofa"))
        assert page.total == 0
        ranker.rank.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [InferenceError(message="bad json"), RuntimeError("boom")])
    async def test_ranker_failure_yields_empty_page(self, error: Exception) -> None:
        store = _store()
        store.semantic_candidates = AsyncMock(return_value=_candidates(2))
        page = await SemanticSearch(store, _ranker(error=error)).search(
            _SCOPE, "sofa", SearchRequest(query="sofa")
        )
        assert page == AssetPage()

    @pytest.mark.asyncio
    async def test_candidate_fetch_failure_yields_empty_page(self) -> None:
        store = _store()
        store.semantic_candidates = AsyncMock(side_effect=BackendUnavailableError(message="down"))
        page = await SemanticSearch(store, _ranker()).search(_SCOPE, "sofa", SearchRequest(query="sofa"))
        assert page.total == 0

    @pytest.mark.asyncio
    async def test_timeout_yields_empty_page(self) -> None:
        store = _store()
        store.semantic_candidates = AsyncMock(return_value=_candidates(2))

        async def _slow_rank(query: str, descriptions: list[str]) -> list[RankedIndex]:
            await asyncio.sleep(5)
            return [RankedIndex(index=0, score=1.0)]

        ranker = MagicMock(spec=ISemanticRanker)
        ranker.rank = _slow_rank
        semantic = SemanticSearch(store, ranker, EscalationPolicy(semantic_timeout_seconds=0.05))

        page = await semantic.search(_SCOPE, "sofa", SearchRequest(query="sofa"))
        assert page.total == 0
