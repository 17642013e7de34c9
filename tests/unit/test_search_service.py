"""Unit tests for the SearchService escalation controller."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from designvault.models.asset import AssetCategory
from designvault.models.options import EscalationPolicy
from designvault.models.search import AssetPage, SearchQueryRecord, SearchRequest, SearchTier
from designvault.services.lexical_search import LexicalSearch
from designvault.services.permission_resolver import PermissionResolver
from designvault.services.search_service import SearchService
from designvault.services.semantic_search import SemanticSearch
from designvault.services.structured_search import StructuredSearch
from designvault.services.telemetry import TelemetryLogger
from designvault.utils.errors import BackendUnavailableError
from tests.conftest import make_asset


def _page(total: int, prefix: str = "t") -> AssetPage:
    shown = min(total, 3)
    return AssetPage(assets=[make_asset(f"{prefix}{i}") for i in range(shown)], total=total)


class _Harness:
    """SearchService wired to mocked tiers; per-test knobs via attributes."""

    def __init__(
        self,
        sites: set[str] | None = None,
        structured: int = 0,
        lexical: int = 0,
        semantic: int = 0,
        policy: EscalationPolicy | None = None,
    ) -> None:
        self.resolver = MagicMock(spec=PermissionResolver)
        self.resolver.accessible_sites = AsyncMock(
            return_value={"site-north", "site-south"} if sites is None else sites
        )
        self.structured = MagicMock(spec=StructuredSearch)
        self.structured.search = AsyncMock(return_value=_page(structured, "s"))
        self.lexical = MagicMock(spec=LexicalSearch)
        self.lexical.search = AsyncMock(return_value=_page(lexical, "l"))
        self.semantic = MagicMock(spec=SemanticSearch)
        self.semantic.search = AsyncMock(return_value=_page(semantic, "m"))
        self.telemetry = MagicMock(spec=TelemetryLogger)
        self.service = SearchService(
            self.resolver,
            self.structured,
            self.lexical,
            self.semantic,
            self.telemetry,
            policy or EscalationPolicy(fulltext_threshold=10, semantic_threshold=5),
        )

    def recorded(self) -> SearchQueryRecord:
        self.telemetry.record.assert_called_once()
        return self.telemetry.record.call_args.args[0]


# ======================================================================
# Scope
# ======================================================================


class TestScope:
    @pytest.mark.asyncio
    async def test_no_accessible_sites_returns_none_tier(self) -> None:
        harness = _Harness(sites=set())

        response = await harness.service.search("user-dave", SearchRequest(query="sofa"))

        assert response.tier == SearchTier.NONE
        assert response.total == 0
        assert response.assets == []
        harness.structured.search.assert_not_called()
        assert harness.recorded().tier == SearchTier.NONE

    @pytest.mark.asyncio
    async def test_requested_sites_are_intersected(self) -> None:
        harness = _Harness(structured=12)

        await harness.service.search(
            "u", SearchRequest(query="sofa", site_ids=["site-south", "site-elsewhere"])
        )

        criteria = harness.structured.search.call_args.args[0]
        assert criteria.site_ids == ["site-south"]

    @pytest.mark.asyncio
    async def test_only_inaccessible_requested_sites_returns_none(self) -> None:
        harness = _Harness()
        response = await harness.service.search("u", SearchRequest(query="sofa", site_ids=["site-x"]))
        assert response.tier == SearchTier.NONE
        harness.structured.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_contradicting_category_skips_every_tier(self) -> None:
        harness = _Harness()

        response = await harness.service.search(
            "u", SearchRequest(query="category:lighting lamp", categories=[AssetCategory.FURNITURE])
        )

        assert response.tier == SearchTier.STRUCTURED
        assert response.total == 0
        harness.structured.search.assert_not_called()
        harness.lexical.search.assert_not_called()


# ======================================================================
# Escalation
# ======================================================================


class TestEscalation:
    @pytest.mark.asyncio
    async def test_enough_structured_results_stop_at_tier_one(self) -> None:
        harness = _Harness(structured=10)

        response = await harness.service.search("u", SearchRequest(query="sofa"))

        assert response.tier == SearchTier.STRUCTURED
        assert response.total == 10
        harness.lexical.search.assert_not_called()
        harness.semantic.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_fulltext_replaces_when_strictly_larger(self) -> None:
        harness = _Harness(structured=6, lexical=8)

        response = await harness.service.search("u", SearchRequest(query="grey sofa"))

        assert response.tier == SearchTier.FULLTEXT
        assert response.total == 8
        assert response.assets[0].id == "l0"
        harness.semantic.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_equal_total_keeps_earlier_tier(self) -> None:
        harness = _Harness(structured=2, lexical=2, semantic=2)

        response = await harness.service.search("u", SearchRequest(query="sofa"))

        assert response.tier == SearchTier.STRUCTURED
        assert response.assets[0].id == "s0"

    @pytest.mark.asyncio
    async def test_semantic_runs_below_its_threshold(self) -> None:
        harness = _Harness(structured=0, lexical=1, semantic=4)

        response = await harness.service.search("u", SearchRequest(query="cosy seating"))

        assert response.tier == SearchTier.SEMANTIC
        assert response.total == 4
        assert harness.semantic.search.call_args.args[1] == "cosy seating"

    @pytest.mark.asyncio
    async def test_semantic_skipped_when_fulltext_is_enough(self) -> None:
        harness = _Harness(structured=0, lexical=5, semantic=9)

        response = await harness.service.search("u", SearchRequest(query="sofa"))

        assert response.tier == SearchTier.FULLTEXT
        harness.semantic.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_semantic_cannot_shrink_result(self) -> None:
        harness = _Harness(structured=3, lexical=0, semantic=1)

        response = await harness.service.search("u", SearchRequest(query="sofa"))

        assert response.tier == SearchTier.STRUCTURED
        assert response.total == 3

    @pytest.mark.asyncio
    async def test_filter_only_query_never_escalates(self) -> None:
        harness = _Harness(structured=0, lexical=5, semantic=5)

        response = await harness.service.search("u", SearchRequest(query="category:lighting"))

        assert response.tier == SearchTier.STRUCTURED
        harness.lexical.search.assert_not_called()
        harness.semantic.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_lexical_gets_joined_terms(self) -> None:
        harness = _Harness()

        await harness.service.search("u", SearchRequest(query='type:png "brass lamp" floor'))

        assert harness.structured.search.call_args.args[1] == ["brass lamp", "floor"]
        assert harness.lexical.search.call_args.args[1] == "brass lamp floor"
        assert harness.semantic.search.call_args.args[1] == 'type:png "brass lamp" floor'

    @pytest.mark.asyncio
    async def test_tier_two_failure_fails_the_search(self) -> None:
        harness = _Harness(structured=1)
        harness.lexical.search = AsyncMock(side_effect=BackendUnavailableError(message="down"))

        with pytest.raises(BackendUnavailableError):
            await harness.service.search("u", SearchRequest(query="sofa"))
        harness.telemetry.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_zero_thresholds_disable_escalation(self) -> None:
        harness = _Harness(
            structured=0,
            lexical=5,
            policy=EscalationPolicy(fulltext_threshold=0, semantic_threshold=0),
        )
        response = await harness.service.search("u", SearchRequest(query="sofa"))
        assert response.tier == SearchTier.STRUCTURED
        harness.lexical.search.assert_not_called()


# ======================================================================
# Response and telemetry
# ======================================================================


class TestResponseAndTelemetry:
    @pytest.mark.asyncio
    async def test_response_echoes_paging(self) -> None:
        harness = _Harness(structured=30)

        response = await harness.service.search("u", SearchRequest(query="sofa", page=2, limit=3))

        assert response.page == 2
        assert response.limit == 3
        assert response.elapsed_ms >= 0

    @pytest.mark.asyncio
    async def test_record_describes_the_search(self) -> None:
        harness = _Harness(structured=1, lexical=7)
        request = SearchRequest(query="grey sofa", categories=[AssetCategory.FURNITURE])

        response = await harness.service.search("user-alice", request)

        record = harness.recorded()
        assert record.user_id == "user-alice"
        assert record.query == "grey sofa"
        assert record.tier == SearchTier.FULLTEXT
        assert record.result_count == 7
        assert record.latency_ms == response.elapsed_ms
        assert record.filters["categories"] == ["furniture"]
