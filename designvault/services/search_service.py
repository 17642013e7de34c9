"""Search orchestration: scope, parse, escalate, record.

Architecture: Escalating Tier Cascade
-------------------------------------
A search resolves the caller's accessible sites, parses the query, and
runs the tiers in order, each only when the previous answer is thin:

    1. Tier-1 (structured): substring filtering, always runs.
    2. Tier-2 (fulltext):   runs if total < ``fulltext_threshold`` and the
                            query has free-text terms.
    3. Tier-3 (semantic):   runs if total < ``semantic_threshold`` and the
                            query has free-text terms.

A later tier *replaces* the current answer only when its total is strictly
larger.  There is no merging or re-ranking across tiers, so the reported
total never decreases as the cascade advances, and the response names the
tier that produced it.  Callers with no accessible sites (or whose
requested sites are all inaccessible) get an empty answer with tier
``none`` and no tier runs.

Tier-1 and Tier-2 store errors propagate (the search fails).  Tier-3
absorbs its own failures.  Telemetry is enqueued without waiting and can
never fail the search.
"""

from __future__ import annotations

import time
import uuid

from designvault.models.options import EscalationPolicy
from designvault.models.search import (
    AssetPage,
    SearchQueryRecord,
    SearchRequest,
    SearchResponse,
    SearchTier,
)
from designvault.services.lexical_search import LexicalSearch
from designvault.services.permission_resolver import PermissionResolver
from designvault.services.query_parser import parse_query
from designvault.services.semantic_search import SemanticSearch
from designvault.services.structured_search import StructuredSearch, build_asset_filter
from designvault.services.telemetry import TelemetryLogger
from designvault.utils.logging import get_logger
from designvault.utils.timestamps import utcnow


class SearchService:
    """Escalation controller over the three search tiers."""

    def __init__(
        self,
        resolver: PermissionResolver,
        structured: StructuredSearch,
        lexical: LexicalSearch,
        semantic: SemanticSearch,
        telemetry: TelemetryLogger,
        policy: EscalationPolicy | None = None,
    ) -> None:
        self._resolver = resolver
        self._structured = structured
        self._lexical = lexical
        self._semantic = semantic
        self._telemetry = telemetry
        self._policy = policy or EscalationPolicy()
        self._logger = get_logger(__name__)

    async def search(self, user_id: str, request: SearchRequest) -> SearchResponse:
        """Run the tier cascade for *user_id*.

        Raises
        ------
        BackendUnavailableError
            If Tier-1 or Tier-2 cannot read the asset store.
        """
        start = time.perf_counter()

        site_ids = await self._scoped_sites(user_id, request)
        if not site_ids:
            return self._finish(user_id, request, AssetPage(), SearchTier.NONE, start)

        parsed = parse_query(request.query)
        criteria = build_asset_filter(request, parsed, site_ids)
        if criteria is None:
            return self._finish(user_id, request, AssetPage(), SearchTier.STRUCTURED, start)

        page = await self._structured.search(criteria, parsed.terms, request)
        tier = SearchTier.STRUCTURED

        if page.total < self._policy.fulltext_threshold and parsed.has_terms:
            candidate = await self._lexical.search(criteria, parsed.joined_terms, request)
            page, tier = self._escalate(page, tier, candidate, SearchTier.FULLTEXT)

        if page.total < self._policy.semantic_threshold and parsed.has_terms:
            candidate = await self._semantic.search(criteria, request.query, request)
            page, tier = self._escalate(page, tier, candidate, SearchTier.SEMANTIC)

        return self._finish(user_id, request, page, tier, start)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _scoped_sites(self, user_id: str, request: SearchRequest) -> list[str]:
        accessible = await self._resolver.accessible_sites(user_id)
        if request.site_ids:
            accessible &= set(request.site_ids)
        return sorted(accessible)

    def _escalate(
        self,
        current: AssetPage,
        current_tier: SearchTier,
        candidate: AssetPage,
        candidate_tier: SearchTier,
    ) -> tuple[AssetPage, SearchTier]:
        if candidate.total > current.total:
            self._logger.info(
                "search_tier_escalated",
                from_tier=current_tier.value,
                to_tier=candidate_tier.value,
                previous_total=current.total,
                total=candidate.total,
            )
            return candidate, candidate_tier
        return current, current_tier

    def _finish(
        self,
        user_id: str,
        request: SearchRequest,
        page: AssetPage,
        tier: SearchTier,
        start: float,
    ) -> SearchResponse:
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        self._telemetry.record(
            SearchQueryRecord(
                id=str(uuid.uuid4()),
                user_id=user_id,
                query=request.query,
                filters=request.filter_snapshot(),
                result_count=page.total,
                latency_ms=elapsed_ms,
                tier=tier,
                created_at=utcnow(),
            )
        )
        self._logger.info(
            "search_completed",
            user_id=user_id,
            tier=tier.value,
            total=page.total,
            elapsed_ms=elapsed_ms,
        )
        return SearchResponse(
            assets=page.assets,
            total=page.total,
            page=request.page,
            limit=request.limit,
            elapsed_ms=elapsed_ms,
            tier=tier,
        )
