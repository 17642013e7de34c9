"""Tier-3 semantic fallback.

Fetches up to ``semantic_candidate_cap`` classified assets inside the
caller's scope and asks an :class:`ISemanticRanker` to score the raw query
against their descriptions in one bulk call.  Only scoped candidates are
ever sent to the ranker.

This tier never raises.  Ranker errors, malformed responses, timeouts and
candidate-fetch errors all produce an empty page and a
``semantic_tier_failed`` warning, so the escalation controller keeps the
previous tier's result.
"""

from __future__ import annotations

import asyncio

from designvault.interfaces.asset_store import IAssetStore
from designvault.interfaces.semantic_ranker import ISemanticRanker, RankedIndex
from designvault.models.asset import Asset
from designvault.models.options import EscalationPolicy
from designvault.models.search import AssetFilter, AssetPage, SearchRequest
from designvault.utils.logging import get_logger


class SemanticSearch:
    """Bulk AI-scored ranking over asset descriptions."""

    def __init__(
        self,
        asset_store: IAssetStore,
        ranker: ISemanticRanker,
        policy: EscalationPolicy | None = None,
    ) -> None:
        self._store = asset_store
        self._ranker = ranker
        self._policy = policy or EscalationPolicy()
        self._logger = get_logger(__name__)

    async def search(self, criteria: AssetFilter, query: str, request: SearchRequest) -> AssetPage:
        if not query.strip():
            return AssetPage()

        try:
            candidates = await self._store.semantic_candidates(
                criteria, limit=self._policy.semantic_candidate_cap
            )
            if not candidates:
                return AssetPage()
            scores = await asyncio.wait_for(
                self._ranker.rank(query, [asset.ai_description or "" for asset in candidates]),
                timeout=self._policy.semantic_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._logger.warning(
                "semantic_tier_failed",
                reason="timeout",
                timeout_seconds=self._policy.semantic_timeout_seconds,
            )
            return AssetPage()
        except Exception as exc:
            self._logger.warning(
                "semantic_tier_failed",
                reason=type(exc).__name__,
                error=str(exc),
            )
            return AssetPage()

        ranked = self._select(candidates, scores)
        page = ranked[request.offset : request.offset + request.limit]
        return AssetPage(assets=page, total=len(ranked))

    def _select(self, candidates: list[Asset], scores: list[RankedIndex]) -> list[Asset]:
        """Drop out-of-range and below-cutoff scores, keep each asset's best, sort by score."""
        best: dict[int, float] = {}
        for item in scores:
            if not 0 <= item.index < len(candidates):
                continue
            if item.score < self._policy.semantic_min_score:
                continue
            if item.score > best.get(item.index, -1.0):
                best[item.index] = item.score

        # Ties keep candidate order (newest first).
        ordered = sorted(best.items(), key=lambda pair: (-pair[1], pair[0]))
        return [
            candidates[index].model_copy(update={"relevance_score": round(score, 4)})
            for index, score in ordered
        ]
