"""Tier-2 lexical search.

Delegates to the store's native full-text ranking (FTS5 / ``tsvector``)
and pages through the ranked list.  ``total`` is the ranked list's length,
so it is bounded by ``lexical_max_results``.
"""

from __future__ import annotations

from designvault.interfaces.asset_store import IAssetStore
from designvault.models.search import AssetFilter, AssetPage, SearchRequest


class LexicalSearch:
    def __init__(self, asset_store: IAssetStore, max_results: int = 50) -> None:
        self._store = asset_store
        self._max_results = max_results

    async def search(self, criteria: AssetFilter, text: str, request: SearchRequest) -> AssetPage:
        if not text.strip():
            return AssetPage()
        ranked = await self._store.lexical_search(criteria, text, limit=self._max_results)
        page = ranked[request.offset : request.offset + request.limit]
        return AssetPage(assets=page, total=len(ranked))
