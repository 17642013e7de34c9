"""Tier-1 structured search and the shared filter builder.

:func:`build_asset_filter` turns the caller's request, the parsed query
filters and the accessible-site scope into one :class:`AssetFilter`.  All
three tiers receive the same filter, so no tier can see an asset outside
the caller's sites or the requested filters.
"""

from __future__ import annotations

from designvault.interfaces.asset_store import IAssetStore
from designvault.models.asset import AssetCategory
from designvault.models.search import AssetFilter, AssetPage, ParsedQuery, SearchRequest


def build_asset_filter(
    request: SearchRequest,
    parsed: ParsedQuery,
    site_ids: list[str],
) -> AssetFilter | None:
    """Combine request filters with ``category:``, ``type:`` and ``site:`` query filters.

    Returns ``None`` when the filters contradict each other (a ``category:``
    filter outside the requested categories), meaning nothing can match.
    An unrecognised ``category:`` value is ignored.
    """
    categories = list(request.categories) if request.categories else None

    parsed_category = AssetCategory.parse(parsed.filters.get("category", ""))
    if parsed_category is not None:
        if categories is None:
            categories = [parsed_category]
        elif parsed_category in categories:
            categories = [parsed_category]
        else:
            return None

    return AssetFilter(
        site_ids=site_ids,
        categories=categories,
        date_from=request.date_from,
        date_to=request.date_to,
        mime_types=request.mime_types or None,
        mime_type_contains=parsed.filters.get("type"),
        site_id_contains=parsed.filters.get("site"),
    )


class StructuredSearch:
    """Substring filtering over the primary store, sorted and paginated."""

    def __init__(self, asset_store: IAssetStore) -> None:
        self._store = asset_store

    async def search(self, criteria: AssetFilter, terms: list[str], request: SearchRequest) -> AssetPage:
        """Every term must match filename, display name, description or tags.

        Store errors propagate as :class:`BackendUnavailableError`.
        """
        return await self._store.filter_assets(
            criteria,
            terms,
            sort_by=request.sort_by,
            sort_order=request.sort_order,
            offset=request.offset,
            limit=request.limit,
        )
