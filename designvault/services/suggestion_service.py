"""Search-box suggestions drawn from the caller's accessible assets and sites."""

from __future__ import annotations

import re

from designvault.interfaces.asset_store import IAssetStore
from designvault.interfaces.directory_store import IDirectoryStore
from designvault.services.permission_resolver import PermissionResolver
from designvault.utils.logging import get_logger

MAX_SUGGESTIONS = 20
_SOURCE_ROWS = 50
_WORD_SPLIT_RE = re.compile(r"[_\-\s]+")


class SuggestionService:
    """Collects candidate terms that contain the partial query.

    Candidates come from filename and display-name words (split on ``_``,
    ``-`` and whitespace, longer than two characters), AI tags, and the
    names and client names of accessible sites.  Matching is
    case-insensitive; the result is deduplicated and sorted alphabetically.
    """

    def __init__(
        self,
        resolver: PermissionResolver,
        asset_store: IAssetStore,
        directory: IDirectoryStore,
    ) -> None:
        self._resolver = resolver
        self._assets = asset_store
        self._directory = directory
        self._logger = get_logger(__name__)

    async def suggest(self, user_id: str, partial: str, limit: int = 10) -> list[str]:
        needle = partial.strip().lower()
        limit = max(1, min(limit, MAX_SUGGESTIONS))
        if not needle:
            return []

        site_ids = sorted(await self._resolver.accessible_sites(user_id))
        if not site_ids:
            return []

        sources = await self._assets.suggestion_sources(site_ids, needle, limit=_SOURCE_ROWS)
        sites = await self._directory.list_sites(site_ids)

        candidates: set[str] = set()
        for source in sources:
            for text in (source.filename, source.display_name):
                for word in _WORD_SPLIT_RE.split(text):
                    if len(word) > 2 and needle in word.lower():
                        candidates.add(word)
            for tag in source.ai_tags or []:
                if needle in tag.lower():
                    candidates.add(tag)

        for site in sites:
            for name in (site.name, site.client_name):
                if name and needle in name.lower():
                    candidates.add(name)

        suggestions = sorted(candidates, key=lambda s: (s.lower(), s))[:limit]
        self._logger.debug("suggestions_built", user_id=user_id, partial=partial, count=len(suggestions))
        return suggestions
