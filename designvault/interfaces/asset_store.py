"""Abstract base class for the asset store.

The asset store is the single seam between search/classification logic and
the relational backend.  It exposes two families of read operations that
the search tiers are built on:

- **substring-filter** (:meth:`IAssetStore.filter_assets`) for Tier-1
- **lexical-rank** (:meth:`IAssetStore.lexical_search`) for Tier-2

plus the candidate fetch used by Tier-3 and the status writes driven by the
classification pipeline.  Implementations exist for an embedded SQLite file
and a PostgreSQL server; Tier-1/Tier-2 code never branches on which one is
in use.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from designvault.models.asset import Asset, AssetCategory, ProcessingStatus
from designvault.models.classification import ClassificationFailure, ClassificationResult
from designvault.models.search import AssetFilter, AssetPage, SortField, SortOrder, SuggestionSource


# Concrete implementations: SQLiteAssetStore, PostgresAssetStore
# Located in: designvault/providers/store/
class IAssetStore(ABC):
    """Contract for asset persistence and search primitives.

    Every read takes an :class:`AssetFilter` whose ``site_ids`` is the
    caller's accessible-site scope; implementations must apply it to every
    query they issue.  Store failures are raised as
    :class:`~designvault.utils.errors.BackendUnavailableError`.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables, indices and (where supported) the lexical index."""

    @abstractmethod
    async def insert_asset(self, asset: Asset) -> Asset:
        """Persist a newly uploaded asset and return it as stored."""

    @abstractmethod
    async def get_asset(self, asset_id: str) -> Asset | None:
        """Return the asset with *asset_id*, or ``None`` if unknown."""

    @abstractmethod
    async def update_asset_details(
        self,
        asset_id: str,
        display_name: str | None = None,
        category: AssetCategory | None = None,
    ) -> Asset | None:
        """Change the display name and/or category of an asset.

        Fields left as ``None`` are untouched.  Returns the updated asset,
        or ``None`` if *asset_id* is unknown.  The lexical index follows
        the new display name.
        """

    @abstractmethod
    async def delete_asset(self, asset_id: str) -> bool:
        """Remove the asset row (and its lexical index entry).

        Returns ``True`` if a row was deleted.
        """

    # ------------------------------------------------------------------
    # Classification writes (each a single atomic write keyed by id)
    # ------------------------------------------------------------------

    @abstractmethod
    async def begin_processing(self, asset_id: str) -> bool:
        """Move a ``pending`` asset to ``processing``.

        Returns
        -------
        bool
            ``True`` if this call performed the transition; ``False`` if the
            asset was not pending (already claimed, finished, or unknown).
        """

    @abstractmethod
    async def record_classification(self, asset_id: str, result: ClassificationResult) -> bool:
        """Mark a ``processing`` asset ``completed`` and store its description,
        serialized tag list, and the full result as metadata.

        Returns ``False`` when the asset was no longer ``processing``.
        """

    @abstractmethod
    async def record_failure(self, asset_id: str, failure: ClassificationFailure) -> bool:
        """Mark a ``processing`` asset ``failed``, clearing description and tags.

        Returns ``False`` when the asset was no longer ``processing``.
        """

    @abstractmethod
    async def reset_failed(self, asset_ids: list[str] | None = None) -> list[str]:
        """Reset ``failed`` assets to ``pending``.

        Parameters
        ----------
        asset_ids:
            Restrict the reset to these ids.  ``None`` resets every failed
            asset.

        Returns
        -------
        list[str]
            Ids of the assets this call actually reset.
        """

    @abstractmethod
    async def fail_interrupted(self, failure: ClassificationFailure) -> list[str]:
        """Mark every ``processing`` asset ``failed`` with *failure*.

        Used at startup, when any asset still ``processing`` was claimed by
        a process that is gone.  Returns the ids that were failed.
        """

    @abstractmethod
    async def list_ids_by_status(self, status: ProcessingStatus, limit: int = 1000) -> list[str]:
        """Return up to *limit* asset ids in *status*, oldest first."""

    @abstractmethod
    async def list_failed(self, offset: int = 0, limit: int = 20) -> AssetPage:
        """Return one page of failed assets, most recently updated first."""

    @abstractmethod
    async def count_by_status(self) -> dict[ProcessingStatus, int]:
        """Return the number of assets in each processing status."""

    # ------------------------------------------------------------------
    # Search primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def filter_assets(
        self,
        criteria: AssetFilter,
        terms: list[str],
        sort_by: SortField = SortField.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
        offset: int = 0,
        limit: int = 20,
    ) -> AssetPage:
        """Substring-filter search.

        Parameters
        ----------
        criteria:
            Structured predicate (sites, categories, dates, MIME types).
        terms:
            Every term must match, case-insensitively, as a substring of the
            filename, display name, description, or serialized tag string.
        sort_by, sort_order:
            Ordering of the full match set before paging.
        offset, limit:
            Page window.

        Returns
        -------
        AssetPage
            The requested page and the total number of matches.
        """

    @abstractmethod
    async def lexical_search(self, criteria: AssetFilter, text: str, limit: int = 50) -> list[Asset]:
        """Backend-native relevance search over the same text fields.

        Returns at most *limit* assets, best first, each carrying a
        ``relevance_score``.  An input with no searchable tokens yields ``[]``.
        """

    @abstractmethod
    async def semantic_candidates(self, criteria: AssetFilter, limit: int) -> list[Asset]:
        """Return up to *limit* assets in scope that have a non-empty description.

        Ordering is stable for unchanged data so that index-based scoring
        maps back to the same assets on repeated calls.
        """

    @abstractmethod
    async def suggestion_sources(
        self,
        site_ids: list[str],
        partial: str,
        limit: int,
    ) -> list[SuggestionSource]:
        """Return name/tag fields of assets in *site_ids* whose text fields
        contain *partial* (case-insensitive)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short backend identifier, e.g. ``"sqlite"``."""
