"""DesignVault domain models: re-exports all public model classes.

The models are organized by domain concern:
    - asset.py         : Assets, sites, principals, grants, processing status
    - classification.py: Classifier results and typed failures
    - options.py       : Immutable tuning options built from config.yaml
    - search.py        : Search requests/responses, filters, audit records

If you add a new model class, add it to ``__all__`` here too.
"""

from __future__ import annotations

from designvault.models.asset import (
    Asset,
    AssetCategory,
    PermissionGrant,
    Principal,
    ProcessingStatus,
    Site,
    SitePermissions,
    UserRole,
)
from designvault.models.classification import (
    ClassificationFailure,
    ClassificationOutcome,
    ClassificationResult,
    FailureCode,
)
from designvault.models.options import (
    ClassificationOptions,
    EscalationPolicy,
    TelemetryOptions,
    UploadOptions,
)
from designvault.models.search import (
    AssetFilter,
    AssetPage,
    ParsedQuery,
    PopularQuery,
    SearchAnalytics,
    SearchQueryRecord,
    SearchRequest,
    SearchResponse,
    SearchStats,
    SearchTier,
    SortField,
    SortOrder,
    SuggestionSource,
)

__all__ = [
    "Asset",
    "AssetCategory",
    "AssetFilter",
    "AssetPage",
    "ClassificationFailure",
    "ClassificationOptions",
    "ClassificationOutcome",
    "ClassificationResult",
    "EscalationPolicy",
    "FailureCode",
    "ParsedQuery",
    "PermissionGrant",
    "PopularQuery",
    "Principal",
    "ProcessingStatus",
    "SearchAnalytics",
    "SearchQueryRecord",
    "SearchRequest",
    "SearchResponse",
    "SearchStats",
    "SearchTier",
    "Site",
    "SitePermissions",
    "SortField",
    "SortOrder",
    "SuggestionSource",
    "TelemetryOptions",
    "UploadOptions",
    "UserRole",
]
