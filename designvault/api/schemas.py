"""Pydantic request/response schemas for the DesignVault HTTP API.

Request schemas end with ``Request`` and response schemas with
``Response``.  The search request body is the domain
:class:`~designvault.models.search.SearchRequest` itself, so HTTP callers
and in-process callers are validated by the same rules.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from designvault.models.asset import Asset, PermissionGrant
from designvault.models.search import (
    PopularQuery,
    SearchQueryRecord,
    SearchResponse,
    SearchStats,
    SearchTier,
)


class ErrorResponse(BaseModel):
    """Body returned for every handled error."""

    error: str
    detail: str


class AssetResponse(BaseModel):
    """Public view of an asset (the storage key stays internal)."""

    id: str
    filename: str
    display_name: str
    mime_type: str
    size_bytes: int
    category: str
    site_id: str
    uploaded_by: str
    processing_status: str
    ai_description: str | None = None
    ai_tags: list[str] | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime
    relevance_score: float | None = None

    @classmethod
    def from_asset(cls, asset: Asset) -> AssetResponse:
        return cls(
            **asset.model_dump(exclude={"storage_key", "category", "processing_status"}),
            category=asset.category.value,
            processing_status=asset.processing_status.value,
        )


class SearchResultsResponse(BaseModel):
    assets: list[AssetResponse]
    total: int
    page: int
    limit: int
    elapsed_ms: float
    tier: SearchTier

    @classmethod
    def from_response(cls, response: SearchResponse) -> SearchResultsResponse:
        return cls(
            assets=[AssetResponse.from_asset(a) for a in response.assets],
            total=response.total,
            page=response.page,
            limit=response.limit,
            elapsed_ms=response.elapsed_ms,
            tier=response.tier,
        )


class SuggestionsResponse(BaseModel):
    query: str
    suggestions: list[str]


class SearchHistoryResponse(BaseModel):
    """The requesting user's own search history and aggregates."""

    recent: list[SearchQueryRecord]
    popular: list[PopularQuery]
    stats: SearchStats


class UploadResponse(BaseModel):
    """Returned as soon as the asset is stored; classification runs afterwards."""

    asset: AssetResponse


class AssetListResponse(BaseModel):
    assets: list[AssetResponse]
    total: int
    page: int
    limit: int


class UpdateAssetRequest(BaseModel):
    """At least one field must be given; blank names are rejected by the service."""

    display_name: str | None = Field(default=None, max_length=255)
    category: str | None = None


class RetryClassificationRequest(BaseModel):
    asset_ids: list[str] | None = Field(default=None, max_length=1000)
    retry_all: bool = False


class RetryClassificationResponse(BaseModel):
    reset_count: int
    asset_ids: list[str]


class FailedAssetsResponse(BaseModel):
    assets: list[AssetResponse]
    total: int
    page: int
    limit: int


class ClassificationStatsResponse(BaseModel):
    counts: dict[str, int]
    total: int


class GrantRequest(BaseModel):
    """Create or replace one user's permissions on one site."""

    user_id: str = Field(min_length=1)
    site_id: str = Field(min_length=1)
    can_view: bool = True
    can_upload: bool = False


class GrantResponse(BaseModel):
    user_id: str
    site_id: str
    can_view: bool
    can_upload: bool

    @classmethod
    def from_grant(cls, grant: PermissionGrant) -> GrantResponse:
        return cls(**grant.model_dump(include={"user_id", "site_id", "can_view", "can_upload"}))


class GrantListResponse(BaseModel):
    user_id: str
    grants: list[GrantResponse]


class RevokeGrantResponse(BaseModel):
    revoked: bool


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]
