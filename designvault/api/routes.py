"""FastAPI routes for DesignVault.

Service dependencies are resolved from ``app.state`` via ``Depends`` using
the ``Annotated`` pattern.  The caller is identified by the ``X-User-Id``
header; authentication itself happens upstream.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                                   Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/search                             POST    Tiered asset search
# /api/v1/search/suggestions                 GET     Search-box suggestions
# /api/v1/search/history                     GET     Caller's search history
# /api/v1/assets                             POST    Upload (multipart)
# /api/v1/assets                             GET     Browse accessible assets (paged)
# /api/v1/assets/{asset_id}                  GET     Asset + classification status
# /api/v1/assets/{asset_id}                  PATCH   Rename / recategorize
# /api/v1/assets/{asset_id}                  DELETE  Delete asset and stored file
# /api/v1/admin/classification/retry         POST    Reset failed → pending
# /api/v1/admin/classification/failed        GET     Failed assets (paged)
# /api/v1/admin/classification/stats         GET     Per-status counts
# /api/v1/admin/grants                       PUT     Create or replace a grant
# /api/v1/admin/grants/{user_id}             GET     A user's grants
# /api/v1/admin/grants/{user_id}/{site_id}   DELETE  Revoke a grant
# /api/v1/health                             GET     Health + provider status
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, Request, Response, UploadFile

from designvault.api.schemas import (
    AssetListResponse,
    AssetResponse,
    ClassificationStatsResponse,
    ErrorResponse,
    FailedAssetsResponse,
    GrantListResponse,
    GrantRequest,
    GrantResponse,
    HealthResponse,
    RetryClassificationRequest,
    RetryClassificationResponse,
    RevokeGrantResponse,
    SearchHistoryResponse,
    SearchResultsResponse,
    SuggestionsResponse,
    UpdateAssetRequest,
    UploadResponse,
)
from designvault.interfaces.classifier import IClassifier
from designvault.models.asset import Principal
from designvault.models.options import UploadOptions
from designvault.models.search import SearchRequest, SortField, SortOrder
from designvault.services.asset_service import AssetService
from designvault.services.audit_service import AuditService
from designvault.services.permission_resolver import PermissionResolver
from designvault.services.search_service import SearchService
from designvault.services.suggestion_service import MAX_SUGGESTIONS, SuggestionService
from designvault.utils.errors import QueryValidationError
from designvault.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_UPLOAD_CHUNK_SIZE = 64 * 1024
_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependency injection helpers: resolve services from app.state
# ---------------------------------------------------------------------------


def _get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def _get_suggestion_service(request: Request) -> SuggestionService:
    return request.app.state.suggestion_service


def _get_audit_service(request: Request) -> AuditService:
    return request.app.state.audit_service


def _get_asset_service(request: Request) -> AssetService:
    return request.app.state.asset_service


def _get_resolver(request: Request) -> PermissionResolver:
    return request.app.state.permission_resolver


def _get_upload_options(request: Request) -> UploadOptions:
    return request.app.state.upload_options


SearchServiceDep = Annotated[SearchService, Depends(_get_search_service)]
SuggestionServiceDep = Annotated[SuggestionService, Depends(_get_suggestion_service)]
AuditServiceDep = Annotated[AuditService, Depends(_get_audit_service)]
AssetServiceDep = Annotated[AssetService, Depends(_get_asset_service)]
ResolverDep = Annotated[PermissionResolver, Depends(_get_resolver)]
UploadOptionsDep = Annotated[UploadOptions, Depends(_get_upload_options)]


async def _get_principal(
    resolver: ResolverDep,
    x_user_id: Annotated[str | None, Header()] = None,
) -> Principal:
    """Resolve the ``X-User-Id`` header to an active principal or answer 401."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    principal = await resolver.resolve_principal(x_user_id.strip())
    if principal is None:
        raise HTTPException(status_code=401, detail="Unknown or inactive user")
    return principal


PrincipalDep = Annotated[Principal, Depends(_get_principal)]


async def _get_admin(principal: PrincipalDep) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return principal


AdminDep = Annotated[Principal, Depends(_get_admin)]


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.post(
    "/search",
    response_model=SearchResultsResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Search assets across the caller's accessible sites",
)
async def search_assets(
    body: SearchRequest,
    principal: PrincipalDep,
    search_service: SearchServiceDep,
) -> SearchResultsResponse:
    response = await search_service.search(principal.id, body)
    return SearchResultsResponse.from_response(response)


@router.get("/search/suggestions", response_model=SuggestionsResponse)
async def search_suggestions(
    principal: PrincipalDep,
    suggestion_service: SuggestionServiceDep,
    q: Annotated[str, Query(min_length=1, max_length=200)],
    limit: Annotated[int, Query(ge=1, le=MAX_SUGGESTIONS)] = 10,
) -> SuggestionsResponse:
    suggestions = await suggestion_service.suggest(principal.id, q, limit=limit)
    return SuggestionsResponse(query=q, suggestions=suggestions)


@router.get("/search/history", response_model=SearchHistoryResponse)
async def search_history(
    principal: PrincipalDep,
    audit_service: AuditServiceDep,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> SearchHistoryResponse:
    analytics = await audit_service.analytics(
        principal.id,
        date_from=date_from,
        date_to=date_to,
        recent_limit=limit,
    )
    return SearchHistoryResponse(
        recent=analytics.recent,
        popular=analytics.popular,
        stats=analytics.stats,
    )


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


@router.post(
    "/assets",
    response_model=UploadResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Upload an asset; classification runs in the background",
)
async def upload_asset(
    principal: PrincipalDep,
    asset_service: AssetServiceDep,
    upload_options: UploadOptionsDep,
    file: Annotated[UploadFile, File()],
    site_id: Annotated[str, Form()],
    category: Annotated[str, Form()],
    display_name: Annotated[str | None, Form()] = None,
) -> UploadResponse:
    # Read in chunks so an oversized upload is rejected without buffering it all.
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > upload_options.max_bytes:
            raise QueryValidationError(
                message=f"File exceeds the {upload_options.max_bytes} byte upload limit"
            )
        chunks.append(chunk)

    asset = await asset_service.upload(
        user_id=principal.id,
        site_id=site_id,
        filename=file.filename or "",
        mime_type=file.content_type or "",
        data=b"".join(chunks),
        category=category,
        display_name=display_name,
    )
    return UploadResponse(asset=AssetResponse.from_asset(asset))


@router.get("/assets", response_model=AssetListResponse, responses={400: {"model": ErrorResponse}})
async def list_assets(
    principal: PrincipalDep,
    asset_service: AssetServiceDep,
    site_id: str | None = None,
    category: str | None = None,
    sort_by: SortField = SortField.CREATED_AT,
    sort_order: SortOrder = SortOrder.DESC,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> AssetListResponse:
    result = await asset_service.list_assets(
        principal.id,
        site_id=site_id,
        category=category,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return AssetListResponse(
        assets=[AssetResponse.from_asset(a) for a in result.assets],
        total=result.total,
        page=page,
        limit=limit,
    )


@router.get(
    "/assets/{asset_id}",
    response_model=AssetResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_asset(
    asset_id: str,
    principal: PrincipalDep,
    asset_service: AssetServiceDep,
) -> AssetResponse:
    asset = await asset_service.get_asset(principal.id, asset_id)
    return AssetResponse.from_asset(asset)


@router.patch(
    "/assets/{asset_id}",
    response_model=AssetResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Rename an asset or change its category",
)
async def update_asset(
    asset_id: str,
    body: UpdateAssetRequest,
    principal: PrincipalDep,
    asset_service: AssetServiceDep,
) -> AssetResponse:
    asset = await asset_service.update_asset(
        principal.id,
        asset_id,
        display_name=body.display_name,
        category=body.category,
    )
    return AssetResponse.from_asset(asset)


@router.delete(
    "/assets/{asset_id}",
    status_code=204,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_asset(
    asset_id: str,
    principal: PrincipalDep,
    asset_service: AssetServiceDep,
) -> Response:
    await asset_service.delete_asset(principal.id, asset_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Admin: classification operations
# ---------------------------------------------------------------------------


@router.post(
    "/admin/classification/retry",
    response_model=RetryClassificationResponse,
    responses={400: {"model": ErrorResponse}},
)
async def retry_classification(
    body: RetryClassificationRequest,
    admin: AdminDep,
    asset_service: AssetServiceDep,
) -> RetryClassificationResponse:
    reset_ids = await asset_service.retry_classification(
        asset_ids=body.asset_ids,
        retry_all=body.retry_all,
    )
    _logger.info("classification_retry_requested", admin_id=admin.id, reset=len(reset_ids))
    return RetryClassificationResponse(reset_count=len(reset_ids), asset_ids=reset_ids)


@router.get("/admin/classification/failed", response_model=FailedAssetsResponse)
async def list_failed_assets(
    admin: AdminDep,
    asset_service: AssetServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> FailedAssetsResponse:
    result = await asset_service.failed_assets(page=page, limit=limit)
    return FailedAssetsResponse(
        assets=[AssetResponse.from_asset(a) for a in result.assets],
        total=result.total,
        page=page,
        limit=limit,
    )


@router.get("/admin/classification/stats", response_model=ClassificationStatsResponse)
async def classification_stats(
    admin: AdminDep,
    asset_service: AssetServiceDep,
) -> ClassificationStatsResponse:
    counts = await asset_service.status_counts()
    return ClassificationStatsResponse(
        counts={status.value: count for status, count in counts.items()},
        total=sum(counts.values()),
    )


# ---------------------------------------------------------------------------
# Admin: site grants
# ---------------------------------------------------------------------------


@router.get("/admin/grants/{user_id}", response_model=GrantListResponse)
async def list_user_grants(
    user_id: str,
    admin: AdminDep,
    resolver: ResolverDep,
) -> GrantListResponse:
    grants = await resolver.list_grants(user_id)
    return GrantListResponse(user_id=user_id, grants=[GrantResponse.from_grant(g) for g in grants])


@router.put(
    "/admin/grants",
    response_model=GrantResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Create or replace a user's grant on a site",
)
async def save_grant(
    body: GrantRequest,
    admin: AdminDep,
    resolver: ResolverDep,
) -> GrantResponse:
    grant = await resolver.grant(
        body.user_id,
        body.site_id,
        can_view=body.can_view,
        can_upload=body.can_upload,
    )
    _logger.info("grant_saved_by_admin", admin_id=admin.id, user_id=body.user_id, site_id=body.site_id)
    return GrantResponse.from_grant(grant)


@router.delete("/admin/grants/{user_id}/{site_id}", response_model=RevokeGrantResponse)
async def revoke_grant(
    user_id: str,
    site_id: str,
    admin: AdminDep,
    resolver: ResolverDep,
) -> RevokeGrantResponse:
    revoked = await resolver.revoke(user_id, site_id)
    _logger.info("grant_revoked_by_admin", admin_id=admin.id, user_id=user_id, site_id=site_id)
    return RevokeGrantResponse(revoked=revoked)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Report liveness plus which backends and AI providers are configured."""
    state = request.app.state
    classifier: IClassifier | None = getattr(state, "classifier", None)
    telemetry = getattr(state, "telemetry", None)
    providers = {
        "database": getattr(state, "database_backend", "unknown"),
        "llm": getattr(state, "llm_provider_name", None),
        "classifier": {
            "name": classifier.get_provider_name() if classifier else None,
            "available": classifier.is_available() if classifier else False,
        },
        "telemetry": {
            "running": telemetry.running if telemetry else False,
            "dropped": telemetry.dropped if telemetry else 0,
        },
    }
    return HealthResponse(status="healthy", version=_VERSION, providers=providers)
