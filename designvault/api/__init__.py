"""DesignVault API layer: routes, schemas, and middleware."""

from designvault.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from designvault.api.routes import router
from designvault.api.schemas import (
    AssetResponse,
    ErrorResponse,
    HealthResponse,
    SearchResultsResponse,
    UploadResponse,
)

__all__ = [
    "AssetResponse",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "RequestLoggingMiddleware",
    "SearchResultsResponse",
    "UploadResponse",
    "configure_cors",
    "register_exception_handlers",
    "router",
]
