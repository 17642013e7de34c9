"""API middleware: CORS, request logging, and error handling.

Starlette middleware runs last-added-first, so ``main.py`` adds
:class:`ErrorHandlingMiddleware` before :class:`RequestLoggingMiddleware`
and the logger sees the final status code, including error responses
produced by the handler.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from designvault.api.schemas import ErrorResponse
from designvault.utils.errors import (
    AssetNotFoundError,
    BackendUnavailableError,
    DesignVaultError,
    PermissionDeniedError,
    QueryValidationError,
)
from designvault.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_STATUS_BY_ERROR: dict[type[DesignVaultError], int] = {
    QueryValidationError: 400,
    PermissionDeniedError: 403,
    AssetNotFoundError: 404,
    BackendUnavailableError: 503,
}


def status_for(exc: DesignVaultError) -> int:
    """HTTP status for an application error; unknown subclasses map to 500."""
    for error_class, status in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_class):
            return status
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; all origins are allowed unless a list is given."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``DesignVaultError`` subclasses into JSON :class:`ErrorResponse` bodies.

    Details stay in the server log; the client sees the error class name
    and message only.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except DesignVaultError as exc:
            status = status_for(exc)
            log = _logger.error if status >= 500 else _logger.warning
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=status, content=body.model_dump())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    detail = f"{location}: {first.get('msg', 'invalid value')}" if location else str(first.get("msg", "invalid request"))
    body = ErrorResponse(error="QueryValidationError", detail=detail)
    return JSONResponse(status_code=400, content=body.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    """Report request-shape validation failures as 400 like other validation errors."""
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
