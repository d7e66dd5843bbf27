"""
Middleware — CORS and exception handlers for the FastAPI application.

Version: 1.0.0
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dsz_sync.core.exceptions import (
    AlreadyExists,
    AlreadySubmitted,
    ApiError,
    AuthenticationFailed,
    DszSyncException,
    InvalidResponse,
    MissingCredentials,
    NoMappedItems,
    NotInitialized,
    OrderNotFound,
    ProductNotFound,
    RateLimited,
    StoreError,
    TransportError,
    Unauthorized,
    ValidationError,
)

logger = logging.getLogger(__name__)

# first match wins, so subclasses go before their bases
STATUS_BY_EXCEPTION = (
    (ProductNotFound, 404),
    (OrderNotFound, 404),
    (AlreadyExists, 409),
    (AlreadySubmitted, 409),
    (ValidationError, 400),
    (NoMappedItems, 400),
    (MissingCredentials, 400),
    (AuthenticationFailed, 502),
    (Unauthorized, 502),
    (ApiError, 502),
    (InvalidResponse, 502),
    (TransportError, 502),
    (RateLimited, 503),
    (StoreError, 503),
    (NotInitialized, 503),
)


def status_for(exc: DszSyncException) -> int:
    for exc_type, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def apply_cors(app: FastAPI) -> None:
    """Apply CORS middleware with permissive defaults."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render DszSyncException as {success: false, message, error}."""

    @app.exception_handler(DszSyncException)
    async def handle_dsz_exception(request: Request, exc: DszSyncException):
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "message": exc.message, "error": type(exc).__name__},
        )
