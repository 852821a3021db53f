"""
FastAPI application entry point for the TaskVerse backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from taskverse.auth import AuthError
from taskverse.config import get_settings
from taskverse.routes import router
from taskverse.services import (
    MarketplaceError,
    NotFoundError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)


def _marketplace_status(exc: MarketplaceError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, PermissionDeniedError):
        return 403
    return 400


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="TaskVerse Backend (FastAPI)", version="0.1.0")

    @app.exception_handler(MarketplaceError)
    async def handle_marketplace_error(request: Request, exc: MarketplaceError):
        return JSONResponse(
            status_code=_marketplace_status(exc), content={"detail": str(exc)}
        )

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        if exc.status_code >= 500:
            logger.error("Auth service failure on %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
