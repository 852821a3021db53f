"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from taskverse.auth import AuthClient, AuthError, GoTrueAuthClient, InMemoryAuthClient
from taskverse.config import get_settings
from taskverse.db import DbClient, InMemoryDbClient, ProfileRecord, Role, SqlDbClient
from taskverse.services import ensure_badge_catalog
from taskverse.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_auth_client: AuthClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    added = ensure_badge_catalog(_db_client)
    if added:
        logger.info("Seeded %d catalog badges", added)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    has_credentials = settings.aws_access_key_id and settings.aws_secret_access_key
    if settings.use_in_memory_backends or not has_credentials:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.storage_public_base_url,
        )
    return _storage_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.auth_url:
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = GoTrueAuthClient(
            base_url=settings.auth_url,
            api_key=settings.auth_api_key or "",
        )
    return _auth_client


def get_access_token(authorization: Optional[str] = Header(default=None)) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Not authenticated")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Invalid authorization header")
    return token.strip()


def get_current_profile(
    token: str = Depends(get_access_token),
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
) -> ProfileRecord:
    try:
        user = auth.get_user(token)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=exc.message) from exc
    profile = db.get_profile(user.id)
    if not profile:
        # Signed in but the profile row is missing; treat as logged out.
        raise HTTPException(status_code=401, detail="Profile not found")
    return profile


def require_intern(
    profile: ProfileRecord = Depends(get_current_profile),
) -> ProfileRecord:
    if profile.role != Role.INTERN.value:
        raise HTTPException(status_code=403, detail="Intern account required")
    return profile


def require_business(
    profile: ProfileRecord = Depends(get_current_profile),
) -> ProfileRecord:
    if profile.role != Role.BUSINESS.value:
        raise HTTPException(status_code=403, detail="Business account required")
    return profile
