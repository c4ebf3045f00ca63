"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, Request

from admin_api.auth import AuthClient, GoTrueAuthClient, InMemoryAuthClient
from admin_api.config import get_settings
from admin_api.db import DbClient, InMemoryDbClient, PostgresDbClient
from admin_api.realtime import ChangeFeed, InMemoryChangeFeed, RedisChangeFeed
from admin_api.storage import InMemoryStorageClient, S3StorageClient, StorageClient
from shared.types import ALLOWED_ROLES

_db_client: DbClient | None = None
_auth_client: AuthClient | None = None
_storage_client: StorageClient | None = None
_change_feed: ChangeFeed | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so in-memory state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.supabase_url
        or not settings.supabase_anon_key
    ):
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = GoTrueAuthClient(
            base_url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
        )
    return _auth_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_endpoint:
        _storage_client = InMemoryStorageClient()
    else:
        public_base = settings.storage_public_url or (
            f"{(settings.supabase_url or '').rstrip('/')}/storage/v1/object/public"
        )
        _storage_client = S3StorageClient(
            endpoint=settings.storage_endpoint,
            region=settings.storage_region or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=public_base,
        )
    return _storage_client


def get_change_feed() -> ChangeFeed:
    """
    Return a singleton change feed shared by every request.
    """
    global _change_feed
    if _change_feed:
        return _change_feed

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _change_feed = RedisChangeFeed(
            url=settings.redis_url,
            stream_key=settings.redis_stream_key,
        )
    else:
        _change_feed = InMemoryChangeFeed()
    return _change_feed


def forwarded_header(request: Request, name: str) -> str | None:
    """Read an identity header set by the role gate, which encodes values as UTF-8."""
    value = request.headers.get(name)
    if value is None:
        return None
    return value.encode("latin-1").decode("utf-8", errors="replace")


@dataclass
class CurrentUser:
    id: str
    role: str
    email: str | None = None


def require_admin(request: Request) -> CurrentUser:
    """
    Trust the identity the role-gating middleware forwarded, but re-check it.
    """
    role = forwarded_header(request, "x-user-role")
    user_id = forwarded_header(request, "x-user-id")
    if not role or not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if role not in ALLOWED_ROLES:
        raise HTTPException(status_code=403, detail="Insufficient privileges")
    return CurrentUser(
        id=user_id, role=role, email=forwarded_header(request, "x-user-email")
    )
