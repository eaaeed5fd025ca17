"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request

from bikeguard.config import get_settings
from bikeguard.db import DbClient, SqlDbClient
from bikeguard.errors import AuthenticationFailed
from bikeguard.identity import (
    DeviceCredential,
    HttpIdentityService,
    IdentityService,
    InMemoryIdentityService,
    SessionCredential,
    UserIdentity,
)
from bikeguard.storage import InMemoryStorageClient, S3StorageClient, StorageClient
from bikeguard.telemetry import StoredTelemetry, TelemetrySimulator, TelemetrySource

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_identity_service: IdentityService | None = None
_storage_client: StorageClient | None = None
_telemetry_simulator: TelemetrySimulator | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client shared by every request.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory SQLite database")
        _db_client = SqlDbClient.in_memory()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def get_identity_service() -> IdentityService:
    global _identity_service
    if _identity_service:
        return _identity_service

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.identity_api_url:
        logger.warning("Identity service not configured; using in-memory token table")
        _identity_service = InMemoryIdentityService()
    else:
        _identity_service = HttpIdentityService(
            api_url=settings.identity_api_url,
            api_key=settings.identity_api_key or "",
            timeout=settings.identity_timeout_seconds,
        )
    return _identity_service


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_telemetry_simulator() -> TelemetrySimulator:
    global _telemetry_simulator
    if _telemetry_simulator:
        return _telemetry_simulator

    settings = get_settings()
    _telemetry_simulator = TelemetrySimulator(
        latitude=settings.telemetry_default_latitude,
        longitude=settings.telemetry_default_longitude,
        online_probability=settings.telemetry_online_probability,
    )
    return _telemetry_simulator


def get_telemetry_source(db: DbClient = Depends(get_db_client)) -> TelemetrySource:
    return StoredTelemetry(db)


def current_user(
    request: Request,
    identity: IdentityService = Depends(get_identity_service),
) -> UserIdentity:
    """Resolve the session cookie into the caller's identity."""
    token = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        raise AuthenticationFailed("Unauthorized")
    user = identity.verify(SessionCredential(token))
    if user is None:
        raise AuthenticationFailed("Unauthorized")
    return user


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def verify_device(
    identity: IdentityService,
    authorization: Optional[str],
    body_token: Optional[str],
    device_id: Optional[str] = None,
) -> UserIdentity:
    """
    Resolve a device token, preferring the Authorization header over the
    legacy ``jwt`` body field. Checked against the identity service on every
    call.
    """
    token = _bearer_token(authorization) or body_token
    if not token:
        raise AuthenticationFailed("Missing device token")
    user = identity.verify(DeviceCredential(token, device_id=device_id))
    if user is None:
        raise AuthenticationFailed("Invalid JWT token")
    return user

