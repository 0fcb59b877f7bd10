"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import AuthClient, AuthError, AuthUser, FirebaseAuthClient, InMemoryAuthClient
from backend.config import Settings, get_settings
from backend.db import DbClient, FirestoreDbClient, InMemoryDbClient, PostgresDbClient
from backend.family_session import SessionStore
from backend.firebase import firebase_configured, get_firebase_app
from backend.programs import ProgramService
from backend.storage import (
    CosStorageClient,
    FirebaseStorageClient,
    InMemoryStorageClient,
    StorageClient,
)
from backend.users import UserService

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_auth_client: AuthClient | None = None
_session_store: SessionStore | None = None

_bearer = HTTPBearer(auto_error=False)


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so documents persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _db_client = InMemoryDbClient()
    elif settings.database_url:
        _db_client = PostgresDbClient(settings.database_url)
    elif firebase_configured(settings):
        _db_client = FirestoreDbClient(get_firebase_app(settings))
    else:
        logger.warning("No document store configured; using in-memory store")
        _db_client = InMemoryDbClient()
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _storage_client = InMemoryStorageClient()
    elif settings.cos_bucket:
        _storage_client = CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    elif settings.firebase_storage_bucket:
        _storage_client = FirebaseStorageClient(
            settings.firebase_storage_bucket, app=get_firebase_app(settings)
        )
    else:
        logger.warning("No blob storage configured; using in-memory storage")
        _storage_client = InMemoryStorageClient()
    return _storage_client


def build_auth_client(settings: Settings) -> AuthClient:
    """
    The static development token is only honoured on in-memory backends;
    every other deployment verifies Firebase ID tokens.
    """
    if settings.use_in_memory_backends:
        return InMemoryAuthClient(
            tokens={settings.dev_auth_token: AuthUser(uid="dev", email="dev@localhost")}
        )
    if not firebase_configured(settings):
        raise RuntimeError(
            "Firebase auth is not configured; set FIREBASE_PROJECT_ID or "
            "FIREBASE_CREDENTIALS_PATH, or USE_IN_MEMORY_BACKENDS for development"
        )
    return FirebaseAuthClient(get_firebase_app(settings))


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    _auth_client = build_auth_client(get_settings())
    return _auth_client


def get_session_store() -> SessionStore:
    global _session_store
    if _session_store:
        return _session_store
    settings = get_settings()
    _session_store = SessionStore(
        idle_timeout=settings.session_idle_timeout,
        max_sessions=settings.max_sessions,
    )
    return _session_store


def get_program_service(
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> ProgramService:
    settings = get_settings()
    return ProgramService(
        db,
        storage,
        collection=settings.programs_collection,
        image_url_expires_in=settings.image_url_expires_in,
    )


def get_user_service(db: DbClient = Depends(get_db_client)) -> UserService:
    return UserService(db)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    auth_client: AuthClient = Depends(get_auth_client),
) -> AuthUser:
    if credentials is None:
        raise HTTPException(status_code=401, detail="You must be logged in")
    try:
        return auth_client.verify_token(credentials.credentials)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}") from e
