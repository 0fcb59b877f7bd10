"""
Configuration and settings for the family admin backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    cors_origins: List[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        env="CORS_ORIGINS",
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )
    # Bearer token accepted only when running on in-memory backends.
    dev_auth_token: str = Field(default="dev-token", env="DEV_AUTH_TOKEN")

    # Firebase (Firestore, Storage, Auth)
    firebase_project_id: Optional[str] = Field(default=None, env="FIREBASE_PROJECT_ID")
    firebase_credentials_path: Optional[str] = Field(
        default=None, env="FIREBASE_CREDENTIALS_PATH"
    )
    firebase_storage_bucket: Optional[str] = Field(
        default=None, env="FIREBASE_STORAGE_BUCKET"
    )

    # SQL database alternative to Firestore (Postgres expected)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # S3-compatible storage alternative to Firebase Storage (Tencent COS)
    cos_endpoint: Optional[str] = Field(default=None, env="COS_ENDPOINT")
    cos_region: Optional[str] = Field(default=None, env="COS_REGION")
    cos_bucket: Optional[str] = Field(default=None, env="COS_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )

    # Collections
    families_collection: str = Field(default="families", env="FAMILIES_COLLECTION")
    programs_collection: str = Field(default="programs", env="PROGRAMS_COLLECTION")

    image_url_expires_in: int = Field(default=3600, env="IMAGE_URL_EXPIRES_IN")

    # Editing sessions are held in process memory.
    session_idle_timeout: int = Field(default=1800, env="SESSION_IDLE_TIMEOUT")
    max_sessions: int = Field(default=100, env="MAX_SESSIONS")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
