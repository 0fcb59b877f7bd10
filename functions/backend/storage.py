"""
Storage abstraction for Firebase Storage, Tencent COS (S3-compatible) and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        """Stores `data` at `path`, replacing any object there, and returns its reference."""
        ...

    def get_download_url(self, path: str, expires_in: int = 3600) -> str:
        ...

    def get_bytes(self, path: str) -> bytes:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        self.stored_objects[path] = bytes(data)
        return path

    def get_download_url(self, path: str, expires_in: int = 3600) -> str:
        # Resolving a missing object fails like the hosted stores do.
        if path not in self.stored_objects:
            raise FileNotFoundError(path)
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored


class FirebaseStorageClient:
    """
    Firebase Storage (Google Cloud Storage bucket) via the firebase_admin SDK.
    """

    def __init__(self, bucket_name: str | None = None, app=None):
        from firebase_admin import storage

        self._bucket = storage.bucket(bucket_name, app=app)

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        blob = self._bucket.blob(path)
        blob.upload_from_string(data, content_type=content_type)
        return path

    def get_download_url(self, path: str, expires_in: int = 3600) -> str:
        blob = self._bucket.blob(path)
        if not blob.exists():
            raise FileNotFoundError(path)
        return blob.generate_signed_url(
            expiration=timedelta(seconds=expires_in), version="v4"
        )

    def get_bytes(self, path: str) -> bytes:
        return self._bucket.blob(path).download_as_bytes()


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client for Tencent COS.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )
        return path

    def _require_object(self, path: str) -> None:
        try:
            self._client.head_object(Bucket=self.bucket, Key=path)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_OBJECT_CODES:
                raise FileNotFoundError(path) from e
            raise

    def get_download_url(self, path: str, expires_in: int = 3600) -> str:
        # Presigning never fails for absent keys, so check first.
        self._require_object(path)
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=expires_in,
        )

    def get_bytes(self, path: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=path)
        except self._client.exceptions.NoSuchKey as e:
            raise FileNotFoundError(path) from e
        return response["Body"].read()
