"""Document store adapters.

Credentialing only talks to storage through ``store / fetch / delete``;
which backend holds the bytes is a deployment choice.
"""

from __future__ import annotations

import logging
import os
import uuid
from typing import Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from credentialing.core.config import settings
from credentialing.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Byte storage contract consumed by the document lifecycle manager."""

    def store(self, data: bytes, hints: dict[str, str]) -> str:
        """Persist bytes and return a durable storage reference."""
        ...

    def fetch(self, storage_key: str) -> bytes:
        ...

    def delete(self, storage_key: str) -> None:
        ...


def build_storage_key(hints: dict[str, str]) -> str:
    """`<provider_id>/<uuid>.<ext>`; the original filename never reaches the key."""
    filename = hints.get("filename", "")
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    prefix = hints.get("provider_id", "unassigned")
    return f"{prefix}/{uuid.uuid4()}.{ext}"


# =============================================================================
# Local disk
# =============================================================================

class LocalDocumentStore:
    """Stores documents under a local directory (development and single-host)."""

    def __init__(self, base_path: str):
        self.base_path = os.path.abspath(base_path)

    def _path(self, storage_key: str) -> str:
        path = os.path.abspath(os.path.join(self.base_path, storage_key))
        if not path.startswith(self.base_path + os.sep):
            raise StorageError("Storage key escapes the storage root")
        return path

    def store(self, data: bytes, hints: dict[str, str]) -> str:
        storage_key = build_storage_key(hints)
        path = self._path(storage_key)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as exc:
            raise StorageError(f"Failed to write document: {exc.strerror}") from exc
        return storage_key

    def fetch(self, storage_key: str) -> bytes:
        try:
            with open(self._path(storage_key), "rb") as f:
                return f.read()
        except FileNotFoundError as exc:
            raise StorageError("Document bytes not found in storage") from exc
        except OSError as exc:
            raise StorageError(f"Failed to read document: {exc.strerror}") from exc

    def delete(self, storage_key: str) -> None:
        path = self._path(storage_key)
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as exc:
            raise StorageError(f"Failed to delete document: {exc.strerror}") from exc


# =============================================================================
# S3
# =============================================================================

def _get_s3_client():
    """Get boto3 S3 client."""
    return boto3.client(
        "s3",
        region_name=settings.S3_REGION,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
    )


class S3DocumentStore:
    """Stores documents in an S3 bucket."""

    def __init__(self, bucket: str, client=None):
        self.bucket = bucket
        self.client = client or _get_s3_client()

    def store(self, data: bytes, hints: dict[str, str]) -> str:
        storage_key = build_storage_key(hints)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=storage_key,
                Body=data,
                ContentLength=len(data),
                ContentType=hints.get("content_type", "application/octet-stream"),
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"S3 upload failed: {exc}") from exc
        return storage_key

    def fetch(self, storage_key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=storage_key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"S3 download failed: {exc}") from exc

    def delete(self, storage_key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=storage_key)
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"S3 delete failed: {exc}") from exc


def get_document_store() -> DocumentStore:
    """Return the store for the configured backend."""
    if settings.STORAGE_BACKEND == "s3":
        return S3DocumentStore(settings.S3_BUCKET)
    return LocalDocumentStore(settings.LOCAL_STORAGE_PATH)
