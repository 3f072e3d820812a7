from __future__ import annotations

import asyncio
import os
import pathlib
import re
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from arena.errors import InvalidRequest, StoreError

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})
MAX_IMAGE_BYTES = 10 * 1024 * 1024

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


@dataclass
class StorageResult:
    backend: str
    path: str
    size: int
    url: str


def sanitize_filename(filename: Optional[str], default: str = "upload") -> str:
    name = pathlib.Path(filename or default).name
    return re.sub(r"[^A-Za-z0-9._-]", "_", name).strip("._") or default


def validate_image(content_type: Optional[str], size: int) -> None:
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise InvalidRequest("Only JPEG, PNG, WebP and GIF images are allowed")
    if size > MAX_IMAGE_BYTES:
        raise InvalidRequest("Images must be 10MB or smaller")


def _unique() -> str:
    return uuid4().hex


def banner_path(challenge_id: str, content_type: str) -> str:
    return f"challenges/{challenge_id}/banner/{_unique()}.{_EXTENSIONS.get(content_type, 'bin')}"


def avatar_path(user_uid: str, content_type: str) -> str:
    return f"users/{sanitize_filename(user_uid)}/avatar/{_unique()}.{_EXTENSIONS.get(content_type, 'bin')}"


def submission_file_path(challenge_id: str, user_uid: str, filename: Optional[str]) -> str:
    return f"challenges/{challenge_id}/submissions/{sanitize_filename(user_uid)}/{_unique()}_{sanitize_filename(filename)}"


class BlobStorage:
    backend_name = "base"

    async def put(self, data: bytes, path: str, content_type: Optional[str] = None) -> StorageResult:  # pragma: no cover
        raise NotImplementedError

    async def delete(self, path: str) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def public_url(self, path: str) -> str:  # pragma: no cover - interface only
        raise NotImplementedError


class LocalBlobStorage(BlobStorage):
    """Writes blobs under a directory that the app serves at ``/blobs``."""

    backend_name = "local"

    def __init__(self, base_path: Optional[str] = None, public_base_url: Optional[str] = None) -> None:
        base_path = base_path or os.getenv("BLOB_LOCAL_PATH", "storage/blobs")
        self.base_path = pathlib.Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or os.getenv("BLOB_PUBLIC_BASE_URL", "/blobs")).rstrip("/")

    def _resolve(self, path: str) -> pathlib.Path:
        candidate = (self.base_path / path).resolve()
        if not candidate.is_relative_to(self.base_path):
            raise InvalidRequest("Invalid blob path")
        return candidate

    async def put(self, data: bytes, path: str, content_type: Optional[str] = None) -> StorageResult:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target, "wb") as buffer:
            await buffer.write(data)
        return StorageResult(backend=self.backend_name, path=path, size=len(data), url=self.public_url(path))

    async def delete(self, path: str) -> None:
        try:
            self._resolve(path).unlink()
        except FileNotFoundError:  # pragma: no cover - fine if already gone
            pass

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path}"


class S3BlobStorage(BlobStorage):
    backend_name = "s3"

    def __init__(self, bucket: Optional[str] = None, client=None) -> None:
        bucket = bucket or os.getenv("BLOB_S3_BUCKET")
        if not bucket:
            raise RuntimeError("BLOB_S3_BUCKET must be set for S3 storage")
        self.bucket = bucket
        self.endpoint = os.getenv("BLOB_S3_ENDPOINT")
        self.client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=os.getenv("BLOB_S3_REGION"),
        )
        self.public_base_url = os.getenv("BLOB_PUBLIC_BASE_URL")

    async def put(self, data: bytes, path: str, content_type: Optional[str] = None) -> StorageResult:
        extra = {"ContentType": content_type} if content_type else {}
        try:
            await asyncio.to_thread(
                self.client.put_object, Bucket=self.bucket, Key=path, Body=data, **extra
            )
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"Failed to store blob: {exc}") from exc
        return StorageResult(backend=self.backend_name, path=path, size=len(data), url=self.public_url(path))

    async def delete(self, path: str) -> None:
        await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=path)

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{path}"
        return f"https://{self.bucket}.s3.amazonaws.com/{path}"


def build_blob_storage() -> BlobStorage:
    backend = os.getenv("BLOB_STORAGE", "local").lower()
    if backend == "local":
        return LocalBlobStorage()
    if backend == "s3":
        return S3BlobStorage()
    raise RuntimeError(f"Unsupported BLOB_STORAGE backend: {backend}")


__all__ = [
    "ALLOWED_IMAGE_TYPES",
    "MAX_IMAGE_BYTES",
    "BlobStorage",
    "LocalBlobStorage",
    "S3BlobStorage",
    "StorageResult",
    "avatar_path",
    "banner_path",
    "build_blob_storage",
    "sanitize_filename",
    "submission_file_path",
    "validate_image",
]
