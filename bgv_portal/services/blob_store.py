"""Binary storage for uploaded documents.

Callers only see ``put``/``delete``/``url``. Production uses S3; development
writes under ``local_storage_dir`` and serves files from ``/files``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Protocol

import anyio
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from bgv_portal.core.config import settings
from bgv_portal.core.errors import StorageError
from bgv_portal.core.paths import resolve_repo_path
from bgv_portal.services.public_links import build_public_path

logger = logging.getLogger("bgv.storage")

LOCAL_FILES_PATH = "/files"


@dataclass(frozen=True)
class StoredBlob:
    key: str
    url: str


class BlobStore(Protocol):
    async def put(self, key: str, data: bytes, *, content_type: str | None = None) -> StoredBlob: ...

    async def delete(self, key: str) -> None: ...

    async def url(self, key: str) -> str: ...


def build_storage_key(kind: str, record_id: int, slot_key: str, filename: str) -> str:
    return f"{kind}/{record_id}/{slot_key}/{uuid.uuid4().hex[:8]}-{filename}"


class S3BlobStore:
    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        prefix: str = "",
        access_key_id: str = "",
        secret_access_key: str = "",
        url_expiry_seconds: int = 3600,
    ):
        if not bucket:
            raise StorageError("S3 bucket is not configured.")
        client_kwargs = {"region_name": region}
        if access_key_id and secret_access_key:
            client_kwargs["aws_access_key_id"] = access_key_id
            client_kwargs["aws_secret_access_key"] = secret_access_key
        self.client = boto3.client("s3", **client_kwargs)
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.url_expiry_seconds = url_expiry_seconds

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    async def put(self, key: str, data: bytes, *, content_type: str | None = None) -> StoredBlob:
        full_key = self._full_key(key)
        try:
            await anyio.to_thread.run_sync(
                lambda: self.client.put_object(
                    Bucket=self.bucket,
                    Key=full_key,
                    Body=data,
                    ContentType=content_type or "application/octet-stream",
                )
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("s3_put_failed", extra={"key": full_key, "error": str(exc)})
            raise StorageError("Unable to store the file. Please retry later.", {"key": key}) from exc
        return StoredBlob(key=key, url=await self.url(key))

    async def delete(self, key: str) -> None:
        full_key = self._full_key(key)
        try:
            await anyio.to_thread.run_sync(lambda: self.client.delete_object(Bucket=self.bucket, Key=full_key))
        except (BotoCoreError, ClientError) as exc:
            logger.error("s3_delete_failed", extra={"key": full_key, "error": str(exc)})
            raise StorageError("Unable to delete the file.", {"key": key}) from exc

    async def url(self, key: str) -> str:
        full_key = self._full_key(key)
        try:
            return await anyio.to_thread.run_sync(
                lambda: self.client.generate_presigned_url(
                    "get_object",
                    Params={"Bucket": self.bucket, "Key": full_key},
                    ExpiresIn=self.url_expiry_seconds,
                )
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError("Unable to build a download link.", {"key": key}) from exc


class LocalBlobStore:
    def __init__(self, root: Path):
        self.root = root

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError("Invalid storage key.", {"key": key})
        return path

    async def put(self, key: str, data: bytes, *, content_type: str | None = None) -> StoredBlob:
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await anyio.to_thread.run_sync(_write)
        except OSError as exc:
            logger.error("local_put_failed", extra={"key": key, "error": str(exc)})
            raise StorageError("Unable to store the file. Please retry later.", {"key": key}) from exc
        return StoredBlob(key=key, url=await self.url(key))

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await anyio.to_thread.run_sync(lambda: path.unlink(missing_ok=True))
        except OSError as exc:
            raise StorageError("Unable to delete the file.", {"key": key}) from exc

    async def url(self, key: str) -> str:
        return build_public_path(f"{LOCAL_FILES_PATH}/{key}")


def local_storage_root() -> Path:
    return resolve_repo_path(settings.local_storage_dir)


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    if settings.storage_backend == "s3":
        return S3BlobStore(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            prefix=settings.s3_prefix,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            url_expiry_seconds=settings.s3_url_expiry_seconds,
        )
    return LocalBlobStore(local_storage_root())
