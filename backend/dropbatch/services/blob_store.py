"""Blob store backends. Paths are opaque keys chosen by the uploader.

No backend overwrites: a put to a key that already exists fails.
"""
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import AsyncIterator, Protocol

import aiofiles
from minio import Minio
from minio.error import S3Error
from starlette.concurrency import run_in_threadpool

from dropbatch.core.config import settings

logger = logging.getLogger("dropbatch")

CHUNK_SIZE = 1024 * 1024  # 1 MiB

_MISSING_KEY_CODES = {"NoSuchKey", "NoSuchObject", "ResourceNotFound"}


class BlobStoreError(Exception):
    pass


class BlobStore(Protocol):
    async def put(self, path: str, data: bytes, content_type: str = "") -> None: ...

    async def get(self, path: str) -> bytes: ...

    async def open_stream(self, path: str, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]: ...

    async def ping(self) -> None: ...


class MinioBlobStore:
    def __init__(self, client: Minio, bucket: str):
        self.client = client
        self.bucket = bucket

    async def _exists(self, path: str) -> bool:
        try:
            await run_in_threadpool(self.client.stat_object, self.bucket, path)
        except S3Error as e:
            if e.code in _MISSING_KEY_CODES:
                return False
            raise
        return True

    async def put(self, path: str, data: bytes, content_type: str = "") -> None:
        try:
            if await self._exists(path):
                raise BlobStoreError(f"put {self.bucket}/{path} refused: key exists")
            await run_in_threadpool(
                self.client.put_object,
                self.bucket,
                path,
                io.BytesIO(data),
                len(data),
                content_type=content_type or "application/octet-stream",
            )
        except (S3Error, OSError) as e:
            raise BlobStoreError(f"put {self.bucket}/{path} failed: {e}") from e

    async def _open(self, path: str):
        try:
            return await run_in_threadpool(self.client.get_object, self.bucket, path)
        except (S3Error, OSError) as e:
            raise BlobStoreError(f"get {self.bucket}/{path} failed: {e}") from e

    async def get(self, path: str) -> bytes:
        obj = await self._open(path)
        try:
            return await run_in_threadpool(obj.read)
        finally:
            await run_in_threadpool(obj.close)
            await run_in_threadpool(obj.release_conn)

    async def open_stream(self, path: str, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Open ``path`` now and return an iterator over its chunks."""
        obj = await self._open(path)

        async def chunks():
            try:
                while True:
                    chunk = await run_in_threadpool(obj.read, chunk_size)
                    if not chunk:
                        break
                    yield chunk
            finally:
                await run_in_threadpool(obj.close)
                await run_in_threadpool(obj.release_conn)

        return chunks()

    async def ping(self) -> None:
        await run_in_threadpool(self.client.bucket_exists, self.bucket)


class LocalBlobStore:
    """Filesystem store for development and tests."""

    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        target = (self.base_path / path).resolve()
        if self.base_path not in target.parents:
            raise BlobStoreError(f"path escapes store root: {path}")
        return target

    async def put(self, path: str, data: bytes, content_type: str = "") -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, "xb") as f:
                await f.write(data)
        except OSError as e:
            raise BlobStoreError(f"put {path} failed: {e}") from e

    async def get(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            async with aiofiles.open(target, "rb") as f:
                return await f.read()
        except OSError as e:
            raise BlobStoreError(f"get {path} failed: {e}") from e

    async def open_stream(self, path: str, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        target = self._resolve(path)
        try:
            f = await aiofiles.open(target, "rb")
        except OSError as e:
            raise BlobStoreError(f"get {path} failed: {e}") from e

        async def chunks():
            try:
                while True:
                    chunk = await f.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
            finally:
                await f.close()

        return chunks()

    async def ping(self) -> None:
        if not self.base_path.is_dir():
            raise BlobStoreError(f"storage root missing: {self.base_path}")


_blob_store: BlobStore | None = None


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store is None:
        if settings.STORAGE_BACKEND == "local":
            _blob_store = LocalBlobStore(settings.LOCAL_STORAGE_PATH)
        elif settings.STORAGE_BACKEND == "minio":
            from dropbatch.core.minio_client import minio_client

            _blob_store = MinioBlobStore(minio_client, settings.MINIO_BUCKET)
        else:
            raise ValueError(f"Unknown storage backend: {settings.STORAGE_BACKEND}")
    return _blob_store
