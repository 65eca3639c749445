"""Sequential batch upload against the blob and metadata stores.

Files go one at a time: blob put, then record insert, then a progress
update. A failure aborts the call without undoing files already stored, and
nothing is retried; the caller re-invokes the whole batch.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from dropbatch.core.config import settings
from dropbatch.core.errors import (
    BatchFinalized,
    BlobWriteFailed,
    InvalidBatch,
    MetadataWriteFailed,
    NotFound,
    QuotaExceeded,
)
from dropbatch.models.file import FileRecord
from dropbatch.schemas.user import Identity
from dropbatch.services.blob_store import BlobStore, BlobStoreError
from dropbatch.services.metadata_store import BatchClosedError, FileRecordStore, MetadataStoreError
from dropbatch.services.quota import max_bytes
from dropbatch.services.tokens import new_batch_id, new_share_token
from dropbatch.utils.urls import share_link

logger = logging.getLogger("dropbatch")

MIB = 1024 * 1024


@dataclass
class BlobHandle:
    """One file waiting to be uploaded.

    Either ``data`` holds the bytes or ``source`` is something with an async
    ``read()`` (an ``UploadFile``). Content is only read when its turn comes.
    """

    filename: str
    size: int
    content_type: str = ""
    data: bytes | None = None
    source: Any = None

    @classmethod
    def from_bytes(cls, filename: str, data: bytes, content_type: str = "") -> "BlobHandle":
        return cls(filename=filename, size=len(data), content_type=content_type, data=data)

    @classmethod
    def from_upload(cls, upload) -> "BlobHandle":
        size = upload.size
        if size is None:
            upload.file.seek(0, 2)
            size = upload.file.tell()
            upload.file.seek(0)
        return cls(
            filename=upload.filename or "file.bin",
            size=size,
            content_type=upload.content_type or "",
            source=upload,
        )

    async def read(self) -> bytes:
        if self.data is not None:
            return self.data
        return await self.source.read()


@dataclass(frozen=True)
class ExistingBatch:
    batch_id: str
    share_token: str


@dataclass(frozen=True)
class UploadProgress:
    completed_bytes: int
    total_bytes: int
    files_completed: int
    file_count: int
    elapsed_seconds: float

    @property
    def fraction(self) -> float:
        if self.total_bytes <= 0:
            return 1.0
        return min(1.0, self.completed_bytes / self.total_bytes)

    @property
    def throughput_mib_s(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.completed_bytes / self.elapsed_seconds / MIB


@dataclass
class UploadResult:
    batch_id: str
    share_token: str
    share_url: str
    records: list[FileRecord] = field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(r.file_size for r in self.records)


ProgressCallback = Callable[[UploadProgress], None]


def storage_path_for(owner_scope: str, batch_id: str, upload_timestamp: int, index: int, filename: str) -> str:
    return f"{owner_scope}/{batch_id}/{upload_timestamp}_{index}_{_safe_filename(filename)}"


def _safe_filename(filename: str) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name
    return name or "file.bin"


class BatchUploader:
    def __init__(
        self,
        db: AsyncSession,
        blob_store: BlobStore,
        base_url: str,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = FileRecordStore(db)
        self.blob_store = blob_store
        self.base_url = base_url
        self.clock = clock

    async def upload_batch(
        self,
        files: Sequence[BlobHandle],
        identity: Identity | None,
        existing_batch: ExistingBatch | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        self._check_files(files)
        owner_id = identity.id if identity else None

        if existing_batch is not None:
            already_stored, first_index = await self._check_existing(existing_batch, owner_id)
            batch_id, share_token = existing_batch.batch_id, existing_batch.share_token
        else:
            already_stored, first_index = 0, 0
            batch_id, share_token = new_batch_id(), new_share_token()

        total_bytes = sum(f.size for f in files)
        limit = max_bytes(identity)
        if already_stored + total_bytes > limit:
            logger.info("upload_rejected batch=%s reason=quota requested=%s limit=%s",
                        batch_id, already_stored + total_bytes, limit)
            raise QuotaExceeded(already_stored + total_bytes, limit, batch_id=batch_id)

        owner_scope = owner_id or "anonymous"
        upload_timestamp = int(time.time() * 1000)
        result = UploadResult(batch_id=batch_id, share_token=share_token,
                              share_url=share_link(self.base_url, share_token))
        completed_bytes = 0
        started = self.clock()

        for index, handle in enumerate(files):
            path = storage_path_for(owner_scope, batch_id, upload_timestamp, first_index + index, handle.filename)
            context = dict(batch_id=batch_id, file_index=index, files_completed=len(result.records))

            try:
                data = await handle.read()
                await self.blob_store.put(path, data, handle.content_type)
            except BlobStoreError as e:
                logger.error("blob_write_failed batch=%s index=%s path=%s err=%s", batch_id, index, path, e)
                raise BlobWriteFailed(**context) from e
            del data

            try:
                record = await self.store.insert(
                    batch_id=batch_id,
                    share_token=share_token,
                    owner_id=owner_id,
                    filename=handle.filename,
                    file_size=handle.size,
                    file_type=handle.content_type or "",
                    storage_path=path,
                )
            except BatchClosedError as e:
                logger.warning("upload_rejected batch=%s reason=finalized index=%s orphan=%s", batch_id, index, path)
                raise BatchFinalized(**context) from e
            except MetadataStoreError as e:
                logger.error("metadata_write_failed batch=%s index=%s orphan=%s err=%s", batch_id, index, path, e)
                raise MetadataWriteFailed(**context) from e

            result.records.append(record)
            completed_bytes += handle.size
            if on_progress is not None:
                on_progress(UploadProgress(
                    completed_bytes=completed_bytes,
                    total_bytes=total_bytes,
                    files_completed=len(result.records),
                    file_count=len(files),
                    elapsed_seconds=self.clock() - started,
                ))

        logger.info("upload_complete batch=%s files=%s bytes=%s add_more=%s",
                    batch_id, len(result.records), total_bytes, existing_batch is not None)
        return result

    def _check_files(self, files: Sequence[BlobHandle]) -> None:
        if not files:
            raise InvalidBatch("No files to upload")
        if len(files) > settings.MAX_FILES_PER_BATCH:
            raise InvalidBatch(f"At most {settings.MAX_FILES_PER_BATCH} files per batch")
        for index, handle in enumerate(files):
            if handle.size <= 0:
                raise InvalidBatch(f"File '{handle.filename}' is empty", file_index=index)

    async def _check_existing(self, existing: ExistingBatch, owner_id: str | None) -> tuple[int, int]:
        """Validate an "add more files" target.

        Returns the bytes the batch already holds and the index its next file
        takes, so paths keep counting up across rounds.
        """
        try:
            batch = await self.store.get_batch(existing.batch_id)
            if batch is None:
                raise NotFound("Batch not found", batch_id=existing.batch_id)
            if batch.share_token != existing.share_token:
                raise InvalidBatch("Share token does not match batch", batch_id=existing.batch_id)
            if batch.owner_id != owner_id:
                raise InvalidBatch("Batch belongs to another sender", batch_id=existing.batch_id)
            if batch.is_finalized:
                raise BatchFinalized(batch_id=existing.batch_id)
            return await self.store.batch_total_bytes(existing.batch_id), batch.file_count
        except MetadataStoreError as e:
            raise MetadataWriteFailed(batch_id=existing.batch_id) from e
