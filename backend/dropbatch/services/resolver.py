"""Share-token resolution and the recipient's download pass."""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import AsyncIterator, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from dropbatch.core.errors import BlobReadFailed, Expired, NotFound, TransferError
from dropbatch.models.file import FileRecord
from dropbatch.services.blob_store import BlobStore, BlobStoreError
from dropbatch.services.metadata_store import FileRecordStore, MetadataStoreError

logger = logging.getLogger("dropbatch")

SHARE_TOKEN_RE = re.compile(r"^[0-9a-f]{32}$")


class Resolver:
    def __init__(
        self,
        db: AsyncSession,
        blob_store: BlobStore,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = FileRecordStore(db)
        self.blob_store = blob_store
        self.now = now

    async def resolve(self, share_token: str) -> list[FileRecord]:
        """All records of the batch behind ``share_token``, in upload order.

        Any expired record makes the whole batch unavailable.
        """
        if not SHARE_TOKEN_RE.match(share_token or ""):
            raise NotFound()
        try:
            records = await self.store.query(
                FileRecord.share_token == share_token,
                order_by=(FileRecord.created_at.asc(), FileRecord.position.asc()),
            )
        except MetadataStoreError as e:
            logger.error("resolve_failed token=%s err=%s", share_token, e)
            raise TransferError("Could not load files. Please try again.") from e
        if not records:
            raise NotFound()

        now = self.now()
        if any(r.expires_at is not None and r.expires_at <= now for r in records):
            logger.info("resolve token=%s expired=true", share_token)
            raise Expired(batch_id=records[0].batch_id)
        return records

    async def fetch_blob(self, record: FileRecord) -> bytes:
        try:
            return await self.blob_store.get(record.storage_path)
        except BlobStoreError as e:
            logger.error("blob_read_failed file=%s path=%s err=%s", record.id, record.storage_path, e)
            raise BlobReadFailed(batch_id=record.batch_id, file_index=record.position) from e

    async def increment_download_count(self, file_id: str) -> None:
        # never fails the download it follows
        try:
            await self.store.increment_download_count(file_id)
        except MetadataStoreError as e:
            logger.warning("download_count_failed file=%s err=%s", file_id, e)

    async def open_download(self, record: FileRecord) -> AsyncIterator[bytes]:
        """Open one file for streaming and count the delivery.

        The blob is opened before returning, so a missing blob fails here
        rather than halfway through a response.
        """
        try:
            stream = await self.blob_store.open_stream(record.storage_path)
        except BlobStoreError as e:
            logger.error("blob_read_failed file=%s path=%s err=%s", record.id, record.storage_path, e)
            raise BlobReadFailed(batch_id=record.batch_id, file_index=record.position) from e
        await self.increment_download_count(record.id)
        return stream

    async def download_all(self, share_token: str) -> AsyncIterator[tuple[FileRecord, bytes]]:
        """Fetch every file of a batch in order, counting each delivery.

        Stops at the first read failure; counts of earlier files stay.
        """
        records = await self.resolve(share_token)
        for delivered, record in enumerate(records):
            try:
                data = await self.fetch_blob(record)
            except BlobReadFailed as e:
                e.files_completed = delivered
                raise
            await self.increment_download_count(record.id)
            yield record, data
