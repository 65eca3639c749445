"""SQLAlchemy-backed metadata store for batches and their file records."""
from __future__ import annotations

from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dropbatch.models import Batch, FileRecord


class MetadataStoreError(Exception):
    pass


class BatchClosedError(MetadataStoreError):
    """Insert refused because the batch is finalized."""


class FileRecordStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_batch(self, batch_id: str) -> Batch | None:
        try:
            res = await self.db.execute(
                select(Batch).where(Batch.id == batch_id).execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise MetadataStoreError(str(e)) from e
        return res.scalars().first()

    async def batch_total_bytes(self, batch_id: str) -> int:
        try:
            res = await self.db.execute(
                select(func.coalesce(func.sum(FileRecord.file_size), 0)).where(FileRecord.batch_id == batch_id)
            )
        except SQLAlchemyError as e:
            raise MetadataStoreError(str(e)) from e
        return int(res.scalar_one())

    async def insert(
        self,
        *,
        batch_id: str,
        share_token: str,
        owner_id: str | None,
        filename: str,
        file_size: int,
        file_type: str,
        storage_path: str,
    ) -> FileRecord:
        """Insert one record, creating the batch row on its first file.

        The batch counter is bumped with ``WHERE is_finalized = false`` in the
        same transaction, so a batch finalized in the meantime refuses the row.
        """
        try:
            exists = await self.db.execute(select(Batch.id).where(Batch.id == batch_id))
            if exists.scalar_one_or_none() is None:
                self.db.add(Batch(id=batch_id, share_token=share_token, owner_id=owner_id))
                await self.db.flush()

            res = await self.db.execute(
                update(Batch)
                .where(Batch.id == batch_id, Batch.is_finalized.is_(False))
                .values(file_count=Batch.file_count + 1)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                await self.db.rollback()
                raise BatchClosedError(f"batch {batch_id} is finalized")

            count = await self.db.execute(select(Batch.file_count).where(Batch.id == batch_id))
            record = FileRecord(
                filename=filename,
                file_size=file_size,
                file_type=file_type,
                storage_path=storage_path,
                batch_id=batch_id,
                share_token=share_token,
                owner_id=owner_id,
                position=count.scalar_one() - 1,
                download_count=0,
                is_finalized=False,
            )
            self.db.add(record)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise MetadataStoreError(str(e)) from e
        return record

    async def bulk_update(self, model, criteria: list[Any], patch: dict[str, Any]) -> int:
        """Apply ``patch`` to every row matching ``criteria``. Caller commits."""
        res = await self.db.execute(
            update(model).where(*criteria).values(**patch).execution_options(synchronize_session=False)
        )
        return res.rowcount

    async def finalize_batch(self, batch_id: str) -> bool:
        """Lock the batch and all its records. False when the batch is unknown."""
        try:
            matched = await self.bulk_update(Batch, [Batch.id == batch_id], {"is_finalized": True})
            if matched == 0:
                await self.db.rollback()
                return False
            await self.bulk_update(FileRecord, [FileRecord.batch_id == batch_id], {"is_finalized": True})
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise MetadataStoreError(str(e)) from e
        return True

    async def query(self, *criteria, order_by=()) -> list[FileRecord]:
        try:
            res = await self.db.execute(
                select(FileRecord)
                .where(*criteria)
                .order_by(*order_by)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise MetadataStoreError(str(e)) from e
        return list(res.scalars().all())

    async def increment_download_count(self, file_id: str) -> None:
        try:
            await self.bulk_update(
                FileRecord,
                [FileRecord.id == file_id],
                {"download_count": FileRecord.download_count + 1},
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise MetadataStoreError(str(e)) from e

    async def grouped_by_owner(self, owner_id: str):
        """One row per batch owned by ``owner_id``, newest first."""
        # records of a batch share token and finalized flag, so grouping on
        # them does not split a batch
        first_created = func.min(FileRecord.created_at).label("created_at")
        stmt = (
            select(
                FileRecord.batch_id,
                FileRecord.share_token,
                FileRecord.is_finalized,
                first_created,
                func.count(FileRecord.id).label("file_count"),
                func.sum(FileRecord.file_size).label("total_bytes"),
            )
            .where(FileRecord.owner_id == owner_id)
            .group_by(FileRecord.batch_id, FileRecord.share_token, FileRecord.is_finalized)
            .order_by(first_created.desc())
        )
        try:
            res = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise MetadataStoreError(str(e)) from e
        return res.all()
