import logging

from sqlalchemy.ext.asyncio import AsyncSession

from dropbatch.core.errors import TransferError
from dropbatch.schemas.file import BatchSummary
from dropbatch.schemas.user import Identity
from dropbatch.services.metadata_store import FileRecordStore, MetadataStoreError

logger = logging.getLogger("dropbatch")


async def list_batches(db: AsyncSession, identity: Identity | None) -> list[BatchSummary]:
    """Batches created by ``identity``, newest first, from one grouped read."""
    if identity is None:
        return []
    try:
        rows = await FileRecordStore(db).grouped_by_owner(identity.id)
    except MetadataStoreError as e:
        logger.error("history_failed owner=%s err=%s", identity.id, e)
        raise TransferError("Could not load history. Please try again.") from e
    return [
        BatchSummary(
            batch_id=row.batch_id,
            share_token=row.share_token,
            created_at=row.created_at,
            file_count=row.file_count,
            total_bytes=int(row.total_bytes or 0),
            is_finalized=bool(row.is_finalized),
        )
        for row in rows
    ]
