import logging

from sqlalchemy.ext.asyncio import AsyncSession

from dropbatch.core.errors import FinalizeFailed
from dropbatch.schemas.user import Identity
from dropbatch.services.metadata_store import FileRecordStore, MetadataStoreError

logger = logging.getLogger("dropbatch")


async def finalize(db: AsyncSession, batch_id: str, identity: Identity | None = None) -> None:
    """Lock a batch against further additions.

    Idempotent and one-way. A batch with an owner can only be finalized by
    that owner; an anonymous batch by whoever holds its id.
    """
    store = FileRecordStore(db)
    try:
        batch = await store.get_batch(batch_id)
        if batch is None:
            raise FinalizeFailed("Batch not found", batch_id=batch_id)
        if batch.owner_id is not None and (identity is None or identity.id != batch.owner_id):
            raise FinalizeFailed("Batch belongs to another sender", batch_id=batch_id)
        if batch.is_finalized:
            logger.info("finalize batch=%s already_finalized=true", batch_id)
            return
        if not await store.finalize_batch(batch_id):
            raise FinalizeFailed("Batch not found", batch_id=batch_id)
    except MetadataStoreError as e:
        logger.error("finalize_failed batch=%s err=%s", batch_id, e)
        raise FinalizeFailed(batch_id=batch_id) from e
    logger.info("finalize batch=%s", batch_id)
