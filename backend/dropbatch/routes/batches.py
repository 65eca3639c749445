from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dropbatch.core.database import get_db
from dropbatch.core.security import get_current_identity
from dropbatch.schemas.file import FinalizeResponse
from dropbatch.schemas.user import Identity
from dropbatch.services.finalizer import finalize

router = APIRouter(prefix="/batches", tags=["Batches"])

@router.post("/{batch_id}/finalize", response_model=FinalizeResponse)
async def finalize_batch(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity | None = Depends(get_current_identity),
):
    await finalize(db, batch_id, identity)
    return FinalizeResponse(batch_id=batch_id, is_finalized=True)
