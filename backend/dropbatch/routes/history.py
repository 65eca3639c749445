from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dropbatch.core.database import get_db
from dropbatch.core.security import require_identity
from dropbatch.schemas.file import BatchSummary
from dropbatch.schemas.user import Identity
from dropbatch.services.history import list_batches

router = APIRouter(tags=["History"])

@router.get("/history", response_model=list[BatchSummary])
async def history(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    return await list_batches(db, identity)
