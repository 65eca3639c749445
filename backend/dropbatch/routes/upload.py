from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from dropbatch.core.database import get_db
from dropbatch.core.errors import InvalidBatch
from dropbatch.core.security import get_current_identity
from dropbatch.monitoring.setup import report_upload
from dropbatch.schemas.file import FileInfo, UploadResponse
from dropbatch.schemas.user import Identity
from dropbatch.services.blob_store import BlobStore, get_blob_store
from dropbatch.services.notifier import notify_share_link
from dropbatch.services.uploader import BatchUploader, BlobHandle, ExistingBatch
from dropbatch.utils.urls import external_base_url

logger = logging.getLogger("dropbatch")

router = APIRouter(tags=["Upload"])

@router.post("/upload", response_model=UploadResponse)
async def upload_files(
    request: Request,
    files: list[UploadFile] = File(..., description="1 to 10 files"),
    batch_id: str | None = Form(None, description="Existing batch to add files to"),
    share_token: str | None = Form(None, description="Share token of that batch"),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    identity: Identity | None = Depends(get_current_identity),
):
    if bool(batch_id) != bool(share_token):
        raise InvalidBatch("batch_id and share_token must be given together")
    existing = ExistingBatch(batch_id, share_token) if batch_id else None

    uploader = BatchUploader(db, blob_store, external_base_url(request))
    result = await uploader.upload_batch(
        [BlobHandle.from_upload(f) for f in files],
        identity,
        existing_batch=existing,
        on_progress=lambda p: logger.debug(
            "upload_progress files=%s/%s fraction=%.3f speed=%.2fMiB/s",
            p.files_completed, p.file_count, p.fraction, p.throughput_mib_s,
        ),
    )
    report_upload(len(result.records), result.total_bytes)

    await notify_share_link(identity, result.share_url, len(result.records), result.total_bytes)

    return UploadResponse(
        batch_id=result.batch_id,
        share_token=result.share_token,
        share_url=result.share_url,
        total_bytes=result.total_bytes,
        files=[FileInfo.model_validate(r) for r in result.records],
    )
