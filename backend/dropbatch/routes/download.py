from __future__ import annotations

import io
import urllib.parse
import zipfile

from fastapi import APIRouter, Depends
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from dropbatch.core.database import get_db
from dropbatch.core.errors import NotFound
from dropbatch.monitoring.setup import report_download
from dropbatch.schemas.file import DownloadManifest, FileInfo
from dropbatch.services.blob_store import BlobStore, get_blob_store
from dropbatch.services.resolver import Resolver

router = APIRouter(prefix="/download", tags=["Download"])


def _rfc5987_filename(value: str) -> str:
    quoted = urllib.parse.quote(value, safe="")
    return f'filename="{value.encode("latin-1", "ignore").decode("latin-1")}"; filename*=UTF-8\'\'{quoted}'

def _archive_names(filenames: list[str]) -> list[str]:
    seen: dict[str, int] = {}
    names = []
    for name in filenames:
        n = seen.get(name, 0)
        seen[name] = n + 1
        if n:
            stem, dot, ext = name.rpartition(".")
            name = f"{stem} ({n}).{ext}" if dot and stem else f"{name} ({n})"
        names.append(name)
    return names


@router.get("/{token}", response_model=DownloadManifest)
async def manifest(token: str, db: AsyncSession = Depends(get_db), blob_store: BlobStore = Depends(get_blob_store)):
    records = await Resolver(db, blob_store).resolve(token)
    return DownloadManifest(
        share_token=token,
        file_count=len(records),
        total_bytes=sum(r.file_size for r in records),
        is_finalized=records[0].is_finalized,
        files=[FileInfo.model_validate(r) for r in records],
    )


@router.get("/{token}/files/{file_id}")
async def download_file(
    token: str,
    file_id: str,
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    resolver = Resolver(db, blob_store)
    records = await resolver.resolve(token)
    record = next((r for r in records if r.id == file_id), None)
    if record is None:
        raise NotFound("File not found in this transfer")

    stream = await resolver.open_download(record)
    report_download(1)
    return StreamingResponse(
        stream,
        media_type=record.file_type or "application/octet-stream",
        headers={
            "Content-Disposition": f"attachment; {_rfc5987_filename(record.filename)}",
            "Content-Length": str(record.file_size),
        },
    )


@router.get("/{token}/archive")
async def download_archive(
    token: str,
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """Every file of the transfer in one zip, fetched one after another."""
    resolver = Resolver(db, blob_store)
    fetched = []
    try:
        async for record, data in resolver.download_all(token):
            fetched.append((record, data))
    finally:
        # files counted before a failed read were still delivered
        report_download(len(fetched))

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        names = _archive_names([record.filename for record, _ in fetched])
        for name, (_, data) in zip(names, fetched):
            zf.writestr(name, data)

    return Response(
        content=buf.getvalue(),
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; {_rfc5987_filename(f'transfer-{token[:8]}.zip')}"},
    )
