from datetime import datetime

from pydantic import BaseModel, ConfigDict


class FileInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    filename: str
    file_size: int
    file_type: str
    download_count: int
    created_at: datetime
    expires_at: datetime | None = None

class UploadResponse(BaseModel):
    batch_id: str
    share_token: str
    share_url: str
    total_bytes: int
    files: list[FileInfo]

class DownloadManifest(BaseModel):
    share_token: str
    file_count: int
    total_bytes: int
    is_finalized: bool
    files: list[FileInfo]

class BatchSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: str
    share_token: str
    created_at: datetime
    file_count: int
    total_bytes: int
    is_finalized: bool

class FinalizeResponse(BaseModel):
    batch_id: str
    is_finalized: bool
