"""Failure kinds raised by the transfer services.

Every error carries enough context (batch id, file index, how many files of
the call already went through) for the caller to retry the whole batch call.
"""
from __future__ import annotations


class TransferError(Exception):
    kind = "transfer_error"
    status_code = 500
    message = "Something went wrong. Please try again."

    def __init__(
        self,
        detail: str | None = None,
        *,
        batch_id: str | None = None,
        file_index: int | None = None,
        files_completed: int = 0,
    ):
        self.detail = detail or self.message
        self.batch_id = batch_id
        self.file_index = file_index
        self.files_completed = files_completed
        super().__init__(self.detail)

    def __str__(self) -> str:
        parts = [self.detail]
        if self.batch_id is not None:
            parts.append(f"batch={self.batch_id}")
        if self.file_index is not None:
            parts.append(f"file_index={self.file_index}")
        return " ".join(parts)


class InvalidBatch(TransferError):
    kind = "invalid_batch"
    status_code = 400
    message = "The upload request is not valid."


class QuotaExceeded(TransferError):
    kind = "quota_exceeded"
    status_code = 413
    message = "Files exceed the size limit for this transfer."

    def __init__(self, requested: int, limit: int, **kwargs):
        self.requested = requested
        self.limit = limit
        super().__init__(f"Requested {requested} bytes exceeds limit of {limit} bytes", **kwargs)


class BatchFinalized(TransferError):
    kind = "batch_finalized"
    status_code = 409
    message = "This transfer is finalized and cannot receive more files."


class BlobWriteFailed(TransferError):
    kind = "blob_write_failed"
    status_code = 502
    message = "Upload failed. Please try again."


class MetadataWriteFailed(TransferError):
    kind = "metadata_write_failed"
    status_code = 503
    message = "Upload failed. Please try again."


class BlobReadFailed(TransferError):
    kind = "blob_read_failed"
    status_code = 502
    message = "Download failed. Please try again."


class NotFound(TransferError):
    kind = "not_found"
    status_code = 404
    message = "No files found with this link."


class Expired(TransferError):
    kind = "expired"
    status_code = 410
    message = "This link has expired."


class FinalizeFailed(TransferError):
    kind = "finalize_failed"
    status_code = 409
    message = "Could not finalize this transfer. Please try again."
