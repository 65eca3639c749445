import logging
import time

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

uploads_files = Counter("uploads_files_total", "Files stored by upload calls")
uploads_bytes = Counter("uploads_bytes_total", "Bytes stored by upload calls")
downloads_files = Counter("downloads_files_total", "Files delivered to recipients")
transfer_failures = Counter("transfer_failures_total", "Failed transfer operations", ["kind"])

def report_upload(files: int, size: int) -> None:
    uploads_files.inc(files)
    if size:
        uploads_bytes.inc(size)

def report_download(files: int) -> None:
    if files:
        downloads_files.inc(files)

def report_failure(kind: str) -> None:
    transfer_failures.labels(kind=kind).inc()

def setup_monitoring(app: ASGIApp):
    Instrumentator().instrument(app).expose(app, endpoint="/api/metrics", include_in_schema=False)

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()
        response = None
        try:
            response = await call_next(request)
        except HTTPException as e:
            logger.exception("HTTP exception: %s %s -> %s", request.method, request.url.path, e.detail)
            response = JSONResponse(status_code=e.status_code, content={"detail": e.detail})
        except Exception as e:
            logger.exception("Unhandled error: %s %s -> %s", request.method, request.url.path, e)
            response = JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
        finally:
            process_time = time.time() - start_time
            logger.info("method=%s path=%s status=%s duration=%.4fs",
                        request.method, request.url.path,
                        getattr(response, "status_code", "?"), process_time)
        return response
