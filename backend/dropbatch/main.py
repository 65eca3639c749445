import logging
from contextlib import asynccontextmanager
from datetime import datetime

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

import dropbatch.models  # noqa: F401  registers tables on Base.metadata
from dropbatch.core.config import settings
from dropbatch.core.database import Base, engine, get_db
from dropbatch.core.errors import TransferError
from dropbatch.monitoring.setup import report_failure, setup_monitoring
from dropbatch.routes import auth, batches, download, history, upload
from dropbatch.services.blob_store import BlobStore, get_blob_store

logger = logging.getLogger("dropbatch")

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        async with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                await conn.execute(text("PRAGMA journal_mode=WAL;"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Database initialization failed: %s", e)
        raise

    if settings.STORAGE_BACKEND == "minio":
        from dropbatch.core.minio_client import initialize_minio_bucket

        try:
            initialize_minio_bucket()
            logger.info("MinIO initialized")
        except Exception as e:
            logger.error("MinIO initialization failed: %s", e)
            raise

    yield

    logger.info("Application shutdown complete")

app = FastAPI(
    title="DropBatch",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Content-Length"],
)

app.include_router(auth)
app.include_router(upload)
app.include_router(batches)
app.include_router(download)
app.include_router(history)

setup_monitoring(app)


@app.exception_handler(TransferError)
async def transfer_error_handler(request: Request, exc: TransferError):
    report_failure(exc.kind)
    logger.warning("transfer_error kind=%s path=%s %s", exc.kind, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "error": exc.kind,
            "files_completed": exc.files_completed,
        },
    )


@app.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    try:
        await db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    try:
        await blob_store.ping()
        storage_status = "ok"
    except Exception as e:
        storage_status = f"error: {str(e)}"

    return {
        "status": "running",
        "timestamp": datetime.utcnow().isoformat(),
        "database": db_status,
        "storage": storage_status
    }

if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info",
        timeout_keep_alive=60,
        limit_concurrency=100
    )
