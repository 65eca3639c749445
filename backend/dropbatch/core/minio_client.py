import logging

from minio import Minio
from minio.error import S3Error

from .config import settings

logger = logging.getLogger("dropbatch")

minio_client = Minio(
    settings.MINIO_ENDPOINT,
    access_key=settings.MINIO_ACCESS_KEY,
    secret_key=settings.MINIO_SECRET_KEY,
    secure=settings.MINIO_SECURE,
)

def initialize_minio_bucket():
    try:
        if not minio_client.bucket_exists(settings.MINIO_BUCKET):
            minio_client.make_bucket(settings.MINIO_BUCKET)
            logger.info("Bucket '%s' created successfully", settings.MINIO_BUCKET)
        else:
            logger.info("Bucket '%s' already exists", settings.MINIO_BUCKET)
    except S3Error as e:
        logger.error("MinIO error: %s", e)
        raise RuntimeError(f"Failed to initialize MinIO bucket: {e}")
