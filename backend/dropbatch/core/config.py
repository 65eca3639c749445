import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./dropbatch.db")
    SQL_ECHO: bool = _env_bool("SQL_ECHO")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "your-secret-key")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "minio")  # "minio" or "local"
    LOCAL_STORAGE_PATH: str = os.getenv("LOCAL_STORAGE_PATH", "./uploads")
    MINIO_ENDPOINT: str = os.getenv("MINIO_ENDPOINT", "minio:9000")
    MINIO_ACCESS_KEY: str = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
    MINIO_SECRET_KEY: str = os.getenv("MINIO_SECRET_KEY", "minioadmin")
    MINIO_BUCKET: str = os.getenv("MINIO_BUCKET", "transfers")
    MINIO_SECURE: bool = _env_bool("MINIO_SECURE")

    ANONYMOUS_QUOTA_BYTES: int = int(os.getenv("ANONYMOUS_QUOTA_BYTES", str(200 * 1024 * 1024)))
    AUTHENTICATED_QUOTA_BYTES: int = int(os.getenv("AUTHENTICATED_QUOTA_BYTES", str(1024 * 1024 * 1024)))
    MAX_FILES_PER_BATCH: int = int(os.getenv("MAX_FILES_PER_BATCH", "10"))

    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "")

    SENDGRID_API_KEY: str = os.getenv("SENDGRID_API_KEY", "")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "")
    EMAIL_FROM_NAME: str = os.getenv("EMAIL_FROM_NAME", "DropBatch")

settings = Settings()
