from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from .config import settings

DATABASE_URL = settings.DATABASE_URL


def make_engine(url: str = DATABASE_URL, echo: bool = settings.SQL_ECHO):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_async_engine(
        url,
        connect_args=connect_args,
        poolclass=NullPool,
        echo=echo,
    )


def make_sessionmaker(bind) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = make_engine()
SessionLocal = make_sessionmaker(engine)

Base = declarative_base()

async def get_db():
    async with SessionLocal() as session:
        yield session
