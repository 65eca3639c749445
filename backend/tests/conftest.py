import asyncio
import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="dropbatch-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_tmp}/app.db")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("LOCAL_STORAGE_PATH", os.path.join(_tmp, "blobs"))
os.environ["SENDGRID_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

import dropbatch.models  # noqa: F401
from dropbatch.core.database import Base, get_db, make_engine, make_sessionmaker
from dropbatch.models import User
from dropbatch.schemas.user import Identity
from dropbatch.services.blob_store import LocalBlobStore, get_blob_store
from dropbatch.services.uploader import BatchUploader
from tests.support import BASE_URL, MemoryBlobStore


async def _create_all(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
async def engine(tmp_path):
    eng = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await _create_all(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db(engine):
    async with make_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
def sessions(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def blob_store():
    return MemoryBlobStore()


@pytest.fixture
def uploader(db, blob_store):
    return BatchUploader(db, blob_store, BASE_URL)


@pytest.fixture
async def identity(db):
    user = User(email="sender@example.com", hashed_password="x")
    db.add(user)
    await db.commit()
    return Identity(id=user.id, email=user.email)


@pytest.fixture
def client(tmp_path):
    from dropbatch.main import app

    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", echo=False)
    asyncio.run(_create_all(engine))
    session_factory = make_sessionmaker(engine)
    store = LocalBlobStore(tmp_path / "blobs")

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        asyncio.run(engine.dispose())
