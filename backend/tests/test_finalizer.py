import pytest
from sqlalchemy import select

from dropbatch.core.errors import FinalizeFailed
from dropbatch.models import Batch, FileRecord
from dropbatch.schemas.user import Identity
from dropbatch.services.finalizer import finalize
from dropbatch.services.uploader import BlobHandle


async def upload(uploader, identity=None, count=2):
    files = [BlobHandle.from_bytes(f"f{i}.txt", b"data") for i in range(count)]
    return await uploader.upload_batch(files, identity)


async def finalized_flags(db, batch_id):
    res = await db.execute(
        select(FileRecord.is_finalized).where(FileRecord.batch_id == batch_id)
    )
    return res.scalars().all()


async def test_finalize_locks_every_record(uploader, db, identity):
    result = await upload(uploader, identity, count=3)

    await finalize(db, result.batch_id, identity)

    assert await finalized_flags(db, result.batch_id) == [True, True, True]
    batch = (await db.execute(select(Batch).where(Batch.id == result.batch_id))).scalar_one()
    await db.refresh(batch)
    assert batch.is_finalized is True


async def test_finalize_is_idempotent(uploader, db):
    result = await upload(uploader)

    await finalize(db, result.batch_id)
    await finalize(db, result.batch_id)

    assert await finalized_flags(db, result.batch_id) == [True, True]


async def test_finalize_unknown_batch_fails(db):
    with pytest.raises(FinalizeFailed) as exc_info:
        await finalize(db, "no-such-batch")
    assert exc_info.value.batch_id == "no-such-batch"


async def test_only_owner_can_finalize(uploader, db, identity):
    result = await upload(uploader, identity)

    with pytest.raises(FinalizeFailed):
        await finalize(db, result.batch_id, None)
    with pytest.raises(FinalizeFailed):
        await finalize(db, result.batch_id, Identity(id="someone-else", email="x@example.com"))

    assert await finalized_flags(db, result.batch_id) == [False, False]


async def test_finalize_leaves_other_batches_open(uploader, db):
    first = await upload(uploader)
    second = await upload(uploader)

    await finalize(db, first.batch_id)

    assert await finalized_flags(db, second.batch_id) == [False, False]
