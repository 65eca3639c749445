from dropbatch.services.finalizer import finalize
from dropbatch.services.history import list_batches
from dropbatch.services.uploader import BlobHandle, ExistingBatch


def files(*sizes):
    return [BlobHandle.from_bytes(f"f{i}", b"x" * size) for i, size in enumerate(sizes)]


async def test_history_groups_records_by_batch(uploader, db, identity):
    older = await uploader.upload_batch(files(10, 20), identity)
    await uploader.upload_batch(files(5), identity, ExistingBatch(older.batch_id, older.share_token))
    newer = await uploader.upload_batch(files(7), identity)
    await finalize(db, older.batch_id, identity)

    summaries = await list_batches(db, identity)

    assert [s.batch_id for s in summaries] == [newer.batch_id, older.batch_id]
    latest, earliest = summaries
    assert (earliest.file_count, earliest.total_bytes, earliest.is_finalized) == (3, 35, True)
    assert earliest.share_token == older.share_token
    assert earliest.created_at == older.records[0].created_at
    assert (latest.file_count, latest.total_bytes, latest.is_finalized) == (1, 7, False)


async def test_history_excludes_other_senders(uploader, db, identity):
    await uploader.upload_batch(files(3), None)

    assert await list_batches(db, identity) == []


async def test_anonymous_history_is_empty(uploader, db):
    await uploader.upload_batch(files(3), None)

    assert await list_batches(db, None) == []
