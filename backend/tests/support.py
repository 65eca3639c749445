from dropbatch.services.blob_store import BlobStoreError

MIB = 1024 * 1024
BASE_URL = "https://drop.example"


class MemoryBlobStore:
    """In-memory blob store with failure injection. Refuses overwrites like the real backends."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.puts: list[str] = []
        self.gets: list[str] = []
        self.fail_put_at: int | None = None
        self.fail_get_for: set[str] = set()

    async def put(self, path: str, data: bytes, content_type: str = "") -> None:
        if self.fail_put_at is not None and len(self.puts) == self.fail_put_at:
            raise BlobStoreError(f"injected put failure for {path}")
        if path in self.objects:
            raise BlobStoreError(f"key exists: {path}")
        self.puts.append(path)
        self.objects[path] = data

    async def get(self, path: str) -> bytes:
        self.gets.append(path)
        if path in self.fail_get_for or path not in self.objects:
            raise BlobStoreError(f"injected get failure for {path}")
        return self.objects[path]

    async def open_stream(self, path: str, chunk_size: int = MIB):
        data = await self.get(path)

        async def chunks():
            for start in range(0, len(data), chunk_size):
                yield data[start:start + chunk_size]

        return chunks()

    async def ping(self) -> None:
        return None
