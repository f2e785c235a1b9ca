"""In-memory blob storage adapter."""

from dataclasses import dataclass


@dataclass(frozen=True)
class StoredBlob:
    """An object held by a storage adapter.

    Attributes:
        bucket: Bucket the object was written into.
        key: Object key.
        body: Object contents.
        content_type: MIME type recorded with the object.
    """

    bucket: str
    key: str
    body: bytes
    content_type: str


class InMemoryBlobStorage:
    """In-memory implementation of BlobStoragePort.

    Keeps objects in a dict. Suitable for testing and for running the
    archive locally where durability is not required.
    """

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], StoredBlob] = {}

    async def put(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        """Store body under bucket/key, replacing any existing object."""
        self._objects[(bucket, key)] = StoredBlob(
            bucket=bucket, key=key, body=bytes(body), content_type=content_type
        )

    async def get(self, bucket: str, key: str) -> StoredBlob | None:
        """Return the object at bucket/key, or None."""
        return self._objects.get((bucket, key))

    def objects(self, bucket: str | None = None) -> list[StoredBlob]:
        """Return stored objects in write order, optionally for one bucket."""
        return [
            blob
            for blob in self._objects.values()
            if bucket is None or blob.bucket == bucket
        ]

    def __len__(self) -> int:
        return len(self._objects)
