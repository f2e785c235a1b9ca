"""Port interfaces for adapters.

These protocols define the contracts that adapters must implement.
The core domain depends only on these interfaces, not concrete implementations.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobStoragePort(Protocol):
    """Port for durable blob storage.

    Adapters implementing this protocol store one object per call.
    Examples: InMemoryBlobStorage, SQLiteBlobStorage, S3BlobStorage.
    """

    async def put(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        """Store body as a single object.

        Args:
            bucket: Bucket (or namespace) to write into.
            key: Object key.
            body: Object contents.
            content_type: MIME type recorded with the object.

        Raises:
            StorageError: If the object could not be stored.
        """
        ...


@runtime_checkable
class ByteSinkPort(Protocol):
    """Port for anything a WriterWrapper can pass writes through to.

    Examples: sys.stderr.buffer, an open binary file, io.BytesIO.
    """

    def write(self, data: bytes, /) -> int | None:
        """Write data, returning what the underlying sink returns."""
        ...
