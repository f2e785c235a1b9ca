"""Blob storage adapters implementing BlobStoragePort."""

from shiplog.adapters.storage.in_memory import InMemoryBlobStorage, StoredBlob
from shiplog.adapters.storage.s3 import S3BlobStorage
from shiplog.adapters.storage.sqlite import SQLiteBlobStorage

__all__ = [
    "InMemoryBlobStorage",
    "S3BlobStorage",
    "SQLiteBlobStorage",
    "StoredBlob",
]
