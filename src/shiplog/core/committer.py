"""Commits sealed batches to blob storage as NDJSON objects."""

import logging
import time
from collections.abc import Callable

from shiplog.core.encoding.ndjson import CONTENT_TYPE, encode_entries
from shiplog.core.ids import new_id
from shiplog.core.models import Batch
from shiplog.core.ports import BlobStoragePort

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "logs"


def batch_key(category: str, batch_id: str, prefix: str = DEFAULT_KEY_PREFIX) -> str:
    """Build the object key for a committed batch."""
    return f"{prefix}/{category}/batch-{batch_id}.jsonl"


class BlobCommitter:
    """Writes each batch as one newline-delimited JSON object.

    The committer holds no per-batch state, so one instance is shared by
    the accumulators of every category. A failed put is logged and the
    batch is dropped; there is no retry.

    Args:
        storage: Storage adapter implementing BlobStoragePort.
        bucket: Bucket every batch is written into.
        id_factory: Returns a fresh unique id for each batch.
        key_prefix: Leading path segment of every object key.
    """

    def __init__(
        self,
        storage: BlobStoragePort,
        bucket: str,
        *,
        id_factory: Callable[[], str] = new_id,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self._storage = storage
        self._bucket = bucket
        self._id_factory = id_factory
        self._key_prefix = key_prefix

    @property
    def bucket(self) -> str:
        return self._bucket

    async def commit(self, batch: Batch) -> bool:
        """Serialize batch and store it as a single object.

        Returns:
            True if the object was stored (or the batch was empty),
            False if nothing could be stored.
        """
        if not batch.entries:
            return True

        body = encode_entries(batch.entries)
        if not body:
            logger.error(
                "no entry in batch could be serialized, dropping batch",
                extra={"category": batch.category, "items": len(batch)},
            )
            return False

        batch_id = self._id_factory()
        key = batch_key(batch.category, batch_id, self._key_prefix)
        start = time.perf_counter()
        try:
            await self._storage.put(self._bucket, key, body, CONTENT_TYPE)
        except Exception as e:
            logger.error(
                "failed to upload batch",
                extra={
                    "category": batch.category,
                    "batch_id": batch_id,
                    "items": len(batch),
                    "key": key,
                    "err": str(e),
                },
            )
            return False

        logger.info(
            "uploaded batch of logs",
            extra={
                "batch_id": batch_id,
                "category": batch.category,
                "items": len(batch),
                "size": len(body),
                "key": key,
                "duration_ms": (time.perf_counter() - start) * 1000,
            },
        )
        return True
