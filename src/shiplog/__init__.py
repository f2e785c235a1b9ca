"""shiplog - cheap, non-blocking log shipping with batched archival.

Producers wrap an output stream with WriterWrapper; the archive batches
uploads per category and commits them to blob storage as NDJSON.
"""

from shiplog.adapters.logging import ArchiveHandler, JsonFormatter, configure_logging
from shiplog.adapters.writer import WriterWrapper, archive_writer
from shiplog.config import ArchiveSettings, ShipperSettings
from shiplog.core.accumulator import AccumulatorStats, BatchAccumulator
from shiplog.core.committer import BlobCommitter
from shiplog.core.errors import (
    AccumulatorClosedError,
    OversizedEntryError,
    SerializationError,
    ShiplogError,
    StorageError,
    UnknownCategoryError,
)
from shiplog.core.intake import IntakeService
from shiplog.core.models import Batch, LogEntry
from shiplog.core.ports import BlobStoragePort, ByteSinkPort
from shiplog.core.ring_buffer import RingBuffer

__all__ = [
    "AccumulatorClosedError",
    "AccumulatorStats",
    "ArchiveHandler",
    "ArchiveSettings",
    "Batch",
    "BatchAccumulator",
    "BlobCommitter",
    "BlobStoragePort",
    "ByteSinkPort",
    "IntakeService",
    "JsonFormatter",
    "LogEntry",
    "OversizedEntryError",
    "RingBuffer",
    "SerializationError",
    "ShiplogError",
    "ShipperSettings",
    "StorageError",
    "UnknownCategoryError",
    "WriterWrapper",
    "archive_writer",
    "configure_logging",
]
