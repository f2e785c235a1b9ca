"""Intake of shipped log payloads.

Validates the category of each upload and hands it, wrapped as a
LogEntry, to that category's accumulator.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping

from shiplog.core.accumulator import (
    DEFAULT_BUFFERED_BYTE_LIMIT,
    DEFAULT_BYTE_THRESHOLD,
    DEFAULT_DELAY_THRESHOLD,
    DEFAULT_GRACE_PERIOD,
    DEFAULT_HANDLER_TIMEOUT,
    BatchAccumulator,
    BatchHandler,
)
from shiplog.core.encoding.ndjson import serialized_size
from shiplog.core.errors import UnknownCategoryError
from shiplog.core.ids import new_id
from shiplog.core.models import LogEntry

logger = logging.getLogger(__name__)


class IntakeService:
    """Routes uploads to per-category accumulators.

    Args:
        accumulators: One accumulator per registered category, keyed by
            category. The keys form the category registry.
        id_factory: Returns a fresh time-ordered id for each entry.
    """

    def __init__(
        self,
        accumulators: Mapping[str, BatchAccumulator],
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._accumulators = dict(accumulators)
        self._id_factory = id_factory

    @classmethod
    def create(
        cls,
        categories: Iterable[str],
        handler: BatchHandler,
        *,
        delay_threshold: float = DEFAULT_DELAY_THRESHOLD,
        byte_threshold: int = DEFAULT_BYTE_THRESHOLD,
        buffered_byte_limit: int = DEFAULT_BUFFERED_BYTE_LIMIT,
        handler_timeout: float = DEFAULT_HANDLER_TIMEOUT,
        id_factory: Callable[[], str] = new_id,
    ) -> "IntakeService":
        """Build an intake with one accumulator per category.

        Args:
            categories: The category registry.
            handler: Commit handler shared by every accumulator, usually
                ``BlobCommitter.commit``.
            delay_threshold: See BatchAccumulator.
            byte_threshold: See BatchAccumulator.
            buffered_byte_limit: See BatchAccumulator.
            handler_timeout: See BatchAccumulator.
            id_factory: Returns a fresh time-ordered id for each entry.
        """
        accumulators = {
            category: BatchAccumulator(
                category,
                handler,
                delay_threshold=delay_threshold,
                byte_threshold=byte_threshold,
                buffered_byte_limit=buffered_byte_limit,
                handler_timeout=handler_timeout,
            )
            for category in categories
        }
        return cls(accumulators, id_factory=id_factory)

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(self._accumulators)

    def accepts(self, category: str) -> bool:
        """Return True if category is in the registry."""
        return category in self._accumulators

    def accumulator(self, category: str) -> BatchAccumulator:
        """Return the accumulator for category.

        Raises:
            UnknownCategoryError: If category is not registered.
        """
        try:
            return self._accumulators[category]
        except KeyError:
            raise UnknownCategoryError(category) from None

    async def submit(self, category: str, stream_id: str, payload: bytes) -> LogEntry:
        """Wrap payload as a LogEntry and add it to its category's batch.

        May wait while the category's buffered-byte ceiling is reached.

        Raises:
            UnknownCategoryError: If category is not registered.
            SerializationError: If the entry can't be encoded.
            OversizedEntryError: If the entry can never fit the ceiling.
            AccumulatorClosedError: If the intake is shutting down.
        """
        accumulator = self.accumulator(category)
        entry = LogEntry(
            id=self._id_factory(),
            category=category,
            stream_id=stream_id,
            payload=bytes(payload),
        )
        await accumulator.add(entry, serialized_size(entry))
        return entry

    async def flush(self) -> None:
        """Seal every open batch and wait for all commits."""
        await asyncio.gather(*(a.flush() for a in self._accumulators.values()))

    async def close(self, grace_period: float = DEFAULT_GRACE_PERIOD) -> None:
        """Close every accumulator, each with its own grace period."""
        logger.info(
            "draining accumulators",
            extra={"categories": ",".join(self._accumulators), "grace_period": grace_period},
        )
        await asyncio.gather(
            *(a.close(grace_period) for a in self._accumulators.values())
        )
