"""Per-category batch accumulator.

Collects log entries for one category into batches and hands each sealed
batch to a commit handler. A batch is sealed when it has been open longer
than the delay threshold or has grown past the byte threshold, whichever
comes first.

Concurrency:
    All batch state is guarded by one ``asyncio.Condition``. Sealed batches
    go onto a queue drained by a single worker task, so at most one commit
    per category is in flight and batches commit in the order they were
    sealed. Adds wait on the condition while the buffered-byte ceiling is
    reached; this is the only backpressure in the archive.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace

from shiplog.core.errors import AccumulatorClosedError, OversizedEntryError
from shiplog.core.models import Batch, LogEntry

logger = logging.getLogger(__name__)

DEFAULT_DELAY_THRESHOLD = 120.0
DEFAULT_BYTE_THRESHOLD = 32 << 20
DEFAULT_BUFFERED_BYTE_LIMIT = 64 << 20
DEFAULT_HANDLER_TIMEOUT = 60.0
DEFAULT_GRACE_PERIOD = 30.0

BatchHandler = Callable[[Batch], Awaitable[bool]]


@dataclass
class AccumulatorStats:
    """Counters describing an accumulator's activity.

    Attributes:
        entries_accepted: Entries added to a batch.
        batches_sealed: Batches handed to the commit lane.
        batches_committed: Batches the handler reported as stored.
        batches_failed: Batches whose handler failed, raised or timed out.
        pending_bytes: Serialized bytes added but not yet committed.
    """

    entries_accepted: int = 0
    batches_sealed: int = 0
    batches_committed: int = 0
    batches_failed: int = 0
    pending_bytes: int = 0


class BatchAccumulator:
    """Batches entries for one category with single-flight commits.

    Args:
        category: Category this accumulator owns.
        handler: Coroutine function called with each sealed batch. Returns
            True if the batch was stored. Failures are never retried.
        delay_threshold: Seconds a batch may stay open before release.
        byte_threshold: Batch is released once its size exceeds this.
        buffered_byte_limit: Ceiling on bytes pending across the open batch,
            sealed batches and the batch being committed.
        handler_timeout: Deadline in seconds for a single handler call.
        clock: Monotonic time source used for batch age.

    Raises:
        ValueError: If a threshold or limit is not positive.
    """

    def __init__(
        self,
        category: str,
        handler: BatchHandler,
        *,
        delay_threshold: float = DEFAULT_DELAY_THRESHOLD,
        byte_threshold: int = DEFAULT_BYTE_THRESHOLD,
        buffered_byte_limit: int = DEFAULT_BUFFERED_BYTE_LIMIT,
        handler_timeout: float = DEFAULT_HANDLER_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        for name, value in (
            ("delay_threshold", delay_threshold),
            ("byte_threshold", byte_threshold),
            ("buffered_byte_limit", buffered_byte_limit),
            ("handler_timeout", handler_timeout),
        ):
            if value <= 0:
                raise ValueError(f"{name} must be > 0, got {value}")

        self._category = category
        self._handler = handler
        self._delay_threshold = delay_threshold
        self._byte_threshold = byte_threshold
        self._buffered_byte_limit = buffered_byte_limit
        self._handler_timeout = handler_timeout
        self._clock = clock

        self._cond = asyncio.Condition()
        self._open: Batch | None = None
        self._timer: asyncio.Task[None] | None = None
        self._lane: asyncio.Queue[Batch | None] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._pending_bytes = 0
        self._closed = False
        self._stats = AccumulatorStats()

    @property
    def category(self) -> str:
        return self._category

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def stats(self) -> AccumulatorStats:
        """Snapshot of the accumulator's counters."""
        return replace(self._stats, pending_bytes=self._pending_bytes)

    async def add(self, entry: LogEntry, size: int) -> None:
        """Add entry to the open batch, waiting while the byte ceiling is hit.

        Args:
            entry: Entry to add.
            size: Serialized size of entry in bytes.

        Raises:
            OversizedEntryError: If size alone exceeds the byte ceiling.
            AccumulatorClosedError: If the accumulator is (or gets) closed.
        """
        if size > self._buffered_byte_limit:
            raise OversizedEntryError(size, self._buffered_byte_limit)

        async with self._cond:
            while True:
                if self._closed:
                    raise AccumulatorClosedError(self._category)
                if self._pending_bytes + size <= self._buffered_byte_limit:
                    break
                # The open batch can't grow any more, so send it on its way
                # to make sure the lane frees capacity for us.
                self._seal()
                await self._cond.wait()

            batch = self._open
            if batch is None:
                batch = Batch(category=self._category, opened_at=self._clock())
                self._open = batch
                self._timer = asyncio.create_task(self._release_after_delay(batch))

            batch.append(entry, size)
            self._pending_bytes += size
            self._stats.entries_accepted += 1

            if self._ready(batch):
                self._seal()

    async def flush(self) -> None:
        """Seal the open batch and wait until every sealed batch is committed.

        Returns immediately once the accumulator is closed.
        """
        async with self._cond:
            if self._closed:
                return
            self._seal()
        await self._lane.join()

    async def close(self, grace_period: float = DEFAULT_GRACE_PERIOD) -> None:
        """Stop accepting entries and commit whatever is buffered.

        The open batch is sealed regardless of thresholds. Pending commits
        get up to grace_period seconds; anything left after that is dropped.
        """
        async with self._cond:
            if self._closed:
                return
            self._closed = True
            self._seal()
            self._cond.notify_all()

        if self._worker is None:
            return

        self._lane.put_nowait(None)
        try:
            await asyncio.wait_for(asyncio.shield(self._worker), timeout=grace_period)
        except TimeoutError:
            logger.error(
                "shutdown grace period elapsed, dropping pending batches",
                extra={
                    "category": self._category,
                    "pending_bytes": self._pending_bytes,
                    "grace_period": grace_period,
                },
            )
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            # Abandoned batches still count as done for anyone blocked in flush
            while not self._lane.empty():
                self._lane.get_nowait()
                self._lane.task_done()

    def _ready(self, batch: Batch) -> bool:
        """Check the release conditions for batch."""
        if self._clock() - batch.opened_at > self._delay_threshold:
            return True
        return batch.byte_size > self._byte_threshold

    def _seal(self) -> None:
        """Move the open batch onto the commit lane. Caller holds the lock."""
        batch = self._open
        self._open = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if batch is None or not batch.entries:
            return

        self._stats.batches_sealed += 1
        self._lane.put_nowait(batch)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(
                self._run_lane(), name=f"shiplog-commit-{self._category}"
            )
        logger.debug(
            "sealed batch",
            extra={
                "category": self._category,
                "items": len(batch),
                "size": batch.byte_size,
            },
        )

    async def _release_after_delay(self, batch: Batch) -> None:
        await asyncio.sleep(self._delay_threshold)
        async with self._cond:
            if self._open is batch:
                # Detach first so _seal doesn't cancel the running task
                self._timer = None
                self._seal()

    async def _run_lane(self) -> None:
        """Commit sealed batches one at a time until the close sentinel."""
        while True:
            batch = await self._lane.get()
            try:
                if batch is None:
                    return
                await self._commit(batch)
            finally:
                self._lane.task_done()

    async def _commit(self, batch: Batch) -> None:
        ok = False
        try:
            ok = await asyncio.wait_for(self._handler(batch), timeout=self._handler_timeout)
        except TimeoutError:
            logger.error(
                "batch commit timed out",
                extra={
                    "category": self._category,
                    "items": len(batch),
                    "timeout": self._handler_timeout,
                },
            )
        except Exception:
            logger.exception(
                "batch handler failed",
                extra={"category": self._category, "items": len(batch)},
            )

        async with self._cond:
            self._pending_bytes -= batch.byte_size
            if ok:
                self._stats.batches_committed += 1
            else:
                self._stats.batches_failed += 1
            self._cond.notify_all()
