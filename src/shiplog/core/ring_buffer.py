"""Fixed-capacity ring buffer for raw log chunks.

Provides bounded in-memory storage that overwrites the oldest chunk when
the buffer is full, so a producer never blocks or grows without bound
while the archive is unreachable.
"""

import logging
import threading

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1024


class RingBuffer:
    """Circular store of byte chunks that evicts oldest on overflow.

    Slots are preallocated and addressed by two modular indices; the
    buffer never resizes. A single lock guards ``add`` and ``drain`` and
    no I/O happens while it is held, so many producer threads may add
    concurrently with one draining consumer.

    Args:
        capacity: Number of chunks the buffer holds.

    Raises:
        ValueError: If capacity < 1.
    """

    # Log evictions in aggregate rather than once per chunk
    _LOG_INTERVAL = 1000

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._slots: list[bytes | None] = [None] * capacity
        self._head = 0
        self._tail = 0
        self._count = 0
        self._evicted = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def evicted_count(self) -> int:
        """Total number of chunks overwritten before they were drained."""
        return self._evicted

    def add(self, chunk: bytes | bytearray | memoryview) -> None:
        """Store a copy of chunk, evicting the oldest chunk if full."""
        data = bytes(chunk)
        with self._lock:
            if self._count == self._capacity:
                self._tail = (self._tail + 1) % self._capacity
                self._evicted += 1
                evicted = self._evicted
            else:
                self._count += 1
                evicted = 0
            self._slots[self._head] = data
            self._head = (self._head + 1) % self._capacity

        if evicted and evicted % self._LOG_INTERVAL == 0:
            logger.warning(
                "ring buffer overflow, oldest chunks overwritten",
                extra={"evicted_total": evicted, "capacity": self._capacity},
            )

    def drain(self) -> list[bytes]:
        """Remove and return every buffered chunk, oldest first.

        Returns:
            A new list of chunks; empty if nothing was buffered.
        """
        with self._lock:
            if self._count == 0:
                return []
            result: list[bytes] = []
            for i in range(self._count):
                idx = (self._tail + i) % self._capacity
                chunk = self._slots[idx]
                if chunk is not None:
                    result.append(chunk)
                self._slots[idx] = None
            self._count = 0
            self._head = 0
            self._tail = 0
        return result

    def __len__(self) -> int:
        with self._lock:
            return self._count
