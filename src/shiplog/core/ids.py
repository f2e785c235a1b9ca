"""Time-ordered unique identifiers (UUIDv7, RFC 9562)."""

import os
import threading
import time
import uuid

_MAX_SEQUENCE = 0xFFF


class TimeOrderedIdGenerator:
    """Generates UUIDv7 strings that sort in creation order.

    The 12-bit ``rand_a`` field carries a counter so identifiers created
    within the same millisecond still sort in creation order. When the
    counter overflows, the timestamp is advanced by one millisecond.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    def __call__(self) -> str:
        now_ms = time.time_ns() // 1_000_000
        with self._lock:
            if now_ms <= self._last_ms:
                now_ms = self._last_ms
                self._sequence += 1
                if self._sequence > _MAX_SEQUENCE:
                    now_ms += 1
                    self._sequence = 0
            else:
                self._sequence = 0
            self._last_ms = now_ms
            sequence = self._sequence

        rand_b = int.from_bytes(os.urandom(8), "big") & ((1 << 62) - 1)
        value = (
            (now_ms & 0xFFFF_FFFF_FFFF) << 80
            | 0x7 << 76
            | sequence << 64
            | 0b10 << 62
            | rand_b
        )
        return str(uuid.UUID(int=value))


new_id = TimeOrderedIdGenerator()
