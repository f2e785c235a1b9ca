"""Exceptions raised by shiplog.

None of these ever reach an application's ``write`` call. They are raised
between archive components and end up in the log.
"""


class ShiplogError(Exception):
    """Base class for all shiplog errors."""


class UnknownCategoryError(ShiplogError):
    """Raised when an upload names a category outside the registry.

    Attributes:
        category: The rejected category.
    """

    def __init__(self, category: str) -> None:
        self.category = category
        super().__init__(f"unknown category: {category!r}")


class SerializationError(ShiplogError):
    """Raised when a log entry cannot be encoded to JSON."""

    def __init__(self, entry_id: str, reason: str) -> None:
        self.entry_id = entry_id
        super().__init__(f"can't serialize entry {entry_id}: {reason}")


class StorageError(ShiplogError):
    """Raised by blob storage adapters when a put fails.

    Attributes:
        bucket: Target bucket of the failed put.
        key: Target key of the failed put.
    """

    def __init__(self, bucket: str, key: str, reason: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"failed to put {bucket}/{key}: {reason}")


class OversizedEntryError(ShiplogError):
    """Raised when an entry is larger than the accumulator's byte ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"entry of {size} bytes exceeds buffered byte limit {limit}")


class AccumulatorClosedError(ShiplogError):
    """Raised when adding to an accumulator that has been closed."""

    def __init__(self, category: str) -> None:
        self.category = category
        super().__init__(f"accumulator for {category!r} is closed")
