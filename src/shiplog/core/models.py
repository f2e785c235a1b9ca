"""Core domain models for archived log data."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LogEntry:
    """One upload received by the archive.

    Attributes:
        id: Unique, time-ordered identifier assigned at intake.
        category: Registered category the upload was sent to.
        stream_id: Caller-supplied identifier of the log stream.
        payload: The uploaded bytes, never interpreted.
    """

    id: str
    category: str
    stream_id: str
    payload: bytes


@dataclass
class Batch:
    """An ordered group of entries for one category, committed together.

    Attributes:
        category: Category every entry belongs to.
        opened_at: Monotonic time the first entry was added.
        entries: Entries in the order they were added.
        byte_size: Sum of the serialized sizes of the entries.
    """

    category: str
    opened_at: float
    entries: list[LogEntry] = field(default_factory=list)
    byte_size: int = 0

    def append(self, entry: LogEntry, size: int) -> None:
        self.entries.append(entry)
        self.byte_size += size

    def __len__(self) -> int:
        return len(self.entries)
