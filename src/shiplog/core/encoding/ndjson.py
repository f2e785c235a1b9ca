"""NDJSON encoder for log entries."""

import base64
import json
import logging
from collections.abc import Iterable
from typing import Any

from shiplog.core.errors import SerializationError
from shiplog.core.models import LogEntry

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/jsonl"


def entry_to_dict(entry: LogEntry) -> dict[str, Any]:
    """Map a LogEntry to its JSON object, payload base64-encoded."""
    return {
        "id": entry.id,
        "category": entry.category,
        "streamID": entry.stream_id,
        "payload": base64.b64encode(entry.payload).decode("ascii"),
    }


def encode_entry(entry: LogEntry) -> bytes:
    """Encode one entry as a compact JSON object, without trailing newline.

    Raises:
        SerializationError: If the entry can't be represented as JSON.
    """
    try:
        return json.dumps(entry_to_dict(entry), separators=(",", ":")).encode()
    except (TypeError, ValueError) as e:
        raise SerializationError(str(entry.id), str(e)) from e


def serialized_size(entry: LogEntry) -> int:
    """Return the number of bytes entry occupies in an encoded batch."""
    return len(encode_entry(entry)) + 1


def encode_entries(entries: Iterable[LogEntry]) -> bytes:
    """Encode entries to newline-delimited JSON.

    Entries that fail to serialize are logged and skipped; the others are
    still encoded.

    Args:
        entries: An iterable of LogEntry objects.

    Returns:
        NDJSON bytes with one JSON object per line.
        Empty bytes if no entry could be encoded.
    """
    lines = []
    for entry in entries:
        try:
            lines.append(encode_entry(entry))
        except SerializationError as e:
            logger.error(
                "dropping log entry that can't be serialized",
                extra={"entry_id": e.entry_id, "err": str(e)},
            )

    if not lines:
        return b""

    return b"\n".join(lines) + b"\n"
