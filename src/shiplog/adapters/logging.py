"""Python logging integration.

Provides a JSON formatter for shiplog's own structured logs and a handler
that routes an application's stdlib logging through a WriterWrapper, so
log records are both written locally and shipped to the archive.
"""

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from typing import IO, Any

from shiplog.adapters.writer import WriterWrapper

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class JsonFormatter(logging.Formatter):
    """Formats each record as one compact JSON object.

    Fields passed through ``extra=`` are included at the top level when
    they are JSON scalars; anything else is included as its ``str()``.
    """

    def __init__(self, include_source: bool = True) -> None:
        super().__init__()
        self._include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        obj: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if self._include_source:
            obj["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName or "",
            }

        for key, value in record.__dict__.items():
            if key in _STANDARD_LOGRECORD_ATTRS or key.startswith("_"):
                continue
            if value is None or isinstance(value, (str, int, float, bool)):
                obj[key] = value
            else:
                obj[key] = str(value)

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            if exc_type is not None:
                obj["exc_type"] = exc_type.__name__
            if exc_value is not None:
                obj["exc_message"] = str(exc_value)
            if exc_tb is not None:
                obj["exc_traceback"] = "".join(
                    traceback.format_exception(exc_type, exc_value, exc_tb)
                )

        return json.dumps(obj, separators=(",", ":"), default=str)


class ArchiveHandler(logging.Handler):
    """Logging handler that writes formatted records into a WriterWrapper.

    Example:
        ```python
        import logging, sys
        from shiplog import ArchiveHandler, archive_writer

        writer = archive_writer("service", "host-1", sys.stderr.buffer)
        logging.getLogger().addHandler(ArchiveHandler(writer))
        ```
    """

    terminator = b"\n"

    def __init__(self, writer: WriterWrapper, level: int = logging.NOTSET) -> None:
        """Initialize the handler with the writer records go to.

        Args:
            writer: Wrapper that passes records through and ships them.
            level: Minimum level handled.
        """
        super().__init__(level)
        self._writer = writer
        self.setFormatter(JsonFormatter())

    @property
    def writer(self) -> WriterWrapper:
        return self._writer

    def emit(self, record: logging.LogRecord) -> None:
        """Format record and write it as one line.

        Args:
            record: The log record to emit.
        """
        try:
            line = self.format(record).encode("utf-8", errors="replace")
            self._writer.write(line + self.terminator)
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        self.acquire()
        try:
            self._writer.flush()
        finally:
            self.release()

    def close(self) -> None:
        """Close the handler and the writer, shipping what is buffered."""
        try:
            self._writer.close()
        finally:
            super().close()


def configure_logging(level: str | int = "INFO", stream: IO[str] | None = None) -> None:
    """Send root logging to stream (default stderr) as JSON lines.

    Replaces any handlers previously installed on the root logger.
    """
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
