"""Byte-sink wrapper that ships buffered output to a log archive.

Every write is copied into a RingBuffer and passed through to the wrapped
sink unchanged. A background thread drains the buffer on a fixed interval
and submits the concatenated chunks with one HTTP PUT. Delivery failures
are logged and the data is dropped; the application's write is never
affected.
"""

import logging
import threading
from urllib.parse import quote

import httpx

from shiplog.config import ShipperSettings
from shiplog.core.ports import ByteSinkPort
from shiplog.core.ring_buffer import DEFAULT_CAPACITY, RingBuffer

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_URL = "http://localhost:8989"
DEFAULT_FLUSH_INTERVAL = 5.0


def upload_url(archive_url: str, category: str, stream_id: str) -> str:
    """Build the upload URL for a category and stream."""
    return "{}/upload/{}/{}".format(
        archive_url.rstrip("/"), quote(category, safe=""), quote(stream_id, safe="")
    )


class WriterWrapper:
    """Wraps a byte sink, buffering writes and shipping them periodically.

    Example:
        ```python
        import sys
        from shiplog import WriterWrapper

        out = WriterWrapper("service", "host-1", sys.stderr.buffer)
        out.write(b"started\\n")
        out.close()
        ```

    Args:
        category: Archive category the output is shipped under.
        stream_id: Identifier of this log stream within the category.
        sink: The real destination every write is passed through to.
        archive_url: Base URL of the archive.
        flush_interval: Seconds between flushes; also the deadline of each
            submission.
        capacity: Number of chunks the ring buffer holds.
        client: HTTP client to submit with. One is created (and closed on
            ``close``) when omitted.
        enabled: When False, writes are only passed through: no buffer, no
            background thread, nothing is shipped.
    """

    def __init__(
        self,
        category: str,
        stream_id: str,
        sink: ByteSinkPort,
        *,
        archive_url: str = DEFAULT_ARCHIVE_URL,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        capacity: int = DEFAULT_CAPACITY,
        client: httpx.Client | None = None,
        enabled: bool = True,
    ) -> None:
        if flush_interval <= 0:
            raise ValueError(f"flush_interval must be > 0, got {flush_interval}")
        self._category = category
        self._stream_id = stream_id
        self._sink = sink
        self._archive_url = archive_url
        self._flush_interval = flush_interval
        self._done = threading.Event()
        self._closed = False
        self._close_lock = threading.Lock()

        self._buffer: RingBuffer | None = None
        self._client: httpx.Client | None = None
        self._owns_client = False
        self._thread: threading.Thread | None = None
        if not enabled:
            return

        self._buffer = RingBuffer(capacity)
        if client is None:
            client = httpx.Client()
            self._owns_client = True
        self._client = client
        self._thread = threading.Thread(
            target=self._flush_loop,
            name=f"shiplog-flush-{category}",
            daemon=True,
        )
        self._thread.start()

    @property
    def category(self) -> str:
        return self._category

    @property
    def stream_id(self) -> str:
        return self._stream_id

    @property
    def archive_url(self) -> str:
        return self._archive_url

    @property
    def enabled(self) -> bool:
        return self._buffer is not None

    @property
    def buffer(self) -> RingBuffer | None:
        """The ring buffer, or None when shipping is disabled."""
        return self._buffer

    def set_archive_url(self, archive_url: str) -> None:
        """Point subsequent submissions at a different archive.

        Args:
            archive_url: New base URL of the archive.
        """
        self._archive_url = archive_url

    def write(self, data: bytes) -> int | None:
        """Buffer data for shipping and write it to the wrapped sink.

        Returns:
            Exactly what the wrapped sink's ``write`` returns. Exceptions
            raised by the sink propagate unchanged.
        """
        if self._buffer is not None:
            # Checked under the close lock so nothing lands after the final flush
            with self._close_lock:
                if not self._done.is_set():
                    self._buffer.add(data)
        return self._sink.write(data)

    def flush(self) -> None:
        """Flush the wrapped sink, if it supports flushing."""
        sink_flush = getattr(self._sink, "flush", None)
        if sink_flush is not None:
            sink_flush()

    def ship(self) -> None:
        """Drain the buffer and submit its contents in one request.

        Does nothing when the buffer is empty.
        """
        if self._buffer is None:
            return
        chunks = self._buffer.drain()
        if not chunks:
            return
        self._submit(b"".join(chunks), len(chunks))

    def close(self, timeout: float | None = None) -> None:
        """Stop the flush loop after one final flush.

        Waits for the loop to finish for up to timeout seconds (default:
        twice the flush interval). Safe to call more than once.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            self._done.set()
        if self._thread is not None:
            if timeout is None:
                timeout = self._flush_interval * 2
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning(
                    "final flush to archive did not finish in time",
                    extra={"category": self._category, "stream_id": self._stream_id},
                )
        if self._owns_client and self._client is not None:
            self._client.close()

    def __enter__(self) -> "WriterWrapper":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _flush_loop(self) -> None:
        """Background thread: flush on every tick, then once more on close."""
        while not self._done.wait(self._flush_interval):
            self._safe_ship()
        self._safe_ship()

    def _safe_ship(self) -> None:
        try:
            self.ship()
        except Exception:
            # The loop must survive anything a single flush does
            logger.exception(
                "flush to archive failed",
                extra={"category": self._category, "stream_id": self._stream_id},
            )

    def _submit(self, body: bytes, chunk_count: int) -> None:
        if self._client is None:
            return
        url = upload_url(self._archive_url, self._category, self._stream_id)
        try:
            response = self._client.put(url, content=body, timeout=self._flush_interval)
        except httpx.HTTPError as e:
            logger.error(
                "can't perform request to archive",
                extra={"url": url, "chunks": chunk_count, "err": str(e)},
            )
            return

        if response.status_code != httpx.codes.OK:
            logger.error(
                "wrong archive response code",
                extra={"url": url, "status": response.status_code, "want": httpx.codes.OK},
            )


def archive_writer(
    category: str,
    stream_id: str,
    sink: ByteSinkPort,
    settings: ShipperSettings | None = None,
) -> WriterWrapper:
    """Create a WriterWrapper configured from ShipperSettings.

    When ``settings.submission_disabled`` is set, the returned wrapper only
    passes writes through.

    Args:
        category: Archive category the output is shipped under.
        stream_id: Identifier of this log stream within the category.
        sink: The real destination every write is passed through to.
        settings: Shipper settings; read from the environment when omitted.
    """
    if settings is None:
        settings = ShipperSettings()

    if settings.submission_disabled:
        logger.info(
            "log submission to the archive has been disabled",
            extra={"category": category, "stream_id": stream_id},
        )
        return WriterWrapper(category, stream_id, sink, enabled=False)

    wrapper = WriterWrapper(
        category,
        stream_id,
        sink,
        archive_url=settings.archive_url,
        flush_interval=settings.flush_interval,
        capacity=settings.ring_buffer_capacity,
    )
    logger.info(
        "starting up log shipping to archive",
        extra={"category": category, "stream_id": stream_id, "target": settings.archive_url},
    )
    return wrapper
