"""Unit tests for the logging adapters."""

import io
import json
import logging
import sys

import pytest

from shiplog.adapters.logging import ArchiveHandler, JsonFormatter, configure_logging
from shiplog.adapters.writer import WriterWrapper

pytestmark = [pytest.mark.unit, pytest.mark.shipping, pytest.mark.tier(1)]


def _record(msg: str = "test message", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="myapp.service",
        level=level,
        pathname="/app/service.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
        func="process_request",
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_basic_fields(self) -> None:
        """Level, logger, message and source location are present."""
        obj = json.loads(JsonFormatter().format(_record()))

        assert obj["level"] == "INFO"
        assert obj["logger"] == "myapp.service"
        assert obj["msg"] == "test message"
        assert obj["source"] == {
            "file": "/app/service.py",
            "line": 42,
            "function": "process_request",
        }
        assert obj["time"].endswith("+00:00")

    def test_without_source(self) -> None:
        obj = json.loads(JsonFormatter(include_source=False).format(_record()))

        assert "source" not in obj

    def test_extra_scalars_included(self) -> None:
        """Fields passed via extra= appear at the top level."""
        obj = json.loads(JsonFormatter().format(_record(category="service", items=3)))

        assert obj["category"] == "service"
        assert obj["items"] == 3

    def test_extra_non_scalars_stringified(self) -> None:
        obj = json.loads(JsonFormatter().format(_record(keys=["a", "b"])))

        assert obj["keys"] == "['a', 'b']"

    def test_exception_info(self) -> None:
        """Exception type, message and traceback are captured."""
        try:
            raise ValueError("test error")
        except ValueError:
            record = logging.getLogger("test").makeRecord(
                "test", logging.ERROR, "", 0, "failed", (), exc_info=sys.exc_info()
            )

        obj = json.loads(JsonFormatter().format(record))

        assert obj["exc_type"] == "ValueError"
        assert obj["exc_message"] == "test error"
        assert "Traceback" in obj["exc_traceback"]

    def test_output_is_single_line(self) -> None:
        line = JsonFormatter().format(_record(msg="multi\nline"))

        assert "\n" not in line


class TestArchiveHandler:
    """Tests for ArchiveHandler."""

    @pytest.fixture
    def sink(self) -> io.BytesIO:
        return io.BytesIO()

    @pytest.fixture
    def writer(self, sink: io.BytesIO) -> WriterWrapper:
        return WriterWrapper("service", "host-1", sink, enabled=False)

    def test_handler_is_logging_handler(self, writer: WriterWrapper) -> None:
        handler = ArchiveHandler(writer)

        assert isinstance(handler, logging.Handler)
        assert handler.writer is writer

    def test_emit_writes_json_line(self, writer: WriterWrapper, sink: io.BytesIO) -> None:
        """Each record becomes exactly one newline-terminated JSON line."""
        handler = ArchiveHandler(writer)

        handler.emit(_record("first"))
        handler.emit(_record("second"))

        lines = sink.getvalue().decode().splitlines()
        assert [json.loads(line)["msg"] for line in lines] == ["first", "second"]
        assert sink.getvalue().endswith(b"\n")

    def test_records_are_buffered_for_shipping(self, archive_recorder) -> None:
        """Records written through the handler are shipped to the archive."""
        writer = WriterWrapper(
            "service",
            "host-1",
            io.BytesIO(),
            archive_url="http://archive.test",
            flush_interval=60.0,
            client=archive_recorder.client(),
        )
        handler = ArchiveHandler(writer)

        handler.emit(_record("shipped"))
        handler.close()

        body = archive_recorder.requests[0].content.decode()
        assert json.loads(body)["msg"] == "shipped"

    def test_custom_formatter(self, writer: WriterWrapper, sink: io.BytesIO) -> None:
        handler = ArchiveHandler(writer)
        handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))

        handler.emit(_record("plain"))

        assert sink.getvalue() == b"INFO plain\n"

    def test_sink_failure_handled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A failing sink goes through handleError instead of raising."""

        class BrokenSink:
            def write(self, data: bytes) -> int:
                raise OSError("broken pipe")

        handler = ArchiveHandler(WriterWrapper("service", "host-1", BrokenSink(), enabled=False))
        errors: list[logging.LogRecord] = []
        monkeypatch.setattr(handler, "handleError", errors.append)

        handler.emit(_record())

        assert len(errors) == 1

    def test_with_logger(self, writer: WriterWrapper, sink: io.BytesIO) -> None:
        """The handler works when attached to a regular logger."""
        logger = logging.getLogger("test.archive_handler")
        handler = ArchiveHandler(writer)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        try:
            logger.info("attached", extra={"request_id": "abc"})
        finally:
            logger.removeHandler(handler)

        obj = json.loads(sink.getvalue())
        assert obj["msg"] == "attached"
        assert obj["request_id"] == "abc"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_installs_json_handler(self) -> None:
        root = logging.getLogger()
        saved_handlers = list(root.handlers)
        saved_level = root.level
        stream = io.StringIO()
        try:
            configure_logging("WARNING", stream=stream)
            logging.getLogger("test.configure").warning("configured", extra={"k": 1})
            logging.getLogger("test.configure").info("filtered")
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)

        lines = stream.getvalue().splitlines()
        assert len(lines) == 1
        obj = json.loads(lines[0])
        assert obj["msg"] == "configured"
        assert obj["k"] == 1
