"""Tests for logging formatters and helpers."""

from __future__ import annotations

import io
import json
import logging

import pytest

from matrix_backup.logging_utils import (
    ConsoleFormatter,
    RoomLoggerAdapter,
    StructuredJsonFormatter,
    configure_logging,
    get_backup_logger,
)


def make_record(msg: str = "Room backup finished", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="matrix_backup.engine",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredJsonFormatter:
    """Tests for StructuredJsonFormatter."""

    def test_basic_fields(self):
        line = StructuredJsonFormatter().format(make_record())
        data = json.loads(line)

        assert data["level"] == "INFO"
        assert data["logger"] == "matrix_backup.engine"
        assert data["message"] == "Room backup finished"
        assert data["timestamp"].endswith("+00:00")

    def test_extra_fields(self):
        line = StructuredJsonFormatter().format(make_record(room_id="!a:b", total_fetched=3))
        data = json.loads(line)

        assert data["room_id"] == "!a:b"
        assert data["total_fetched"] == 3

    def test_non_serializable_extra(self):
        line = StructuredJsonFormatter().format(make_record(path=object()))

        assert isinstance(json.loads(line)["path"], str)


class TestConsoleFormatter:
    """Tests for ConsoleFormatter."""

    def test_plain(self):
        line = ConsoleFormatter().format(make_record(room_id="!a:b"))

        assert " INF Room backup finished room_id=!a:b" in line
        assert "\033[" not in line

    def test_color(self):
        line = ConsoleFormatter(color=True).format(make_record())

        assert "\033[" in line


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_console_output(self):
        stream = io.StringIO()
        logger = configure_logging(stream=stream)

        get_backup_logger("test").info("hello", extra={"count": 2})
        get_backup_logger("test").debug("hidden")

        assert logger.name == "matrix_backup"
        output = stream.getvalue()
        assert "hello count=2" in output
        assert "hidden" not in output

    def test_json_debug_output(self):
        stream = io.StringIO()
        configure_logging(debug=True, json_output=True, stream=stream)

        get_backup_logger("test").debug("visible")

        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert record["message"] == "visible"
        assert record["level"] == "DEBUG"

    def test_no_duplicate_handlers(self):
        configure_logging(stream=io.StringIO())
        logger = configure_logging(stream=io.StringIO())

        assert len(logger.handlers) == 1


class TestRoomLoggerAdapter:
    """Tests for RoomLoggerAdapter."""

    def test_adds_context(self, caplog: pytest.LogCaptureFixture):
        base = logging.getLogger("matrix_backup.tests.adapter")
        adapter = RoomLoggerAdapter(base, {"room_id": "!a:b"})

        with caplog.at_level(logging.INFO, logger="matrix_backup.tests.adapter"):
            adapter.info("Fetching", extra={"token": "t1"})

        record = caplog.records[-1]
        assert record.room_id == "!a:b"
        assert record.token == "t1"

    def test_bind_returns_new_adapter(self):
        base = logging.getLogger("matrix_backup.tests.adapter")
        adapter = RoomLoggerAdapter(base, {"room_id": "!a:b"})

        bound = adapter.bind(room_name="General")

        assert bound.extra == {"room_id": "!a:b", "room_name": "General"}
        assert adapter.extra == {"room_id": "!a:b"}
