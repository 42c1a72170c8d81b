"""Unit tests for structured JSON logging."""

from __future__ import annotations

import io
import json
import logging
import sys
from pathlib import Path

from flow_publisher.publisher.logging import JsonFormatter, configure_logging


def test_json_formatter_folds_extra_fields() -> None:
    record = logging.LogRecord(
        name="flow_publisher.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Flow created %s",
        args=("now",),
        exc_info=None,
    )
    record.flow_id = "hello"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "flow_publisher.test"
    assert payload["message"] == "Flow created now"
    assert payload["extra"] == {"flow_id": "hello"}
    assert "timestamp" in payload


def test_json_formatter_includes_exceptions() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.getLogger("t").makeRecord(
            "t", logging.ERROR, __file__, 1, "failed", None, exc_info=sys.exc_info()
        )

    payload = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in payload["exception"]
    assert "extra" not in payload


def test_configure_logging_replaces_handlers() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    stream = io.StringIO()
    try:
        configure_logging("debug", stream=stream)
        configure_logging("info", stream=stream)

        assert len(root.handlers) == 1
        assert root.level == logging.INFO

        logging.getLogger("flow_publisher.test").info("hello", extra={"namespace": "n"})
        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["message"] == "hello"
        assert line["extra"] == {"namespace": "n"}
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_json_formatter_stringifies_non_json_extras() -> None:
    record = logging.getLogger("t").makeRecord(
        "t",
        logging.WARNING,
        __file__,
        1,
        "Flow not published",
        None,
        exc_info=None,
        extra={"errors": ["tasks must not be empty"], "path": Path("state/contexts.json")},
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["extra"] == {
        "errors": ["tasks must not be empty"],
        "path": str(Path("state/contexts.json")),
    }
