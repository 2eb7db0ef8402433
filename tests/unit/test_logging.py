from __future__ import annotations

import json
import logging
import sys

from zyflow_engine.engine.logging import JsonFormatter


def test_json_formatter_puts_extras_under_context() -> None:
    logger = logging.getLogger("zyflow_engine.test")
    record = logger.makeRecord(
        logger.name,
        logging.INFO,
        __file__,
        1,
        "Pass finished",
        None,
        None,
        extra={"workflow_id": "wf-1", "remaining": ["Document"]},
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "Pass finished"
    assert payload["level"] == "INFO"
    assert payload["service"] == "zyflow-engine"
    assert payload["context"] == {"workflow_id": "wf-1", "remaining": ["Document"]}


def test_json_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    payload = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in payload["exception"]
    assert "context" not in payload
