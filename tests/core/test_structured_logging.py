"""JSON log lines must stay machine-parseable; aggregation depends on it."""

from __future__ import annotations

import json
import logging
import sys

from app.core.logging import _ContainerFormatter, _JsonFormatter


def _record(msg: str = "exam graded", *args: object, **extra: object):
    record = logging.LogRecord(
        name="app.services.exam_service",
        level=logging.INFO,
        pathname="exam_service.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_core_fields() -> None:
    parsed = json.loads(_JsonFormatter().format(_record("score=%d", 15)))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "app.services.exam_service"
    assert parsed["message"] == "score=15"
    assert "timestamp" in parsed


def test_json_formatter_promotes_context_fields() -> None:
    record = _record(
        request_id="abc-123",
        method="POST",
        path="/v1/exam/submissions",
        learner_id="learner-1",
        error_code="VALIDATION_FAILED",
        status_code=422,
        duration_ms=12.5,
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["path"] == "/v1/exam/submissions"
    assert parsed["learner_id"] == "learner-1"
    assert parsed["error_code"] == "VALIDATION_FAILED"
    assert parsed["status_code"] == 422
    assert parsed["duration_ms"] == 12.5


def test_json_formatter_omits_absent_context() -> None:
    parsed = json.loads(_JsonFormatter().format(_record(learner_id=None)))
    assert "learner_id" not in parsed
    assert "request_id" not in parsed


def test_json_formatter_includes_exception() -> None:
    try:
        raise ValueError("ledger corrupt")
    except ValueError:
        record = _record()
        record.exc_info = sys.exc_info()
        output = _JsonFormatter().format(record)

    parsed = json.loads(output)
    assert "ValueError: ledger corrupt" in parsed["exception"]


def test_container_formatter_is_plain_text() -> None:
    output = _ContainerFormatter().format(_record("server started"))
    assert "INFO" in output
    assert "app.services.exam_service" in output
    assert "server started" in output
    assert not output.lstrip().startswith("{")
