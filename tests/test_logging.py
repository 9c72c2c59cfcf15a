"""Tests for structured logging.

Verifies that:
- FG_LOG_FORMAT=json produces JSON lines carrying request and audit fields.
- FG_LOG_FORMAT=text (or unset) produces human-readable output.
- FG_LOG_LEVEL controls the effective log level.
- The startup line carries version, storage backend and policy source.
"""

from __future__ import annotations

import json
import logging
import sys

import pytest

from filegate.logging_config import StructuredJsonFormatter, log_startup_info, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces the root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg: str, level: int = logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="filegate",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


# ---------------------------------------------------------------------------
# StructuredJsonFormatter
# ---------------------------------------------------------------------------


class TestStructuredJsonFormatter:
    def test_basic_record_is_valid_json(self):
        parsed = json.loads(StructuredJsonFormatter().format(_record("hello")))
        assert parsed["message"] == "hello"
        assert parsed["levelname"] == "INFO"
        assert "asctime" in parsed

    def test_request_fields(self):
        record = _record("request finished")
        record.request_id = "abc12345"
        record.path = "/files/1"
        record.method = "GET"
        record.status_code = 404
        record.duration_ms = 1.5
        parsed = json.loads(StructuredJsonFormatter().format(record))
        assert parsed["request_id"] == "abc12345"
        assert parsed["status_code"] == 404
        assert parsed["duration_ms"] == 1.5

    def test_audit_fields(self):
        record = _record("Authorization denied")
        record.reason = "denied"
        record.auth_type = "api_key"
        parsed = json.loads(StructuredJsonFormatter().format(record))
        assert parsed["reason"] == "denied"
        assert parsed["auth_type"] == "api_key"

    def test_traceback_is_structured(self):
        try:
            raise ValueError("boom")
        except ValueError:
            exc_info = sys.exc_info()
        parsed = json.loads(
            StructuredJsonFormatter().format(_record("failed", logging.ERROR, exc_info))
        )
        assert isinstance(parsed["traceback"], list)
        assert "boom" in "".join(parsed["traceback"])


# ---------------------------------------------------------------------------
# setup_logging
# ---------------------------------------------------------------------------


class TestSetupLogging:
    def test_json_mode(self, monkeypatch):
        monkeypatch.setenv("FG_LOG_FORMAT", "json")
        setup_logging()
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredJsonFormatter)

    def test_default_mode_is_text(self, monkeypatch):
        monkeypatch.delenv("FG_LOG_FORMAT", raising=False)
        setup_logging()
        assert not isinstance(logging.getLogger().handlers[0].formatter, StructuredJsonFormatter)

    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("FG_LOG_LEVEL", "warning")
        setup_logging()
        assert logging.getLogger().level == logging.WARNING

    def test_invalid_log_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("FG_LOG_LEVEL", "LOUD")
        setup_logging()
        assert logging.getLogger().level == logging.INFO


class TestLogStartupInfo:
    def test_startup_fields(self, caplog):
        with caplog.at_level(logging.INFO, logger="filegate"):
            log_startup_info(policy_source="builtin:file_management", storage_backend="memory")
        rec = caplog.records[-1]
        assert rec.message == "FileGate started"
        assert rec.version == "0.1.0"
        assert rec.storage_backend == "memory"
        assert rec.policy_source == "builtin:file_management"


class TestRequestLogging:
    async def test_request_line_carries_fields(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="filegate"):
            resp = await client.get("/health")
        (rec,) = [r for r in caplog.records if getattr(r, "path", None) == "/health"]
        assert rec.request_id == resp.headers["X-Request-ID"]
        assert rec.method == "GET"
        assert rec.status_code == 200
