"""Tests for observability utilities."""

import json
import logging

from pixzen.observability.correlation import (
    bound_correlation_id,
    get_correlation_id,
    set_correlation_id,
    reset_correlation_id,
)
from pixzen.observability.logging import SERVICE_NAME, JsonFormatter, get_logger
from pixzen.observability.redaction import (
    hash_phone,
    redact_string,
    redact_value,
    safe_log_context,
)


class TestRedaction:
    """Tests for redaction helpers."""

    def test_redact_phone_number(self):
        result = redact_string("Liga no +55 11 99999-8888")
        assert "99999" not in result
        assert "[REDACTED]" in result

    def test_redact_jid(self):
        result = redact_string("from 5511999998888@s.whatsapp.net and 12345678@lid")
        assert "5511999998888" not in result
        assert "12345678" not in result
        assert result.count("[REDACTED]") == 2

    def test_redact_email(self):
        result = redact_string("Email: ana@pixzen.site")
        assert "ana@pixzen.site" not in result
        assert "[REDACTED]" in result

    def test_redact_value_dict_only_keys(self):
        result = redact_value({"text": "gastei 50", "phone": "5511999998888"})
        assert "gastei" not in result
        assert "5511999998888" not in result
        assert "text" in result

    def test_redact_value_list_only_len(self):
        result = redact_value(["a", "b", "c"])
        assert "len=3" in result

    def test_redact_value_bytes_only_len(self):
        assert redact_value(b"\x00\x01audio") == "bytes(len=7)"

    def test_scalars(self):
        assert redact_value(None) == "null"
        assert redact_value(True) == "true"
        assert redact_value(3.5) == "3.5"

    def test_safe_log_context(self):
        ctx = safe_log_context(phone="+5511999998888", count=42)
        assert "[REDACTED]" in ctx["phone"]
        assert ctx["count"] == "42"

    def test_hash_phone_stable_and_short(self):
        assert hash_phone("5511999998888") == hash_phone("5511999998888")
        assert len(hash_phone("5511999998888")) == 12
        assert "5511999998888" not in hash_phone("5511999998888")


class TestCorrelation:
    def test_bound_restores_previous(self):
        token = set_correlation_id("outer")
        try:
            with bound_correlation_id("inner") as cid:
                assert cid == "inner"
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"
        finally:
            reset_correlation_id(token)

    def test_bound_generates_when_missing(self):
        with bound_correlation_id(None) as cid:
            assert len(cid) == 36
            assert get_correlation_id() == cid


class TestJsonFormatter:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord(
            name="pixzen.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="message received",
            args=(),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_structured_output(self):
        with bound_correlation_id("cid-789"):
            line = JsonFormatter().format(
                self._record(extra_fields={"phone_hash": "abc123def456"})
            )

        data = json.loads(line)
        assert data["service"] == SERVICE_NAME
        assert data["level"] == "INFO"
        assert data["message"] == "message received"
        assert data["correlationId"] == "cid-789"
        assert data["phone_hash"] == "abc123def456"

    def test_no_correlation_id_outside_request(self):
        data = json.loads(JsonFormatter().format(self._record()))
        assert "correlationId" not in data

    def test_get_logger_single_handler(self):
        logger = get_logger("pixzen.test.handlers")
        get_logger("pixzen.test.handlers")

        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")

        logger = get_logger("pixzen.test.level")

        assert logger.level == logging.WARNING
