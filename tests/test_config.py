"""
Tests for settings and logging setup.
"""
import json
import logging

import pytest
from pydantic import ValidationError

from fieldsign.config import Settings
from fieldsign.utils.logging import (
    CloudLoggingFormatter,
    clear_context,
    fingerprint,
    set_context,
    set_request_id,
    short_digest,
)


class TestSettings:
    """Environment-driven settings."""

    def test_defaults(self, monkeypatch):
        for name in ("ENVIRONMENT", "MAX_UPLOAD_MB", "DATE_FORMAT", "ALLOWED_ORIGINS"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.max_upload_mb == 10
        assert settings.max_upload_bytes == 10 * 1024 * 1024
        assert settings.date_format == "%Y-%m-%d"
        assert settings.allowed_origins == []

    def test_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_UPLOAD_MB", "25")
        monkeypatch.setenv("DATE_FORMAT", "%d.%m.%Y")
        settings = Settings(_env_file=None)
        assert settings.max_upload_mb == 25
        assert settings.date_format == "%d.%m.%Y"

    @pytest.mark.parametrize("raw,expected", [
        ('["https://a.example", "https://b.example"]', ["https://a.example", "https://b.example"]),
        ("https://a.example, https://b.example", ["https://a.example", "https://b.example"]),
        ("https://a.example;https://b.example;", ["https://a.example", "https://b.example"]),
        ("", []),
    ])
    def test_allowed_origins_formats(self, raw, expected):
        assert Settings(_env_file=None, ALLOWED_ORIGINS=raw).allowed_origins == expected

    def test_date_format_needs_directive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, DATE_FORMAT="YYYY-MM-DD")

    def test_upload_limit_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, MAX_UPLOAD_MB=0)


class TestLogging:
    """Structured log output."""

    def test_short_digest(self):
        assert short_digest("a" * 64) == "a" * 12
        assert short_digest(None) == "none"

    def test_fingerprint_hides_value(self):
        fp = fingerprint("203.0.113.7", "ip_")
        assert fp.startswith("ip_")
        assert "203" not in fp
        assert fingerprint(None, "ip_") == "ip_none"

    def test_json_formatter_includes_context(self):
        set_request_id("req-1")
        set_context(document_id="doc-1", field_id="field-1")
        try:
            record = logging.LogRecord("fieldsign", logging.INFO, __file__, 1, "signed", None, None)
            entry = json.loads(CloudLoggingFormatter().format(record))
        finally:
            clear_context()

        assert entry["severity"] == "INFO"
        assert entry["message"] == "signed"
        assert entry["request_id"] == "req-1"
        assert entry["document_id"] == "doc-1"
        assert entry["field_id"] == "field-1"
