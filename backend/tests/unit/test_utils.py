"""Tests for time, ID and email template helpers"""
import json
import logging
import re
from datetime import datetime, timedelta, timezone

import pytest

from provider_portal.templates import get_email_template
from provider_portal.utils.idgen import generate_completion_token, generate_provider_code
from provider_portal.utils.logger import JsonFormatter, mask_token
from provider_portal.utils.time import ensure_utc, format_iso, has_expired, parse_iso


def test_has_expired_boundary():
    expires_at = datetime(2026, 3, 5, 9, 30, tzinfo=timezone.utc)
    assert has_expired(expires_at, expires_at - timedelta(seconds=1)) is False
    assert has_expired(expires_at, expires_at) is True
    assert has_expired(None, expires_at) is False


def test_naive_datetimes_treated_as_utc():
    naive = datetime(2026, 3, 5, 9, 30)
    assert ensure_utc(naive) == datetime(2026, 3, 5, 9, 30, tzinfo=timezone.utc)
    assert format_iso(naive) == "2026-03-05T09:30:00Z"
    assert parse_iso("2026-03-05T09:30:00Z") == ensure_utc(naive)


def test_completion_token_is_hex():
    token = generate_completion_token(32)
    assert re.fullmatch(r"[0-9a-f]{64}", token)
    assert generate_completion_token(32) != token


def test_provider_code_format():
    assert re.fullmatch(r"RUSH-2026-\d{4}", generate_provider_code("RUSH", 2026))


def test_mask_token():
    assert mask_token("0123456789abcdef") == "01234567..."
    assert mask_token(None) == ""


def test_json_formatter_promotes_context_fields():
    record = logging.LogRecord("provider_portal.test", logging.INFO, __file__, 1, "Issued link", None, None)
    record.application_id = "APP-1"
    record.token_id = "01234567..."
    
    payload = json.loads(JsonFormatter().format(record))
    
    assert payload["message"] == "Issued link"
    assert payload["application_id"] == "APP-1"
    assert payload["token_id"] == "01234567..."


def test_completion_link_email():
    rendered = get_email_template(
        "COMPLETION_LINK",
        {
            "provider_name": "Jane Doe",
            "missing_fields": ["license_number", "bls_cpr_image"],
            "completion_url": "http://localhost:3000/complete-application?token=abc",
            "ttl_hours": 72,
            "sent_by": "mreyes (admin)",
        },
        app_url="http://localhost:3000"
    )
    
    assert rendered["subject"] == "Complete Your Provider Application - RUSH Healthcare"
    assert "http://localhost:3000/complete-application?token=abc" in rendered["body"]
    assert "License Number" in rendered["body"]
    assert "mreyes (admin)" in rendered["body"]


def test_unknown_template_key():
    with pytest.raises(ValueError):
        get_email_template("NOPE", {}, app_url="http://localhost:3000")
