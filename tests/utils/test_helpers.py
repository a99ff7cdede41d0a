"""
Tests for helper utilities.
"""
import pytest

from pingy.utils.helpers import (
    generate_cache_key,
    is_uuid,
    is_valid_push_endpoint,
    mask_token,
    parse_apns_endpoint,
    sanitize_text,
)

DEVICE_TOKEN = "0123456789abcdef" * 4


class TestSanitizeText:
    """Tests for sanitize_text()."""

    def test_strips_markup_and_collapses_whitespace(self):
        assert sanitize_text("  hi <b>\n there ") == "hi b there"

    def test_control_characters_become_spaces(self):
        assert sanitize_text("a\x00b\x7fc") == "a b c"

    def test_truncates(self):
        assert sanitize_text("x" * 50, max_length=10) == "x" * 10

    def test_non_string_is_empty(self):
        assert sanitize_text(None) == ""
        assert sanitize_text(42) == ""


class TestPushEndpoints:
    """Tests for endpoint parsing."""

    def test_parse_apns_endpoint_lowercases(self):
        assert parse_apns_endpoint(f"apns://{DEVICE_TOKEN.upper()}") == DEVICE_TOKEN

    @pytest.mark.parametrize("endpoint", [
        "apns://short",
        "https://push.example.com/sub",
        f"apns://{DEVICE_TOKEN}00",
    ])
    def test_parse_apns_endpoint_rejects(self, endpoint):
        assert parse_apns_endpoint(endpoint) is None

    @pytest.mark.parametrize("endpoint,valid", [
        ("https://fcm.googleapis.com/fcm/send/abc", True),
        ("http://localhost:8080/push", True),
        (f"apns://{DEVICE_TOKEN}", True),
        ("https://", False),
        ("ftp://example.com", False),
        ("apns://zz", False),
    ])
    def test_is_valid_push_endpoint(self, endpoint, valid):
        assert is_valid_push_endpoint(endpoint) is valid


def test_is_uuid():
    assert is_uuid("3f2b8c1e-9d4a-4b6f-8e2a-1c5d7f9b0a3e")
    assert not is_uuid("not-a-uuid")
    assert not is_uuid("")
    assert not is_uuid(None)


def test_mask_token():
    assert mask_token("0123456789abcdef") == "01234567..."
    assert mask_token("short") == "short"


def test_generate_cache_key():
    assert generate_cache_key("unread", "total", 123) == "unread:total:123"
