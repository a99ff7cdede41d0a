"""
Tests for access token helpers.
"""
from datetime import timedelta

import pytest

from pingy.core.security import (
    SecurityException,
    create_access_token,
    decode_token,
    extract_token_from_header,
    strip_bearer,
)


class TestTokens:

    def test_round_trip_keeps_subject(self):
        token = create_access_token(data={"sub": "user-1"})

        claims = decode_token(token)

        assert claims["sub"] == "user-1"
        assert claims["exp"] > claims["iat"]

    def test_expired_token(self):
        token = create_access_token(data={"sub": "user-1"}, expires_delta=timedelta(seconds=-10))

        with pytest.raises(SecurityException) as exc_info:
            decode_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_token_without_subject(self):
        token = create_access_token(data={"name": "nobody"})

        with pytest.raises(SecurityException):
            decode_token(token)

    def test_garbage_token(self):
        with pytest.raises(SecurityException) as exc_info:
            decode_token("not.a.jwt")

        assert exc_info.value.detail == "Invalid token"


class TestBearerParsing:

    @pytest.mark.parametrize("value,expected", [
        ("Bearer abc", "abc"),
        ("bearer   abc ", "abc"),
        ("abc", "abc"),
        ("Bearer ", None),
        ("", None),
        (None, None),
    ])
    def test_strip_bearer(self, value, expected):
        assert strip_bearer(value) == expected

    def test_extract_from_header(self):
        assert extract_token_from_header("Bearer abc") == "abc"

    @pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Bearer a b"])
    def test_extract_rejects_other_schemes(self, header):
        with pytest.raises(SecurityException) as exc_info:
            extract_token_from_header(header)

        assert exc_info.value.detail == "Invalid authorization header format"
