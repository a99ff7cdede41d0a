"""
Helper functions for common operations.
Provides reusable utility functions.
"""
import re
from typing import Any, Optional

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
APNS_ENDPOINT_PATTERN = re.compile(r"^apns://([0-9a-f]{64})$", re.IGNORECASE)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_ANGLE_BRACKETS = re.compile(r"[<>]")
_WHITESPACE_RUN = re.compile(r"\s+")


def generate_cache_key(*parts: str) -> str:
    """
    Generate a cache key from parts.

    Args:
        *parts: Parts to combine into cache key

    Returns:
        Cache key string

    Example:
        >>> generate_cache_key("unread", "total", "123")
        'unread:total:123'
    """
    return ":".join(str(part) for part in parts)


def sanitize_text(value: Any, max_length: int = 2000) -> str:
    """
    Normalize user-supplied text before it is stored.

    Angle brackets are removed, control characters become spaces,
    whitespace runs collapse to one space, and the result is trimmed
    and cut to max_length.

    Args:
        value: Raw input (non-strings yield an empty string)
        max_length: Maximum length of the result

    Returns:
        Sanitized text

    Example:
        >>> sanitize_text("  hi <b>\\n there ")
        'hi b there'
    """
    if not isinstance(value, str):
        return ""

    cleaned = _ANGLE_BRACKETS.sub("", value)
    cleaned = _CONTROL_CHARS.sub(" ", cleaned)
    cleaned = _WHITESPACE_RUN.sub(" ", cleaned).strip()
    return cleaned[:max_length]


def is_uuid(value: Optional[str]) -> bool:
    """Check whether value looks like a v1-v5 UUID string."""
    return bool(value) and bool(UUID_PATTERN.match(value.strip()))


def parse_apns_endpoint(endpoint: str) -> Optional[str]:
    """
    Extract the device token from an ``apns://<token>`` endpoint.

    Returns:
        Lowercase 64-hex device token, or None for non-APNs endpoints
    """
    match = APNS_ENDPOINT_PATTERN.match(endpoint.strip())
    return match.group(1).lower() if match else None


def is_valid_push_endpoint(endpoint: str) -> bool:
    """Accept http(s) Web Push URLs and apns:// device endpoints."""
    endpoint = endpoint.strip()
    if endpoint.startswith(("https://", "http://")):
        return bool(endpoint.split("://", 1)[1])
    return parse_apns_endpoint(endpoint) is not None


def mask_token(token: str, visible: int = 8) -> str:
    """
    Shorten a secret or device token for logging.

    Example:
        >>> mask_token("0123456789abcdef")
        '01234567...'
    """
    if len(token) <= visible:
        return token
    return f"{token[:visible]}..."
