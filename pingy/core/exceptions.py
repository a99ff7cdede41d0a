"""
Domain exceptions for messaging operations.

Services raise these; the API layer maps them to HTTP responses in main.py
and the realtime gateway turns them into acknowledgement errors.
"""
from fastapi import status


class PingyError(Exception):
    """Base class for terminal request failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class AccessDenied(PingyError):
    """Caller may not act on the conversation or the other participant."""

    status_code = status.HTTP_403_FORBIDDEN

    NOT_PARTICIPANT = "not_participant"
    BLOCKED = "blocked"

    def __init__(self, detail: str = "You do not have access to this conversation", reason: str = NOT_PARTICIPANT):
        super().__init__(detail)
        self.reason = reason


class BlockedInteraction(AccessDenied):
    """One of the two users has blocked the other."""

    def __init__(self, detail: str = "You cannot interact with this user"):
        super().__init__(detail, reason=AccessDenied.BLOCKED)


class NotFound(PingyError):
    """Target is absent or hidden from the caller."""

    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(PingyError):
    """Malformed input: missing media URL, bad reply reference, empty body."""

    status_code = status.HTTP_400_BAD_REQUEST


class ServiceUnavailable(PingyError):
    """A required provider is not configured on this server."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
