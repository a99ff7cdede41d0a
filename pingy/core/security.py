"""
Access token handling shared by the HTTP API and the realtime gateway.

Tokens are HS256 JWTs whose ``sub`` claim is the user ID.
"""
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt
from fastapi import HTTPException, status

from pingy.config import settings
from pingy.utils.datetime_utils import utc_now

BEARER_SCHEME = "bearer"


class SecurityException(HTTPException):
    """401 raised for a missing, malformed or expired access token."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Sign an access token.

    Example:
        ```python
        token = create_access_token(data={"sub": user_id})
        ```
    """
    issued_at = utc_now()
    claims = {
        **data,
        "iat": issued_at,
        "exp": issued_at + (expires_delta or timedelta(hours=settings.jwt_expiration_hours)),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify a token and return its claims.

    Raises:
        SecurityException: Bad signature, expired, or no ``sub`` claim
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise SecurityException("Token has expired")
    except jwt.InvalidTokenError:
        raise SecurityException("Invalid token")

    if not claims.get("sub"):
        raise SecurityException("Invalid token")
    return claims


def strip_bearer(value: Optional[str]) -> Optional[str]:
    """
    Token from a ``Bearer <token>`` value; a bare token is returned as is.

    Example:
        >>> strip_bearer("Bearer abc")
        'abc'
    """
    if not value:
        return None

    value = str(value).strip()
    scheme, _, rest = value.partition(" ")
    if scheme.lower() == BEARER_SCHEME:
        value = rest.strip()
    return value or None


def extract_token_from_header(authorization: str) -> str:
    """
    Token from an HTTP Authorization header, which must use the Bearer scheme.

    Raises:
        SecurityException: Header missing or not ``Bearer <token>``
    """
    if not authorization:
        raise SecurityException("Missing authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != BEARER_SCHEME:
        raise SecurityException("Invalid authorization header format")
    return parts[1]
