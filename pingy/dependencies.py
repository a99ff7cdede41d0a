"""
Dependency injection for FastAPI routes.
Provides reusable dependencies for authentication and shared runtime objects.
"""
from typing import TYPE_CHECKING, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from pingy.core.database import get_db
from pingy.core.security import decode_token, extract_token_from_header
from pingy.repositories.user_repo import UserRepository
from pingy.services.notification_pipeline import NotificationPipeline

if TYPE_CHECKING:
    from pingy.core.websocket import ConnectionManager


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    Dependency to get the current authenticated user.

    Args:
        authorization: Authorization header containing Bearer token
        db: Database session

    Returns:
        Dictionary with the user's id and username

    Raises:
        HTTPException: 401 if token is missing, invalid or the user no longer exists

    Example:
        ```python
        @router.get("/protected")
        async def protected_route(current_user: dict = Depends(get_current_user)):
            return {"user": current_user["username"]}
        ```
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = extract_token_from_header(authorization)
    payload = decode_token(token)

    user = await UserRepository(db).get(payload["sub"])
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"id": user.id, "username": user.username}


def get_pipeline(request: Request) -> Optional[NotificationPipeline]:
    """Notification pipeline created in the application lifespan."""
    return getattr(request.app.state, "pipeline", None)


def get_connection_manager(request: Request) -> Optional["ConnectionManager"]:
    """Realtime gateway used to broadcast changes made over HTTP."""
    return getattr(request.app.state, "connection_manager", None)
