"""
Pytest configuration and fixtures for tests.
Provides reusable test fixtures for database, users, and data setup.
"""
import os

# Settings are read at import time, so the test environment goes first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["ENVIRONMENT"] = "test"
os.environ["REDIS_URL"] = ""
os.environ["RATE_LIMIT_MESSAGES_PER_MINUTE"] = "1000"
for _push_var in (
    "WEB_PUSH_PUBLIC_KEY", "WEB_PUSH_PRIVATE_KEY", "WEB_PUSH_SUBJECT",
    "APNS_KEY_ID", "APNS_TEAM_ID", "APNS_BUNDLE_ID", "APNS_PRIVATE_KEY",
):
    os.environ[_push_var] = ""

from typing import AsyncGenerator, Callable, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pingy.core.database import get_db
from pingy.core.presence import PresenceRegistry
from pingy.core.security import create_access_token
from pingy.dependencies import get_connection_manager, get_pipeline
from pingy.main import fastapi_app
from pingy.models import (
    Conversation,
    ConversationParticipant,
    Message,
    MessageType,
    User,
    UserBlock,
)
from pingy.models.base import Base


# Test database URL (use separate test database)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"  # In-memory SQLite for tests


@pytest.fixture(scope="function")
async def test_engine():
    """Create test database engine shared by every session of one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory handed to components that open their own sessions."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def presence() -> PresenceRegistry:
    return PresenceRegistry()


async def create_user(db: AsyncSession, username: str, **kwargs) -> User:
    """Insert and return a user."""
    user = User(username=username, **kwargs)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_direct_conversation(db: AsyncSession, first: User, second: User) -> Conversation:
    """Insert a direct conversation between two users."""
    conversation = Conversation()
    db.add(conversation)
    await db.flush()

    db.add(ConversationParticipant(conversation_id=conversation.id, user_id=first.id))
    db.add(ConversationParticipant(conversation_id=conversation.id, user_id=second.id))
    await db.commit()
    await db.refresh(conversation)
    return conversation


async def create_message(
    db: AsyncSession,
    conversation: Conversation,
    sender: User,
    recipient: User,
    body: str = "Test message content",
    **kwargs
) -> Message:
    """Insert a text message directly, bypassing the service."""
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender.id,
        recipient_id=recipient.id,
        type=MessageType.TEXT,
        body=body,
        **kwargs
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)
    return message


async def block_user(db: AsyncSession, blocker: User, blocked: User) -> None:
    db.add(UserBlock(blocker_id=blocker.id, blocked_id=blocked.id))
    await db.commit()


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory for extra users."""
    async def _make(username: str, **kwargs) -> User:
        return await create_user(db_session, username, **kwargs)
    return _make


@pytest.fixture
def make_conversation(db_session: AsyncSession):
    """Factory for direct conversations."""
    async def _make(first: User, second: User) -> Conversation:
        return await create_direct_conversation(db_session, first, second)
    return _make


@pytest.fixture
def make_message(db_session: AsyncSession):
    """Factory for messages inserted without going through the service."""
    async def _make(conversation: Conversation, sender: User, recipient: User, body: str = "Test message content", **kwargs) -> Message:
        return await create_message(db_session, conversation, sender, recipient, body=body, **kwargs)
    return _make


@pytest.fixture
def block(db_session: AsyncSession):
    """Record that one user blocked another."""
    async def _block(blocker: User, blocked: User) -> None:
        await block_user(db_session, blocker, blocked)
    return _block


@pytest.fixture
async def alice(db_session: AsyncSession) -> User:
    """Create the sending test user."""
    return await create_user(db_session, "alice")


@pytest.fixture
async def bob(db_session: AsyncSession) -> User:
    """Create the receiving test user."""
    return await create_user(db_session, "bob")


@pytest.fixture
async def carol(db_session: AsyncSession) -> User:
    """Create a user outside the test conversation."""
    return await create_user(db_session, "carol")


@pytest.fixture
async def conversation(db_session: AsyncSession, alice, bob) -> Conversation:
    """Create a direct conversation between alice and bob."""
    return await create_direct_conversation(db_session, alice, bob)


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    """Build Authorization headers for a user."""
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token(data={"sub": user.id})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def mock_connection_manager(mocker):
    """Mock realtime gateway for HTTP tests."""
    manager = mocker.AsyncMock()
    manager.emit_message_created = mocker.AsyncMock()
    manager.emit_delivered = mocker.AsyncMock()
    manager.emit_seen = mocker.AsyncMock()
    manager.emit_reaction = mocker.AsyncMock()
    return manager


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession, mock_connection_manager) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with dependency overrides."""

    async def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_pipeline] = lambda: None
    fastapi_app.dependency_overrides[get_connection_manager] = lambda: mock_connection_manager

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()
