"""
WebSocket manager for real-time messaging.
Handles Socket.IO connections, presence, rooms and delivery broadcasts.

Rooms:
    user:<user_id>                 every connection of one user
    conversation:<conversation_id> connections that opened the conversation
"""
import logging
from typing import Any, Dict, List, Optional

import socketio
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pingy.config import settings
from pingy.core.exceptions import PingyError
from pingy.core.presence import PresenceRegistry
from pingy.core.security import SecurityException, decode_token, strip_bearer
from pingy.repositories.user_repo import UserBlockRepository, UserRepository
from pingy.schemas.message import MessageCreate, MessageResponse, MessageStateUpdate, ReactionUpdate
from pingy.services.message_service import MessageService
from pingy.services.notification_pipeline import NotificationPipeline
from pingy.utils.datetime_utils import to_iso_utc, utc_now

logger = logging.getLogger(__name__)


def _user_room(user_id: str) -> str:
    return f"user:{user_id}"


def _conversation_room(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


def _parse_token(environ: Dict[str, Any], auth: Optional[Dict[str, Any]]) -> Optional[str]:
    """Read the access token from the handshake auth, then the Authorization header."""
    if isinstance(auth, dict) and auth.get("token"):
        return strip_bearer(auth["token"])

    header = environ.get("HTTP_AUTHORIZATION", "")
    if header.lower().startswith("bearer "):
        return strip_bearer(header)
    return None


class ConnectionManager:
    """
    WebSocket connection manager using Socket.IO.

    Owns the Socket.IO server, keeps the presence registry in step with
    connections and broadcasts message lifecycle events.
    """

    def __init__(
        self,
        presence: PresenceRegistry,
        session_factory: async_sessionmaker[AsyncSession],
        pipeline: Optional[NotificationPipeline] = None,
        sio: Optional[socketio.AsyncServer] = None
    ):
        """
        Initialize the connection manager.

        Args:
            presence: Registry shared with the notification pipeline
            session_factory: Opens a database session per event
            pipeline: Notification pipeline for messages sent over the socket
            sio: Pre-built server (tests); one is created from settings otherwise
        """
        self.presence = presence
        self.session_factory = session_factory
        self.pipeline = pipeline

        if sio is None:
            cors_origins = settings.get_allowed_origins_list() or "*"
            sio = socketio.AsyncServer(
                async_mode="asgi",
                cors_allowed_origins=cors_origins,
                logger=False,
                engineio_logger=False,
                ping_timeout=settings.ws_heartbeat_interval,
                ping_interval=settings.ws_heartbeat_interval // 2,
                always_connect=True,
            )
        self.sio = sio

        # {sid: user_id}
        self.connections: Dict[str, str] = {}

        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Register Socket.IO event handlers."""
        self.sio.on("connect", self.handle_connect)
        self.sio.on("disconnect", self.handle_disconnect)
        self.sio.on("conversation:join", self.handle_join_conversation)
        self.sio.on("conversation:leave", self.handle_leave_conversation)
        self.sio.on("message:send", self.handle_send_message)
        self.sio.on("message:seen", self.handle_mark_seen)

    def get_asgi_app(self, other_asgi_app) -> socketio.ASGIApp:
        """Wrap the HTTP application so Socket.IO serves /socket.io/."""
        return socketio.ASGIApp(self.sio, other_asgi_app=other_asgi_app)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def handle_connect(self, sid: str, environ: Dict[str, Any], auth: Optional[Dict[str, Any]] = None) -> bool:
        """
        Authenticate a new connection and bring the user online.

        Returns:
            False to reject the connection
        """
        token = _parse_token(environ, auth)
        if not token:
            logger.warning(f"Connection rejected - no token: {sid}")
            return False

        try:
            user_id = decode_token(token)["sub"]
        except SecurityException as e:
            logger.warning(f"Connection rejected - {e.detail}: {sid}")
            return False

        async with self.session_factory() as db:
            user_repo = UserRepository(db)
            if await user_repo.get(user_id) is None:
                logger.warning(f"Connection rejected - user not found: {sid}")
                return False

            self.connections[sid] = user_id
            came_online = self.presence.add_connection(user_id, sid)
            if came_online:
                await user_repo.set_online(user_id, True)
                await db.commit()

        await self.sio.enter_room(sid, _user_room(user_id))
        logger.info(f"Client connected: {sid} (user: {user_id})")

        if came_online:
            await self.broadcast_presence(user_id, is_online=True)
        await self.send_presence_snapshot(sid, user_id)

        async with self.session_factory() as db:
            updates = await MessageService(db).mark_all_delivered(user_id)
        await self.emit_delivered(updates)
        return True

    async def handle_disconnect(self, sid: str, *args) -> None:
        """Drop the connection and announce the user offline after their last one."""
        user_id = self.connections.pop(sid, None)
        if user_id is None:
            return

        logger.info(f"Client disconnected: {sid} (user: {user_id})")
        if not self.presence.remove_connection(user_id, sid):
            return

        last_seen = utc_now()
        async with self.session_factory() as db:
            await UserRepository(db).set_online(user_id, False)
            await db.commit()

        await self.broadcast_presence(user_id, is_online=False, last_seen=to_iso_utc(last_seen))

    async def send_presence_snapshot(self, sid: str, user_id: str) -> None:
        """Send the connecting user the online users they are allowed to see."""
        async with self.session_factory() as db:
            hidden = set(await UserBlockRepository(db).list_hidden_user_ids(user_id))

        online_user_ids = [
            uid for uid in self.presence.online_user_ids()
            if uid not in hidden
        ]
        await self.sio.emit("presence:snapshot", {"onlineUserIds": online_user_ids}, to=sid)

    async def broadcast_presence(self, user_id: str, is_online: bool, last_seen: Optional[str] = None) -> None:
        """
        Tell every online viewer that a user came online or went offline.

        Users in a block relationship with the subject are skipped.
        """
        async with self.session_factory() as db:
            hidden = set(await UserBlockRepository(db).list_hidden_user_ids(user_id))

        payload = {
            "userId": user_id,
            "isOnline": is_online,
            "lastSeen": None if is_online else (last_seen or to_iso_utc(utc_now())),
        }
        for viewer_id in self.presence.online_user_ids():
            if viewer_id == user_id or viewer_id in hidden:
                continue
            await self.sio.emit("presence:update", payload, room=_user_room(viewer_id))

    # ------------------------------------------------------------------
    # Client events
    # ------------------------------------------------------------------

    async def handle_join_conversation(self, sid: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Join a conversation room and deliver its pending messages.

        Expected data: {'conversationId': 'uuid'}
        """
        user_id = self.connections.get(sid)
        if user_id is None:
            return {"ok": False, "message": "Unauthorized"}

        conversation_id = str((data or {}).get("conversationId") or "").strip()
        if not conversation_id:
            return {"ok": False, "message": "conversationId is required"}

        try:
            async with self.session_factory() as db:
                updates = await MessageService(db).mark_delivered(user_id, conversation_id=conversation_id)
        except PingyError as e:
            logger.warning(f"User {user_id} cannot join conversation {conversation_id}: {e.detail}")
            return {"ok": False, "message": e.detail}

        await self.sio.enter_room(sid, _conversation_room(conversation_id))
        await self.emit_delivered(updates)
        return {"ok": True}

    async def handle_leave_conversation(self, sid: str, data: Optional[Dict[str, Any]] = None) -> None:
        conversation_id = str((data or {}).get("conversationId") or "").strip()
        if conversation_id:
            await self.sio.leave_room(sid, _conversation_room(conversation_id))

    async def handle_send_message(self, sid: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send a text message.

        Expected data: {'conversationId', 'body', 'clientId'?, 'replyToMessageId'?}
        """
        user_id = self.connections.get(sid)
        if user_id is None:
            return {"ok": False, "message": "Unauthorized"}

        data = data or {}
        conversation_id = str(data.get("conversationId") or "").strip()
        if not conversation_id:
            return {"ok": False, "message": "conversationId is required"}

        try:
            request = MessageCreate.model_validate(data)
        except PydanticValidationError:
            return {"ok": False, "message": "Invalid message payload"}

        try:
            async with self.session_factory() as db:
                service = MessageService(db, pipeline=self.pipeline, broadcaster=self)
                message = await service.create_message(
                    sender_id=user_id,
                    conversation_id=conversation_id,
                    body=request.body,
                    reply_to_message_id=request.reply_to_message_id,
                    client_id=request.client_id,
                )
        except PingyError as e:
            return {"ok": False, "message": e.detail}

        return {"ok": True, "message": self.serialize_message(message)}

    async def handle_mark_seen(self, sid: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Mark messages of a conversation seen.

        Expected data: {'conversationId', 'messageIds'?}
        """
        user_id = self.connections.get(sid)
        if user_id is None:
            return {"ok": False, "message": "Unauthorized"}

        data = data or {}
        conversation_id = str(data.get("conversationId") or "").strip()
        if not conversation_id:
            return {"ok": False, "message": "conversationId is required"}

        message_ids = data.get("messageIds")
        if not isinstance(message_ids, list):
            message_ids = None

        try:
            async with self.session_factory() as db:
                updates = await MessageService(db).mark_seen(
                    user_id, conversation_id, message_ids=message_ids
                )
        except PingyError as e:
            return {"ok": False, "message": e.detail}

        await self.emit_seen(updates)
        return {"ok": True, "updates": self.serialize_updates(updates)}

    # ------------------------------------------------------------------
    # Broadcasts
    # ------------------------------------------------------------------

    @staticmethod
    def serialize_message(message: Dict[str, Any]) -> Dict[str, Any]:
        return MessageResponse.model_validate(message).model_dump(mode="json", by_alias=True)

    @staticmethod
    def serialize_updates(updates: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            MessageStateUpdate.model_validate(update).model_dump(mode="json", by_alias=True)
            for update in updates
        ]

    async def emit_message_created(self, message: Dict[str, Any]) -> None:
        """Broadcast a new message to the conversation and both participants."""
        payload = self.serialize_message(message)
        await self.sio.emit("message:new", payload, room=_conversation_room(message["conversation_id"]))
        await self.sio.emit("message:new", payload, room=_user_room(message["sender_id"]))
        await self.sio.emit("message:new", payload, room=_user_room(message["recipient_id"]))

    async def emit_delivered(self, updates: List[Dict[str, Any]]) -> None:
        """Tell senders their messages reached the recipient."""
        await self._emit_state_updates("message:delivered", updates)

    async def emit_seen(self, updates: List[Dict[str, Any]]) -> None:
        """Tell senders their messages were read."""
        await self._emit_state_updates("message:seen", updates)

    async def _emit_state_updates(self, event: str, updates: List[Dict[str, Any]]) -> None:
        for update, payload in zip(updates, self.serialize_updates(updates)):
            await self.sio.emit(event, payload, room=_conversation_room(update["conversation_id"]))
            await self.sio.emit(event, payload, room=_user_room(update["sender_id"]))

    async def emit_reaction(self, update: Dict[str, Any], user_id: str) -> None:
        """
        Broadcast a reaction change.

        The aggregate's reacted_by_me flag is relative to the reacting user,
        so the user room only goes to that user's own connections.
        """
        payload = ReactionUpdate.model_validate(update).model_dump(mode="json", by_alias=True)
        payload["userId"] = user_id
        await self.sio.emit("message:reaction", payload, room=_conversation_room(update["conversation_id"]))
        await self.sio.emit("message:reaction", payload, room=_user_room(user_id))
