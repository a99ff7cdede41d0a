"""
Notification payloads for each push provider.
"""
from typing import Any, Dict, Optional
from urllib.parse import quote

from pingy.services.events import MessageCreatedEvent

DEFAULT_TITLE = "Pingy"
NEW_MESSAGE_EVENT = "message:new"


def message_preview(message_type: str, media_name: Optional[str] = None) -> str:
    """
    Notification body for a message.

    Message text is never included; only the kind of message is shown.

    Example:
        >>> message_preview("file", "report.pdf")
        'File: report.pdf'
    """
    if message_type == "voice":
        return "Voice message"
    if message_type == "image":
        return "Image"
    if message_type == "video":
        return "Video"
    if message_type == "file":
        return f"File: {media_name}" if media_name else "File"
    return "New message"


def conversation_tag(conversation_id: Optional[str]) -> str:
    """Notification tag so one conversation shows as one notification."""
    return f"pingy-conversation-{conversation_id or 'message'}"


def build_web_push_payload(message: MessageCreatedEvent, badge_count: Optional[int] = None) -> Dict[str, Any]:
    """
    Payload read by the service worker.

    Args:
        message: Created message
        badge_count: Recipient's unread count

    Returns:
        JSON-serializable payload
    """
    conversation_id = message.conversation_id or ""

    payload = {
        "type": NEW_MESSAGE_EVENT,
        "title": message.sender_username or DEFAULT_TITLE,
        "body": message_preview(message.type, message.media_name),
        "conversationId": conversation_id or None,
        "messageId": message.message_id,
        "senderId": message.sender_id,
        "senderUsername": message.sender_username,
        "url": f"/?conversationId={quote(conversation_id, safe='')}" if conversation_id else "/",
        "tag": conversation_tag(conversation_id),
    }
    if badge_count is not None:
        payload["badge"] = badge_count
    return payload


def build_apns_payload(message: MessageCreatedEvent, badge_count: Optional[int] = None) -> Dict[str, Any]:
    """
    APNs alert payload.

    Args:
        message: Created message
        badge_count: Recipient's unread count, shown on the app icon

    Returns:
        JSON-serializable payload
    """
    aps: Dict[str, Any] = {
        "alert": {
            "title": message.sender_username or DEFAULT_TITLE,
            "body": message_preview(message.type, message.media_name),
        },
        "sound": "default",
        "thread-id": message.conversation_id,
    }
    if badge_count is not None:
        aps["badge"] = badge_count

    return {
        "aps": aps,
        "type": NEW_MESSAGE_EVENT,
        "conversationId": message.conversation_id,
        "messageId": message.message_id,
        "senderId": message.sender_id,
        "senderUsername": message.sender_username,
    }
