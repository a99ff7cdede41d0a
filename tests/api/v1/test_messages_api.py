"""
Integration tests for Message API endpoints.
Tests API routes and HTTP interactions.
"""
import pytest

HEART = "❤️"


@pytest.mark.asyncio
class TestMessageAPI:
    """Test cases for Message API endpoints."""

    async def test_send_message_unauthorized(self, client, conversation):
        """Test sending a message without authentication."""
        response = await client.post(f"/api/v1/messages/{conversation.id}", json={"body": "hello"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing authorization header"

    async def test_send_message_invalid_token(self, client, conversation):
        response = await client.post(
            f"/api/v1/messages/{conversation.id}",
            headers={"Authorization": "Bearer not-a-jwt"},
            json={"body": "hello"},
        )

        assert response.status_code == 401

    async def test_send_message_success(self, client, auth_headers, alice, bob, conversation, mock_connection_manager):
        """Test sending a message successfully."""
        response = await client.post(
            f"/api/v1/messages/{conversation.id}",
            headers=auth_headers(alice),
            json={"body": "  hello   bob  ", "clientId": "client-0001"},
        )

        assert response.status_code == 201
        message = response.json()["message"]
        assert message["body"] == "hello bob"
        assert message["senderId"] == alice.id
        assert message["recipientId"] == bob.id
        assert message["senderUsername"] == "alice"
        assert message["clientId"] == "client-0001"
        assert message["deliveredAt"] is None
        assert message["reactions"] == []
        mock_connection_manager.emit_message_created.assert_awaited_once()

    async def test_send_message_retry_returns_same_message(self, client, auth_headers, alice, conversation):
        url = f"/api/v1/messages/{conversation.id}"
        payload = {"body": "hello", "clientId": "client-0002"}

        first = await client.post(url, headers=auth_headers(alice), json=payload)
        second = await client.post(url, headers=auth_headers(alice), json=payload)

        assert first.json()["message"]["id"] == second.json()["message"]["id"]

    async def test_send_message_rejects_blank_body(self, client, auth_headers, alice, conversation):
        response = await client.post(
            f"/api/v1/messages/{conversation.id}",
            headers=auth_headers(alice),
            json={"body": "   "},
        )

        assert response.status_code == 422

    async def test_send_message_non_participant(self, client, auth_headers, carol, conversation):
        """Test sending to a conversation the user is not part of."""
        response = await client.post(
            f"/api/v1/messages/{conversation.id}",
            headers=auth_headers(carol),
            json={"body": "hello"},
        )

        assert response.status_code == 403
        assert response.json() == {"detail": "You do not have access to this conversation"}

    async def test_send_message_blocked(self, client, auth_headers, alice, bob, conversation, block):
        await block(bob, alice)

        response = await client.post(
            f"/api/v1/messages/{conversation.id}",
            headers=auth_headers(alice),
            json={"body": "hello"},
        )

        assert response.status_code == 403
        assert response.json() == {"detail": "You cannot interact with this user"}

    async def test_list_messages(self, client, auth_headers, alice, bob, conversation, make_message):
        first = await make_message(conversation, alice, bob, body="first")
        second = await make_message(conversation, bob, alice, body="second")

        response = await client.get(f"/api/v1/messages/{conversation.id}", headers=auth_headers(alice))

        assert response.status_code == 200
        messages = response.json()["messages"]
        assert [m["id"] for m in messages] == [first.id, second.id]
        assert messages[0]["conversationId"] == conversation.id

    async def test_list_messages_limit_bounds(self, client, auth_headers, alice, conversation):
        response = await client.get(
            f"/api/v1/messages/{conversation.id}",
            headers=auth_headers(alice),
            params={"limit": 0},
        )

        assert response.status_code == 422

    async def test_list_messages_non_participant(self, client, auth_headers, carol, conversation):
        response = await client.get(f"/api/v1/messages/{conversation.id}", headers=auth_headers(carol))

        assert response.status_code == 403


@pytest.mark.asyncio
class TestReceiptAPI:
    """Test cases for delivered and seen endpoints."""

    async def test_mark_delivered(self, client, auth_headers, alice, bob, conversation, make_message, mock_connection_manager):
        message = await make_message(conversation, alice, bob)

        response = await client.post(
            f"/api/v1/messages/{conversation.id}/delivered",
            headers=auth_headers(bob),
        )

        assert response.status_code == 200
        [update] = response.json()["updates"]
        assert update["id"] == message.id
        assert update["senderId"] == alice.id
        assert update["deliveredAt"] is not None
        mock_connection_manager.emit_delivered.assert_awaited_once()

    async def test_mark_delivered_twice_is_empty(self, client, auth_headers, alice, bob, conversation, make_message):
        await make_message(conversation, alice, bob)
        url = f"/api/v1/messages/{conversation.id}/delivered"

        await client.post(url, headers=auth_headers(bob))
        response = await client.post(url, headers=auth_headers(bob))

        assert response.json() == {"updates": []}

    async def test_mark_seen_selected_messages(self, client, auth_headers, alice, bob, conversation, make_message, mock_connection_manager):
        first = await make_message(conversation, alice, bob, body="first")
        await make_message(conversation, alice, bob, body="second")

        response = await client.post(
            f"/api/v1/messages/{conversation.id}/seen",
            headers=auth_headers(bob),
            json={"messageIds": [first.id]},
        )

        assert response.status_code == 200
        [update] = response.json()["updates"]
        assert update["id"] == first.id
        assert update["seenAt"] is not None
        assert update["deliveredAt"] is not None
        mock_connection_manager.emit_seen.assert_awaited_once()

    async def test_mark_seen_non_participant(self, client, auth_headers, carol, conversation):
        response = await client.post(
            f"/api/v1/messages/{conversation.id}/seen",
            headers=auth_headers(carol),
        )

        assert response.status_code == 403


@pytest.mark.asyncio
class TestReactionAPI:
    """Test cases for the reaction toggle endpoint."""

    async def test_toggle_reaction(self, client, auth_headers, alice, bob, conversation, make_message, mock_connection_manager):
        message = await make_message(conversation, alice, bob)

        response = await client.put(
            f"/api/v1/messages/{message.id}/reaction",
            headers=auth_headers(bob),
            json={"emoji": HEART},
        )

        assert response.status_code == 200
        update = response.json()["update"]
        assert update["messageId"] == message.id
        assert update["action"] == "added"
        assert update["reactions"] == [{"emoji": HEART, "count": 1, "reactedByMe": True}]
        mock_connection_manager.emit_reaction.assert_awaited_once()
        assert mock_connection_manager.emit_reaction.call_args.args[1] == bob.id

    async def test_unsupported_emoji(self, client, auth_headers, alice, bob, conversation, make_message):
        message = await make_message(conversation, alice, bob)

        response = await client.put(
            f"/api/v1/messages/{message.id}/reaction",
            headers=auth_headers(bob),
            json={"emoji": "🦄"},
        )

        assert response.status_code == 422

    async def test_outsider_gets_not_found(self, client, auth_headers, alice, bob, carol, conversation, make_message):
        message = await make_message(conversation, alice, bob)
        url = f"/api/v1/messages/{message.id}/reaction"
        headers = auth_headers(carol)

        response = await client.put(url, headers=headers, json={"emoji": HEART})

        assert response.status_code == 404
