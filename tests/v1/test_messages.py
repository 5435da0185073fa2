# tests/v1/test_messages.py
"""Tests for direct message endpoints."""

from pathlib import Path

from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy import select

from chatline.models import Conversation, Message, MessageVisibility, User
from chatline.services import notifications as events


def send(client: TestClient, headers, receiver_id: int, text: str | None = "hello", files=None):
    data = {"message": text} if text is not None else {}
    return client.post(f"/api/message/{receiver_id}", data=data, files=files, headers=headers)


class TestSendMessage:
    """Sending direct messages."""

    def test_first_message_creates_conversation(
        self,
        client: TestClient,
        test_user: User,
        other_user: User,
        auth_token,
        connect,
        db_session,
    ) -> None:
        receiver_socket = connect(other_user)

        response = send(client, auth_token, other_user.id, "hi Bob")

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["status"] == "sent"
        assert data["body"] == "hi Bob"
        assert data["sender"]["id"] == test_user.id
        assert data["conversation_id"] is not None
        assert data["group_id"] is None

        conversations = db_session.scalars(select(Conversation)).all()
        assert len(conversations) == 1
        assert set(conversations[0].participant_ids) == {test_user.id, other_user.id}

        pushed = receiver_socket.events(events.NEW_MESSAGE)
        assert len(pushed) == 1
        assert pushed[0]["data"]["id"] == data["id"]

    def test_second_message_reuses_conversation(
        self, client: TestClient, other_user: User, auth_token, other_auth_token, test_user: User
    ) -> None:
        first = send(client, auth_token, other_user.id, "one").json()
        reply = send(client, other_auth_token, test_user.id, "two").json()
        assert first["conversation_id"] == reply["conversation_id"]

    def test_offline_receiver_is_not_an_error(
        self, client: TestClient, other_user: User, auth_token
    ) -> None:
        response = send(client, auth_token, other_user.id, "anyone there?")
        assert response.status_code == status.HTTP_201_CREATED

    def test_empty_message_rejected(self, client: TestClient, other_user: User, auth_token) -> None:
        response = send(client, auth_token, other_user.id, "   ")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_message_to_self_rejected(self, client: TestClient, test_user: User, auth_token) -> None:
        response = send(client, auth_token, test_user.id, "me")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_receiver(self, client: TestClient, auth_token) -> None:
        response = send(client, auth_token, 424242, "hello?")
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Receiver not found"

    def test_blocked_pair_cannot_message(
        self, client: TestClient, test_user: User, other_user: User, auth_token, other_auth_token
    ) -> None:
        client.post("/api/block", json={"user_id": test_user.id}, headers=other_auth_token)

        response = send(client, auth_token, other_user.id, "hello")
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_attachment_only_message(
        self, client: TestClient, other_user: User, auth_token, storage, db_session
    ) -> None:
        response = send(
            client,
            auth_token,
            other_user.id,
            text=None,
            files={"file": ("report.pdf", b"%PDF-1.4 test", "application/pdf")},
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["body"] is None
        assert data["attachment_name"] == "report.pdf"
        assert data["attachment_type"] == "application/pdf"
        assert data["attachment_url"].startswith("/uploads/msg-")

        message = db_session.get(Message, data["id"])
        assert Path(message.attachment_path).exists()

    def test_unsupported_attachment_type(self, client: TestClient, other_user: User, auth_token) -> None:
        response = send(
            client,
            auth_token,
            other_user.id,
            files={"file": ("run.exe", b"MZ", "application/octet-stream")},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_failed_send_removes_attachment(
        self, client: TestClient, test_user: User, other_user: User, auth_token, other_auth_token, storage
    ) -> None:
        client.post("/api/block", json={"user_id": test_user.id}, headers=other_auth_token)

        response = send(
            client,
            auth_token,
            other_user.id,
            files={"file": ("pic.png", b"png-bytes", "image/png")},
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert list(storage.root.glob("*")) == []


class TestHistory:
    def test_history_ascending(
        self, client: TestClient, test_user: User, other_user: User, auth_token, other_auth_token
    ) -> None:
        send(client, auth_token, other_user.id, "first")
        send(client, other_auth_token, test_user.id, "second")
        send(client, auth_token, other_user.id, "third")

        response = client.get(f"/api/message/{other_user.id}", headers=auth_token)

        assert response.status_code == status.HTTP_200_OK
        assert [m["body"] for m in response.json()] == ["first", "second", "third"]

    def test_history_without_conversation_is_empty(
        self, client: TestClient, other_user: User, auth_token
    ) -> None:
        response = client.get(f"/api/message/{other_user.id}", headers=auth_token)
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []


class TestDeliveryStatus:
    """Monotonic status transitions."""

    def test_recipient_advances_status(
        self, client: TestClient, test_user: User, other_user: User, auth_token, other_auth_token, connect
    ) -> None:
        sender_socket = connect(test_user)
        message = send(client, auth_token, other_user.id).json()

        response = client.patch(
            f"/api/message/{message['id']}/status",
            json={"status": "delivered"},
            headers=other_auth_token,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "delivered"
        pushed = sender_socket.events(events.MESSAGE_STATUS_UPDATE)
        assert [p["data"]["status"] for p in pushed] == ["delivered"]
        assert pushed[0]["data"]["message_id"] == message["id"]

    def test_status_cannot_move_backwards(
        self, client: TestClient, other_user: User, auth_token, other_auth_token
    ) -> None:
        message = send(client, auth_token, other_user.id).json()
        client.patch(
            f"/api/message/{message['id']}/status",
            json={"status": "read"},
            headers=other_auth_token,
        )

        response = client.patch(
            f"/api/message/{message['id']}/status",
            json={"status": "delivered"},
            headers=other_auth_token,
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_same_status_is_a_no_op(
        self, client: TestClient, test_user: User, other_user: User, auth_token, other_auth_token, connect
    ) -> None:
        sender_socket = connect(test_user)
        message = send(client, auth_token, other_user.id).json()
        for _ in range(2):
            response = client.patch(
                f"/api/message/{message['id']}/status",
                json={"status": "read"},
                headers=other_auth_token,
            )
            assert response.status_code == status.HTTP_200_OK

        assert len(sender_socket.events(events.MESSAGE_STATUS_UPDATE)) == 1

    def test_sender_cannot_update_own_status(
        self, client: TestClient, other_user: User, auth_token
    ) -> None:
        message = send(client, auth_token, other_user.id).json()
        response = client.patch(
            f"/api/message/{message['id']}/status",
            json={"status": "read"},
            headers=auth_token,
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_outsider_cannot_update_status(
        self, client: TestClient, other_user: User, auth_token, third_auth_token
    ) -> None:
        message = send(client, auth_token, other_user.id).json()
        response = client.patch(
            f"/api/message/{message['id']}/status",
            json={"status": "read"},
            headers=third_auth_token,
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_invalid_status_value(self, client: TestClient, other_user: User, auth_token, other_auth_token) -> None:
        message = send(client, auth_token, other_user.id).json()
        response = client.patch(
            f"/api/message/{message['id']}/status",
            json={"status": "seen"},
            headers=other_auth_token,
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestConversationStatus:
    def test_end_to_end_read_receipts(
        self,
        client: TestClient,
        test_user: User,
        other_user: User,
        auth_token,
        other_auth_token,
        connect,
    ) -> None:
        """A messages B, B marks the conversation read, A hears about every message."""
        sender_socket = connect(test_user)
        receiver_socket = connect(other_user)

        sent = [send(client, auth_token, other_user.id, f"msg {i}").json() for i in range(3)]
        assert all(m["status"] == "sent" for m in sent)
        assert len(receiver_socket.events(events.NEW_MESSAGE)) == 3
        conversation_id = sent[0]["conversation_id"]

        response = client.patch(
            f"/api/conversation/{conversation_id}/status",
            json={"status": "read"},
            headers=other_auth_token,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"conversation_id": conversation_id, "status": "read", "updated": 3}

        updates = sender_socket.events(events.MESSAGE_STATUS_UPDATE)
        assert sorted(u["data"]["message_id"] for u in updates) == sorted(m["id"] for m in sent)
        assert all(u["data"]["status"] == "read" for u in updates)

        history = client.get(f"/api/message/{other_user.id}", headers=auth_token).json()
        assert all(m["status"] == "read" for m in history)

    def test_only_other_party_messages_are_updated(
        self, client: TestClient, test_user: User, other_user: User, auth_token, other_auth_token
    ) -> None:
        mine = send(client, auth_token, other_user.id, "from A").json()
        theirs = send(client, other_auth_token, test_user.id, "from B").json()

        response = client.patch(
            f"/api/conversation/{mine['conversation_id']}/status",
            json={"status": "delivered"},
            headers=other_auth_token,
        )

        assert response.json()["updated"] == 1
        history = {m["id"]: m for m in client.get(f"/api/message/{other_user.id}", headers=auth_token).json()}
        assert history[mine["id"]]["status"] == "delivered"
        assert history[theirs["id"]]["status"] == "sent"

    def test_non_participant_forbidden(
        self, client: TestClient, other_user: User, auth_token, third_auth_token
    ) -> None:
        message = send(client, auth_token, other_user.id).json()
        response = client.patch(
            f"/api/conversation/{message['conversation_id']}/status",
            json={"status": "read"},
            headers=third_auth_token,
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_conversation(self, client: TestClient, auth_token) -> None:
        response = client.patch(
            "/api/conversation/99999/status", json={"status": "read"}, headers=auth_token
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestEditMessage:
    def test_sender_edits(
        self, client: TestClient, other_user: User, auth_token, connect
    ) -> None:
        receiver_socket = connect(other_user)
        message = send(client, auth_token, other_user.id, "typo").json()

        response = client.patch(
            f"/api/message/{message['id']}", json={"message": "fixed"}, headers=auth_token
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["body"] == "fixed"
        assert response.json()["edited"] is True
        pushed = receiver_socket.events(events.MESSAGE_UPDATED)
        assert pushed[0]["data"]["body"] == "fixed"

    def test_only_sender_edits(self, client: TestClient, other_user: User, auth_token, other_auth_token) -> None:
        message = send(client, auth_token, other_user.id).json()
        response = client.patch(
            f"/api/message/{message['id']}", json={"message": "hijack"}, headers=other_auth_token
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_blank_edit_rejected(self, client: TestClient, other_user: User, auth_token) -> None:
        message = send(client, auth_token, other_user.id).json()
        response = client.patch(
            f"/api/message/{message['id']}", json={"message": "   "}, headers=auth_token
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestDeleteMessage:
    """Soft ("me") and hard ("all") deletion."""

    def test_delete_for_me_hides_only_for_actor(
        self,
        client: TestClient,
        test_user: User,
        other_user: User,
        auth_token,
        other_auth_token,
        connect,
    ) -> None:
        actor_socket = connect(other_user)
        sender_socket = connect(test_user)
        message = send(client, auth_token, other_user.id, "keep?").json()

        response = client.request(
            "DELETE",
            f"/api/message/{message['id']}",
            json={"delete_for": "me"},
            headers=other_auth_token,
        )

        assert response.status_code == status.HTTP_200_OK
        assert client.get(f"/api/message/{test_user.id}", headers=other_auth_token).json() == []
        sender_view = client.get(f"/api/message/{other_user.id}", headers=auth_token).json()
        assert [m["id"] for m in sender_view] == [message["id"]]
        assert len(actor_socket.events(events.MESSAGE_DELETED)) == 1
        assert sender_socket.events(events.MESSAGE_DELETED) == []

    def test_delete_for_me_twice_is_idempotent(
        self, client: TestClient, other_user: User, auth_token, db_session
    ) -> None:
        message = send(client, auth_token, other_user.id).json()
        for _ in range(2):
            response = client.request(
                "DELETE", f"/api/message/{message['id']}", json={"delete_for": "me"}, headers=auth_token
            )
            assert response.status_code == status.HTTP_200_OK

        rows = db_session.scalars(select(MessageVisibility)).all()
        assert len(rows) == 1

    def test_delete_defaults_to_me(self, client: TestClient, other_user: User, auth_token, db_session) -> None:
        message = send(client, auth_token, other_user.id).json()
        response = client.delete(f"/api/message/{message['id']}", headers=auth_token)
        assert response.status_code == status.HTTP_200_OK
        assert db_session.get(Message, message["id"]) is not None

    def test_delete_for_all_removes_row_and_file(
        self,
        client: TestClient,
        test_user: User,
        other_user: User,
        auth_token,
        connect,
        db_session,
    ) -> None:
        sender_socket = connect(test_user)
        receiver_socket = connect(other_user)
        message = send(
            client,
            auth_token,
            other_user.id,
            files={"file": ("photo.jpg", b"jpeg-bytes", "image/jpeg")},
        ).json()
        stored = Path(db_session.get(Message, message["id"]).attachment_path)
        assert stored.exists()

        response = client.request(
            "DELETE", f"/api/message/{message['id']}", json={"delete_for": "all"}, headers=auth_token
        )

        assert response.status_code == status.HTTP_200_OK
        db_session.expire_all()
        assert db_session.get(Message, message["id"]) is None
        assert not stored.exists()
        for socket in (sender_socket, receiver_socket):
            deleted = socket.events(events.MESSAGE_DELETED)
            assert deleted[0]["data"] == {
                "message_id": message["id"],
                "conversation_id": message["conversation_id"],
                "group_id": None,
                "delete_for": "all",
            }

    def test_only_sender_deletes_for_all(
        self, client: TestClient, other_user: User, auth_token, other_auth_token
    ) -> None:
        message = send(client, auth_token, other_user.id).json()
        response = client.request(
            "DELETE", f"/api/message/{message['id']}", json={"delete_for": "all"}, headers=other_auth_token
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_delete_missing_message(self, client: TestClient, auth_token) -> None:
        response = client.delete("/api/message/123456", headers=auth_token)
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestInbox:
    def test_inbox_orders_by_activity_with_unread_counts(
        self,
        client: TestClient,
        test_user: User,
        other_user: User,
        third_user: User,
        auth_token,
        other_auth_token,
        third_auth_token,
    ) -> None:
        send(client, other_auth_token, test_user.id, "from bob 1")
        send(client, other_auth_token, test_user.id, "from bob 2")
        send(client, third_auth_token, test_user.id, "from carol")

        response = client.get("/api/conversations", headers=auth_token)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["pagination"] == {"page": 1, "limit": 20, "total": 2, "total_pages": 1}
        first, second = data["conversations"]
        assert first["participant"]["id"] == third_user.id
        assert first["unread_count"] == 1
        assert first["last_message"]["body"] == "from carol"
        assert second["participant"]["id"] == other_user.id
        assert second["unread_count"] == 2

    def test_inbox_pagination(
        self, client: TestClient, test_user: User, other_user: User, third_user: User,
        auth_token,
    ) -> None:
        send(client, auth_token, other_user.id, "to bob")
        send(client, auth_token, third_user.id, "to carol")

        response = client.get("/api/conversations?page=2&limit=1", headers=auth_token)

        data = response.json()
        assert data["pagination"]["total_pages"] == 2
        assert len(data["conversations"]) == 1
        assert data["conversations"][0]["participant"]["id"] == other_user.id
