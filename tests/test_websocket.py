# tests/test_websocket.py
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from agora.backend.app import create_app


@pytest.fixture()
def client(settings, mailer):
    app = create_app(settings, mailer=mailer)
    with TestClient(app) as client:
        yield client


def sign_up(client, mailer, email: str) -> tuple[int, str]:
    response = client.post("/api/auth/register", json={
        "name": email.split("@")[0],
        "email": email,
        "password": "secret1",
        "birth": "1999-04-01",
        "gender": "MALE",
    })
    user_id = response.json()["data"]["id"]
    otp = mailer.last("otp")["context"]["otp"]
    response = client.post("/api/auth/verify-otp", json={"email": email, "otp": otp})
    return user_id, response.json()["data"]["access_token"]


def test_create_message_is_broadcast(client, mailer):
    _, alice = sign_up(client, mailer, "alice@example.com")
    bob_id, bob = sign_up(client, mailer, "bob@example.com")
    response = client.post(
        "/api/conversations",
        json={"user_id": bob_id},
        headers={"Authorization": f"Bearer {alice}"},
    )
    conversation_id = response.json()["data"]["id"]

    with client.websocket_connect(f"/ws?token={bob}") as websocket:
        websocket.send_json({
            "type": "createMessage",
            "conversation_id": conversation_id,
            "content": "hello from the socket",
        })
        event = websocket.receive_json()

    assert event["event"] == "newMessage"
    assert event["data"]["content"] == "hello from the socket"
    assert event["data"]["conversation_id"] == conversation_id

    response = client.get(
        f"/api/messages/{conversation_id}", headers={"Authorization": f"Bearer {alice}"}
    )
    assert [m["content"] for m in response.json()["data"]["data"]] == ["hello from the socket"]


def test_errors_are_sent_as_events(client, mailer):
    _, alice = sign_up(client, mailer, "alice@example.com")

    with client.websocket_connect(f"/ws?token={alice}") as websocket:
        websocket.send_json({"type": "join", "conversation_id": 9999})
        event = websocket.receive_json()

    assert event == {"event": "error", "data": {"code": "NOT_FOUND", "message": "Conversation not found"}}


def test_invalid_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws?token=garbage") as websocket:
            websocket.receive_json()

    assert exc_info.value.code == 4401


def test_bad_frames_leave_socket_open(client, mailer):
    _, alice = sign_up(client, mailer, "alice@example.com")
    bob_id, _ = sign_up(client, mailer, "bob@example.com")
    response = client.post(
        "/api/conversations",
        json={"user_id": bob_id},
        headers={"Authorization": f"Bearer {alice}"},
    )
    conversation_id = response.json()["data"]["id"]

    with client.websocket_connect(f"/ws?token={alice}") as websocket:
        websocket.send_text("not json")
        not_json = websocket.receive_json()

        websocket.send_json({
            "type": "createMessage",
            "conversation_id": conversation_id,
            "content": {"text": "nested"},
        })
        wrong_shape = websocket.receive_json()

        websocket.send_json({"type": "join", "conversation_id": 9999})
        still_served = websocket.receive_json()

    assert not_json["event"] == "error"
    assert not_json["data"]["code"] == "VALIDATION_ERROR"
    assert wrong_shape["event"] == "error"
    assert wrong_shape["data"]["code"] == "VALIDATION_ERROR"
    assert still_served["data"]["code"] == "NOT_FOUND"

    response = client.get(
        f"/api/messages/{conversation_id}", headers={"Authorization": f"Bearer {alice}"}
    )
    assert response.json()["data"]["data"] == []
