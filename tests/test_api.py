# tests/test_api.py
import httpx
import pytest

from agora.backend.app import create_app
from agora.backend.database import create_db_and_tables


@pytest.fixture()
async def client(settings, mailer, google):
    oauth_http_client = httpx.AsyncClient(transport=google["transport"])
    app = create_app(settings, mailer=mailer, oauth_http_client=oauth_http_client)
    # ASGITransport does not run the lifespan
    await create_db_and_tables(app.state.engine)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await oauth_http_client.aclose()
    await app.state.engine.dispose()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def sign_up(client, mailer, email: str, name: str = "Alice") -> tuple[int, dict]:
    """Register and verify an account, returning (user id, token pair)"""
    response = await client.post("/api/auth/register", json={
        "name": name,
        "email": email,
        "password": "secret1",
        "birth": "1999-04-01",
        "gender": "FEMALE",
    })
    assert response.status_code == 201, response.text
    user_id = response.json()["data"]["id"]

    otp = mailer.last("otp")["context"]["otp"]
    response = await client.post("/api/auth/verify-otp", json={"email": email, "otp": otp})
    assert response.status_code == 200, response.text
    return user_id, response.json()["data"]


# ----------------------------------- Auth ----------------------------------- #
async def test_register_verify_and_me(client, mailer):
    user_id, pair = await sign_up(client, mailer, "alice@example.com")

    response = await client.get("/api/auth/me", headers=bearer(pair["access_token"]))

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["data"]["id"] == user_id
    assert body["data"]["is_verified"] is True
    assert "hashed_password" not in body["data"]


async def test_error_envelope_and_status(client, mailer):
    await sign_up(client, mailer, "alice@example.com")

    response = await client.post("/api/auth/register", json={
        "name": "Again",
        "email": "alice@example.com",
        "password": "secret1",
        "birth": "1999-04-01",
        "gender": "MALE",
    })
    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "message": "This email has been used",
        "data": None,
        "error": {"code": "CONFLICT"},
    }

    response = await client.post(
        "/api/auth/login", json={"email": "alice@example.com", "password": "wrong-one"}
    )
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"

    response = await client.post(
        "/api/auth/login", json={"email": "nobody@example.com", "password": "secret1"}
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


async def test_unverified_login(client):
    await client.post("/api/auth/register", json={
        "name": "Alice",
        "email": "alice@example.com",
        "password": "secret1",
        "birth": "1999-04-01",
        "gender": "FEMALE",
    })

    response = await client.post(
        "/api/auth/login", json={"email": "alice@example.com", "password": "secret1"}
    )

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "EMAIL_NOT_VERIFIED"


async def test_request_validation_error(client):
    response = await client.post("/api/auth/login", json={"email": "not-an-email"})

    body = response.json()
    assert response.status_code == 422
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["details"]


async def test_failed_mail_rolls_back_signup(client, mailer):
    payload = {
        "name": "Alice",
        "email": "alice@example.com",
        "password": "secret1",
        "birth": "1999-04-01",
        "gender": "FEMALE",
    }
    mailer.fail = True
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 500
    assert response.json()["error"]["code"] == "INTERNAL_ERROR"

    mailer.fail = False
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 201


async def test_refresh_rotation(client, mailer):
    _, pair = await sign_up(client, mailer, "alice@example.com")

    response = await client.post("/api/auth/refresh", headers=bearer(pair["refresh_token"]))
    assert response.status_code == 200
    rotated = response.json()["data"]

    response = await client.post("/api/auth/refresh", headers=bearer(pair["refresh_token"]))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"

    response = await client.post("/api/auth/refresh", headers=bearer(rotated["refresh_token"]))
    assert response.status_code == 200


async def test_missing_or_wrong_kind_of_token(client, mailer):
    _, pair = await sign_up(client, mailer, "alice@example.com")

    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_TOKEN"

    response = await client.get("/api/auth/me", headers=bearer(pair["refresh_token"]))
    assert response.status_code == 401

    response = await client.post("/api/auth/refresh", headers=bearer(pair["access_token"]))
    assert response.status_code == 401


async def test_password_reset_endpoints(client, mailer):
    await sign_up(client, mailer, "alice@example.com")

    response = await client.post("/api/auth/verify-email", json={"email": "alice@example.com"})
    assert response.status_code == 200
    assert response.json()["message"] == "Reset link sent"
    token = mailer.last("reset_password")["context"]["url"].split("reset-token=", 1)[1]

    response = await client.post("/api/auth/reset-password", json={
        "reset_token": token,
        "new_password": "newpass1",
        "confirm_new_password": "newpass2",
    })
    assert response.status_code == 400

    response = await client.post("/api/auth/reset-password", json={
        "reset_token": token,
        "new_password": "newpass1",
        "confirm_new_password": "newpass1",
    })
    assert response.status_code == 200

    response = await client.post(
        "/api/auth/login", json={"email": "alice@example.com", "password": "newpass1"}
    )
    assert response.status_code == 200


async def test_google_endpoints(client, google):
    response = await client.get("/api/auth/google")
    assert response.status_code == 200
    assert "access_type=offline" in response.json()["data"]["url"]

    response = await client.get("/api/auth/google/callback", params={"code": "auth-code"})
    assert response.status_code == 200
    pair = response.json()["data"]

    response = await client.get("/api/auth/me", headers=bearer(pair["access_token"]))
    assert response.json()["data"]["email"] == "alice@example.com"

    google["token"] = (503, {})
    response = await client.get("/api/auth/google/callback", params={"code": "auth-code"})
    assert response.status_code == 502
    assert response.json()["error"]["code"] == "UPSTREAM_FAILURE"


# ------------------------- Conversations & messages ------------------------- #
async def test_conversation_and_message_endpoints(client, mailer):
    alice_id, alice = await sign_up(client, mailer, "alice@example.com", "Alice")
    bob_id, bob = await sign_up(client, mailer, "bob@example.com", "Bob")

    response = await client.post(
        "/api/conversations", json={"user_id": bob_id}, headers=bearer(alice["access_token"])
    )
    assert response.status_code == 200
    conversation = response.json()["data"]
    assert sorted(conversation["participant_ids"]) == sorted([alice_id, bob_id])

    response = await client.post(
        "/api/conversations", json={"user_id": alice_id}, headers=bearer(bob["access_token"])
    )
    assert response.json()["data"]["id"] == conversation["id"]

    response = await client.post(
        "/api/messages",
        json={"conversation_id": conversation["id"], "content": "hello bob"},
        headers=bearer(alice["access_token"]),
    )
    assert response.status_code == 200
    message = response.json()["data"]
    assert message["sender"]["name"] == "Alice"

    response = await client.get(
        f"/api/messages/{conversation['id']}", headers=bearer(bob["access_token"])
    )
    page = response.json()["data"]
    assert [m["content"] for m in page["data"]] == ["hello bob"]
    assert page["next_cursor"] is None

    response = await client.get("/api/conversations", headers=bearer(bob["access_token"]))
    assert [c["id"] for c in response.json()["data"]] == [conversation["id"]]

    response = await client.request(
        "DELETE",
        "/api/messages",
        json={"message_id": message["id"], "conversation_id": conversation["id"]},
        headers=bearer(alice["access_token"]),
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Message deleted"

    response = await client.request(
        "DELETE",
        "/api/messages",
        json={"conversation_id": conversation["id"]},
        headers=bearer(alice["access_token"]),
    )
    assert response.status_code == 400

    response = await client.delete(
        f"/api/conversations/{conversation['id']}", headers=bearer(bob["access_token"])
    )
    assert response.status_code == 200

    response = await client.get(
        f"/api/conversations/{conversation['id']}", headers=bearer(bob["access_token"])
    )
    assert response.status_code == 404


async def test_conversation_with_self(client, mailer):
    alice_id, alice = await sign_up(client, mailer, "alice@example.com")

    response = await client.post(
        "/api/conversations", json={"user_id": alice_id}, headers=bearer(alice["access_token"])
    )

    assert response.status_code == 403


async def test_outsider_cannot_read_or_delete(client, mailer):
    alice_id, alice = await sign_up(client, mailer, "alice@example.com", "Alice")
    bob_id, _ = await sign_up(client, mailer, "bob@example.com", "Bob")
    _, eve = await sign_up(client, mailer, "eve@example.com", "Eve")

    response = await client.post(
        "/api/conversations", json={"user_id": bob_id}, headers=bearer(alice["access_token"])
    )
    conversation = response.json()["data"]
    response = await client.post(
        "/api/messages",
        json={"conversation_id": conversation["id"], "content": "for bob only"},
        headers=bearer(alice["access_token"]),
    )
    message = response.json()["data"]

    response = await client.get(
        f"/api/messages/{conversation['id']}", headers=bearer(eve["access_token"])
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"

    response = await client.get(
        f"/api/conversations/{conversation['id']}", headers=bearer(eve["access_token"])
    )
    assert response.status_code == 403

    response = await client.request(
        "DELETE",
        "/api/messages",
        json={"message_id": message["id"], "conversation_id": conversation["id"]},
        headers=bearer(eve["access_token"]),
    )
    assert response.status_code == 403

    response = await client.get(
        f"/api/messages/{conversation['id']}", headers=bearer(alice["access_token"])
    )
    assert [m["content"] for m in response.json()["data"]["data"]] == ["for bob only"]


async def test_app_settings_drive_hashing_cost(settings, mailer):
    from agora.backend.security import configure_hashing, hash_secret

    app = create_app(settings.model_copy(update={"bcrypt_rounds": 5}), mailer=mailer)
    try:
        assert hash_secret("secret1").startswith("$2b$05$")
    finally:
        configure_hashing(settings)
        await app.state.oauth.aclose()
        await app.state.engine.dispose()
