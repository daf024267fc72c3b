# tests/conftest.py
import httpx
import pytest

from agora.backend.config import Settings
from agora.backend.database import create_engine, create_session_factory, create_db_and_tables
from agora.backend.oauth import GoogleOAuthClient
from agora.backend.security import configure_hashing
from agora.backend.service import AuthService, ConversationService, MessageService, TokenService
from agora.backend.store import CredentialStore
from agora.backend.websocket import BroadcastHub
from tests.helpers import FakeClock, FakeMailer


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def settings() -> Settings:
    settings = Settings(
        database_url="sqlite+aiosqlite://",
        access_token_secret="access-secret-for-tests",
        refresh_token_secret="refresh-secret-for-tests",
        reset_token_secret="reset-secret-for-tests",
        frontend_origin="http://frontend.test",
        google_client_id="client-id",
        google_client_secret="client-secret",
        smtp_user="",
        smtp_password="",
        bcrypt_rounds=4,
    )
    # cheap hashing for every test
    configure_hashing(settings)
    return settings


@pytest.fixture()
async def engine(settings):
    engine = create_engine(settings.database_url)
    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def session(engine):
    async_session_factory = create_session_factory(engine)
    async with async_session_factory() as session:
        yield session


@pytest.fixture()
def store(session) -> CredentialStore:
    return CredentialStore(session)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture()
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture()
def google():
    """
    Canned Google endpoints.

    Tests change ``google["token"]`` / ``google["userinfo"]`` to
    ``(status, json)`` tuples (a str body is sent as raw text); ``google["requests"]`` records every call.
    """
    state = {
        "token": (200, {"access_token": "google-access-token"}),
        "userinfo": (
            200,
            {
                "sub": "google-sub-1",
                "email": "alice@example.com",
                "name": "Alice",
                "picture": "http://img.test/alice.png",
            },
        ),
        "requests": [],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        key = "token" if request.url.path.endswith("/token") else "userinfo"
        status, body = state[key]
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    state["transport"] = httpx.MockTransport(handler)
    return state


@pytest.fixture()
async def oauth(settings, google):
    client = httpx.AsyncClient(transport=google["transport"])
    yield GoogleOAuthClient(settings, client)
    await client.aclose()


@pytest.fixture()
def tokens(settings, store, clock) -> TokenService:
    return TokenService(settings, store, clock=clock)


@pytest.fixture()
def auth(settings, store, tokens, mailer, oauth, clock) -> AuthService:
    return AuthService(settings, store, tokens, mailer, oauth=oauth, clock=clock)


@pytest.fixture()
def conversations(store) -> ConversationService:
    return ConversationService(store)


@pytest.fixture()
def messages(store, hub) -> MessageService:
    return MessageService(store, hub)


@pytest.fixture()
def make_user(store):
    """Create a verified password user directly in the store"""
    from agora.backend.security import hash_secret

    async def _make_user(email: str, password: str = "secret1", name: str = "", **fields):
        fields.setdefault("is_verified", True)
        return await store.create_user(
            email=email,
            hashed_password=hash_secret(password),
            name=name or email.split("@")[0],
            **fields,
        )

    return _make_user
