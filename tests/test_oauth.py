# tests/test_oauth.py
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from agora.backend.exception import AuthenticationError, UpstreamError
from agora.backend.oauth import SCOPES, GoogleOAuthClient


async def test_authorization_url_parameters(oauth, settings):
    url = urlparse(oauth.build_authorization_url())
    params = {key: values[0] for key, values in parse_qs(url.query).items()}

    assert f"{url.scheme}://{url.netloc}{url.path}" == settings.google_auth_url
    assert params["client_id"] == "client-id"
    assert params["redirect_uri"] == "http://frontend.test/sign-in"
    assert params["response_type"] == "code"
    assert params["scope"].split(" ") == SCOPES
    assert params["access_type"] == "offline"
    assert params["prompt"] == "consent"


async def test_exchange_code_for_profile(oauth, google):
    profile = await oauth.exchange_code_for_profile("auth-code")

    assert profile.email == "alice@example.com"
    assert profile.name == "Alice"
    assert profile.provider_id == "google-sub-1"
    assert profile.picture_url == "http://img.test/alice.png"

    token_request, userinfo_request = google["requests"]
    form = parse_qs(token_request.content.decode())
    assert token_request.method == "POST"
    assert form["code"] == ["auth-code"]
    assert form["grant_type"] == ["authorization_code"]
    assert form["redirect_uri"] == ["http://frontend.test/sign-in"]
    assert userinfo_request.headers["Authorization"] == "Bearer google-access-token"


async def test_empty_profile_is_access_denied(oauth, google):
    google["userinfo"] = (200, {"sub": "google-sub-1"})

    with pytest.raises(AuthenticationError):
        await oauth.exchange_code_for_profile("auth-code")


async def test_rejected_userinfo_token_is_access_denied(oauth, google):
    google["userinfo"] = (401, {"error": "invalid_token"})

    with pytest.raises(AuthenticationError):
        await oauth.exchange_code_for_profile("auth-code")


async def test_provider_error_is_upstream_failure(oauth, google):
    google["token"] = (500, {"error": "server_error"})

    with pytest.raises(UpstreamError):
        await oauth.exchange_code_for_profile("auth-code")
    assert len(google["requests"]) == 1


async def test_non_json_token_response_is_upstream_failure(oauth, google):
    google["token"] = (200, "<html>maintenance</html>")

    with pytest.raises(UpstreamError):
        await oauth.exchange_code_for_profile("auth-code")


async def test_non_object_userinfo_is_upstream_failure(oauth, google):
    google["userinfo"] = (200, ["not", "a", "profile"])

    with pytest.raises(UpstreamError):
        await oauth.exchange_code_for_profile("auth-code")


async def test_unreachable_provider_is_upstream_failure(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        oauth = GoogleOAuthClient(settings, client)
        with pytest.raises(UpstreamError):
            await oauth.exchange_code_for_profile("auth-code")
        await oauth.aclose()
        assert not client.is_closed
