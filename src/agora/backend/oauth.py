"""Google OAuth code exchange"""
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from .config import Settings
from .exception import AuthenticationError, UpstreamError

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
]


@dataclass
class OAuthProfile:
    """Identity returned by the provider"""

    email: str
    name: str
    picture_url: Optional[str]
    provider_id: str


class GoogleOAuthClient:
    """
    Exchanges authorization codes for a Google profile.

    Flow:
    1. Frontend redirects the browser to ``build_authorization_url()``
    2. Google redirects back to ``{frontend_origin}/sign-in?code=...``
    3. ``exchange_code_for_profile(code)`` trades the code for an access
       token, then fetches the userinfo document with it

    The httpx client is owned by the caller when passed in; otherwise one is
    created and closed by ``aclose()``.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.oauth_timeout_seconds)

    @property
    def redirect_uri(self) -> str:
        return f"{self.settings.frontend_origin.rstrip('/')}/sign-in"

    def build_authorization_url(self) -> str:
        """Consent URL: profile+email scopes, offline access, forced consent screen"""
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{self.settings.google_auth_url}?{urlencode(params)}"

    async def exchange_code_for_profile(self, code: str) -> OAuthProfile:
        """Exchange an authorization code and fetch the user's profile

        Raises:
            AuthenticationError: Provider returned no usable profile (access denied)
            UpstreamError: Provider unreachable or answered with an error
        """
        access_token = await self._exchange_code(code)
        data = await self._fetch_userinfo(access_token)

        if not data or not data.get("email") or not data.get("sub"):
            logger.warning("OAuth provider returned an empty profile")
            raise AuthenticationError("Access denied")

        return OAuthProfile(
            email=data["email"],
            name=data.get("name") or "",
            picture_url=data.get("picture"),
            provider_id=str(data["sub"]),
        )

    async def _exchange_code(self, code: str) -> str:
        form = {
            "code": code,
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            response = await self.client.post(self.settings.google_token_url, data=form)
        except httpx.RequestError as e:
            logger.error(f"OAuth token exchange request failed: {e}")
            raise UpstreamError("OAuth provider unreachable") from e

        if response.status_code >= 400:
            logger.warning(f"OAuth token exchange rejected: HTTP {response.status_code}")
            raise UpstreamError("OAuth code exchange failed")

        access_token = _json_body(response).get("access_token")
        if not access_token:
            raise UpstreamError("OAuth provider returned no access token")
        return access_token

    async def _fetch_userinfo(self, access_token: str) -> dict:
        try:
            response = await self.client.get(
                self.settings.google_userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.RequestError as e:
            logger.error(f"OAuth profile request failed: {e}")
            raise UpstreamError("OAuth provider unreachable") from e

        if response.status_code == 401:
            raise AuthenticationError("Access denied")
        if response.status_code >= 400:
            logger.warning(f"OAuth profile fetch failed: HTTP {response.status_code}")
            raise UpstreamError("OAuth profile fetch failed")

        return _json_body(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def _json_body(response: httpx.Response) -> dict:
    """Provider response as a JSON object

    Raises:
        UpstreamError: Body is not a JSON object
    """
    try:
        data = response.json()
    except ValueError as e:
        logger.warning(f"OAuth provider returned a non-JSON body from {response.url}")
        raise UpstreamError("OAuth provider returned an invalid response") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise UpstreamError("OAuth provider returned an invalid response")
    return data
