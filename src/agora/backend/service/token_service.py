"""Token service: signing, verification and refresh-token rotation"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable

from jose import jwt, JWTError, ExpiredSignatureError

from ..config import Settings
from ..exception import ConfigurationError, ExpiredError, InvalidTokenError, NotFoundError
from ..model import utc_now
from ..schema.auth import TokenPair
from ..security import hash_secret, verify_secret
from ..store import CredentialStore

logger = logging.getLogger(__name__)


class TokenService:
    """
    Issues and verifies the three kinds of JWT, each signed with its own secret:

    - access:  payload {id, email}, minutes-scale TTL
    - refresh: payload {id, email}, days-scale TTL; only a hash of the latest
      one is kept on the user, so issuing a new one revokes the previous
    - reset:   payload {email}, TTL equal to the RESET code row

    Every token also carries a random ``jti`` so two tokens minted within the
    same second never compare equal.
    """

    def __init__(
        self,
        settings: Settings,
        store: CredentialStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings
        self.store = store
        self.clock = clock

    # ==================== Signing ====================

    def _sign(self, claims: dict[str, Any], secret: str, expires_at: datetime, kind: str) -> str:
        if not secret:
            raise ConfigurationError(f"{kind} token secret is not configured")

        payload = {
            **claims,
            "jti": uuid.uuid4().hex,
            "iat": int(self.clock().timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, secret, algorithm=self.settings.algorithm)

    def issue_access_token(self, user_id: int, email: str) -> str:
        expires_at = self.clock() + timedelta(minutes=self.settings.access_token_expire_minutes)
        token = self._sign(
            {"id": user_id, "email": email},
            self.settings.access_token_secret,
            expires_at,
            "access",
        )
        logger.debug(f"Issued access token for user {user_id}")
        return token

    def issue_refresh_token(self, user_id: int, email: str) -> str:
        expires_at = self.clock() + timedelta(days=self.settings.refresh_token_expire_days)
        token = self._sign(
            {"id": user_id, "email": email},
            self.settings.refresh_token_secret,
            expires_at,
            "refresh",
        )
        logger.debug(f"Issued refresh token for user {user_id}")
        return token

    def issue_token_pair(self, user_id: int, email: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(user_id, email),
            refresh_token=self.issue_refresh_token(user_id, email),
        )

    def issue_reset_token(self, email: str, expires_at: datetime) -> str:
        return self._sign({"email": email}, self.settings.reset_token_secret, expires_at, "reset")

    # ==================== Decoding ====================

    def _decode(self, token: str, secret: str) -> dict[str, Any] | None:
        if not secret:
            raise ConfigurationError("token secret is not configured")
        try:
            return jwt.decode(token, secret, algorithms=[self.settings.algorithm])
        except JWTError as e:
            logger.debug(f"Failed to decode token: {e}")
            return None

    def decode_access_token(self, token: str) -> dict[str, Any] | None:
        """Payload of a valid access token, None if invalid or expired"""
        return self._decode(token, self.settings.access_token_secret)

    def decode_refresh_token(self, token: str) -> dict[str, Any] | None:
        """Payload of a valid refresh token, None if invalid or expired"""
        return self._decode(token, self.settings.refresh_token_secret)

    def decode_reset_token(self, token: str) -> dict[str, Any]:
        """Payload of a reset token

        Raises:
            ExpiredError: Token signature valid but past its expiry
            InvalidTokenError: Token malformed, badly signed or without email
        """
        if not self.settings.reset_token_secret:
            raise ConfigurationError("reset token secret is not configured")
        try:
            payload = jwt.decode(
                token,
                self.settings.reset_token_secret,
                algorithms=[self.settings.algorithm],
            )
        except ExpiredSignatureError:
            raise ExpiredError("Reset token has expired")
        except JWTError as e:
            logger.debug(f"Failed to decode reset token: {e}")
            raise InvalidTokenError("Invalid reset token")

        if not payload.get("email"):
            raise InvalidTokenError("Invalid reset token")
        return payload

    # ==================== Refresh-token state ====================

    async def rotate_refresh_token(self, user_id: int, refresh_token: str) -> None:
        """Store the hash of ``refresh_token``, invalidating every earlier one"""
        user = await self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")

        await self.store.update_user(user, refresh_token_hash=hash_secret(refresh_token))
        logger.debug(f"Rotated refresh token hash for user {user_id}")

    async def verify_refresh_token(self, user_id: int, refresh_token: str) -> bool:
        """Whether ``refresh_token`` is the latest one issued to the user"""
        user = await self.store.find_user_by_id(user_id)
        if user is None or not user.refresh_token_hash:
            return False
        return verify_secret(refresh_token, user.refresh_token_hash)
