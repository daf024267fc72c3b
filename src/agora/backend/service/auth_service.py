"""Authentication service: signup, verification, login, refresh and password reset"""
import logging
import secrets
import string
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from ..config import Settings
from ..enums import CodeKind, Gender
from ..exception import (
    AuthenticationError,
    ConflictError,
    EmailNotVerifiedError,
    ExpiredError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from ..mail import MailTransport
from ..model import User, utc_now
from ..oauth import GoogleOAuthClient
from ..schema.auth import TokenPair
from ..security import hash_secret, verify_secret
from ..store import CredentialStore
from .token_service import TokenService

logger = logging.getLogger(__name__)


class AuthService:
    """
    Per-user authentication state machine.

    States: unregistered -> pending verification -> verified. Every flow
    that signs the user in (OTP verification, login, refresh, password
    reset, OAuth) issues a fresh token pair and then rotates the stored
    refresh hash, so a user has one live session at a time.

    Mail failures are converted to InternalError here; any other
    infrastructure error propagates unchanged. Nothing is retried.
    """

    def __init__(
        self,
        settings: Settings,
        store: CredentialStore,
        tokens: TokenService,
        mailer: MailTransport,
        oauth: Optional[GoogleOAuthClient] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings
        self.store = store
        self.tokens = tokens
        self.mailer = mailer
        self.oauth = oauth
        self.clock = clock

    # ==================== Helpers ====================

    def _generate_otp(self) -> str:
        return "".join(
            secrets.choice(string.digits)
            for _ in range(self.settings.otp_length)
        )

    async def _sign_in(self, user: User) -> TokenPair:
        """Issue a token pair, then make its refresh token the only valid one"""
        pair = self.tokens.issue_token_pair(user.id, user.email)
        await self.tokens.rotate_refresh_token(user.id, pair.refresh_token)
        return pair

    async def _send_mail(self, to: str, subject: str, template_id: str, context: dict) -> None:
        try:
            await self.mailer.send_templated_mail(to, subject, template_id, context)
        except Exception as e:
            logger.exception(f"Failed to send '{template_id}' mail to {to}")
            raise InternalError("Failed to send email") from e

    async def _issue_otp(self, user: User) -> None:
        """Replace any pending OTP of the user with a new one and mail it"""
        otp = self._generate_otp()
        expires_at = self.clock() + timedelta(minutes=self.settings.otp_expire_minutes)

        await self.store.delete_codes_by_user_and_kind(user.id, CodeKind.OTP)
        await self.store.create_code(user.id, CodeKind.OTP, hash_secret(otp), expires_at)
        logger.debug(f"OTP for user {user.id} expires at {expires_at}")

        await self._send_mail(
            user.email,
            "Verify your email",
            "otp",
            {
                "name": user.name,
                "otp": otp,
                "expire_minutes": self.settings.otp_expire_minutes,
            },
        )

    async def _get_user_by_email(self, email: str) -> User:
        user = await self.store.find_user_by_email(email)
        if user is None:
            logger.warning(f"Account not found: {email}")
            raise NotFoundError("Account not found")
        return user

    # ==================== Signup & verification ====================

    async def signup(
        self,
        email: str,
        password: str,
        name: str,
        birth: Optional[date] = None,
        gender: Optional[Gender] = None,
    ) -> User:
        """Create an unverified account and mail it an OTP

        Raises:
            ConflictError: Email already registered (nothing is written)
            InternalError: OTP mail could not be sent
        """
        logger.info(f"Processing signup for {email}")

        if await self.store.find_user_by_email(email) is not None:
            logger.warning(f"Email already registered: {email}")
            raise ConflictError("This email has been used")

        user = await self.store.create_user(
            email=email,
            hashed_password=hash_secret(password),
            name=name,
            birth=birth,
            gender=gender,
            is_verified=False,
        )
        await self._issue_otp(user)

        logger.info(f"User signed up: {email} (id={user.id})")
        return user

    async def verify_otp(self, email: str, otp: str) -> TokenPair:
        """Confirm the email with the latest OTP and sign the user in

        Raises:
            NotFoundError: Unknown email or no pending OTP
            ExpiredError: OTP past its expiry
            AuthenticationError: OTP does not match
        """
        user = await self._get_user_by_email(email)

        code = await self.store.find_code_by_user(user.id, CodeKind.OTP)
        if code is None:
            logger.warning(f"No pending OTP for user {user.id}")
            raise NotFoundError("Verification code not found")

        if code.is_expired(self.clock()):
            logger.warning(f"Expired OTP for user {user.id}")
            raise ExpiredError("Verification code has expired")

        if not verify_secret(otp, code.code):
            logger.warning(f"Invalid OTP for user {user.id}")
            raise AuthenticationError("Invalid verification code")

        await self.store.update_user(user, is_verified=True)
        await self.store.delete_codes_by_user_and_kind(user.id, CodeKind.OTP)

        logger.info(f"Email verified for user {user.id}")
        return await self._sign_in(user)

    async def resend_otp(self, email: str) -> None:
        """Mail a fresh OTP to a pending account

        Raises:
            NotFoundError: Unknown email
            ConflictError: Email already verified
            InternalError: OTP mail could not be sent
        """
        user = await self._get_user_by_email(email)
        if user.is_verified:
            raise ConflictError("Email is already verified")

        await self._issue_otp(user)
        logger.info(f"OTP resent to user {user.id}")

    # ==================== Login & refresh ====================

    async def login(self, email: str, password: str) -> TokenPair:
        """Password login

        Raises:
            NotFoundError: Unknown email, or OAuth-only account without password
            EmailNotVerifiedError: Email not verified yet (checked before the password)
            AuthenticationError: Wrong password
        """
        logger.info(f"Login attempt for: {email}")

        user = await self.store.find_user_by_email(email)
        if user is None or user.is_oauth_only:
            logger.warning(f"No password account for: {email}")
            raise NotFoundError("Account not found")

        if not user.is_verified:
            logger.warning(f"Login before verification: {email}")
            raise EmailNotVerifiedError("Please verify your email first")

        if not verify_secret(password, user.hashed_password):
            logger.warning(f"Invalid password for user {user.id}")
            raise AuthenticationError("Incorrect password")

        pair = await self._sign_in(user)
        logger.info(f"User logged in: {email} (id={user.id})")
        return pair

    async def refresh(self, user_id: int, refresh_token: str) -> TokenPair:
        """Trade the current refresh token for a new pair

        Raises:
            ForbiddenError: Unknown user, no stored hash, or token is not the latest
        """
        user = await self.store.find_user_by_id(user_id)
        if user is None or not user.refresh_token_hash:
            logger.warning(f"Refresh denied, no session for user {user_id}")
            raise ForbiddenError("Access denied")

        if not await self.tokens.verify_refresh_token(user_id, refresh_token):
            logger.warning(f"Refresh token mismatch for user {user_id}")
            raise ForbiddenError("Refresh token does not match")

        return await self._sign_in(user)

    # ==================== Password reset ====================

    async def request_password_reset(self, email: str) -> None:
        """Mail a reset link carrying a signed reset token

        The RESET row stores the token itself with the same expiry as the JWT.

        Raises:
            NotFoundError: Unknown email or account without password
            InternalError: Mail could not be sent
        """
        user = await self.store.find_user_by_email(email)
        if user is None or user.is_oauth_only:
            logger.warning(f"Reset requested for unknown or OAuth-only account: {email}")
            raise NotFoundError("Email not found")

        expires_at = self.clock() + timedelta(minutes=self.settings.reset_token_expire_minutes)
        reset_token = self.tokens.issue_reset_token(user.email, expires_at)

        await self.store.delete_codes_by_user_and_kind(user.id, CodeKind.RESET)
        await self.store.create_code(user.id, CodeKind.RESET, reset_token, expires_at)

        url = f"{self.settings.frontend_origin.rstrip('/')}/confirm?reset-token={reset_token}"
        await self._send_mail(
            user.email,
            "Reset your password",
            "reset_password",
            {
                "name": user.name,
                "url": url,
                "expire_minutes": self.settings.reset_token_expire_minutes,
            },
        )
        logger.info(f"Password reset requested for user {user.id}")

    async def reset_password(
        self,
        reset_token: str,
        new_password: str,
        confirm_new_password: str,
    ) -> TokenPair:
        """Set a new password with a reset token and sign the user in

        Raises:
            InvalidTokenError: Token malformed or badly signed
            ExpiredError: Token or RESET row past expiry
            AuthenticationError: Token names an unknown account
            NotFoundError: No matching RESET row (already used or superseded)
            ValidationError: Passwords differ
        """
        payload = self.tokens.decode_reset_token(reset_token)

        user = await self.store.find_user_by_email(payload["email"])
        if user is None:
            raise AuthenticationError("Account not found for reset token")

        code = await self.store.find_code_by_user(user.id, CodeKind.RESET)
        if code is None or code.code != reset_token:
            logger.warning(f"No matching reset code for user {user.id}")
            raise NotFoundError("Reset request not found")

        if code.is_expired(self.clock()):
            raise ExpiredError("Reset token has expired")

        if new_password != confirm_new_password:
            raise ValidationError("Password does not match")

        await self.store.update_user(
            user,
            hashed_password=hash_secret(new_password),
            is_verified=True,
        )
        await self.store.delete_codes_by_user_and_kind(user.id, CodeKind.RESET)

        logger.info(f"Password reset for user {user.id}")
        return await self._sign_in(user)

    # ==================== OAuth ====================

    def build_oauth_url(self) -> str:
        return self._require_oauth().build_authorization_url()

    async def oauth_callback(self, code: str) -> TokenPair:
        """Sign in with a provider authorization code

        Existing accounts are matched by email and linked to the provider id
        if not linked yet; unknown emails get a new verified, password-less
        account.

        Raises:
            AuthenticationError: Provider denied access
            ConflictError: Provider account already linked to another user
            UpstreamError: Provider failure
        """
        profile = await self._require_oauth().exchange_code_for_profile(code)

        user = await self.store.find_user_by_email(profile.email)
        linked = await self.store.find_user_by_provider_id(profile.provider_id)
        if linked is not None and (user is None or linked.id != user.id):
            logger.warning(
                f"Google account {profile.provider_id} already linked to user {linked.id}"
            )
            raise ConflictError("This Google account is linked to another user")

        if user is None:
            user = await self.store.create_user(
                email=profile.email,
                name=profile.name,
                profile_image=profile.picture_url,
                provider_id=profile.provider_id,
                is_verified=True,
            )
            logger.info(f"Created OAuth account {profile.email} (id={user.id})")
        elif not user.provider_id:
            await self.store.update_user(user, provider_id=profile.provider_id)
            logger.info(f"Linked provider id to user {user.id}")

        return await self._sign_in(user)

    def _require_oauth(self) -> GoogleOAuthClient:
        if self.oauth is None:
            raise InternalError("OAuth login is not available")
        return self.oauth
