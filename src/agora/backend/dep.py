"""Dependency injection functions for FastAPI routes"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Request, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from .exception import InvalidTokenError
from .model import User
from .service import AuthService, ConversationService, MessageService, TokenService
from .store import CredentialStore

logger = logging.getLogger(__name__)

# Missing headers are reported as InvalidTokenError instead of FastAPI's 403
security_scheme = HTTPBearer(auto_error=False)


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get async database session from app state

    The session is committed when the route returns and rolled back when it
    raises, so a failed flow leaves no partial writes.
    """
    async_session_factory = request.app.state.async_session_factory

    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_store(session: AsyncSession = Depends(get_db_session)) -> CredentialStore:
    return CredentialStore(session)


def get_token_service(
    request: Request,
    store: CredentialStore = Depends(get_store),
) -> TokenService:
    return TokenService(request.app.state.settings, store)


def get_auth_service(
    request: Request,
    store: CredentialStore = Depends(get_store),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    state = request.app.state
    return AuthService(
        state.settings,
        store,
        tokens,
        state.mailer,
        oauth=state.oauth,
    )


def get_conversation_service(store: CredentialStore = Depends(get_store)) -> ConversationService:
    return ConversationService(store)


def get_message_service(
    request: Request,
    store: CredentialStore = Depends(get_store),
) -> MessageService:
    state = request.app.state
    return MessageService(store, state.hub, scope=state.settings.broadcast_scope)


def _bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if credentials is None or not credentials.credentials:
        raise InvalidTokenError("Missing bearer token")
    return credentials.credentials


def _payload_user_id(payload: Optional[dict]) -> int:
    if not payload:
        raise InvalidTokenError("Invalid or expired token")
    user_id = payload.get("id")
    if not isinstance(user_id, int):
        raise InvalidTokenError("Invalid token payload")
    return user_id


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    """Authenticated user from the access token in the Authorization header

    Raises:
        InvalidTokenError: Header missing, token invalid/expired, or user gone
    """
    token = _bearer_token(credentials)
    user_id = _payload_user_id(tokens.decode_access_token(token))

    user = await tokens.store.find_user_by_id(user_id)
    if user is None:
        logger.warning(f"Access token for missing user {user_id}")
        raise InvalidTokenError("User not found")
    return user


def get_refresh_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> tuple[int, str]:
    """(user id, raw refresh token) from a refresh token sent as Bearer"""
    token = _bearer_token(credentials)
    user_id = _payload_user_id(tokens.decode_refresh_token(token))
    return user_id, token
