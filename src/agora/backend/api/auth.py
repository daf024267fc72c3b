"""Authentication API endpoints"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from ..dep import get_auth_service, get_current_user, get_refresh_claims
from ..model import User
from ..schema.response import SuccessResponse
from ..schema.auth import (
    RegisterRequest,
    OtpRequest,
    EmailRequest,
    LoginRequest,
    ResetPasswordRequest,
    UserOut,
    TokenPair,
    AuthorizationUrlOut,
)
from ..service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ==================== Type Aliases ====================

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]
RefreshClaimsDep = Annotated[tuple[int, str], Depends(get_refresh_claims)]


@router.post(
    "/register",
    response_model=SuccessResponse[UserOut],
    status_code=status.HTTP_201_CREATED,
    summary="User registration",
    description="""
    Create an unverified account and email a one-time code.

    **Errors:**
    - 409 CONFLICT: Email already registered
    - 500 INTERNAL_ERROR: Failed to send the code (account is not created)
    """
)
async def register(request: RegisterRequest, auth: AuthServiceDep):
    user = await auth.signup(
        email=request.email,
        password=request.password,
        name=request.name,
        birth=request.birth,
        gender=request.gender,
    )
    return SuccessResponse(
        data=UserOut.model_validate(user),
        message=f"Verification code sent to {user.email}",
    )


@router.post(
    "/verify-otp",
    response_model=SuccessResponse[TokenPair],
    summary="Verify email with OTP",
    description="""
    **Errors:**
    - 404 NOT_FOUND: Unknown email or no pending code
    - 410 EXPIRED: Code expired
    - 401 AUTHENTICATION_ERROR: Wrong code
    """
)
async def verify_otp(request: OtpRequest, auth: AuthServiceDep):
    tokens = await auth.verify_otp(request.email, request.otp)
    return SuccessResponse(data=tokens, message="Email verified")


@router.post(
    "/resend-otp",
    response_model=SuccessResponse[None],
    summary="Resend verification code",
)
async def resend_otp(request: EmailRequest, auth: AuthServiceDep):
    await auth.resend_otp(request.email)
    return SuccessResponse(data=None, message=f"Verification code sent to {request.email}")


@router.post(
    "/login",
    response_model=SuccessResponse[TokenPair],
    summary="User login",
    description="""
    **Errors:**
    - 404 NOT_FOUND: No password account for this email
    - 401 EMAIL_NOT_VERIFIED: Email not verified yet
    - 401 AUTHENTICATION_ERROR: Wrong password
    """
)
async def login(request: LoginRequest, auth: AuthServiceDep):
    tokens = await auth.login(request.email, request.password)
    return SuccessResponse(data=tokens, message=None)


@router.post(
    "/refresh",
    response_model=SuccessResponse[TokenPair],
    summary="Rotate tokens",
    description="""
    Send the refresh token as `Authorization: Bearer <refresh token>`.
    Only the most recently issued refresh token is accepted.

    **Errors:**
    - 401 INVALID_TOKEN: Missing, malformed or expired refresh token
    - 403 FORBIDDEN: Token is not the latest one for the user
    """
)
async def refresh(claims: RefreshClaimsDep, auth: AuthServiceDep):
    user_id, refresh_token = claims
    tokens = await auth.refresh(user_id, refresh_token)
    return SuccessResponse(data=tokens, message=None)


@router.post(
    "/verify-email",
    response_model=SuccessResponse[None],
    summary="Request password reset",
    description="Email a password reset link to a password account.",
)
async def request_password_reset(request: EmailRequest, auth: AuthServiceDep):
    await auth.request_password_reset(request.email)
    return SuccessResponse(data=None, message="Reset link sent")


@router.post(
    "/reset-password",
    response_model=SuccessResponse[TokenPair],
    summary="Reset password",
    description="""
    **Errors:**
    - 401 INVALID_TOKEN: Bad reset token
    - 410 EXPIRED: Reset token expired
    - 404 NOT_FOUND: Reset already used or superseded
    - 400 VALIDATION_ERROR: Passwords differ
    """
)
async def reset_password(request: ResetPasswordRequest, auth: AuthServiceDep):
    tokens = await auth.reset_password(
        request.reset_token,
        request.new_password,
        request.confirm_new_password,
    )
    return SuccessResponse(data=tokens, message="Password updated")


@router.get(
    "/google",
    response_model=SuccessResponse[AuthorizationUrlOut],
    summary="Google consent URL",
)
async def google_authorization_url(auth: AuthServiceDep):
    return SuccessResponse(data=AuthorizationUrlOut(url=auth.build_oauth_url()), message=None)


@router.get(
    "/google/callback",
    response_model=SuccessResponse[TokenPair],
    summary="Google sign-in",
    description="Exchange the authorization code returned by Google for a token pair.",
)
async def google_callback(auth: AuthServiceDep, code: str = Query(..., min_length=1)):
    tokens = await auth.oauth_callback(code)
    return SuccessResponse(data=tokens, message=None)


@router.get(
    "/me",
    response_model=SuccessResponse[UserOut],
    summary="Get current user info",
)
async def get_current_user_info(current_user: CurrentUserDep):
    return SuccessResponse(data=UserOut.model_validate(current_user), message=None)
