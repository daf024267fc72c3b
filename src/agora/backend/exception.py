"""Custom exceptions for Agora application"""


class AgoraException(Exception):
    """Base exception for all Agora business errors

    The global exception handler catches this and returns an ErrorResponse
    with ``status_code`` as the HTTP status.

    Attributes:
        message: Human-readable error message
        code: Error code for client-side error handling
        status_code: HTTP status the error maps to
    """

    def __init__(self, message: str, code: str, status_code: int = 400):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class ConflictError(AgoraException):
    """Resource conflict error

    Examples:
        - Email already registered
        - Email already verified
    """

    def __init__(self, message: str = "Resource conflict"):
        super().__init__(message, "CONFLICT", 409)


class AuthenticationError(AgoraException):
    """Authentication error (missing or invalid credentials)

    Examples:
        - Wrong password
        - Wrong OTP
        - Provider refused access
    """

    def __init__(self, message: str = "Authentication failed", code: str = "AUTHENTICATION_ERROR"):
        super().__init__(message, code, 401)


class EmailNotVerifiedError(AuthenticationError):
    """Password login attempted before the email was verified"""

    def __init__(self, message: str = "Email is not verified"):
        super().__init__(message, "EMAIL_NOT_VERIFIED")


class InvalidTokenError(AuthenticationError):
    """Missing, malformed, badly signed or expired bearer token"""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message, "INVALID_TOKEN")


class ForbiddenError(AgoraException):
    """Permission denied error

    Examples:
        - Refresh token does not match the stored one
        - Deleting a conversation the user is not part of
        - Starting a conversation with oneself
    """

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, "FORBIDDEN", 403)


class NotFoundError(AgoraException):
    """Resource not found error

    Examples:
        - User, conversation or message not found
        - No pending verification code
    """

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, "NOT_FOUND", 404)


class ExpiredError(AgoraException):
    """A one-time code or reset token is past its expiry"""

    def __init__(self, message: str = "Code has expired"):
        super().__init__(message, "EXPIRED", 410)


class ValidationError(AgoraException):
    """Validation error

    Examples:
        - New password and its confirmation differ
        - Required identifier missing
    """

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, "VALIDATION_ERROR", 400)


class UpstreamError(AgoraException):
    """External provider (OAuth) failed or answered with an error"""

    def __init__(self, message: str = "Upstream service failed"):
        super().__init__(message, "UPSTREAM_FAILURE", 502)


class InternalError(AgoraException):
    """Generic server error hiding infrastructure details

    Examples:
        - Failed to send email
    """

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, "INTERNAL_ERROR", 500)


class ConfigurationError(Exception):
    """Server misconfiguration (e.g. signing secret unset)

    Not an AgoraException: it is never shown to clients as a business error.
    """
