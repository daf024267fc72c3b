"""Security utilities for one-way hashing

Passwords, OTP codes and refresh tokens are all stored as bcrypt hashes.
"""

import hashlib
import logging

from passlib.context import CryptContext

from .config import Settings, settings

logger = logging.getLogger(__name__)

# Hash context shared by passwords, OTPs and refresh tokens; the cost starts
# from the global settings and is reset by configure_hashing()
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def configure_hashing(app_settings: Settings) -> None:
    """Apply the bcrypt cost of ``app_settings`` to new hashes

    Existing hashes keep verifying whatever cost they were made with.
    """
    pwd_context.update(bcrypt__rounds=app_settings.bcrypt_rounds)
    logger.debug(f"bcrypt rounds set to {app_settings.bcrypt_rounds}")


def _normalize_secret(secret: str) -> bytes:
    """Normalize a secret to handle bcrypt's 72-byte limitation

    Refresh tokens are JWTs well over 72 bytes; bcrypt would silently compare
    only their (shared) header prefix. SHA256 first keeps every byte significant.

    Args:
        secret: Plain text secret

    Returns:
        64 hex chars suitable for bcrypt
    """
    return hashlib.sha256(secret.encode("utf-8")).hexdigest().encode("utf-8")


def hash_secret(secret: str) -> str:
    """Hash a password, OTP or token

    Args:
        secret: Plain text secret

    Returns:
        Hashed secret string
    """
    return pwd_context.hash(_normalize_secret(secret))


def verify_secret(plain: str, hashed: str | None) -> bool:
    """Check a plain secret against a stored hash

    Args:
        plain: Plain text secret
        hashed: Stored hash, may be None

    Returns:
        True if it matches, False otherwise (including a missing hash)
    """
    if not hashed:
        return False
    try:
        return pwd_context.verify(_normalize_secret(plain), hashed)
    except ValueError:
        logger.warning("Stored hash is malformed, treating as mismatch")
        return False
