"""Security utilities for JWT and password handling."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from identity_api.config import settings
from identity_api.core.constants import SESSION_TIMEOUT

# Password and OTP hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def create_access_token(
    data: dict[str, Any],
    expires_at: datetime | None = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Payload data to encode
        expires_at: Optional absolute expiry, defaults to the session timeout

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    now = utc_now()

    to_encode.update(
        {
            "exp": expires_at or now + SESSION_TIMEOUT,
            "iat": now,
        }
    )

    return jwt.encode(
        to_encode,
        settings.auth_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if the signature or expiry is invalid
    """
    try:
        return jwt.decode(
            token,
            settings.auth_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None


def session_expiry(expiration: timedelta | None = None) -> datetime:
    """Absolute expiry for a new session."""
    return utc_now() + (expiration or SESSION_TIMEOUT)
