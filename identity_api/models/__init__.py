"""Database models."""

from identity_api.models.accounts import accounts
from identity_api.models.base import metadata
from identity_api.models.media import media
from identity_api.models.sessions import sessions
from identity_api.models.users import users
from identity_api.models.verification_tokens import TokenType, verification_tokens

__all__ = [
    "TokenType",
    "accounts",
    "media",
    "metadata",
    "sessions",
    "users",
    "verification_tokens",
]
