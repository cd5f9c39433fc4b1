"""One-time code records keyed by email and purpose."""

import enum

from sqlalchemy import Column, DateTime, Enum, Table, Text, UniqueConstraint

from identity_api.models.base import id_columns, metadata, timestamp_columns


class TokenType(str, enum.Enum):
    """Purpose of a verification token."""

    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"


verification_tokens = Table(
    "verification_tokens",
    metadata,
    *id_columns(),
    Column("identifier", Text, nullable=False, index=True),
    Column(
        "token_type",
        Enum(TokenType, name="token_type", native_enum=False, length=32),
        nullable=False,
    ),
    # bcrypt hash of the code, never the code itself
    Column("token", Text, nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    *timestamp_columns(),
    UniqueConstraint(
        "identifier", "token_type", name="verification_tokens_identifier_token_type_key"
    ),
)
