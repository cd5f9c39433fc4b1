"""Create users, sessions, accounts, verification_tokens and media tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("public_id", sa.Uuid(as_uuid=True), nullable=False, unique=True),
    ]


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def _user_fk() -> sa.Column:
    return sa.Column(
        "user_id",
        sa.Integer(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    """Create identity tables."""
    op.create_table(
        "users",
        *_id_columns(),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("password", sa.Text(), nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("image_information", sa.JSON(), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("is_2fa_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamp_columns(),
    )
    op.create_index("users_email_verified_idx", "users", ["email_verified"])

    op.create_table(
        "sessions",
        *_id_columns(),
        sa.Column("token", sa.Text(), nullable=False, unique=True),
        sa.Column("ip_address", sa.Text(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("device_name", sa.String(255), nullable=True),
        sa.Column("device_type", sa.String(50), nullable=True),
        sa.Column(
            "two_factor_verified", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        _user_fk(),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamp_columns(),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"])
    op.create_index("sessions_user_id_is_revoked_idx", "sessions", ["user_id", "is_revoked"])
    op.create_index("sessions_user_id_expires_at_idx", "sessions", ["user_id", "expires_at"])

    op.create_table(
        "accounts",
        *_id_columns(),
        sa.Column("account_id", sa.Text(), nullable=False),
        sa.Column("provider_id", sa.Text(), nullable=False),
        _user_fk(),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("id_token", sa.Text(), nullable=True),
        sa.Column("access_token_expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("refresh_token_expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("scope", sa.Text(), nullable=True),
        *_timestamp_columns(),
        sa.UniqueConstraint(
            "provider_id", "account_id", name="accounts_provider_id_account_id_key"
        ),
    )
    op.create_index("ix_accounts_provider_id", "accounts", ["provider_id"])
    op.create_index("ix_accounts_user_id", "accounts", ["user_id"])

    op.create_table(
        "verification_tokens",
        *_id_columns(),
        sa.Column("identifier", sa.Text(), nullable=False),
        sa.Column("token_type", sa.String(32), nullable=False),
        sa.Column("token", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        *_timestamp_columns(),
        sa.UniqueConstraint(
            "identifier",
            "token_type",
            name="verification_tokens_identifier_token_type_key",
        ),
    )
    op.create_index(
        "ix_verification_tokens_identifier", "verification_tokens", ["identifier"]
    )

    op.create_table(
        "media",
        *_id_columns(),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("file_extension", sa.String(10), nullable=False),
        sa.Column("secure_url", sa.Text(), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("duration", sa.Numeric(10, 2), nullable=True),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("media_type", sa.Text(), nullable=False),
        sa.Column("alt_text", sa.Text(), nullable=True),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("storage_metadata", sa.JSON(), nullable=True),
        sa.Column(
            "uploaded_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamp_columns(),
    )
    op.create_index("ix_media_uploaded_by", "media", ["uploaded_by"])


def downgrade() -> None:
    """Drop identity tables."""
    op.drop_index("ix_media_uploaded_by", table_name="media")
    op.drop_table("media")
    op.drop_index("ix_verification_tokens_identifier", table_name="verification_tokens")
    op.drop_table("verification_tokens")
    op.drop_index("ix_accounts_user_id", table_name="accounts")
    op.drop_index("ix_accounts_provider_id", table_name="accounts")
    op.drop_table("accounts")
    op.drop_index("sessions_user_id_expires_at_idx", table_name="sessions")
    op.drop_index("sessions_user_id_is_revoked_idx", table_name="sessions")
    op.drop_index("ix_sessions_expires_at", table_name="sessions")
    op.drop_index("ix_sessions_user_id", table_name="sessions")
    op.drop_table("sessions")
    op.drop_index("users_email_verified_idx", table_name="users")
    op.drop_table("users")
