"""User model definition using SQLAlchemy Core."""

from sqlalchemy import JSON, Boolean, Column, Index, String, Table, Text, false

from identity_api.models.base import id_columns, metadata, timestamp_columns

users = Table(
    "users",
    metadata,
    *id_columns(),
    Column("name", Text),
    Column("email", Text, nullable=False, unique=True),
    # Null for OAuth-only accounts
    Column("password", Text),
    Column("email_verified", Boolean, nullable=False, default=False, server_default=false()),
    Column("image", Text),
    Column("image_information", JSON),
    Column("phone", String(20)),
    Column("is_2fa_enabled", Boolean, nullable=False, default=False, server_default=false()),
    *timestamp_columns(),
    Index("users_email_verified_idx", "email_verified"),
)
