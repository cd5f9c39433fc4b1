"""External identity provider account links."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Table, Text, UniqueConstraint

from identity_api.models.base import id_columns, metadata, timestamp_columns

accounts = Table(
    "accounts",
    metadata,
    *id_columns(),
    # Stable subject id issued by the provider
    Column("account_id", Text, nullable=False),
    Column("provider_id", Text, nullable=False, index=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("access_token", Text),
    Column("refresh_token", Text),
    Column("id_token", Text),
    Column("access_token_expires_at", DateTime(timezone=True)),
    Column("refresh_token_expires_at", DateTime(timezone=True)),
    Column("scope", Text),
    *timestamp_columns(),
    UniqueConstraint("provider_id", "account_id", name="accounts_provider_id_account_id_key"),
)
