"""Session model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    false,
)

from identity_api.models.base import id_columns, metadata, timestamp_columns

sessions = Table(
    "sessions",
    metadata,
    *id_columns(),
    # Bearer token handed to the client as the access-token cookie
    Column("token", Text, nullable=False, unique=True),
    Column("ip_address", Text, default="Unknown"),
    Column("user_agent", Text, default="Unknown"),
    Column("device_name", String(255), default="Unknown Device"),
    Column("device_type", String(50), default="Unknown"),
    Column("two_factor_verified", Boolean, nullable=False, default=False, server_default=false()),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("expires_at", DateTime(timezone=True), nullable=False, index=True),
    Column("is_revoked", Boolean, nullable=False, default=False, server_default=false()),
    *timestamp_columns(),
    Index("sessions_user_id_is_revoked_idx", "user_id", "is_revoked"),
    Index("sessions_user_id_expires_at_idx", "user_id", "expires_at"),
)
