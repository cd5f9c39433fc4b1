"""Media model definition using SQLAlchemy Core."""

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
)

from identity_api.models.base import id_columns, metadata, timestamp_columns

media = Table(
    "media",
    metadata,
    *id_columns(),
    # File identification
    Column("filename", String(255), nullable=False),
    Column("mime_type", String(100), nullable=False),
    Column("file_extension", String(10), nullable=False),
    Column("secure_url", Text),
    # File properties (size in bytes, duration in seconds)
    Column("file_size", BigInteger, nullable=False),
    Column("width", Integer),
    Column("height", Integer),
    Column("duration", Numeric(10, 2)),
    # Key used to delete the object from the storage provider
    Column("storage_key", Text, nullable=False),
    Column("media_type", Text, nullable=False),
    # Organization
    Column("alt_text", Text),
    Column("caption", Text),
    Column("description", Text),
    Column("tags", JSON),
    Column("storage_metadata", JSON),
    Column(
        "uploaded_by",
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    *timestamp_columns(),
)
