"""Shared metadata and column helpers for SQLAlchemy Core tables."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Integer, MetaData, Uuid, func

metadata = MetaData()


def _utc_now() -> datetime:
    return datetime.now(UTC)


def id_columns() -> list[Column]:
    """Internal integer key (for joins) plus the opaque id exposed by the API."""
    return [
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("public_id", Uuid(as_uuid=True), nullable=False, unique=True, default=uuid.uuid4),
    ]


def timestamp_columns() -> list[Column]:
    """created_at / updated_at audit columns."""
    return [
        Column(
            "created_at",
            DateTime(timezone=True),
            nullable=False,
            default=_utc_now,
            server_default=func.now(),
        ),
        Column(
            "updated_at",
            DateTime(timezone=True),
            nullable=False,
            default=_utc_now,
            onupdate=_utc_now,
            server_default=func.now(),
        ),
    ]
