"""Media schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class MediaCreate(BaseModel):
    """Values for a new media row."""

    filename: str = Field(..., max_length=255)
    mime_type: str = Field(..., max_length=100)
    file_extension: str = Field(..., max_length=10)
    secure_url: str | None = None
    file_size: int
    width: int | None = None
    height: int | None = None
    storage_key: str
    media_type: str
    alt_text: str | None = None
    tags: list[str] | None = None
    storage_metadata: dict[str, Any] | None = None
    uploaded_by: int


class MediaUpdate(BaseModel):
    """Editable media fields."""

    name: str = Field(..., min_length=1, max_length=255)
    alt_text: str = Field(..., min_length=1)


class MediaResponse(BaseModel):
    """Media item exposed to its owner."""

    id: str
    filename: str
    mime_type: str
    file_size: int
    secure_url: str | None = None
    media_type: str
    alt_text: str | None = None
    width: int | None = None
    height: int | None = None
    tags: list[str] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_media(cls, item: dict) -> "MediaResponse":
        """Build a response exposing the public id only."""
        return cls(
            id=str(item["public_id"]),
            filename=item["filename"],
            mime_type=item["mime_type"],
            file_size=item["file_size"],
            secure_url=item["secure_url"],
            media_type=item["media_type"],
            alt_text=item["alt_text"],
            width=item["width"],
            height=item["height"],
            tags=item["tags"],
            created_at=item.get("created_at"),
            updated_at=item.get("updated_at"),
        )
