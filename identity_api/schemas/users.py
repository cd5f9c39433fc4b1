"""User schemas for request/response validation."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr


class UserResponse(BaseModel):
    """User schema for API responses; ``id`` is the public id."""

    id: str
    name: str | None = None
    email: EmailStr
    email_verified: bool
    image: str | None = None
    image_information: dict[str, Any] | None = None
    phone: str | None = None
    is_2fa_enabled: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: dict, include_image_information: bool = True) -> "UserResponse":
        """Build a response from a user row, exposing the public id only."""
        data = {key: value for key, value in user.items() if key not in ("id", "password")}
        data["id"] = str(user["public_id"])
        if not include_image_information:
            data["image_information"] = None
        return cls.model_validate(data)
