"""Response envelope shared by every endpoint."""

from datetime import UTC, datetime
from typing import Generic, TypeVar

from fastapi import Request
from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard JSON envelope."""

    status_code: int
    message: str
    data: T | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    path: str = ""


class MessageResponse(BaseModel):
    """Plain message payload."""

    message: str


def create_api_response(
    request: Request,
    status_code: int,
    message: str,
    data: T | None = None,
) -> ApiResponse[T]:
    """
    Build a response envelope for the current request.

    Args:
        request: Current request (its path is echoed back)
        status_code: HTTP status code mirrored in the body
        message: Human readable message
        data: Optional payload

    Returns:
        Response envelope
    """
    return ApiResponse[T](
        status_code=status_code,
        message=message,
        data=data,
        path=request.url.path,
    )
