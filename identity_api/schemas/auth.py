"""Authentication schemas."""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

from identity_api.models.verification_tokens import TokenType

PHONE_PATTERN = re.compile(r"^\+?[0-9 ()-]{6,20}$")


def _check_password_strength(value: str) -> str:
    if not re.search(r"[A-Za-z]", value) or not re.search(r"\d", value):
        raise ValueError("Password must contain at least one letter and one number")
    return value


class LoginRequest(BaseModel):
    """Password login request."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    """Registration request."""

    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    image: str | None = None
    phone: str | None = Field(None, max_length=20)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        """Require letters and digits."""
        return _check_password_strength(value)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        """Accept digits with common separators."""
        if value is not None and not PHONE_PATTERN.match(value):
            raise ValueError("Phone must be a valid phone number")
        return value


class OTPRequest(BaseModel):
    """Request a one-time code."""

    email: EmailStr


class OTPVerifyRequest(BaseModel):
    """Verify a one-time code."""

    email: EmailStr
    otp: int = Field(..., gt=0)
    verification_method: TokenType


class PasswordResetConfirm(BaseModel):
    """Complete a password reset with a one-time code."""

    email: EmailStr
    otp: int = Field(..., gt=0)
    password: str = Field(..., min_length=8, max_length=72)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        """Require letters and digits."""
        return _check_password_strength(value)


class OTPIssuedResponse(BaseModel):
    """Issued one-time code details; ``otp`` is only echoed in development."""

    otp_expiration_time: int
    otp: int | None = None


class CsrfTokenResponse(BaseModel):
    """CSRF token payload."""

    csrf_token: str
