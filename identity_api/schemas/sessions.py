"""Session schemas."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel


@dataclass(frozen=True)
class ById:
    """Look a session up by its numeric id."""

    session_id: int


@dataclass(frozen=True)
class ByToken:
    """Look a session up by its bearer token."""

    token: str


SessionLookup = ById | ByToken


@dataclass(frozen=True)
class DeviceInfo:
    """Client metadata recorded on a session."""

    user_agent: str
    ip_address: str
    device_name: str
    device_type: str


class SessionCreate(BaseModel):
    """Values for a new session row."""

    user_id: int
    token: str
    expires_at: datetime
    user_agent: str = "Unknown"
    ip_address: str = "Unknown"
    device_name: str = "Unknown Device"
    device_type: str = "Unknown"


class SessionResponse(BaseModel):
    """Session details exposed to the owning user."""

    id: str
    ip_address: str | None = None
    user_agent: str | None = None
    device_name: str | None = None
    device_type: str | None = None
    two_factor_verified: bool
    expires_at: datetime
    is_revoked: bool
    is_current: bool = False
    created_at: datetime

    @classmethod
    def from_session(cls, session: dict, current_token: str | None = None) -> "SessionResponse":
        """Build a response without leaking the bearer token."""
        return cls(
            id=str(session["public_id"]),
            ip_address=session["ip_address"],
            user_agent=session["user_agent"],
            device_name=session["device_name"],
            device_type=session["device_type"],
            two_factor_verified=session["two_factor_verified"],
            expires_at=session["expires_at"],
            is_revoked=session["is_revoked"],
            is_current=current_token is not None and session["token"] == current_token,
            created_at=session["created_at"],
        )


class RevokeAllResponse(BaseModel):
    """Result of revoking every session of a user."""

    revoked: int
