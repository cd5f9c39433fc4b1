"""Session lifecycle: create, validate, revoke and list login sessions."""

from uuid import UUID

from fastapi import Request
from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement
from structlog import get_logger
from user_agents import parse as parse_user_agent

from identity_api.core.exceptions import (
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from identity_api.core.security import ensure_aware, utc_now
from identity_api.models.sessions import sessions
from identity_api.schemas.sessions import ById, ByToken, DeviceInfo, SessionCreate, SessionLookup

logger = get_logger(__name__)

_UNKNOWN_FAMILY = "Other"


def _lookup_condition(lookup: SessionLookup) -> ColumnElement[bool]:
    if isinstance(lookup, ById):
        return sessions.c.id == lookup.session_id
    if isinstance(lookup, ByToken):
        return sessions.c.token == lookup.token
    raise TypeError(f"Unsupported session lookup: {lookup!r}")


def _known(value: str | None) -> str | None:
    return value if value and value != _UNKNOWN_FAMILY else None


class SessionService:
    """Service for session operations."""

    @staticmethod
    def get_session_info(request: Request) -> DeviceInfo:
        """
        Derive device metadata from request headers.

        Args:
            request: Incoming request

        Returns:
            User agent summary, client IP, device name and device type
        """
        ua = parse_user_agent(request.headers.get("user-agent") or "Unknown")

        browser = _known(ua.browser.family)
        os_name = _known(ua.os.family)

        if ua.is_tablet:
            device_type = "tablet"
        elif ua.is_mobile:
            device_type = "mobile"
        else:
            device_type = "desktop"

        device_name = (
            f"{os_name or 'Unknown OS'} {ua.os.version_string} - {browser or 'Unknown Client'}"
        )

        forwarded = request.headers.get("x-forwarded-for")
        ip_address = forwarded.split(",")[0].strip() if forwarded else None
        if not ip_address:
            ip_address = request.client.host if request.client else "Unknown"

        return DeviceInfo(
            user_agent=f"{browser or 'Unknown'} - {ua.browser.version_string or 'Unknown'}",
            ip_address=ip_address,
            device_name=device_name,
            device_type=device_type,
        )

    async def create_session(self, db: AsyncSession, data: SessionCreate) -> str:
        """
        Insert a session row.

        Args:
            db: Database session
            data: Session values

        Returns:
            The bearer token stored on the session

        Raises:
            ConflictException: If the token is already in use
        """
        query = sessions.insert().values(**data.model_dump()).returning(sessions)
        try:
            result = await db.execute(query)
            session = result.mappings().first()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictException("Session token already exists") from e

        if not session:
            raise ValueError("Failed to create session")

        logger.info("session_created", user_id=data.user_id, device_type=data.device_type)
        return session["token"]

    async def validate_session(
        self, db: AsyncSession, user_id: int, lookup: SessionLookup
    ) -> dict:
        """
        Load a session owned by ``user_id`` and check it is still usable.

        Raises:
            UnauthorizedException: If missing, revoked or expired
        """
        query = select(sessions).where(and_(_lookup_condition(lookup), sessions.c.user_id == user_id))
        result = await db.execute(query)
        session = result.mappings().first()

        if not session:
            raise UnauthorizedException("Invalid session token")

        if session["is_revoked"]:
            raise UnauthorizedException("Session has been revoked")

        if ensure_aware(session["expires_at"]) < utc_now():
            raise UnauthorizedException("Session has expired")

        return dict(session)

    async def revoke_session(self, db: AsyncSession, user_id: int, lookup: SessionLookup) -> bool:
        """Revoke a live session. Revoking an already revoked session fails validation."""
        await self.validate_session(db, user_id, lookup)

        query = (
            update(sessions)
            .where(and_(_lookup_condition(lookup), sessions.c.user_id == user_id))
            .values(is_revoked=True)
        )
        await db.execute(query)
        await db.commit()

        logger.info("session_revoked", user_id=user_id)
        return True

    async def revoke_all_user_sessions(self, db: AsyncSession, user_id: int) -> int:
        """Revoke every active session of a user and return how many were revoked."""
        query = (
            update(sessions)
            .where(and_(sessions.c.user_id == user_id, sessions.c.is_revoked.is_(False)))
            .values(is_revoked=True)
            .returning(sessions.c.id)
        )
        result = await db.execute(query)
        revoked = len(result.all())
        await db.commit()

        logger.info("sessions_revoked", user_id=user_id, count=revoked)
        return revoked

    async def list_sessions(self, db: AsyncSession, user_id: int) -> list[dict]:
        """List a user's sessions, newest first."""
        query = (
            select(sessions)
            .where(sessions.c.user_id == user_id)
            .order_by(sessions.c.created_at.desc(), sessions.c.id.desc())
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    async def get_session_by_public_id(
        self, db: AsyncSession, user_id: int, public_id: UUID
    ) -> dict:
        """
        Get one of the user's sessions by the id exposed to clients.

        Raises:
            NotFoundException: If the user has no such session
        """
        query = select(sessions).where(
            and_(sessions.c.public_id == public_id, sessions.c.user_id == user_id)
        )
        result = await db.execute(query)
        session = result.mappings().first()

        if not session:
            raise NotFoundException("Session not found")

        return dict(session)

    async def mark_two_factor_verified(
        self, db: AsyncSession, user_id: int, lookup: SessionLookup
    ) -> dict:
        """Flag a live session as having completed the second factor."""
        await self.validate_session(db, user_id, lookup)

        query = (
            update(sessions)
            .where(and_(_lookup_condition(lookup), sessions.c.user_id == user_id))
            .values(two_factor_verified=True)
            .returning(sessions)
        )
        result = await db.execute(query)
        await db.commit()
        return dict(result.mappings().one())
