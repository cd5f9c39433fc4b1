"""One-time codes for email verification and password reset."""

import secrets
from datetime import timedelta

from sqlalchemy import and_, delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from identity_api.core.constants import OTP_LENGTH
from identity_api.core.exceptions import (
    BadRequestException,
    RateLimitException,
    RequestTimeoutException,
)
from identity_api.core.security import ensure_aware, get_password_hash, utc_now, verify_password
from identity_api.models.verification_tokens import TokenType, verification_tokens

logger = get_logger(__name__)


def generate_otp(length: int = OTP_LENGTH) -> int:
    """Random numeric code with exactly ``length`` digits."""
    if length < 4:
        raise ValueError("The OTP length must be at least 4.")
    low = 10 ** (length - 1)
    return low + secrets.randbelow(9 * low)


class OTPService:
    """Service for verification token operations."""

    def __init__(self, expiry_minutes: int = 5):
        """Initialize service with the code lifetime (also the re-request window)."""
        self.expiry_minutes = expiry_minutes

    @staticmethod
    def _record_condition(email: str, token_type: TokenType):
        return and_(
            verification_tokens.c.identifier == email,
            verification_tokens.c.token_type == token_type,
        )

    async def _get_record(self, db: AsyncSession, email: str, token_type: TokenType) -> dict | None:
        query = select(verification_tokens).where(self._record_condition(email, token_type))
        result = await db.execute(query)
        record = result.mappings().first()
        return dict(record) if record else None

    async def _limit_otp_request(
        self, db: AsyncSession, email: str, token_type: TokenType, window: int
    ) -> None:
        record = await self._get_record(db, email, token_type)
        if not record:
            return

        elapsed = utc_now() - ensure_aware(record["updated_at"])
        elapsed_minutes = int(elapsed.total_seconds() // 60)
        if elapsed_minutes < window:
            raise RateLimitException(
                f"You can only request OTP per {window} minute(s). "
                f"Please wait for {window - elapsed_minutes} minute(s)"
            )

    async def save_otp(
        self,
        db: AsyncSession,
        email: str,
        token_type: TokenType,
        expiry_minutes: int | None = None,
    ) -> int:
        """
        Issue a new code, replacing any previous one for the same purpose.

        Returns:
            The plain code (only its hash is stored)

        Raises:
            RateLimitException: If a code was issued within the expiry window
        """
        window = expiry_minutes or self.expiry_minutes
        await self._limit_otp_request(db, email, token_type, window)

        otp = generate_otp()
        now = utc_now()
        values = {
            "identifier": email,
            "token_type": token_type,
            "token": get_password_hash(str(otp)),
            "expires_at": now + timedelta(minutes=window),
        }

        insert = sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert
        query = insert(verification_tokens).values(**values)
        query = query.on_conflict_do_update(
            index_elements=[verification_tokens.c.identifier, verification_tokens.c.token_type],
            set_={
                "token": query.excluded.token,
                "expires_at": query.excluded.expires_at,
                "updated_at": now,
            },
        )
        await db.execute(query)
        await db.commit()

        logger.info("otp_issued", email=email, token_type=token_type.value)
        return otp

    async def verify_otp(
        self, db: AsyncSession, email: str, otp: str, token_type: TokenType
    ) -> bool:
        """
        Check a code.

        Raises:
            BadRequestException: If there is no record or the code does not match
            RequestTimeoutException: If the code expired (the record is deleted)
        """
        record = await self._get_record(db, email, token_type)

        if not record or not verify_password(otp, record["token"]):
            raise BadRequestException("Invalid OTP")

        if ensure_aware(record["expires_at"]) < utc_now():
            await self.delete_otp(db, email, token_type)
            raise RequestTimeoutException("OTP expired")

        return True

    async def delete_otp(self, db: AsyncSession, email: str, token_type: TokenType) -> bool:
        """Delete the code for an email and purpose."""
        query = delete(verification_tokens).where(self._record_condition(email, token_type))
        await db.execute(query)
        await db.commit()
        return True
