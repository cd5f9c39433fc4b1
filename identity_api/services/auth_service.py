"""Authentication service: credentials, OAuth identities and token issuance."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from identity_api.core.crypto import CryptoService
from identity_api.core.exceptions import (
    AuthenticationFailure,
    BadRequestException,
    ConflictException,
    UnauthorizedException,
)
from identity_api.core.security import (
    create_access_token,
    decode_access_token,
    session_expiry,
    verify_password,
)
from identity_api.core.storage import MediaStorage
from identity_api.models.accounts import accounts
from identity_api.schemas.sessions import ByToken, DeviceInfo, SessionCreate
from identity_api.services.oauth import OAuthProfile
from identity_api.services.session_service import SessionService
from identity_api.services.user_service import UserService, without_password

logger = get_logger(__name__)

PROFILE_IMAGE_FOLDER = "user_profiles"
PROFILE_IMAGE_TRANSFORMATION = {"width": 500, "height": 500, "crop": "fill"}


@dataclass(frozen=True)
class UserInformation:
    """Who is logging in and from where."""

    user_id: int
    email: str
    device: DeviceInfo
    expires_at: datetime | None = None


@dataclass(frozen=True)
class AuthenticatedUser:
    """User and session resolved from an access token."""

    user: dict
    session: dict
    token: str


class AuthService:
    """Authentication service for password, OAuth and session-backed JWT operations."""

    def __init__(
        self,
        crypto: CryptoService,
        user_service: UserService,
        session_service: SessionService,
        storage: MediaStorage | None = None,
    ):
        """Initialize auth service with its collaborators."""
        self.crypto = crypto
        self.users = user_service
        self.sessions = session_service
        self.storage = storage

    async def validate_user(self, db: AsyncSession, email: str, password: str) -> dict:
        """
        Check email and password.

        Args:
            db: Database session
            email: Login email
            password: Plain password

        Returns:
            The user without its password hash

        Raises:
            BadRequestException: If no user has this email
            UnauthorizedException: If unverified, password-less or the password is wrong
        """
        user = await self.users.get_user_by_email(db, email)

        if not user:
            raise BadRequestException("User with this email does not exist")

        if not user["email_verified"]:
            raise UnauthorizedException("Email not verified")

        if not user["password"]:
            raise UnauthorizedException("User does not have a password set")

        if not verify_password(password, user["password"]):
            raise UnauthorizedException("Invalid credentials")

        return without_password(user)

    async def create_user(
        self,
        db: AsyncSession,
        *,
        email: str,
        name: str | None = None,
        password: str | None = None,
        image: str | None = None,
        email_verified: bool = False,
        phone: str | None = None,
    ) -> dict:
        """Create a user, copying a source image URL into media storage when given."""
        image_url: str | None = None
        image_information: dict | None = None

        if image and self.storage:
            upload = await self.storage.upload_from_url(
                image,
                folder=PROFILE_IMAGE_FOLDER,
                transformation=PROFILE_IMAGE_TRANSFORMATION,
            )
            if upload.success:
                image_url = upload.secure_url
                image_information = upload.data
            else:
                logger.warning("profile_image_upload_failed", email=email, error=upload.error)

        return await self.users.create_user(
            db,
            email=email,
            name=name,
            password=password,
            image=image_url,
            image_information=image_information,
            email_verified=email_verified,
            phone=phone,
        )

    async def generate_access_token(self, db: AsyncSession, info: UserInformation) -> str:
        """
        Sign a JWT with encrypted claims and create its session row.

        Returns:
            The session token to hand to the client as a cookie
        """
        expires_at = info.expires_at or session_expiry()
        payload = {
            "sub": self.crypto.encrypt(str(info.user_id)),
            "email": self.crypto.encrypt(info.email),
        }
        token = create_access_token(payload, expires_at=expires_at)

        return await self.sessions.create_session(
            db,
            SessionCreate(
                user_id=info.user_id,
                token=token,
                expires_at=expires_at,
                user_agent=info.device.user_agent,
                ip_address=info.device.ip_address,
                device_name=info.device.device_name,
                device_type=info.device.device_type,
            ),
        )

    async def authenticate_token(self, db: AsyncSession, token: str) -> AuthenticatedUser:
        """
        Resolve an access token to a verified user and a live session.

        Raises:
            UnauthorizedException: If the token, user or session is not acceptable
        """
        payload = decode_access_token(token)
        if payload is None or not isinstance(payload.get("sub"), str):
            raise UnauthorizedException("Unauthorized")

        try:
            user_id = int(self.crypto.decrypt(payload["sub"]))
        except (AuthenticationFailure, ValueError):
            raise UnauthorizedException("Unauthorized")

        user = await self.users.get_user_by_id(db, user_id)
        if not user:
            raise UnauthorizedException("User not found")

        if not user["email_verified"]:
            raise UnauthorizedException("Email not verified")

        session = await self.sessions.validate_session(db, user["id"], ByToken(token))

        if user["is_2fa_enabled"] and not session["two_factor_verified"]:
            raise UnauthorizedException(
                "Please complete 2FA verification to access this resource.",
                code="TWO_FACTOR_REQUIRED",
            )

        return AuthenticatedUser(user=user, session=session, token=token)

    async def find_or_create_user(self, db: AsyncSession, profile: OAuthProfile) -> dict:
        """
        Resolve an OAuth profile to a local user.

        Lookup order: existing account link by provider id, then user by email
        (link created), then a brand new verified user (link created).
        """
        link_condition = and_(
            accounts.c.provider_id == profile.provider_id,
            accounts.c.account_id == profile.external_id,
        )
        result = await db.execute(select(accounts).where(link_condition))
        existing_account = result.mappings().first()

        if existing_account:
            await db.execute(
                update(accounts)
                .where(link_condition)
                .values(access_token=profile.access_token, refresh_token=profile.refresh_token)
            )
            await db.commit()

            user = await self.users.get_user_by_id(db, existing_account["user_id"])
            if not user:
                raise UnauthorizedException("User not found")
            return user

        existing_user = await self.users.get_user_by_email(db, profile.email)
        if existing_user:
            await self._link_account(db, existing_user["id"], profile)
            # The provider has confirmed ownership of the address
            if not existing_user["email_verified"]:
                await self.users.mark_email_verified(db, existing_user["id"])
                existing_user["email_verified"] = True
            return without_password(existing_user)

        new_user = await self.create_user(
            db,
            email=profile.email,
            name=profile.name,
            image=profile.picture,
            email_verified=True,
        )
        await self._link_account(db, new_user["id"], profile)
        return new_user

    async def _link_account(self, db: AsyncSession, user_id: int, profile: OAuthProfile) -> None:
        try:
            await db.execute(
                accounts.insert().values(
                    account_id=profile.external_id,
                    provider_id=profile.provider_id,
                    user_id=user_id,
                    access_token=profile.access_token,
                    refresh_token=profile.refresh_token,
                )
            )
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictException("This account is already linked to a user") from e

        logger.info("oauth_account_linked", user_id=user_id, provider=profile.provider_id)
