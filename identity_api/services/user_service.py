"""User service for business logic."""

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.core.exceptions import BadRequestException
from identity_api.core.redis_client import CacheManager
from identity_api.core.security import get_password_hash, utc_now
from identity_api.models.users import users


def without_password(user: dict) -> dict:
    """Copy of a user row with the password hash removed."""
    return {key: value for key, value in user.items() if key != "password"}


def normalize_email(email: str) -> str:
    """Emails are matched case-insensitively; store and look them up lowercased."""
    return email.strip().lower()


class UserService:
    """Service for user operations."""

    # Cache TTL in seconds (30 minutes for user profiles)
    USER_CACHE_TTL = 1800

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_user_cache_key(user_id: int) -> str:
        """Generate cache key for user."""
        return f"user:{user_id}"

    def _invalidate(self, user_id: int) -> None:
        if self.cache:
            self.cache.delete(self._get_user_cache_key(user_id))

    async def create_user(
        self,
        db: AsyncSession,
        *,
        email: str,
        name: str | None = None,
        password: str | None = None,
        image: str | None = None,
        image_information: dict[str, Any] | None = None,
        email_verified: bool = False,
        phone: str | None = None,
    ) -> dict:
        """
        Create a new user, hashing the password when one is given.

        Raises:
            BadRequestException: If the email is already registered
        """
        query = (
            users.insert()
            .values(
                name=name,
                email=normalize_email(email),
                password=get_password_hash(password) if password else None,
                image=image,
                image_information=image_information,
                email_verified=email_verified,
                phone=phone,
            )
            .returning(users)
        )

        try:
            result = await db.execute(query)
            user = result.mappings().first()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise BadRequestException("User with this email already exists") from e

        if not user:
            raise ValueError("Failed to create user")

        return without_password(dict(user))

    async def get_user_by_id(self, db: AsyncSession, user_id: int) -> dict | None:
        """Get user by internal ID with caching. The password is never returned."""
        if self.cache:
            cached_user = self.cache.get_json(self._get_user_cache_key(user_id))
            if cached_user:
                return cached_user

        query = select(users).where(users.c.id == user_id)
        result = await db.execute(query)
        user = result.mappings().first()

        if not user:
            return None

        user_dict = without_password(dict(user))

        if self.cache:
            self.cache.set_json(
                self._get_user_cache_key(user_id), user_dict, ttl=self.USER_CACHE_TTL
            )

        return user_dict

    async def get_user_by_email(self, db: AsyncSession, email: str) -> dict | None:
        """Get user by email, including the password hash."""
        query = select(users).where(users.c.email == normalize_email(email))
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def user_exists(self, db: AsyncSession, email: str) -> bool:
        """Check whether an email is already registered."""
        query = select(users.c.id).where(users.c.email == normalize_email(email))
        result = await db.execute(query)
        return result.first() is not None

    async def mark_email_verified(self, db: AsyncSession, user_id: int) -> None:
        """Mark a user's email as verified."""
        query = (
            update(users)
            .where(users.c.id == user_id)
            .values(email_verified=True, updated_at=utc_now())
        )
        await db.execute(query)
        await db.commit()
        self._invalidate(user_id)

    async def update_password(self, db: AsyncSession, user_id: int, password: str) -> None:
        """Replace a user's password hash."""
        query = (
            update(users)
            .where(users.c.id == user_id)
            .values(password=get_password_hash(password), updated_at=utc_now())
        )
        await db.execute(query)
        await db.commit()
        self._invalidate(user_id)
