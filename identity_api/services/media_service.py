"""Media service for business logic."""

from uuid import UUID

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from identity_api.core.constants import MAX_MEDIA_PER_USER
from identity_api.core.exceptions import NotFoundException, UnprocessableEntityException
from identity_api.core.security import utc_now
from identity_api.models.media import media
from identity_api.schemas.media import MediaCreate

logger = get_logger(__name__)


class MediaService:
    """Service for media operations."""

    @staticmethod
    async def upload_media(db: AsyncSession, data: MediaCreate) -> dict:
        """Insert a media row for an object already stored by the provider."""
        query = media.insert().values(**data.model_dump()).returning(media)
        result = await db.execute(query)
        await db.commit()
        item = result.mappings().first()

        if not item:
            raise UnprocessableEntityException("Media could not be created")

        logger.info("media_uploaded", user_id=data.uploaded_by, media_type=data.media_type)
        return dict(item)

    @staticmethod
    async def get_all_media(db: AsyncSession, user_id: int) -> list[dict]:
        """List a user's media, oldest first."""
        query = (
            select(media)
            .where(media.c.uploaded_by == user_id)
            .order_by(media.c.created_at.asc(), media.c.id.asc())
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    @staticmethod
    async def get_media_by_public_id(db: AsyncSession, user_id: int, public_id: UUID) -> dict:
        """
        Get one media item owned by the user.

        Raises:
            NotFoundException: If the item does not exist or belongs to someone else
        """
        query = select(media).where(
            and_(media.c.public_id == public_id, media.c.uploaded_by == user_id)
        )
        result = await db.execute(query)
        item = result.mappings().first()

        if not item:
            raise NotFoundException("Media not found")

        return dict(item)

    @staticmethod
    async def update_media_data(
        db: AsyncSession,
        user_id: int,
        public_id: UUID,
        name: str,
        alt_text: str,
    ) -> dict:
        """Rename a media item and set its alt text."""
        query = (
            update(media)
            .where(and_(media.c.public_id == public_id, media.c.uploaded_by == user_id))
            .values(filename=name, alt_text=alt_text, updated_at=utc_now())
            .returning(media)
        )
        result = await db.execute(query)
        await db.commit()
        item = result.mappings().first()

        if not item:
            raise UnprocessableEntityException("Media could not be updated")

        return dict(item)

    @staticmethod
    async def delete_media(db: AsyncSession, user_id: int, public_id: UUID) -> dict:
        """
        Delete a media row.

        Returns:
            The deleted row, whose ``storage_key`` the caller removes from storage
        """
        query = (
            delete(media)
            .where(and_(media.c.public_id == public_id, media.c.uploaded_by == user_id))
            .returning(media)
        )
        result = await db.execute(query)
        await db.commit()
        item = result.mappings().first()

        if not item:
            raise UnprocessableEntityException("Media could not be deleted")

        logger.info("media_deleted", user_id=user_id, storage_key=item["storage_key"])
        return dict(item)

    @staticmethod
    async def restrict_media_upload(db: AsyncSession, user_id: int) -> None:
        """
        Enforce the per-user media quota.

        Raises:
            UnprocessableEntityException: If the user already has the maximum number of items
        """
        query = select(func.count()).select_from(media).where(media.c.uploaded_by == user_id)
        result = await db.execute(query)
        count = result.scalar_one()

        if count >= MAX_MEDIA_PER_USER:
            raise UnprocessableEntityException(
                f"Media upload limit reached. Maximum allowed is {MAX_MEDIA_PER_USER} items."
            )
