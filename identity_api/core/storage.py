"""Third-party media storage backed by Cloudinary."""

import asyncio
import io
from dataclasses import dataclass, field
from typing import Any

import cloudinary.uploader
import httpx
from structlog import get_logger

logger = get_logger(__name__)

REMOTE_FETCH_TIMEOUT = 10.0


@dataclass
class UploadResult:
    """Outcome of an upload; ``data`` is the provider response on success."""

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def storage_key(self) -> str | None:
        """Stable key used to delete the object later."""
        return self.data.get("public_id")

    @property
    def secure_url(self) -> str | None:
        """HTTPS URL of the stored object."""
        return self.data.get("secure_url")


def get_resource_type(mime_type: str) -> str:
    """Map a MIME type onto a Cloudinary resource type."""
    kind = mime_type.lower()
    if kind.startswith("image/"):
        return "image"
    if kind.startswith("video/"):
        return "video"
    if kind.startswith(("text/", "application/", "audio/")):
        return "raw"
    return "auto"


class MediaStorage:
    """Upload and delete objects in Cloudinary without touching global SDK config."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = "uploads"):
        """Initialize storage with account credentials and a default folder."""
        self.folder = folder
        self._credentials = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
            "secure": True,
        }

    def _build_upload_options(
        self,
        folder: str | None = None,
        resource_type: str = "image",
        transformation: dict[str, Any] | None = None,
        tags: list[str] | None = None,
        context: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        options: dict[str, Any] = {
            **self._credentials,
            "folder": folder or self.folder,
            "resource_type": resource_type,
            "unique_filename": True,
            "use_filename": True,
            "overwrite": False,
        }
        if resource_type == "image":
            options.update({"format": "webp", "quality": "auto:good"})
        if transformation:
            options.update(transformation)
        if tags:
            options["tags"] = tags
        if context:
            options["context"] = context
        return options

    async def upload_from_buffer(self, data: bytes, **options: Any) -> UploadResult:
        """
        Upload raw bytes.

        Args:
            data: File contents
            **options: folder, resource_type, transformation, tags, context

        Returns:
            Upload result; failures are reported, not raised
        """
        if not data:
            return UploadResult(success=False, error="Empty buffer provided for upload")

        upload_options = self._build_upload_options(**options)
        try:
            response = await asyncio.to_thread(
                cloudinary.uploader.upload, io.BytesIO(data), **upload_options
            )
        except Exception as e:
            logger.warning("media_upload_failed", error=str(e))
            return UploadResult(success=False, error=str(e) or "Upload failed")

        return UploadResult(success=True, data=dict(response))

    async def upload_from_url(self, url: str, **options: Any) -> UploadResult:
        """Fetch a remote image (e.g. an OAuth profile picture) and upload it."""
        try:
            async with httpx.AsyncClient(timeout=REMOTE_FETCH_TIMEOUT) as client:
                response = await client.get(url, follow_redirects=True)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("media_fetch_failed", url=url, error=str(e))
            return UploadResult(success=False, error="Failed to fetch remote image")

        return await self.upload_from_buffer(response.content, **options)

    async def delete(self, storage_key: str, resource_type: str = "image") -> bool:
        """Delete an object; returns False when the provider did not confirm."""
        try:
            response = await asyncio.to_thread(
                cloudinary.uploader.destroy,
                storage_key,
                resource_type=resource_type,
                **self._credentials,
            )
        except Exception as e:
            logger.warning("media_delete_failed", storage_key=storage_key, error=str(e))
            return False

        return response.get("result") == "ok"
