"""Media endpoints."""

from pathlib import PurePath
from uuid import UUID

import structlog
from fastapi import APIRouter, File, Form, Request, UploadFile, status

from identity_api.core.constants import (
    ALLOWED_MEDIA_TYPES,
    MEDIA_FILE_SIZE_LIMIT,
    MEDIA_FOLDER,
)
from identity_api.core.exceptions import BadRequestException
from identity_api.core.storage import get_resource_type
from identity_api.dependencies import CurrentUser, DatabaseSession, Media, Storage
from identity_api.schemas.common import ApiResponse, create_api_response
from identity_api.schemas.media import MediaCreate, MediaResponse, MediaUpdate

router = APIRouter()
logger = structlog.get_logger(__name__)


def validate_upload(file: UploadFile, size: int) -> list[str]:
    """Collect every problem with an uploaded file."""
    if not file.filename:
        return ["Invalid file"]

    problems = []
    if file.content_type not in ALLOWED_MEDIA_TYPES:
        problems.append(f"Unsupported file type: {file.content_type}")
    if size > MEDIA_FILE_SIZE_LIMIT:
        problems.append(f"File too large. Max is {MEDIA_FILE_SIZE_LIMIT} bytes")
    return problems


async def read_upload(file: UploadFile) -> bytes:
    """
    Validate and read an upload, never buffering more than the size limit.

    The declared size is checked before reading; the read itself stops one
    byte past the limit so an undeclared oversize body is still refused.

    Raises:
        BadRequestException: If the file is invalid, of the wrong type or too large
    """
    problems = validate_upload(file, file.size or 0)
    if problems:
        raise BadRequestException("; ".join(problems))

    data = await file.read(MEDIA_FILE_SIZE_LIMIT + 1)
    problems = validate_upload(file, len(data))
    if problems:
        raise BadRequestException("; ".join(problems))
    return data


def _file_extension(filename: str, fallback: str | None) -> str:
    suffix = PurePath(filename).suffix.lstrip(".").lower()
    return (suffix or fallback or "bin")[:10]


@router.get(
    "",
    response_model=ApiResponse[list[MediaResponse]],
    status_code=status.HTTP_200_OK,
    summary="List my media",
)
async def list_media(
    request: Request,
    user: CurrentUser,
    db: DatabaseSession,
    media_service: Media,
) -> ApiResponse[list[MediaResponse]]:
    """List the current user's media, oldest first."""
    items = await media_service.get_all_media(db, user["id"])
    return create_api_response(
        request,
        status.HTTP_200_OK,
        "Media fetched successfully",
        [MediaResponse.from_media(item) for item in items],
    )


@router.post(
    "",
    response_model=ApiResponse[MediaResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Upload a media file",
)
async def upload_media(
    request: Request,
    user: CurrentUser,
    db: DatabaseSession,
    media_service: Media,
    storage: Storage,
    file: UploadFile | None = File(None),
    alt_text: str | None = Form(None),
) -> ApiResponse[MediaResponse]:
    """
    Upload one PNG, JPEG or PDF file of at most 2MB.

    Raises:
        BadRequestException: If the file is missing, of the wrong type or too large
        UnprocessableEntityException: If the user reached the media quota
    """
    if file is None:
        raise BadRequestException("File is required")

    data = await read_upload(file)
    filename = file.filename or ""
    content_type = file.content_type or ""

    await media_service.restrict_media_upload(db, user["id"])

    resource_type = get_resource_type(content_type)
    upload = await storage.upload_from_buffer(
        data,
        folder=MEDIA_FOLDER,
        resource_type=resource_type,
        tags=[f"user_{user['public_id']}"],
    )
    if not upload.success or not upload.storage_key:
        raise BadRequestException(upload.error or "Upload failed")

    item = await media_service.upload_media(
        db,
        MediaCreate(
            filename=filename,
            mime_type=content_type,
            file_extension=_file_extension(filename, upload.data.get("format")),
            secure_url=upload.secure_url,
            file_size=upload.data.get("bytes") or len(data),
            width=upload.data.get("width"),
            height=upload.data.get("height"),
            storage_key=upload.storage_key,
            media_type=resource_type,
            alt_text=alt_text,
            tags=upload.data.get("tags"),
            storage_metadata=upload.data,
            uploaded_by=user["id"],
        ),
    )

    return create_api_response(
        request,
        status.HTTP_201_CREATED,
        "Media uploaded successfully",
        MediaResponse.from_media(item),
    )


@router.get(
    "/{public_id}",
    response_model=ApiResponse[MediaResponse],
    status_code=status.HTTP_200_OK,
    summary="Get one media item",
)
async def get_media(
    public_id: UUID,
    request: Request,
    user: CurrentUser,
    db: DatabaseSession,
    media_service: Media,
) -> ApiResponse[MediaResponse]:
    """Get a media item owned by the current user."""
    item = await media_service.get_media_by_public_id(db, user["id"], public_id)
    return create_api_response(
        request,
        status.HTTP_200_OK,
        "Media fetched successfully",
        MediaResponse.from_media(item),
    )


@router.patch(
    "/{public_id}",
    response_model=ApiResponse[MediaResponse],
    status_code=status.HTTP_200_OK,
    summary="Rename a media item",
)
async def update_media(
    public_id: UUID,
    payload: MediaUpdate,
    request: Request,
    user: CurrentUser,
    db: DatabaseSession,
    media_service: Media,
) -> ApiResponse[MediaResponse]:
    """Update the file name and alt text of a media item."""
    item = await media_service.update_media_data(
        db, user["id"], public_id, payload.name, payload.alt_text
    )
    return create_api_response(
        request,
        status.HTTP_200_OK,
        "Media updated successfully",
        MediaResponse.from_media(item),
    )


@router.delete(
    "/{public_id}",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
    summary="Delete a media item",
)
async def delete_media(
    public_id: UUID,
    request: Request,
    user: CurrentUser,
    db: DatabaseSession,
    media_service: Media,
    storage: Storage,
) -> ApiResponse[None]:
    """Delete the row, then the stored object."""
    item = await media_service.delete_media(db, user["id"], public_id)

    if not await storage.delete(item["storage_key"], resource_type=item["media_type"]):
        logger.warning("media_storage_delete_failed", storage_key=item["storage_key"])

    return create_api_response(request, status.HTTP_200_OK, "Media deleted successfully", None)
