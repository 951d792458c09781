"""Media upload, paginated listing, download URLs and deletion for events and branches."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.v1.auth import require_permission
from app.api.v1.deps import get_media_resolver, get_object_storage
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import ValidationError
from app.schemas.auth import CurrentUser
from app.schemas.media import DownloadUrlResponse, MediaOwner, MediaPage, MediaUploadResponse
from app.schemas.rbac import ActionType, ResourceType
from app.services import media_service
from app.services.media_resolver import MediaResolver
from app.services.object_storage import MAX_FILE_SIZE_BYTES, S3Storage

router = APIRouter()

# Largest limit across file types; the per-type limit is enforced after classification.
MAX_UPLOAD_BYTES = max(MAX_FILE_SIZE_BYTES.values())


@router.post(
    "/{owner}/{owner_id}/media",
    response_model=MediaUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
def upload_media(
    owner: MediaOwner,
    owner_id: int,
    current_user: Annotated[CurrentUser, Depends(require_permission(ResourceType.MEDIA, ActionType.CREATE))],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[S3Storage, Depends(get_object_storage)],
    file: Annotated[UploadFile, File(description="Media file")],
    category: Annotated[str | None, Form(max_length=50)] = None,
) -> MediaUploadResponse:
    """Store the file under an opaque key and attach it to the event or branch."""
    if not file.filename:
        raise ValidationError("Uploaded file must have a filename")
    content = file.file.read(MAX_UPLOAD_BYTES + 1)
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError(f"File size exceeds maximum allowed size of {MAX_UPLOAD_BYTES // (1024 * 1024)} MB")
    media = media_service.upload_media(
        db,
        storage,
        owner,
        owner_id,
        content=content,
        filename=file.filename,
        content_type=file.content_type,
        category=category,
        created_by=current_user.email,
    )
    return MediaUploadResponse(
        id=media.id,
        original_filename=media.original_filename,
        file_type=media.file_type,
        content_type=media.content_type,
    )


@router.get("/{owner}/{owner_id}/media", response_model=MediaPage)
def list_media(
    owner: MediaOwner,
    owner_id: int,
    _user: Annotated[CurrentUser, Depends(require_permission(ResourceType.MEDIA, ActionType.LIST))],
    db: Annotated[Session, Depends(get_db)],
    resolver: Annotated[MediaResolver, Depends(get_media_resolver)],
    limit: Annotated[int, Query(ge=1, le=settings.MEDIA_PAGE_MAX_LIMIT)] = settings.MEDIA_PAGE_DEFAULT_LIMIT,
    cursor: Annotated[str | None, Query(description="Opaque cursor from a previous page")] = None,
) -> MediaPage:
    rows, next_cursor, has_more = media_service.list_media_page(db, owner, owner_id, limit, cursor)
    return MediaPage(
        data=media_service.serialize_media(rows, resolver, settings.MEDIA_LIST_URL_TTL_SEC),
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.get("/media/{owner}/{media_id}/download", response_model=DownloadUrlResponse)
def get_download_url(
    owner: MediaOwner,
    media_id: int,
    _user: Annotated[CurrentUser, Depends(require_permission(ResourceType.MEDIA, ActionType.READ))],
    db: Annotated[Session, Depends(get_db)],
    resolver: Annotated[MediaResolver, Depends(get_media_resolver)],
) -> DownloadUrlResponse:
    media = media_service.get_media(db, owner, media_id)
    ttl = settings.MEDIA_DOWNLOAD_URL_TTL_SEC
    return DownloadUrlResponse(
        media_id=media.id,
        download_url=resolver.resolve(media.s3_key, ttl),
        expires_in=ttl,
    )


@router.delete("/media/{owner}/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_media(
    owner: MediaOwner,
    media_id: int,
    _user: Annotated[CurrentUser, Depends(require_permission(ResourceType.MEDIA, ActionType.DELETE))],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[S3Storage, Depends(get_object_storage)],
) -> None:
    media_service.delete_media(db, storage, owner, media_id)
