"""Media references owned by events and branches: upload, cursor listing, serialization, deletion."""

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, UpstreamError, ValidationError
from app.models import Branch, BranchMedia, Event, EventMedia
from app.schemas.media import MediaItem, MediaOwner
from app.services.media_resolver import MediaResolver
from app.services.object_storage import (
    S3Storage,
    classify_content_type,
    folder_for_file_type,
    guess_content_type,
    is_allowed_content_type,
    normalize_content_type,
    validate_file_size,
)

logger = logging.getLogger(__name__)

# Media ids are 32-bit integer columns.
MAX_CURSOR_ID = 2**31 - 1


@dataclass(frozen=True)
class OwnerKind:
    parent_model: type
    media_model: type
    owner_column: str
    label: str


OWNER_KINDS: dict[MediaOwner, OwnerKind] = {
    MediaOwner.EVENTS: OwnerKind(Event, EventMedia, "event_id", "Event"),
    MediaOwner.BRANCHES: OwnerKind(Branch, BranchMedia, "branch_id", "Branch"),
}


def encode_cursor(created_on: datetime, media_id: int) -> str:
    raw = f"{created_on.isoformat()}|{media_id}".encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, int]:
    """Inverse of encode_cursor. Raises ValidationError on malformed input."""
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        created_raw, id_raw = base64.urlsafe_b64decode(padded).decode().rsplit("|", 1)
        created_on, media_id = datetime.fromisoformat(created_raw), int(id_raw)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise ValidationError("Invalid pagination cursor") from None
    if not 1 <= media_id <= MAX_CURSOR_ID:
        raise ValidationError("Invalid pagination cursor")
    return created_on, media_id


def get_parent(db: Session, owner: MediaOwner, owner_id: int):
    kind = OWNER_KINDS[owner]
    parent = db.get(kind.parent_model, owner_id)
    if parent is None:
        raise NotFoundError(f"{kind.label} not found")
    return parent


def get_media(db: Session, owner: MediaOwner, media_id: int):
    kind = OWNER_KINDS[owner]
    media = db.get(kind.media_model, media_id)
    if media is None:
        raise NotFoundError("Media not found")
    return media


def list_media_page(
    db: Session,
    owner: MediaOwner,
    owner_id: int,
    limit: int,
    cursor: str | None = None,
) -> tuple[list, str | None, bool]:
    """
    Newest-first page of media rows using a (created_on, id) keyset cursor.

    Returns (rows, next_cursor, has_more).
    """
    kind = OWNER_KINDS[owner]
    model = kind.media_model
    get_parent(db, owner, owner_id)

    stmt = select(model).where(getattr(model, kind.owner_column) == owner_id)
    if cursor:
        created_on, last_id = decode_cursor(cursor)
        stmt = stmt.where(
            or_(
                model.created_on < created_on,
                and_(model.created_on == created_on, model.id < last_id),
            )
        )
    stmt = stmt.order_by(model.created_on.desc(), model.id.desc()).limit(limit + 1)
    rows = list(db.scalars(stmt))

    has_more = len(rows) > limit
    rows = rows[:limit]
    next_cursor = encode_cursor(rows[-1].created_on, rows[-1].id) if has_more and rows else None
    return rows, next_cursor, has_more


def serialize_media(rows: list, resolver: MediaResolver, ttl: int | timedelta) -> list[MediaItem]:
    """Attach a fresh signed URL to every row. Any failure aborts the whole list."""
    urls = resolver.resolve_many([row.s3_key for row in rows], ttl)
    return [
        MediaItem(
            id=row.id,
            original_filename=row.original_filename,
            file_type=row.file_type,
            content_type=row.content_type,
            category=row.category,
            created_on=row.created_on,
            url=url,
        )
        for row, url in zip(rows, urls)
    ]


def upload_media(
    db: Session,
    storage: S3Storage,
    owner: MediaOwner,
    owner_id: int,
    content: bytes,
    filename: str,
    content_type: str | None,
    category: str | None,
    created_by: str | None,
):
    """Validate, store the object, then record its key. The object is removed again if the row cannot be saved."""
    kind = OWNER_KINDS[owner]
    get_parent(db, owner, owner_id)

    ct = normalize_content_type(content_type)
    if not ct or ct == "application/octet-stream":
        ct = guess_content_type(filename)
    if not is_allowed_content_type(ct):
        raise ValidationError(
            "File type not allowed. Allowed types: images, videos, audio, PDF and Office documents"
        )
    file_type = classify_content_type(ct)
    validate_file_size(len(content), file_type)

    result = storage.upload_file(content, filename, ct, folder_for_file_type(file_type))
    media = kind.media_model(
        s3_key=result.key,
        original_filename=result.original_filename,
        file_type=file_type,
        content_type=ct,
        category=category,
        created_by=created_by,
        **{kind.owner_column: owner_id},
    )
    db.add(media)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to record media for key=%s: %s", result.key, e)
        try:
            storage.delete_object(result.key)
        except UpstreamError:
            logger.warning("Orphaned object left in storage: key=%s", result.key)
        raise UpstreamError("Failed to save media record") from e
    db.refresh(media)
    logger.info("Stored %s media id=%s for %s %s", file_type, media.id, kind.label, owner_id)
    return media


def delete_objects(storage: S3Storage, keys: list[str]) -> list[str]:
    """Delete stored objects after their rows are gone. Returns keys that could not be deleted."""
    failed: list[str] = []
    for key in keys:
        try:
            storage.delete_object(key)
        except UpstreamError:
            failed.append(key)
    if failed:
        logger.error("Failed to delete %s stored object(s): %s", len(failed), failed)
    return failed


def delete_media(db: Session, storage: S3Storage, owner: MediaOwner, media_id: int) -> None:
    media = get_media(db, owner, media_id)
    key = media.s3_key
    db.delete(media)
    db.commit()
    delete_objects(storage, [key])


def delete_parent(db: Session, storage: S3Storage | None, owner: MediaOwner, owner_id: int) -> None:
    """Delete an event or branch together with its media rows and stored objects."""
    parent = get_parent(db, owner, owner_id)
    keys = [m.s3_key for m in parent.media]
    db.delete(parent)
    db.commit()
    if keys:
        if storage is None:
            logger.error("Object storage not configured; %s object(s) left behind", len(keys))
            return
        delete_objects(storage, keys)
