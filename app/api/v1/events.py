"""Events: create, fetch with resolved media URLs, delete with media cleanup."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.api.v1.auth import require_permission
from app.api.v1.deps import get_media_resolver
from app.core.config import settings
from app.core.database import get_db
from app.models import Event
from app.schemas.auth import CurrentUser
from app.schemas.media import EventCreate, EventResponse, MediaOwner
from app.schemas.rbac import ActionType, ResourceType
from app.services import media_service

router = APIRouter()


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
def create_event(
    body: EventCreate,
    current_user: Annotated[CurrentUser, Depends(require_permission(ResourceType.EVENTS, ActionType.CREATE))],
    db: Annotated[Session, Depends(get_db)],
) -> EventResponse:
    event = Event(name=body.name.strip(), description=body.description, created_by=current_user.email)
    db.add(event)
    db.commit()
    db.refresh(event)
    return EventResponse(
        id=event.id, name=event.name, description=event.description, created_on=event.created_on
    )


@router.get("/{event_id}", response_model=EventResponse)
def get_event(
    event_id: int,
    request: Request,
    _user: Annotated[CurrentUser, Depends(require_permission(ResourceType.EVENTS, ActionType.READ))],
    db: Annotated[Session, Depends(get_db)],
) -> EventResponse:
    """
    Return the event with every media reference resolved to a fresh list URL.
    One unresolvable reference fails the whole response.
    """
    event = media_service.get_parent(db, MediaOwner.EVENTS, event_id)
    rows = sorted(event.media, key=lambda m: (m.created_on, m.id), reverse=True)
    media = []
    if rows:
        media = media_service.serialize_media(
            rows, get_media_resolver(request), settings.MEDIA_LIST_URL_TTL_SEC
        )
    return EventResponse(
        id=event.id,
        name=event.name,
        description=event.description,
        created_on=event.created_on,
        media=media,
    )


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: int,
    request: Request,
    _user: Annotated[CurrentUser, Depends(require_permission(ResourceType.EVENTS, ActionType.DELETE))],
    db: Annotated[Session, Depends(get_db)],
) -> None:
    storage = getattr(request.app.state, "object_storage", None)
    media_service.delete_parent(db, storage, MediaOwner.EVENTS, event_id)
