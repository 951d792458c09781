"""Branches: create, fetch with resolved media URLs, delete with media cleanup."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.auth import require_permission
from app.api.v1.deps import get_media_resolver
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import ConflictError
from app.models import Branch
from app.schemas.auth import CurrentUser
from app.schemas.media import BranchCreate, BranchResponse, MediaOwner
from app.schemas.rbac import ActionType, ResourceType
from app.services import media_service

router = APIRouter()


@router.post("", response_model=BranchResponse, status_code=status.HTTP_201_CREATED)
def create_branch(
    body: BranchCreate,
    current_user: Annotated[CurrentUser, Depends(require_permission(ResourceType.BRANCHES, ActionType.CREATE))],
    db: Annotated[Session, Depends(get_db)],
) -> BranchResponse:
    email = body.email.strip().lower() if body.email else None
    if email and db.scalar(select(Branch.id).where(Branch.email == email)) is not None:
        raise ConflictError(f"Branch with email '{email}' already exists")
    branch = Branch(name=body.name.strip(), email=email, created_by=current_user.email)
    db.add(branch)
    db.commit()
    db.refresh(branch)
    return BranchResponse(id=branch.id, name=branch.name, email=branch.email, created_on=branch.created_on)


@router.get("/{branch_id}", response_model=BranchResponse)
def get_branch(
    branch_id: int,
    request: Request,
    _user: Annotated[CurrentUser, Depends(require_permission(ResourceType.BRANCHES, ActionType.READ))],
    db: Annotated[Session, Depends(get_db)],
) -> BranchResponse:
    branch = media_service.get_parent(db, MediaOwner.BRANCHES, branch_id)
    rows = sorted(branch.media, key=lambda m: (m.created_on, m.id), reverse=True)
    media = []
    if rows:
        media = media_service.serialize_media(
            rows, get_media_resolver(request), settings.MEDIA_LIST_URL_TTL_SEC
        )
    return BranchResponse(
        id=branch.id,
        name=branch.name,
        email=branch.email,
        created_on=branch.created_on,
        media=media,
    )


@router.delete("/{branch_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_branch(
    branch_id: int,
    request: Request,
    _user: Annotated[CurrentUser, Depends(require_permission(ResourceType.BRANCHES, ActionType.DELETE))],
    db: Annotated[Session, Depends(get_db)],
) -> None:
    storage = getattr(request.app.state, "object_storage", None)
    media_service.delete_parent(db, storage, MediaOwner.BRANCHES, branch_id)
