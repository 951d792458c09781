"""User administration: list, create, and role assignment."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.v1.auth import require_permission
from app.api.v1.deps import get_authz_cache, get_permission_resolver
from app.core.database import get_db
from app.core.errors import ConflictError, DeniedError
from app.core.security import hash_password, normalize_email
from app.models import User
from app.schemas.auth import (
    CurrentUser,
    UserCreate,
    UserListItem,
    UserRoleUpdate,
    UsersListResponse,
)
from app.schemas.rbac import SUPER_ADMIN_ROLE, ActionType, ResourceType
from app.services import rbac_admin
from app.services.authz_cache import AuthorizationCache
from app.services.permission_resolver import PermissionResolver

logger = logging.getLogger(__name__)

router = APIRouter()


def _guard_super_admin_assignment(
    db: Session,
    resolver: PermissionResolver,
    current_user: CurrentUser,
    role_id: int,
    target_user_id: int | None = None,
) -> None:
    """Only a super admin may hand out the super admin role or move a super admin to another role."""
    role = rbac_admin.get_role(db, role_id)
    if resolver.is_super_admin(current_user.id):
        return
    if role.name == SUPER_ADMIN_ROLE:
        raise DeniedError("Only a super admin can assign the super admin role")
    if target_user_id is not None and resolver.is_super_admin(target_user_id):
        raise DeniedError("Only a super admin can change a super admin's role")


@router.get("", response_model=UsersListResponse)
def list_users(
    _user: Annotated[CurrentUser, Depends(require_permission(ResourceType.USERS, ActionType.LIST))],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """Return active users (id, name, email, role_id). No passwords."""
    users = db.scalars(select(User).where(User.is_deleted.is_(False)).order_by(User.id))
    return UsersListResponse(users=[UserListItem.model_validate(u) for u in users])


@router.post("", response_model=UserListItem, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    current_user: Annotated[CurrentUser, Depends(require_permission(ResourceType.USERS, ActionType.CREATE))],
    db: Annotated[Session, Depends(get_db)],
    resolver: Annotated[PermissionResolver, Depends(get_permission_resolver)],
) -> UserListItem:
    _guard_super_admin_assignment(db, resolver, current_user, body.role_id)
    email = normalize_email(body.email)
    if db.scalar(select(User.id).where(User.email == email)) is not None:
        raise ConflictError(f"User with email '{email}' already exists")
    user = User(
        name=body.name.strip(),
        email=email,
        password_hash=hash_password(body.password),
        role_id=body.role_id,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(f"User with email '{email}' already exists") from e
    db.refresh(user)
    logger.info("User id=%s created by user_id=%s", user.id, current_user.id)
    return UserListItem.model_validate(user)


@router.put("/{user_id}/role", response_model=UserListItem)
def update_user_role(
    user_id: int,
    body: UserRoleUpdate,
    current_user: Annotated[CurrentUser, Depends(require_permission(ResourceType.USERS, ActionType.UPDATE))],
    db: Annotated[Session, Depends(get_db)],
    cache: Annotated[AuthorizationCache, Depends(get_authz_cache)],
    resolver: Annotated[PermissionResolver, Depends(get_permission_resolver)],
) -> UserListItem:
    """Move a user to another role. Their cached role is dropped before this returns."""
    _guard_super_admin_assignment(db, resolver, current_user, body.role_id, target_user_id=user_id)
    user = rbac_admin.assign_user_role(db, user_id, body.role_id)
    cache.invalidate()
    return UserListItem.model_validate(user)
