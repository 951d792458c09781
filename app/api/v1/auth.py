"""JWT login and auth dependencies (get_current_user, require_permission, require_super_admin)."""

from collections.abc import Callable
from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.api.v1.deps import get_permission_resolver
from app.core.database import get_db
from app.core.errors import DeniedError
from app.core.security import (
    EMAIL_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    create_access_token,
    decode_access_token,
    normalize_email,
    verify_password,
)
from app.models import User
from app.schemas.auth import CurrentUser, LoginRequest, TokenResponse
from app.schemas.rbac import ActionType, ResourceType
from app.services.permission_resolver import PermissionResolver

router = APIRouter()
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("", response_model=TokenResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """
    Authenticate with email and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    email = normalize_email(body.email)
    if len(email) > EMAIL_MAX_LEN or not (PASSWORD_MIN_LEN <= len(body.password) <= PASSWORD_MAX_LEN):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid email or password length.",
        )

    user = db.query(User).filter(User.email == email, User.is_deleted.is_(False)).first()
    if user is None or not verify_password(body.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )
    token = create_access_token(sub=user.id, role=user.role.name)
    return TokenResponse(access_token=token, token_type="bearer")


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    """Dependency: require valid Bearer JWT and return the current user. Raises 401 if missing or invalid."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError:
        raise _unauthorized("Invalid or expired token")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token payload")
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or user.is_deleted:
        raise _unauthorized("User not found")
    return CurrentUser(id=user.id, email=user.email, name=user.name, role=user.role.name)


def require_permission(
    resource: ResourceType, action: ActionType
) -> Callable[..., CurrentUser]:
    """Dependency factory: allow the request only when the current user holds resource:action."""

    def check_permission(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        resolver: Annotated[PermissionResolver, Depends(get_permission_resolver)],
    ) -> CurrentUser:
        resolver.check_permission(current_user.id, resource, action)
        return current_user

    return check_permission


def require_super_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    resolver: Annotated[PermissionResolver, Depends(get_permission_resolver)],
) -> CurrentUser:
    """Dependency: RBAC administration is reserved for the super-admin role. Raises 403 otherwise."""
    if not resolver.is_super_admin(current_user.id):
        raise DeniedError("Super admin access required")
    return current_user
