"""Pydantic request/response schemas."""

from app.schemas.auth import CurrentUser, LoginRequest, TokenResponse
from app.schemas.health import HealthResponse
from app.schemas.media import MediaItem, MediaPage
from app.schemas.rbac import (
    ActionType,
    PermissionResponse,
    ResourceType,
    RoleResponse,
    RoleType,
)

__all__ = [
    "ActionType",
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "MediaItem",
    "MediaPage",
    "PermissionResponse",
    "ResourceType",
    "RoleResponse",
    "RoleType",
    "TokenResponse",
]
