"""Pydantic schemas and closed enumerations for roles, permissions and permission checks."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResourceType(str, Enum):
    """Resources that permissions can be granted on."""

    USERS = "users"
    ROLES = "roles"
    PERMISSIONS = "permissions"
    BRANCHES = "branches"
    AREAS = "areas"
    EVENTS = "events"
    DONATIONS = "donations"
    VOLUNTEERS = "volunteers"
    SPECIAL_GUESTS = "special_guests"
    MEDIA = "media"
    PROMOTIONS = "promotions"
    MASTER_DATA = "master_data"


class ActionType(str, Enum):
    """Actions; MANAGE on a resource implies every other action on it."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"
    MANAGE = "manage"


class RoleType(str, Enum):
    """Built-in role names seeded on install."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    COORDINATOR = "coordinator"
    STAFF = "staff"


SUPER_ADMIN_ROLE = RoleType.SUPER_ADMIN.value

RESOURCE_VALUES: frozenset[str] = frozenset(r.value for r in ResourceType)
ACTION_VALUES: frozenset[str] = frozenset(a.value for a in ActionType)


def permission_name(resource: str, action: str) -> str:
    """Derived unique permission name, e.g. 'events:create'."""
    return f"{resource}:{action}"


def _validate_role_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise ValueError("name must be non-empty")
    return name


class RoleCreate(BaseModel):
    """Body for POST /rbac/roles."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=200)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_role_name(v)


class RoleUpdate(BaseModel):
    """Body for PUT /rbac/roles/{id}. Only these fields can ever change."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=200)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return None if v is None else _validate_role_name(v)


class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    created_on: datetime | None = None
    updated_on: datetime | None = None


class PermissionCreate(BaseModel):
    """Body for POST /rbac/permissions. Name is derived, never supplied."""

    model_config = ConfigDict(extra="forbid")

    resource: str = Field(..., min_length=1, max_length=50)
    action: str = Field(..., min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=255)


class PermissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    resource: str
    action: str
    description: str | None = None
    created_on: datetime | None = None


class RoleWithPermissionsResponse(RoleResponse):
    permissions: list[str] = Field(default_factory=list)


class GrantRequest(BaseModel):
    """Body for POST /rbac/role-permissions/grant and /revoke."""

    model_config = ConfigDict(extra="forbid")

    role_id: int = Field(..., ge=1)
    permission_id: int = Field(..., ge=1)


class RolePermissionsResponse(BaseModel):
    role_id: int
    permissions: list[str]


class MyPermissionsResponse(BaseModel):
    role: str
    permissions: list[str]


class CheckPermissionRequest(BaseModel):
    resource: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)


class CheckPermissionResponse(BaseModel):
    has_permission: bool
    permission: str
