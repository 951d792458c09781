"""
RBAC administration and self-service permission endpoints.

Every successful mutation invalidates the authorization cache before the
response is returned, so the next check observes the new grants.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user, require_super_admin
from app.api.v1.deps import get_authz_cache, get_permission_resolver
from app.core.database import get_db
from app.models import Role
from app.schemas.auth import CurrentUser
from app.schemas.rbac import (
    CheckPermissionRequest,
    CheckPermissionResponse,
    GrantRequest,
    MyPermissionsResponse,
    PermissionCreate,
    PermissionResponse,
    RoleCreate,
    RolePermissionsResponse,
    RoleResponse,
    RoleUpdate,
    RoleWithPermissionsResponse,
    permission_name,
)
from app.services import rbac_admin
from app.services.authz_cache import AuthorizationCache
from app.services.permission_resolver import PermissionResolver, parse_permission

router = APIRouter()

SuperAdmin = Annotated[CurrentUser, Depends(require_super_admin)]
Cache = Annotated[AuthorizationCache, Depends(get_authz_cache)]
DbSession = Annotated[Session, Depends(get_db)]


def _role_with_permissions(db: Session, role: Role) -> RoleWithPermissionsResponse:
    out = RoleWithPermissionsResponse.model_validate(role, from_attributes=True)
    out.permissions = rbac_admin.role_permission_names(db, role.id)
    return out


# ---- Roles ----


@router.get("/roles", response_model=list[RoleResponse])
def list_roles(db: DbSession, _admin: SuperAdmin) -> list[RoleResponse]:
    return [RoleResponse.model_validate(r) for r in rbac_admin.list_roles(db)]


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(body: RoleCreate, db: DbSession, cache: Cache, _admin: SuperAdmin) -> RoleResponse:
    role = rbac_admin.create_role(db, body)
    cache.invalidate()
    return RoleResponse.model_validate(role)


@router.get("/roles/{role_id}", response_model=RoleWithPermissionsResponse)
def get_role(role_id: int, db: DbSession, _admin: SuperAdmin) -> RoleWithPermissionsResponse:
    return _role_with_permissions(db, rbac_admin.get_role(db, role_id))


@router.put("/roles/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: int, body: RoleUpdate, db: DbSession, cache: Cache, _admin: SuperAdmin
) -> RoleResponse:
    role = rbac_admin.update_role(db, role_id, body)
    cache.invalidate()
    return RoleResponse.model_validate(role)


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(role_id: int, db: DbSession, cache: Cache, _admin: SuperAdmin) -> None:
    rbac_admin.delete_role(db, role_id)
    cache.invalidate()


# ---- Permissions ----


@router.get("/permissions", response_model=list[PermissionResponse])
def list_permissions(
    db: DbSession,
    _admin: SuperAdmin,
    resource: Annotated[str | None, Query(description="Filter by resource type")] = None,
) -> list[PermissionResponse]:
    return [PermissionResponse.model_validate(p) for p in rbac_admin.list_permissions(db, resource)]


@router.post("/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
def create_permission(
    body: PermissionCreate, db: DbSession, cache: Cache, _admin: SuperAdmin
) -> PermissionResponse:
    permission = rbac_admin.create_permission(db, body)
    cache.invalidate()
    return PermissionResponse.model_validate(permission)


@router.get("/permissions/{permission_id}", response_model=PermissionResponse)
def get_permission(permission_id: int, db: DbSession, _admin: SuperAdmin) -> PermissionResponse:
    return PermissionResponse.model_validate(rbac_admin.get_permission(db, permission_id))


@router.delete("/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_permission(permission_id: int, db: DbSession, cache: Cache, _admin: SuperAdmin) -> None:
    rbac_admin.delete_permission(db, permission_id)
    cache.invalidate()


# ---- Grants ----


@router.post("/role-permissions/grant")
def grant_permission(
    body: GrantRequest, db: DbSession, cache: Cache, admin: SuperAdmin
) -> dict[str, str]:
    created = rbac_admin.grant_permission(db, body.role_id, body.permission_id, granted_by=admin.email)
    cache.invalidate()
    return {"message": "Permission granted" if created else "Permission already granted"}


@router.post("/role-permissions/revoke")
def revoke_permission(
    body: GrantRequest, db: DbSession, cache: Cache, _admin: SuperAdmin
) -> dict[str, str]:
    rbac_admin.revoke_permission(db, body.role_id, body.permission_id)
    cache.invalidate()
    return {"message": "Permission revoked"}


@router.get("/role-permissions/role/{role_id}", response_model=RolePermissionsResponse)
def get_role_permissions(role_id: int, db: DbSession, _admin: SuperAdmin) -> RolePermissionsResponse:
    return RolePermissionsResponse(role_id=role_id, permissions=rbac_admin.role_permission_names(db, role_id))


# ---- Self-service ----


@router.get("/my-permissions", response_model=MyPermissionsResponse)
def my_permissions(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    resolver: Annotated[PermissionResolver, Depends(get_permission_resolver)],
) -> MyPermissionsResponse:
    role, permissions = resolver.user_permissions(current_user.id)
    return MyPermissionsResponse(role=role, permissions=permissions)


@router.post("/check-permission", response_model=CheckPermissionResponse)
def check_permission(
    body: CheckPermissionRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    resolver: Annotated[PermissionResolver, Depends(get_permission_resolver)],
) -> CheckPermissionResponse:
    """Answer whether the caller holds resource:action. Unknown resource or action names are a 400."""
    resource, action = parse_permission(body.resource, body.action)
    return CheckPermissionResponse(
        has_permission=resolver.has_permission(current_user.id, resource, action),
        permission=permission_name(resource.value, action.value),
    )
