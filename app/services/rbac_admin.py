"""
Administrative mutations on roles, permissions, grants and user-role assignment.

These functions only write to the store. Callers invalidate the
AuthorizationCache as a separate step after a successful commit.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, UpstreamError, ValidationError
from app.models import Permission, Role, RolePermission, User
from app.schemas.rbac import (
    SUPER_ADMIN_ROLE,
    PermissionCreate,
    RoleCreate,
    RoleUpdate,
    permission_name,
)
from app.services.permission_resolver import parse_permission

logger = logging.getLogger(__name__)


def _commit(db: Session, conflict_message: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(conflict_message) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("RBAC write failed: %s", e)
        raise UpstreamError("Failed to persist RBAC change") from e


def _is_reserved(name: str) -> bool:
    return name.strip().lower() == SUPER_ADMIN_ROLE


# ---- Roles ----


def list_roles(db: Session) -> list[Role]:
    return list(db.scalars(select(Role).order_by(Role.id)))


def get_role(db: Session, role_id: int) -> Role:
    role = db.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role not found")
    return role


def create_role(db: Session, data: RoleCreate) -> Role:
    if _is_reserved(data.name):
        raise ValidationError(f"Cannot create {SUPER_ADMIN_ROLE} role. It is a system role.")
    if db.scalar(select(Role.id).where(Role.name == data.name)) is not None:
        raise ConflictError(f"Role with name '{data.name}' already exists")
    role = Role(name=data.name, description=data.description)
    db.add(role)
    _commit(db, f"Role with name '{data.name}' already exists")
    db.refresh(role)
    logger.info("Created role id=%s name=%s", role.id, role.name)
    return role


def update_role(db: Session, role_id: int, data: RoleUpdate) -> Role:
    role = get_role(db, role_id)
    if role.name == SUPER_ADMIN_ROLE:
        raise ValidationError(f"Cannot modify {SUPER_ADMIN_ROLE} role. It is a system role.")
    changes = data.model_dump(exclude_unset=True)
    new_name = changes.get("name")
    if new_name is not None and new_name != role.name:
        if _is_reserved(new_name):
            raise ValidationError(f"Cannot change role name to {SUPER_ADMIN_ROLE}. It is a system role.")
        if db.scalar(select(Role.id).where(Role.name == new_name)) is not None:
            raise ConflictError(f"Role with name '{new_name}' already exists")
        role.name = new_name
    if "description" in changes:
        role.description = changes["description"]
    _commit(db, f"Role with name '{role.name}' already exists")
    db.refresh(role)
    logger.info("Updated role id=%s", role.id)
    return role


def delete_role(db: Session, role_id: int) -> None:
    role = get_role(db, role_id)
    if role.name == SUPER_ADMIN_ROLE:
        raise ValidationError(f"Cannot delete {SUPER_ADMIN_ROLE} role. It is a system role.")
    user_count = db.scalar(select(func.count()).select_from(User).where(User.role_id == role_id))
    if user_count:
        raise ConflictError(
            f"Cannot delete role. It is assigned to {user_count} user(s). Please reassign users first."
        )
    db.delete(role)
    _commit(db, "Role is still referenced")
    logger.info("Deleted role id=%s", role_id)


# ---- Permissions ----


def list_permissions(db: Session, resource: str | None = None) -> list[Permission]:
    stmt = select(Permission).order_by(Permission.resource, Permission.action)
    if resource:
        stmt = stmt.where(Permission.resource == resource)
    return list(db.scalars(stmt))


def get_permission(db: Session, permission_id: int) -> Permission:
    permission = db.get(Permission, permission_id)
    if permission is None:
        raise NotFoundError("Permission not found")
    return permission


def create_permission(db: Session, data: PermissionCreate) -> Permission:
    resource_type, action_type = parse_permission(data.resource, data.action)
    name = permission_name(resource_type.value, action_type.value)
    if db.scalar(select(Permission.id).where(Permission.name == name)) is not None:
        raise ConflictError(f"Permission '{name}' already exists")
    permission = Permission(
        name=name,
        resource=resource_type.value,
        action=action_type.value,
        description=data.description,
    )
    db.add(permission)
    _commit(db, f"Permission '{name}' already exists")
    db.refresh(permission)
    logger.info("Created permission id=%s name=%s", permission.id, name)
    return permission


def delete_permission(db: Session, permission_id: int) -> None:
    permission = get_permission(db, permission_id)
    grant_count = db.scalar(
        select(func.count())
        .select_from(RolePermission)
        .where(RolePermission.permission_id == permission_id)
    )
    if grant_count:
        raise ConflictError(
            f"Cannot delete permission. It is assigned to {grant_count} role(s). "
            "Please revoke it from all roles first."
        )
    db.delete(permission)
    _commit(db, "Permission is still referenced")
    logger.info("Deleted permission id=%s", permission_id)


# ---- Grants ----


def role_permission_names(db: Session, role_id: int) -> list[str]:
    """Explicit grants of a role, read fresh from the store."""
    get_role(db, role_id)
    stmt = (
        select(Permission.name)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id == role_id)
        .order_by(Permission.name)
    )
    return list(db.scalars(stmt))


def _guard_grant_target(db: Session, role_id: int, permission_id: int) -> tuple[Role, Permission]:
    role = get_role(db, role_id)
    if role.name == SUPER_ADMIN_ROLE:
        raise ValidationError(
            f"Cannot modify permissions for {SUPER_ADMIN_ROLE} role. "
            "Super admin has all permissions by default."
        )
    return role, get_permission(db, permission_id)


def grant_permission(db: Session, role_id: int, permission_id: int, granted_by: str | None) -> bool:
    """Grant a permission to a role. Idempotent; returns False when the grant already existed."""
    role, permission = _guard_grant_target(db, role_id, permission_id)
    if db.get(RolePermission, (role_id, permission_id)) is not None:
        return False
    db.add(RolePermission(role_id=role_id, permission_id=permission_id, granted_by=granted_by))
    _commit(db, "Permission already granted")
    logger.info("Granted %s to role %s by %s", permission.name, role.name, granted_by)
    return True


def revoke_permission(db: Session, role_id: int, permission_id: int) -> None:
    role, permission = _guard_grant_target(db, role_id, permission_id)
    grant = db.get(RolePermission, (role_id, permission_id))
    if grant is None:
        raise NotFoundError(f"Permission '{permission.name}' is not granted to role '{role.name}'")
    db.delete(grant)
    _commit(db, "Failed to revoke permission")
    logger.info("Revoked %s from role %s", permission.name, role.name)


# ---- Users ----


def _active_super_admin_count(db: Session) -> int:
    return db.scalar(
        select(func.count(User.id))
        .join(Role, User.role_id == Role.id)
        .where(Role.name == SUPER_ADMIN_ROLE, User.is_deleted.is_(False))
    )


def assign_user_role(db: Session, user_id: int, role_id: int) -> User:
    user = db.get(User, user_id)
    if user is None or user.is_deleted:
        raise NotFoundError("User not found")
    role = get_role(db, role_id)
    if (
        user.role.name == SUPER_ADMIN_ROLE
        and role.name != SUPER_ADMIN_ROLE
        and _active_super_admin_count(db) <= 1
    ):
        raise ConflictError("Cannot remove the last super admin")
    user.role_id = role_id
    _commit(db, "Failed to assign role")
    db.refresh(user)
    logger.info("Assigned role_id=%s to user_id=%s", role_id, user_id)
    return user
