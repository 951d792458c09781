"""
Seed the permission catalogue and built-in roles. Safe to re-run. Run from project root:

  python -m app.scripts.seed_rbac

Creates one permission per resource/action pair, the super_admin, admin,
coordinator and staff roles, and the default grants for the non-super roles.
Existing rows and grants are left untouched.
"""

import logging
import sys

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.database import SessionLocal
from app.models import Permission, Role, RolePermission
from app.schemas.rbac import ActionType, ResourceType, RoleType, permission_name

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

ROLE_DESCRIPTIONS = {
    RoleType.SUPER_ADMIN: "System role with every permission",
    RoleType.ADMIN: "Manages all operational data",
    RoleType.COORDINATOR: "Records events, branches and their media",
    RoleType.STAFF: "Read-only access to operational data",
}

_RBAC_RESOURCES = (ResourceType.ROLES, ResourceType.PERMISSIONS)
_FIELD_RESOURCES = (
    ResourceType.EVENTS,
    ResourceType.BRANCHES,
    ResourceType.MEDIA,
    ResourceType.VOLUNTEERS,
    ResourceType.DONATIONS,
    ResourceType.SPECIAL_GUESTS,
    ResourceType.PROMOTIONS,
)
_REFERENCE_RESOURCES = (ResourceType.AREAS, ResourceType.MASTER_DATA)
_READ_ONLY = (ActionType.READ, ActionType.LIST)


def _grants(resources, actions) -> set[str]:
    return {permission_name(r.value, a.value) for r in resources for a in actions}


# super_admin is absent on purpose: it is never granted anything explicitly.
DEFAULT_GRANTS: dict[RoleType, set[str]] = {
    RoleType.ADMIN: _grants(
        [r for r in ResourceType if r not in _RBAC_RESOURCES], [ActionType.MANAGE]
    )
    | _grants(_RBAC_RESOURCES, _READ_ONLY),
    RoleType.COORDINATOR: _grants(
        _FIELD_RESOURCES,
        (ActionType.CREATE, ActionType.READ, ActionType.UPDATE, ActionType.LIST),
    )
    | _grants(_REFERENCE_RESOURCES, _READ_ONLY),
    RoleType.STAFF: _grants(_FIELD_RESOURCES + _REFERENCE_RESOURCES, _READ_ONLY),
}


def seed_rbac(db: Session) -> tuple[int, int, int]:
    """Insert missing permissions, roles and default grants. Returns (permissions, roles, grants) created."""
    permissions = {p.name: p for p in db.scalars(select(Permission))}
    permissions_created = 0
    for resource in ResourceType:
        for action in ActionType:
            name = permission_name(resource.value, action.value)
            if name in permissions:
                continue
            permission = Permission(
                name=name,
                resource=resource.value,
                action=action.value,
                description=f"{action.value.capitalize()} {resource.value.replace('_', ' ')}",
            )
            db.add(permission)
            permissions[name] = permission
            permissions_created += 1

    roles = {r.name: r for r in db.scalars(select(Role))}
    roles_created = 0
    for role_type, description in ROLE_DESCRIPTIONS.items():
        if role_type.value not in roles:
            role = Role(name=role_type.value, description=description)
            db.add(role)
            roles[role_type.value] = role
            roles_created += 1
    db.flush()

    existing = set(db.execute(select(RolePermission.role_id, RolePermission.permission_id)).tuples())
    grants_created = 0
    for role_type, names in DEFAULT_GRANTS.items():
        role = roles[role_type.value]
        for name in sorted(names):
            key = (role.id, permissions[name].id)
            if key in existing:
                continue
            db.add(RolePermission(role_id=role.id, permission_id=permissions[name].id, granted_by="seed"))
            existing.add(key)
            grants_created += 1

    db.commit()
    return permissions_created, roles_created, grants_created


def main() -> int:
    db = SessionLocal()
    try:
        permissions, roles, grants = seed_rbac(db)
        logger.info(
            "RBAC seed completed: permissions_created=%s roles_created=%s grants_created=%s",
            permissions,
            roles,
            grants,
        )
        return 0
    except Exception as e:
        db.rollback()
        logger.exception("RBAC seed failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
