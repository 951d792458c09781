"""Relational permission store: the durable role -> permission mapping the authorization cache mirrors."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, UpstreamError
from app.models import Permission, Role, RolePermission, User
from app.schemas.rbac import permission_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleRef:
    """Role identity as seen by authorization: id plus name (name decides the super-admin bypass)."""

    id: int
    name: str


class PermissionStore(Protocol):
    """Read side of the store consumed by AuthorizationCache."""

    def load_role_permissions(self, role_id: int) -> frozenset[str]: ...

    def load_user_role(self, user_id: int) -> RoleRef: ...


class SqlPermissionStore:
    """
    PermissionStore backed by the roles/permissions/role_permissions/users tables.

    Opens a short-lived session per load so it can be shared across requests.
    Any SQLAlchemy failure surfaces as UpstreamError.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def load_role_permissions(self, role_id: int) -> frozenset[str]:
        stmt = (
            select(Permission.resource, Permission.action)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
        )
        try:
            with self._session_factory() as db:
                rows = db.execute(stmt).all()
        except SQLAlchemyError as e:
            logger.error("Failed to load permissions for role_id=%s: %s", role_id, e)
            raise UpstreamError("Permission store is unavailable") from e
        return frozenset(permission_name(resource, action) for resource, action in rows)

    def load_user_role(self, user_id: int) -> RoleRef:
        stmt = (
            select(Role.id, Role.name)
            .join(User, User.role_id == Role.id)
            .where(User.id == user_id, User.is_deleted.is_(False))
        )
        try:
            with self._session_factory() as db:
                row = db.execute(stmt).first()
        except SQLAlchemyError as e:
            logger.error("Failed to load role for user_id=%s: %s", user_id, e)
            raise UpstreamError("Permission store is unavailable") from e
        if row is None:
            raise NotFoundError(f"User {user_id} not found")
        return RoleRef(id=row.id, name=row.name)
