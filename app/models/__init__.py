"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.branch import Branch, BranchMedia
from app.models.event import Event, EventMedia
from app.models.permission import Permission, RolePermission
from app.models.role import Role
from app.models.user import User

__all__ = [
    "Base",
    "Branch",
    "BranchMedia",
    "Event",
    "EventMedia",
    "Permission",
    "Role",
    "RolePermission",
    "User",
]
