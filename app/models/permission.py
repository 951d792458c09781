"""ORM models for permissions and the role/permission join table."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from app.models.base import Base


class Permission(Base):
    """An allowed (resource, action) pair; name is always 'resource:action'."""

    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True, index=True)
    resource = Column(String(50), nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)
    description = Column(String(255), nullable=True)
    created_on = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    grants = relationship("RolePermission", back_populates="permission")


class RolePermission(Base):
    """Grant of one permission to one role, with audit fields."""

    __tablename__ = "role_permissions"

    role_id = Column(
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    permission_id = Column(
        Integer,
        ForeignKey("permissions.id", ondelete="RESTRICT"),
        primary_key=True,
    )
    granted_by = Column(String(150), nullable=True)
    granted_on = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    role = relationship("Role", back_populates="grants")
    permission = relationship("Permission", back_populates="grants")
