"""ORM model for RBAC roles."""

from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from app.models.base import Base


class Role(Base):
    """
    Named bundle of permissions assigned to users.

    The reserved 'super_admin' role holds every permission implicitly and is
    never mutated through the API.
    """

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(String(200), nullable=True)
    created_on = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_on = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    users = relationship("User", back_populates="role")
    grants = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
    )
