"""ORM models for branches and the media they own."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from app.models.base import Base
from app.models.media import MediaReferenceMixin


class Branch(Base):
    """Organizational branch; owns its media references."""

    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(150), nullable=True, unique=True)
    created_on = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    created_by = Column(String(150), nullable=True)

    media = relationship(
        "BranchMedia",
        back_populates="branch",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class BranchMedia(MediaReferenceMixin, Base):
    __tablename__ = "branch_media"

    branch_id = Column(
        Integer,
        ForeignKey("branches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    branch = relationship("Branch", back_populates="media")
