"""ORM models for events and the media they own."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from app.models.base import Base
from app.models.media import MediaReferenceMixin


class Event(Base):
    """Recorded organizational event; owns its media references."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_on = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    created_by = Column(String(150), nullable=True)

    media = relationship(
        "EventMedia",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class EventMedia(MediaReferenceMixin, Base):
    __tablename__ = "event_media"

    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    event = relationship("Event", back_populates="media")
