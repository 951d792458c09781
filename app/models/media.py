"""Columns shared by every media reference table."""

from sqlalchemy import Column, DateTime, Integer, String, func


class MediaReferenceMixin:
    """
    Stored object reference: an opaque storage key plus upload metadata.

    Access URLs are derived per response and never stored.
    """

    id = Column(Integer, primary_key=True, autoincrement=True)
    s3_key = Column(String(1024), nullable=False, unique=True)
    original_filename = Column(String(255), nullable=False, default="")
    file_type = Column(String(16), nullable=False)
    content_type = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    created_on = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    created_by = Column(String(150), nullable=True)
