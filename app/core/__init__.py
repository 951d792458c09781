"""Core settings, database session, security helpers and the domain error taxonomy."""

from app.core.config import get_settings, settings
from app.core.database import get_db
from app.core.errors import (
    AppError,
    ConflictError,
    DeniedError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)

__all__ = [
    "AppError",
    "ConflictError",
    "DeniedError",
    "NotFoundError",
    "UpstreamError",
    "ValidationError",
    "get_db",
    "get_settings",
    "settings",
]
