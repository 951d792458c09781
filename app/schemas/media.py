"""Schemas for events, branches and media references with derived access URLs."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FileType = Literal["image", "video", "audio", "file"]


class MediaOwner(str, Enum):
    """Parent entity kinds that own media references."""

    EVENTS = "events"
    BRANCHES = "branches"


class EventCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class BranchCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=150)


class MediaItem(BaseModel):
    """Media reference as served: the stored key is never returned, only a fresh signed URL."""

    id: int
    original_filename: str
    file_type: FileType
    content_type: str
    category: str | None = None
    created_on: datetime | None = None
    url: str = Field(..., description="Short-lived presigned access URL")


class MediaPage(BaseModel):
    data: list[MediaItem]
    next_cursor: str | None = None
    has_more: bool = False


class MediaUploadResponse(BaseModel):
    id: int
    original_filename: str
    file_type: FileType
    content_type: str


class DownloadUrlResponse(BaseModel):
    media_id: int
    download_url: str
    expires_in: int = Field(..., description="Seconds until the URL expires")


class EventResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    created_on: datetime | None = None
    media: list[MediaItem] = Field(default_factory=list)


class BranchResponse(BaseModel):
    id: int
    name: str
    email: str | None = None
    created_on: datetime | None = None
    media: list[MediaItem] = Field(default_factory=list)
