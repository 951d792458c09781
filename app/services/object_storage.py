"""S3 object storage for uploaded media, plus content-type classification helpers."""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.errors import UpstreamError, ValidationError

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# Per file type upload limits.
MAX_FILE_SIZE_BYTES = {
    "image": 10 * MB,
    "video": 500 * MB,
    "audio": 50 * MB,
    "file": 100 * MB,
}

FOLDERS = {
    "image": "images",
    "video": "videos",
    "audio": "audio",
    "file": "files",
}

ALLOWED_CONTENT_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "image/bmp", "image/svg+xml",
        "video/mp4", "video/mpeg", "video/quicktime", "video/x-msvideo", "video/x-ms-wmv",
        "video/webm", "video/ogg", "video/x-matroska",
        "audio/mpeg", "audio/mp3", "audio/wav", "audio/ogg", "audio/webm", "audio/aac",
        "audio/x-m4a", "audio/flac", "audio/x-wav",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    }
)

# Fallback when the client sends no Content-Type for a part.
EXTENSION_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".svg": "image/svg+xml",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".wmv": "video/x-ms-wmv",
    ".webm": "video/webm",
    ".mkv": "video/x-matroska",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".aac": "audio/aac",
    ".m4a": "audio/x-m4a",
    ".flac": "audio/flac",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
# Without s3:ListBucket, S3 answers HEAD on a missing key with 403 instead of 404.
_HEAD_FORBIDDEN_CODES = frozenset({"403", "AccessDenied", "Forbidden"})


def normalize_content_type(content_type: str | None) -> str:
    """Lowercase and drop parameters such as charset."""
    return (content_type or "").split(";")[0].strip().lower()


def guess_content_type(filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return EXTENSION_CONTENT_TYPES.get(ext, "application/octet-stream")


def classify_content_type(content_type: str) -> str:
    """Map a MIME type to one of image, video, audio or file."""
    ct = normalize_content_type(content_type)
    for prefix in ("image", "video", "audio"):
        if ct.startswith(prefix + "/"):
            return prefix
    return "file"


def folder_for_file_type(file_type: str) -> str:
    return FOLDERS.get(file_type, "files")


def is_allowed_content_type(content_type: str) -> bool:
    return normalize_content_type(content_type) in ALLOWED_CONTENT_TYPES


def validate_file_size(size: int, file_type: str) -> None:
    """Raise ValidationError when size exceeds the limit for file_type."""
    max_size = MAX_FILE_SIZE_BYTES.get(file_type, MAX_FILE_SIZE_BYTES["file"])
    if size > max_size:
        raise ValidationError(
            f"File size exceeds maximum allowed size of {max_size // MB} MB"
        )
    if size == 0:
        raise ValidationError("File is empty")


@dataclass(frozen=True)
class UploadResult:
    key: str
    original_filename: str


class S3Storage:
    """
    Thin boto3 wrapper. Every failure surfaces as UpstreamError; no retries beyond botocore's own.

    The credentials need s3:GetObject, s3:PutObject and s3:DeleteObject on the
    bucket's keys. Without s3:ListBucket a HEAD on a missing key comes back as
    403, which object_exists reports as a missing object (logged as a warning).
    """

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        endpoint_url: str | None = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        client=None,
    ) -> None:
        if not bucket_name:
            raise ValueError("S3 bucket name must be configured")
        self.bucket_name = bucket_name
        self.s3_client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            endpoint_url=endpoint_url,
            config=Config(
                signature_version="s3v4",
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
            ),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> S3Storage:
        secret = settings.AWS_SECRET_ACCESS_KEY
        return cls(
            bucket_name=settings.AWS_S3_BUCKET_NAME or "",
            region=settings.AWS_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=secret.get_secret_value() if secret is not None else None,
            endpoint_url=settings.S3_ENDPOINT_URL,
            connect_timeout=settings.S3_CONNECT_TIMEOUT_SEC,
            read_timeout=settings.S3_READ_TIMEOUT_SEC,
        )

    def upload_file(
        self,
        file_content: bytes,
        filename: str,
        content_type: str,
        folder: str,
    ) -> UploadResult:
        """Store bytes under an opaque '{folder}/{uuid}{ext}' key and return the key."""
        ext = os.path.splitext(filename or "")[1].lower()
        key = f"{folder}/{uuid.uuid4()}{ext}"
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=file_content,
                ContentType=content_type,
                Metadata={
                    # S3 metadata must be ASCII
                    "original-filename": quote(filename or "", safe=""),
                    "upload-date": datetime.now(UTC).isoformat(),
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to upload file to S3 (key=%s): %s", key, e)
            raise UpstreamError("Failed to upload file to object storage") from e
        return UploadResult(key=key, original_filename=filename)

    def object_exists(self, key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return False
            if code in _HEAD_FORBIDDEN_CODES:
                logger.warning("HEAD denied for S3 object, treating as missing (key=%s)", key)
                return False
            logger.error("Failed to check S3 object (key=%s): %s", key, e)
            raise UpstreamError("Object storage lookup failed") from e
        except BotoCoreError as e:
            logger.error("Failed to check S3 object (key=%s): %s", key, e)
            raise UpstreamError("Object storage is unreachable") from e
        return True

    def generate_presigned_url(self, key: str, expires_in: int) -> str:
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": self.bucket_name,
                    "Key": key,
                    "ResponseCacheControl": f"private, max-age={expires_in}",
                },
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to presign S3 object (key=%s): %s", key, e)
            raise UpstreamError("Failed to generate access URL") from e

    def delete_object(self, key: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to delete file from S3 (key=%s): %s", key, e)
            raise UpstreamError("Failed to delete file from object storage") from e
