"""Just-in-time conversion of stored object keys into short-lived signed URLs."""

import logging
from collections.abc import Iterable
from datetime import timedelta
from typing import Protocol

from app.core.errors import NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

SIGNATURE_MARKERS = ("X-Amz-Signature=", "Signature=")


class ObjectStorage(Protocol):
    def object_exists(self, key: str) -> bool: ...

    def generate_presigned_url(self, key: str, expires_in: int) -> str: ...


class MediaResolver:
    """
    Resolves object keys to presigned URLs at response time.

    URLs are never stored. Batch resolution is all-or-nothing: the first key
    that fails aborts the batch and no URLs are returned.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        max_ttl_seconds: int,
        verify_exists: bool = True,
    ) -> None:
        self._storage = storage
        self._max_ttl = max_ttl_seconds
        self._verify_exists = verify_exists

    def resolve(self, object_key: str, ttl: int | timedelta) -> str:
        """Return a signed URL valid for ttl. Raises ValidationError, NotFoundError or UpstreamError."""
        expires_in = self._ttl_seconds(ttl)
        if not object_key or not object_key.strip():
            raise NotFoundError("Media object reference is empty")
        if self._verify_exists and not self._storage.object_exists(object_key):
            logger.warning("Media object missing from storage: key=%s", object_key)
            raise NotFoundError("Media object not found")
        url = self._storage.generate_presigned_url(object_key, expires_in)
        if not any(marker in url for marker in SIGNATURE_MARKERS):
            logger.error("Storage returned an unsigned URL for key=%s", object_key)
            raise UpstreamError("Generated media URL is not signed")
        return url

    def resolve_many(self, object_keys: Iterable[str], ttl: int | timedelta) -> list[str]:
        return [self.resolve(key, ttl) for key in object_keys]

    def _ttl_seconds(self, ttl: int | timedelta) -> int:
        seconds = int(ttl.total_seconds()) if isinstance(ttl, timedelta) else int(ttl)
        if seconds <= 0 or seconds > self._max_ttl:
            raise ValidationError(
                f"URL lifetime must be between 1 and {self._max_ttl} seconds"
            )
        return seconds

