"""Dependencies that hand out the process-wide authorization and media components wired in app.main."""

from fastapi import Request

from app.core.errors import UpstreamError
from app.services.authz_cache import AuthorizationCache
from app.services.media_resolver import MediaResolver
from app.services.object_storage import S3Storage
from app.services.permission_resolver import PermissionResolver


def get_authz_cache(request: Request) -> AuthorizationCache:
    return request.app.state.authz_cache


def get_permission_resolver(request: Request) -> PermissionResolver:
    return request.app.state.permission_resolver


def get_object_storage(request: Request) -> S3Storage:
    storage = getattr(request.app.state, "object_storage", None)
    if storage is None:
        raise UpstreamError("Object storage is not configured")
    return storage


def get_media_resolver(request: Request) -> MediaResolver:
    resolver = getattr(request.app.state, "media_resolver", None)
    if resolver is None:
        raise UpstreamError("Object storage is not configured")
    return resolver
