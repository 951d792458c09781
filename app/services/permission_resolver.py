"""Single authorization decision point: does user U hold permission resource:action."""

import logging

from app.core.errors import DeniedError, ValidationError
from app.schemas.rbac import (
    SUPER_ADMIN_ROLE,
    ActionType,
    ResourceType,
    permission_name,
)
from app.services.authz_cache import AuthorizationCache

logger = logging.getLogger(__name__)

ALL_PERMISSIONS: tuple[str, ...] = tuple(
    sorted(permission_name(r.value, a.value) for r in ResourceType for a in ActionType)
)


def parse_permission(resource: str | ResourceType, action: str | ActionType) -> tuple[ResourceType, ActionType]:
    """Validate resource and action against the closed enums. Raises ValidationError."""
    try:
        resource_type = ResourceType(resource)
    except ValueError:
        raise ValidationError(f"Invalid resource type: {resource}") from None
    try:
        action_type = ActionType(action)
    except ValueError:
        raise ValidationError(f"Invalid action type: {action}") from None
    return resource_type, action_type


class PermissionResolver:
    """
    Answers permission checks from the AuthorizationCache.

    The super-admin role is the only bypass and it lives here. A grant of
    'resource:manage' covers every action on that resource. Store failures
    propagate as UpstreamError, so a check never succeeds without a positive
    answer from the cache or store.
    """

    def __init__(self, cache: AuthorizationCache) -> None:
        self._cache = cache

    def is_super_admin(self, user_id: int) -> bool:
        """True when the user's cached role is super_admin. Raises NotFoundError for unknown users."""
        return self._cache.get_role(user_id).name == SUPER_ADMIN_ROLE

    def check_permission(
        self,
        user_id: int,
        resource: str | ResourceType,
        action: str | ActionType,
    ) -> None:
        """Return None when allowed; raise ValidationError, NotFoundError, DeniedError or UpstreamError."""
        resource_type, action_type = parse_permission(resource, action)
        required = permission_name(resource_type.value, action_type.value)

        if self.is_super_admin(user_id):
            return

        granted = self._cache.get(user_id)
        if required in granted:
            return
        if permission_name(resource_type.value, ActionType.MANAGE.value) in granted:
            return

        logger.info("Permission denied: user_id=%s required=%s", user_id, required)
        raise DeniedError("Insufficient permissions", required_permission=required)

    def has_permission(
        self,
        user_id: int,
        resource: str | ResourceType,
        action: str | ActionType,
    ) -> bool:
        try:
            self.check_permission(user_id, resource, action)
        except DeniedError:
            return False
        return True

    def user_permissions(self, user_id: int) -> tuple[str, list[str]]:
        """Return (role name, sorted effective permission names)."""
        role = self._cache.get_role(user_id)
        if role.name == SUPER_ADMIN_ROLE:
            return role.name, list(ALL_PERMISSIONS)
        return role.name, sorted(self._cache.get(user_id))
