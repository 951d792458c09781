"""Unit tests for app.services.permission_resolver: super-admin bypass, manage implication, input validation."""

import unittest

from app.core.errors import DeniedError, NotFoundError, UpstreamError, ValidationError
from app.schemas.rbac import ActionType, ResourceType
from app.services.authz_cache import AuthorizationCache
from app.services.permission_resolver import ALL_PERMISSIONS, PermissionResolver, parse_permission
from app.services.permission_store import RoleRef


class StubStore:
    def __init__(self) -> None:
        self.user_roles = {
            1: RoleRef(1, "super_admin"),
            2: RoleRef(2, "coordinator"),
            3: RoleRef(3, "media_manager"),
        }
        self.role_permissions = {1: set(), 2: {"events:read", "events:list"}, 3: {"media:manage"}}
        self.role_loads = 0
        self.permission_loads = 0
        self.fail = False

    def load_user_role(self, user_id: int) -> RoleRef:
        self.role_loads += 1
        if self.fail:
            raise UpstreamError("Permission store is unavailable")
        if user_id not in self.user_roles:
            raise NotFoundError(f"User {user_id} not found")
        return self.user_roles[user_id]

    def load_role_permissions(self, role_id: int) -> frozenset[str]:
        self.permission_loads += 1
        if self.fail:
            raise UpstreamError("Permission store is unavailable")
        return frozenset(self.role_permissions.get(role_id, ()))


class TestParsePermission(unittest.TestCase):
    def test_accepts_strings_and_enums(self) -> None:
        self.assertEqual(parse_permission("events", "read"), (ResourceType.EVENTS, ActionType.READ))
        self.assertEqual(
            parse_permission(ResourceType.MEDIA, ActionType.MANAGE),
            (ResourceType.MEDIA, ActionType.MANAGE),
        )

    def test_unknown_resource(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            parse_permission("bogus", "read")
        self.assertEqual(ctx.exception.message, "Invalid resource type: bogus")

    def test_unknown_action(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            parse_permission("events", "approve")
        self.assertEqual(ctx.exception.message, "Invalid action type: approve")

    def test_values_are_case_sensitive(self) -> None:
        with self.assertRaises(ValidationError):
            parse_permission("Events", "read")


class TestCheckPermission(unittest.TestCase):
    def setUp(self) -> None:
        self.store = StubStore()
        self.cache = AuthorizationCache(self.store, ttl_seconds=300)
        self.resolver = PermissionResolver(self.cache)

    def test_super_admin_allowed_everything_without_permission_lookup(self) -> None:
        for resource in ResourceType:
            for action in ActionType:
                self.resolver.check_permission(1, resource, action)
        self.assertEqual(self.store.permission_loads, 0)

    def test_is_super_admin_reads_the_cached_role(self) -> None:
        self.assertTrue(self.resolver.is_super_admin(1))
        self.assertFalse(self.resolver.is_super_admin(2))
        self.assertTrue(self.resolver.is_super_admin(1))
        self.assertEqual(self.store.role_loads, 2)
        self.assertEqual(self.store.permission_loads, 0)
        with self.assertRaises(NotFoundError):
            self.resolver.is_super_admin(42)

    def test_explicit_grant_allows(self) -> None:
        self.resolver.check_permission(2, "events", "read")
        self.assertTrue(self.resolver.has_permission(2, ResourceType.EVENTS, ActionType.LIST))

    def test_missing_grant_denied_with_required_permission(self) -> None:
        with self.assertRaises(DeniedError) as ctx:
            self.resolver.check_permission(2, "events", "delete")
        self.assertEqual(ctx.exception.required_permission, "events:delete")
        self.assertFalse(self.resolver.has_permission(2, "events", "delete"))

    def test_manage_implies_every_action_on_its_resource_only(self) -> None:
        for action in ActionType:
            self.resolver.check_permission(3, ResourceType.MEDIA, action)
        self.assertFalse(self.resolver.has_permission(3, "events", "read"))

    def test_invalid_input_rejected_before_any_lookup(self) -> None:
        with self.assertRaises(ValidationError):
            self.resolver.check_permission(2, "bogus", "read")
        with self.assertRaises(ValidationError):
            self.resolver.has_permission(2, "events", "bogus")
        self.assertEqual(self.store.role_loads, 0)

    def test_unknown_user(self) -> None:
        with self.assertRaises(NotFoundError):
            self.resolver.check_permission(42, "events", "read")

    def test_store_failure_fails_closed(self) -> None:
        self.store.fail = True
        with self.assertRaises(UpstreamError):
            self.resolver.check_permission(2, "events", "read")
        with self.assertRaises(UpstreamError):
            self.resolver.has_permission(1, "events", "read")

    def test_grant_and_revoke_take_effect_after_invalidate(self) -> None:
        self.assertFalse(self.resolver.has_permission(2, "events", "create"))

        self.store.role_permissions[2].add("events:create")
        self.cache.invalidate()
        self.assertTrue(self.resolver.has_permission(2, "events", "create"))

        self.store.role_permissions[2].discard("events:create")
        self.cache.invalidate()
        self.assertFalse(self.resolver.has_permission(2, "events", "create"))


class TestUserPermissions(unittest.TestCase):
    def setUp(self) -> None:
        self.resolver = PermissionResolver(AuthorizationCache(StubStore(), ttl_seconds=300))

    def test_super_admin_gets_full_catalogue(self) -> None:
        role, permissions = self.resolver.user_permissions(1)
        self.assertEqual(role, "super_admin")
        self.assertEqual(permissions, list(ALL_PERMISSIONS))
        self.assertEqual(len(permissions), len(ResourceType) * len(ActionType))
        self.assertIn("roles:manage", permissions)

    def test_regular_role_gets_sorted_grants(self) -> None:
        role, permissions = self.resolver.user_permissions(2)
        self.assertEqual(role, "coordinator")
        self.assertEqual(permissions, ["events:list", "events:read"])


if __name__ == "__main__":
    unittest.main()
