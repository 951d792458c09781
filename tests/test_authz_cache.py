"""Unit tests for app.services.authz_cache: hits and misses, invalidation, TTL expiry, stale-load discard."""

import threading
import unittest
from concurrent.futures import ThreadPoolExecutor

from app.core.errors import NotFoundError, UpstreamError
from app.services.authz_cache import AuthorizationCache
from app.services.permission_store import RoleRef


class FakeStore:
    """In-memory PermissionStore that counts loads and can be told to fail."""

    def __init__(self) -> None:
        self.user_roles = {
            1: RoleRef(10, "coordinator"),
            2: RoleRef(10, "coordinator"),
            3: RoleRef(20, "staff"),
        }
        self.role_permissions = {10: {"events:read", "events:create"}, 20: {"events:read"}}
        self.role_loads = 0
        self.permission_loads = 0
        self.fail = False
        self.on_load = None

    def load_user_role(self, user_id: int) -> RoleRef:
        self.role_loads += 1
        if self.fail:
            raise UpstreamError("Permission store is unavailable")
        if self.on_load is not None:
            hook, self.on_load = self.on_load, None
            hook()
        if user_id not in self.user_roles:
            raise NotFoundError(f"User {user_id} not found")
        return self.user_roles[user_id]

    def load_role_permissions(self, role_id: int) -> frozenset[str]:
        self.permission_loads += 1
        if self.fail:
            raise UpstreamError("Permission store is unavailable")
        return frozenset(self.role_permissions.get(role_id, ()))


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestCacheHitsAndMisses(unittest.TestCase):
    def setUp(self) -> None:
        self.store = FakeStore()
        self.clock = FakeClock()
        self.cache = AuthorizationCache(self.store, ttl_seconds=300, clock=self.clock)

    def test_miss_loads_then_hit_serves_from_memory(self) -> None:
        first = self.cache.get(1)
        second = self.cache.get(1)
        self.assertEqual(first, frozenset({"events:read", "events:create"}))
        self.assertEqual(first, second)
        self.assertEqual(self.store.role_loads, 1)
        self.assertEqual(self.store.permission_loads, 1)

    def test_users_sharing_a_role_share_one_permission_load(self) -> None:
        self.cache.get(1)
        self.cache.get(2)
        self.assertEqual(self.store.role_loads, 2)
        self.assertEqual(self.store.permission_loads, 1)

    def test_get_role_returns_role_reference(self) -> None:
        self.assertEqual(self.cache.get_role(3), RoleRef(20, "staff"))

    def test_unknown_user_raises_not_found_and_is_not_cached(self) -> None:
        with self.assertRaises(NotFoundError):
            self.cache.get(99)
        self.store.user_roles[99] = RoleRef(20, "staff")
        self.assertEqual(self.cache.get(99), frozenset({"events:read"}))

    def test_rejects_non_positive_ttl(self) -> None:
        with self.assertRaises(ValueError):
            AuthorizationCache(self.store, ttl_seconds=0)


class TestInvalidation(unittest.TestCase):
    def setUp(self) -> None:
        self.store = FakeStore()
        self.cache = AuthorizationCache(self.store, ttl_seconds=300, clock=FakeClock())

    def test_store_change_is_invisible_until_invalidate(self) -> None:
        self.assertNotIn("events:delete", self.cache.get(1))
        self.store.role_permissions[10].add("events:delete")
        self.assertNotIn("events:delete", self.cache.get(1))

        self.cache.invalidate()
        self.assertIn("events:delete", self.cache.get(1))

    def test_invalidate_drops_user_roles_too(self) -> None:
        self.assertEqual(self.cache.get_role(1).name, "coordinator")
        self.store.user_roles[1] = RoleRef(20, "staff")
        self.cache.invalidate()
        self.assertEqual(self.cache.get_role(1).name, "staff")

    def test_invalidate_bumps_generation(self) -> None:
        before = self.cache.generation
        self.cache.invalidate()
        self.cache.invalidate()
        self.assertEqual(self.cache.generation, before + 2)

    def test_load_that_straddles_invalidate_is_not_installed(self) -> None:
        self.store.on_load = self.cache.invalidate
        role = self.cache.get_role(1)
        self.assertEqual(role.name, "coordinator")
        self.assertEqual(self.store.role_loads, 1)

        self.cache.get_role(1)
        self.assertEqual(self.store.role_loads, 2)
        self.cache.get_role(1)
        self.assertEqual(self.store.role_loads, 2)


class TestTtlExpiry(unittest.TestCase):
    def setUp(self) -> None:
        self.store = FakeStore()
        self.clock = FakeClock()
        self.cache = AuthorizationCache(self.store, ttl_seconds=300, clock=self.clock)

    def test_entries_survive_until_ttl(self) -> None:
        self.cache.get(1)
        self.clock.now = 299.0
        self.cache.get(1)
        self.assertEqual(self.store.permission_loads, 1)

    def test_entries_reload_after_ttl(self) -> None:
        self.cache.get(1)
        generation = self.cache.generation
        self.store.role_permissions[10] = {"events:read"}
        self.clock.now = 300.0
        self.assertEqual(self.cache.get(1), frozenset({"events:read"}))
        self.assertEqual(self.store.permission_loads, 2)
        self.assertGreater(self.cache.generation, generation)


class TestStoreFailure(unittest.TestCase):
    def test_failure_propagates_and_nothing_is_cached(self) -> None:
        store = FakeStore()
        cache = AuthorizationCache(store, ttl_seconds=300, clock=FakeClock())
        store.fail = True
        with self.assertRaises(UpstreamError):
            cache.get(1)
        store.fail = False
        self.assertEqual(cache.get(1), frozenset({"events:read", "events:create"}))
        self.assertEqual(store.role_loads, 2)


class TestConcurrentAccess(unittest.TestCase):
    def test_readers_and_invalidators_do_not_interfere(self) -> None:
        store = FakeStore()
        cache = AuthorizationCache(store, ttl_seconds=300)
        valid = {frozenset({"events:read", "events:create"}), frozenset({"events:read"})}
        stop = threading.Event()

        def invalidate_repeatedly() -> None:
            while not stop.is_set():
                cache.invalidate()

        def read(i: int) -> frozenset[str]:
            return cache.get(1 + i % 3)

        invalidator = threading.Thread(target=invalidate_repeatedly)
        invalidator.start()
        try:
            with ThreadPoolExecutor(max_workers=8) as pool:
                results = list(pool.map(read, range(500)))
        finally:
            stop.set()
            invalidator.join()

        self.assertTrue(all(r in valid for r in results))
        cache.invalidate()
        self.assertEqual(cache.get(3), frozenset({"events:read"}))


if __name__ == "__main__":
    unittest.main()
