"""HTTP tests for auth, RBAC, users, events and media routes: status mapping and cache invalidation."""

import unittest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from sqlalchemy import select

from app.core.database import get_db
from app.core.security import create_access_token, hash_password
from app.main import app
from app.models import EventMedia, Permission
from app.scripts.seed_rbac import seed_rbac
from app.services import media_service
from app.services.authz_cache import AuthorizationCache
from app.services.permission_resolver import PermissionResolver
from app.services.permission_store import SqlPermissionStore
from db_helpers import add_user, at, make_session_factory, role_id

API = "/api/v1"


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.Session = make_session_factory()
        self.db = self.Session()
        seed_rbac(self.db)
        self.super_admin = add_user(self.db, "super_admin", "root@example.org")
        self.coordinator = add_user(self.db, "coordinator", "coord@example.org")
        self.staff = add_user(self.db, "staff", "staff@example.org")

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        saved_state = {
            name: getattr(app.state, name)
            for name in ("authz_cache", "permission_resolver", "object_storage", "media_resolver")
        }
        self.cache = AuthorizationCache(SqlPermissionStore(self.Session), ttl_seconds=300)
        app.state.authz_cache = self.cache
        app.state.permission_resolver = PermissionResolver(self.cache)
        app.state.object_storage = None
        app.state.media_resolver = None
        app.dependency_overrides[get_db] = override_get_db

        def restore() -> None:
            app.dependency_overrides.clear()
            for name, value in saved_state.items():
                setattr(app.state, name, value)
            self.db.close()

        self.addCleanup(restore)
        self.client = TestClient(app)

    def auth(self, user) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(sub=user.id, role=user.role.name)}"}

    def permission_id(self, name: str) -> int:
        return self.db.scalar(select(Permission.id).where(Permission.name == name))


class TestAuth(ApiTestCase):
    def test_login(self) -> None:
        user = add_user(self.db, "staff", "login@example.org", password_hash=hash_password("correct-horse"))
        resp = self.client.post(f"{API}/auth", json={"email": "Login@Example.org", "password": "correct-horse"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["token_type"], "bearer")

        resp = self.client.post(f"{API}/auth", json={"email": user.email, "password": "wrong-horse"})
        self.assertEqual(resp.status_code, 401)

    def test_missing_and_invalid_token(self) -> None:
        self.assertEqual(self.client.get(f"{API}/rbac/my-permissions").status_code, 401)
        resp = self.client.get(f"{API}/rbac/my-permissions", headers={"Authorization": "Bearer nope"})
        self.assertEqual(resp.status_code, 401)

    def test_health(self) -> None:
        resp = self.client.get(f"{API}/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["database"], "connected")
        self.assertEqual(resp.json()["object_storage"], "not_configured")


class TestRbacRoutes(ApiTestCase):
    def test_admin_routes_reserved_for_super_admin(self) -> None:
        resp = self.client.get(f"{API}/rbac/roles", headers=self.auth(self.coordinator))
        self.assertEqual(resp.status_code, 403)
        resp = self.client.get(f"{API}/rbac/roles", headers=self.auth(self.super_admin))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            {r["name"] for r in resp.json()}, {"super_admin", "admin", "coordinator", "staff"}
        )

    def test_reserved_role_name_is_bad_request(self) -> None:
        resp = self.client.post(
            f"{API}/rbac/roles", json={"name": "super_admin"}, headers=self.auth(self.super_admin)
        )
        self.assertEqual(resp.status_code, 400)

    def test_delete_role_in_use_conflicts(self) -> None:
        coordinator = role_id(self.db, "coordinator")
        resp = self.client.delete(f"{API}/rbac/roles/{coordinator}", headers=self.auth(self.super_admin))
        self.assertEqual(resp.status_code, 409)

    def test_grant_is_visible_to_the_next_check(self) -> None:
        body = {"resource": "events", "action": "delete"}
        headers = self.auth(self.coordinator)
        resp = self.client.post(f"{API}/rbac/check-permission", json=body, headers=headers)
        self.assertEqual(resp.json(), {"has_permission": False, "permission": "events:delete"})

        grant = {"role_id": role_id(self.db, "coordinator"), "permission_id": self.permission_id("events:delete")}
        resp = self.client.post(
            f"{API}/rbac/role-permissions/grant", json=grant, headers=self.auth(self.super_admin)
        )
        self.assertEqual(resp.status_code, 200)

        resp = self.client.post(f"{API}/rbac/check-permission", json=body, headers=headers)
        self.assertTrue(resp.json()["has_permission"])

        resp = self.client.post(
            f"{API}/rbac/role-permissions/revoke", json=grant, headers=self.auth(self.super_admin)
        )
        self.assertEqual(resp.status_code, 200)
        resp = self.client.post(f"{API}/rbac/check-permission", json=body, headers=headers)
        self.assertFalse(resp.json()["has_permission"])

        resp = self.client.post(
            f"{API}/rbac/role-permissions/revoke", json=grant, headers=self.auth(self.super_admin)
        )
        self.assertEqual(resp.status_code, 404)

    def test_check_permission_rejects_unknown_names(self) -> None:
        resp = self.client.post(
            f"{API}/rbac/check-permission",
            json={"resource": "bogus", "action": "read"},
            headers=self.auth(self.staff),
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Invalid resource type: bogus")

    def test_my_permissions(self) -> None:
        resp = self.client.get(f"{API}/rbac/my-permissions", headers=self.auth(self.super_admin))
        self.assertEqual(resp.json()["role"], "super_admin")
        self.assertEqual(len(resp.json()["permissions"]), 72)

        resp = self.client.get(f"{API}/rbac/my-permissions", headers=self.auth(self.staff))
        self.assertEqual(resp.json()["role"], "staff")
        self.assertIn("events:read", resp.json()["permissions"])
        self.assertNotIn("events:create", resp.json()["permissions"])


class TestUserRoutes(ApiTestCase):
    def test_denied_response_names_required_permission(self) -> None:
        resp = self.client.get(f"{API}/users", headers=self.auth(self.staff))
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["required_permission"], "users:list")

    def test_role_change_takes_effect_immediately(self) -> None:
        headers = self.auth(self.staff)
        self.assertEqual(self.client.post(f"{API}/events", json={"name": "Fair"}, headers=headers).status_code, 403)

        resp = self.client.put(
            f"{API}/users/{self.staff.id}/role",
            json={"role_id": role_id(self.db, "coordinator")},
            headers=self.auth(self.super_admin),
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.post(f"{API}/events", json={"name": "Fair"}, headers=headers).status_code, 201)

    def test_only_super_admin_assigns_super_admin(self) -> None:
        admin = add_user(self.db, "admin", "admin@example.org")
        resp = self.client.put(
            f"{API}/users/{self.staff.id}/role",
            json={"role_id": role_id(self.db, "super_admin")},
            headers=self.auth(admin),
        )
        self.assertEqual(resp.status_code, 403)

    def test_only_super_admin_changes_a_super_admin(self) -> None:
        admin = add_user(self.db, "admin", "admin@example.org")
        resp = self.client.put(
            f"{API}/users/{self.super_admin.id}/role",
            json={"role_id": role_id(self.db, "staff")},
            headers=self.auth(admin),
        )
        self.assertEqual(resp.status_code, 403)

        resp = self.client.get(f"{API}/rbac/roles", headers=self.auth(self.super_admin))
        self.assertEqual(resp.status_code, 200)

    def test_last_super_admin_cannot_be_demoted(self) -> None:
        staff_role = {"role_id": role_id(self.db, "staff")}
        resp = self.client.put(
            f"{API}/users/{self.super_admin.id}/role", json=staff_role, headers=self.auth(self.super_admin)
        )
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["detail"], "Cannot remove the last super admin")

        add_user(self.db, "super_admin", "root2@example.org")
        resp = self.client.put(
            f"{API}/users/{self.super_admin.id}/role", json=staff_role, headers=self.auth(self.super_admin)
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["role_id"], staff_role["role_id"])


class TestEventAndMediaRoutes(ApiTestCase):
    def create_event(self) -> int:
        resp = self.client.post(
            f"{API}/events", json={"name": "Harvest festival"}, headers=self.auth(self.coordinator)
        )
        self.assertEqual(resp.status_code, 201)
        return resp.json()["id"]

    def test_unknown_event_is_not_found(self) -> None:
        resp = self.client.get(f"{API}/events/999", headers=self.auth(self.staff))
        self.assertEqual(resp.status_code, 404)

    def test_event_without_media_needs_no_storage(self) -> None:
        event_id = self.create_event()
        resp = self.client.get(f"{API}/events/{event_id}", headers=self.auth(self.staff))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["media"], [])

    def test_media_listing_resolves_urls(self) -> None:
        event_id = self.create_event()
        self.db.add(
            EventMedia(
                event_id=event_id,
                s3_key="images/abc.png",
                original_filename="abc.png",
                file_type="image",
                content_type="image/png",
                created_on=at(1),
            )
        )
        self.db.commit()
        resolver = MagicMock()
        resolver.resolve_many.return_value = ["https://s3.example/images/abc.png?X-Amz-Signature=sig"]
        app.state.media_resolver = resolver

        resp = self.client.get(f"{API}/events/{event_id}/media", headers=self.auth(self.staff))

        self.assertEqual(resp.status_code, 200)
        page = resp.json()
        self.assertEqual(page["data"][0]["url"], "https://s3.example/images/abc.png?X-Amz-Signature=sig")
        self.assertNotIn("s3_key", page["data"][0])
        self.assertFalse(page["has_more"])

    def test_media_routes_fail_when_storage_missing(self) -> None:
        event_id = self.create_event()
        resp = self.client.get(f"{API}/events/{event_id}/media", headers=self.auth(self.staff))
        self.assertEqual(resp.status_code, 500)

    def test_bad_cursor_is_bad_request(self) -> None:
        event_id = self.create_event()
        app.state.media_resolver = MagicMock()
        resp = self.client.get(
            f"{API}/events/{event_id}/media", params={"cursor": "bm90LWEtY3Vyc29y"}, headers=self.auth(self.staff)
        )
        self.assertEqual(resp.status_code, 400)

    def test_cursor_id_out_of_range_is_bad_request(self) -> None:
        event_id = self.create_event()
        app.state.media_resolver = MagicMock()
        cursor = media_service.encode_cursor(at(1), int("1" * 31))
        resp = self.client.get(
            f"{API}/events/{event_id}/media", params={"cursor": cursor}, headers=self.auth(self.staff)
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Invalid pagination cursor")

    def test_staff_cannot_delete_event(self) -> None:
        event_id = self.create_event()
        resp = self.client.delete(f"{API}/events/{event_id}", headers=self.auth(self.staff))
        self.assertEqual(resp.status_code, 403)


if __name__ == "__main__":
    unittest.main()
