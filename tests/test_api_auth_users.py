import unittest

from synergy_crm.repository import AUTH_USERS_CACHE_KEY, AUTH_USERS_RPC
from tests.helpers.app import build_app, sign_in_as
from tests.helpers.fake_backend import FakeBackend

AUTH_USERS = [
    {"id": "u-old", "full_name": "Old", "email": "old@example.com", "permission": "read",
     "status": "active", "created_at": "2024-01-01T00:00:00+00:00"},
    {"id": "u-new", "full_name": "New", "email": "new@example.com", "permission": "write",
     "status": "inactive", "created_at": "2024-06-01T00:00:00+00:00"},
]


class AuthUsersReadTest(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = FakeBackend()
        self.backend.rpc_results[AUTH_USERS_RPC] = AUTH_USERS
        self.app = build_app(self.backend)
        self.client = self.app.test_client()

    def test_requires_sign_in(self) -> None:
        response = self.client.get("/api/auth-users")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json(), {"error": "Unauthorized"})

    def test_requires_admin(self) -> None:
        sign_in_as(self.client, "full_access")
        response = self.client.get("/api/auth-users")
        self.assertEqual(response.status_code, 403)

    def test_returns_users_newest_first(self) -> None:
        sign_in_as(self.client, "admin")
        response = self.client.get("/api/auth-users")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertIsInstance(payload, list)
        self.assertEqual([u["id"] for u in payload], ["u-new", "u-old"])
        self.assertEqual(
            set(payload[0]), {"id", "full_name", "email", "permission", "status"}
        )
        self.assertIn(("rpc", AUTH_USERS_RPC), self.backend.calls)

    def test_backend_failure_is_a_500_with_message(self) -> None:
        sign_in_as(self.client, "super_admin")
        self.backend.fail_with = "relation \"profiles\" does not exist"
        response = self.client.get("/api/auth-users")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {"error": "relation \"profiles\" does not exist"})

    def test_response_has_request_id(self) -> None:
        sign_in_as(self.client, "admin")
        response = self.client.get("/api/auth-users", headers={"X-Request-Id": "req-42"})
        self.assertEqual(response.headers["X-Request-Id"], "req-42")


class AuthUsersCacheTest(unittest.TestCase):
    def test_cached_within_ttl_and_invalidated_by_writes(self) -> None:
        backend = FakeBackend()
        backend.rpc_results[AUTH_USERS_RPC] = AUTH_USERS
        app = build_app(backend, AUTH_USERS_CACHE_SECONDS=60)
        client = app.test_client()
        sign_in_as(client, "super_admin", user_id="admin-1")

        client.get("/api/auth-users")
        client.get("/api/auth-users")
        self.assertEqual(backend.calls.count(("rpc", AUTH_USERS_RPC)), 1)

        app.extensions[AUTH_USERS_CACHE_KEY].invalidate()
        client.get("/api/auth-users")
        self.assertEqual(backend.calls.count(("rpc", AUTH_USERS_RPC)), 2)


class AuthUsersWriteTest(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = FakeBackend()
        self.app = build_app(self.backend)
        self.client = self.app.test_client()
        sign_in_as(self.client, "admin", user_id="admin-1")

    def _create(self, **overrides):
        user = {
            "full_name": "New Person",
            "email": "person@example.com",
            "permission": "write",
            "password": "secret123",
            "confirm_password": "secret123",
        }
        user.update(overrides)
        return self.client.post("/api/auth-users", json={"user": user})

    def test_create_makes_auth_user_and_profile(self) -> None:
        response = self._create()
        self.assertEqual(response.status_code, 200)
        created = response.get_json()
        self.assertEqual(created["email"], "person@example.com")
        self.assertIn("person@example.com", self.backend.accounts)
        self.assertEqual(self.backend.tables["profiles"][0]["id"], created["id"])

    def test_missing_body_is_400(self) -> None:
        response = self.client.post("/api/auth-users", json={})
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.get_json())

    def test_weak_password_is_rejected(self) -> None:
        response = self._create(password="short", confirm_password="short")
        self.assertEqual(response.status_code, 400)
        self.assertIn("fields", response.get_json())
        self.assertEqual(self.backend.accounts, {})

    def test_admin_cannot_grant_super_admin(self) -> None:
        response = self._create(permission="super_admin")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.backend.accounts, {})

    def test_failed_profile_insert_removes_auth_user(self) -> None:
        self.backend.fail_tables.add("profiles")
        response = self._create()
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.backend.accounts, {})

    def test_update_and_delete(self) -> None:
        created = self._create().get_json()

        response = self.client.put(
            "/api/auth-users",
            json={"user": {"id": created["id"], "full_name": "Renamed", "email": "person@example.com",
                           "permission": "read", "status": "inactive"}},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.backend.tables["profiles"][0]["full_name"], "Renamed")
        self.assertEqual(self.backend.tables["profiles"][0]["permission"], "read")

        response = self.client.delete(f"/api/auth-users?id={created['id']}")
        self.assertEqual(response.get_json(), {"success": True})
        self.assertEqual(self.backend.tables["profiles"], [])
        self.assertEqual(self.backend.accounts, {})

    def test_update_without_status_keeps_it(self) -> None:
        created = self._create(status="inactive").get_json()
        response = self.client.put(
            "/api/auth-users",
            json={"user": {"id": created["id"], "full_name": "Renamed", "email": "person@example.com",
                           "permission": "write"}},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.backend.tables["profiles"][0]["status"], "inactive")

    def test_delete_unknown_user_is_404(self) -> None:
        response = self.client.delete("/api/auth-users?id=nobody")
        self.assertEqual(response.status_code, 404)

    def test_delete_without_id_is_400(self) -> None:
        self.assertEqual(self.client.delete("/api/auth-users").status_code, 400)

    def test_cannot_delete_self(self) -> None:
        self.backend.seed("profiles", {"id": "admin-1", "full_name": "Me", "permission": "admin", "status": "active"})
        response = self.client.delete("/api/auth-users?id=admin-1")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(len(self.backend.tables["profiles"]), 1)


if __name__ == "__main__":
    unittest.main()
