import unittest

from tests.helpers.app import build_app, sign_in_as
from tests.helpers.fake_backend import FakeBackend
from tests.helpers.rows import SAMPLE_ROWS


class EntityApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = FakeBackend()
        self.backend.seed("clients", SAMPLE_ROWS["client"])
        self.client = build_app(self.backend).test_client()

    def test_signed_out_is_401(self) -> None:
        response = self.client.get("/api/clients")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json(), {"error": "Unauthorized"})

    def test_list(self) -> None:
        sign_in_as(self.client, "read")
        response = self.client.get("/api/clients")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([r["id"] for r in response.get_json()], ["client-1"])

    def test_list_failure_is_500(self) -> None:
        sign_in_as(self.client, "read")
        self.backend.fail_with = "timeout"
        response = self.client.get("/api/clients")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {"error": "timeout"})

    def test_unknown_kind_is_404(self) -> None:
        sign_in_as(self.client, "read")
        self.assertEqual(self.client.get("/api/widgets").status_code, 404)

    def test_create_and_update(self) -> None:
        sign_in_as(self.client, "write")
        response = self.client.post(
            "/api/clients", json={"client": {"contact_name": "Ben", "contact_email": "ben@example.com"}}
        )
        self.assertEqual(response.status_code, 200)
        created = response.get_json()
        self.assertEqual(created["client_code"], "C002")

        response = self.client.put(
            "/api/clients",
            json={"client": {"id": created["id"], "contact_name": "Ben", "contact_email": "ben@example.com",
                             "client_code": "C999", "notes": "called"}},
        )
        self.assertEqual(response.status_code, 200, response.get_json())
        self.assertEqual(response.get_json()["notes"], "called")
        self.assertEqual(response.get_json()["client_code"], "C002")

    def test_missing_body_or_id_is_400(self) -> None:
        sign_in_as(self.client, "full_access")
        self.assertEqual(self.client.post("/api/clients", json={}).status_code, 400)
        self.assertEqual(self.client.put("/api/clients", json={"client": {"notes": "x"}}).status_code, 400)
        self.assertEqual(self.client.delete("/api/clients").status_code, 400)

    def test_invalid_payload_is_400_with_fields(self) -> None:
        sign_in_as(self.client, "write")
        response = self.client.post("/api/clients", json={"client": {"contact_name": "Ben"}})
        self.assertEqual(response.status_code, 400)
        self.assertIn("contact_email", response.get_json()["fields"])

    def test_backend_failure_on_write_is_400(self) -> None:
        sign_in_as(self.client, "write")
        self.backend.fail_tables.add("leads")
        response = self.client.post(
            "/api/leads", json={"lead": {"contact_name": "Ben", "contact_email": "ben@example.com", "source": "email"}}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json(), {"error": "leads unavailable"})

    def test_delete_needs_delete_capability(self) -> None:
        sign_in_as(self.client, "write")
        self.assertEqual(self.client.delete("/api/clients?id=client-1").status_code, 403)
        self.assertEqual(len(self.backend.tables["clients"]), 1)

    def test_unknown_id_is_404(self) -> None:
        sign_in_as(self.client, "full_access")
        response = self.client.delete("/api/clients?id=does-not-exist")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(len(self.backend.tables["clients"]), 1)

        response = self.client.put(
            "/api/clients",
            json={"client": {"id": "does-not-exist", "contact_name": "Ben", "contact_email": "ben@example.com"}},
        )
        self.assertEqual(response.status_code, 404)

    def test_read_role_cannot_write(self) -> None:
        sign_in_as(self.client, "read")
        response = self.client.post(
            "/api/clients", json={"client": {"contact_name": "Ben", "contact_email": "ben@example.com"}}
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json(), {"error": "Forbidden"})


if __name__ == "__main__":
    unittest.main()
