import os
import unittest
from datetime import timedelta

from fastapi.testclient import TestClient

from passgate.api import deps
from passgate.core.clock import FixedClock
from passgate.core.errors import StoreUnavailable
from passgate.core.keys import StaticKeyProvider
from passgate.core.tokens import create_access_token
from passgate.crud.memory import MemoryCredentialStore
from passgate.main import api
from passgate.services.qr_cipher import QRCipher
from tests.helpers import T0


class BrokenStore(MemoryCredentialStore):
    def get(self, code):
        raise StoreUnavailable("credential store unavailable")

    def consume_use(self, code, now):
        raise StoreUnavailable("credential store unavailable")


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.store = MemoryCredentialStore()
        self.clock = FixedClock(T0)
        self.cipher = QRCipher(StaticKeyProvider(os.urandom(32)))
        api.dependency_overrides[deps.get_store] = lambda: self.store
        api.dependency_overrides[deps.get_clock] = lambda: self.clock
        api.dependency_overrides[deps.get_cipher] = lambda: self.cipher
        # sem "with": eventos de startup (migrações) não rodam
        self.client = TestClient(api)
        self.auth = {"Authorization": f"Bearer {create_access_token(sub='admin')}"}

    def tearDown(self):
        api.dependency_overrides.clear()

    def issue(self, **body):
        body = {"ownerId": 42, "ownerType": "employee", **body}
        r = self.client.post("/access/passcodes", json=body, headers=self.auth)
        self.assertEqual(r.status_code, 201, r.text)
        return r.json()

    def validate(self, code, direction="in"):
        r = self.client.post("/access/validate", json={"code": code, "deviceId": "gate-1", "direction": direction})
        self.assertEqual(r.status_code, 200, r.text)
        return r.json()

    def validate_qr(self, token, direction="in"):
        r = self.client.post("/access/validate/qr", json={"qrContent": token, "deviceId": "gate-1", "direction": direction})
        self.assertEqual(r.status_code, 200, r.text)
        return r.json()


class ValidationEndpointTests(ApiTestCase):
    def test_issue_then_validate_until_limit(self):
        code = self.issue(usageLimit=1)["code"]
        self.assertEqual(self.validate(code), {"success": True, "message": "access granted"})
        self.assertEqual(self.validate(code), {"success": False, "message": "usage limit reached"})

    def test_unknown_code_is_a_200(self):
        self.assertEqual(self.validate("ABCDEFGH2345"), {"success": False, "message": "credential not found"})

    def test_hostile_code_is_a_200(self):
        self.assertEqual(self.validate("' OR 1=1 --"), {"success": False, "message": "credential not found"})

    def test_time_code(self):
        r = self.client.post("/access/passcodes/qr", json={"ownerId": 7, "ownerType": "visitor"}, headers=self.auth)
        self.assertEqual(r.status_code, 201, r.text)
        bundle = r.json()
        body = {"timeCode": bundle["timeCode"], "code": bundle["passcode"]["code"], "deviceId": "gate-1"}
        r = self.client.post("/access/validate/timecode", json=body)
        self.assertEqual(r.json(), {"success": True, "message": "access granted"})
        self.clock.advance(minutes=10)
        r = self.client.post("/access/validate/timecode", json=body)
        self.assertEqual(r.json(), {"success": False, "message": "credential not found"})

    def test_qr_then_replay(self):
        r = self.client.post("/access/qr", json={"ownerId": 42, "ownerType": "employee"}, headers=self.auth)
        self.assertEqual(r.status_code, 201, r.text)
        token = r.json()["qrContent"]
        self.assertEqual(self.validate_qr(token), {"success": True, "message": "access granted"})
        self.assertEqual(self.validate_qr(token), {"success": False, "message": "QR invalid"})

    def test_qr_expired(self):
        r = self.client.post("/access/qr", json={"ownerId": 42, "ownerType": "employee", "ttlMinutes": 1},
                             headers=self.auth)
        token = r.json()["qrContent"]
        self.clock.advance(minutes=2)
        self.assertEqual(self.validate_qr(token), {"success": False, "message": "QR expired"})

    def test_qr_permission_denied(self):
        r = self.client.post("/access/qr", json={"ownerId": 42, "ownerType": "employee", "permissions": ["access:out"]},
                             headers=self.auth)
        token = r.json()["qrContent"]
        self.assertEqual(self.validate_qr(token, "in"), {"success": False, "message": "permission denied"})
        self.assertEqual(self.validate_qr(token, "out"), {"success": True, "message": "access granted"})

    def test_garbage_qr(self):
        self.assertEqual(self.validate_qr("not-a-token"), {"success": False, "message": "QR invalid"})

    def test_malformed_body(self):
        for body in ({}, {"code": "ABCDEFGH2345"}, {"code": 5, "deviceId": "gate-1"},
                     {"code": "ABCDEFGH2345", "deviceId": "gate-1", "direction": "sideways"}):
            r = self.client.post("/access/validate", json=body)
            self.assertEqual(r.status_code, 422)
            self.assertEqual(r.json()["code"], "MALFORMED_REQUEST")

    def test_oversized_body(self):
        r = self.client.post("/access/validate", json={"code": "A" * 20_000, "deviceId": "gate-1"})
        self.assertEqual(r.status_code, 413)
        self.assertEqual(r.json()["code"], "PAYLOAD_TOO_LARGE")

    def test_chunked_body_without_length(self):
        def chunks():
            yield b'{"code": "ABCDEFGH2345", '
            yield b'"deviceId": "gate-1"}'

        r = self.client.post("/access/validate", content=chunks(), headers={"Content-Type": "application/json"})
        self.assertEqual(r.status_code, 411)
        self.assertEqual(r.json()["code"], "LENGTH_REQUIRED")

    def test_non_numeric_content_length(self):
        r = self.client.post(
            "/access/validate",
            content=b'{"code": "ABCDEFGH2345", "deviceId": "gate-1"}',
            headers={"Content-Type": "application/json", "Content-Length": "abc"},
        )
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["code"], "MALFORMED_REQUEST")

    def test_store_unavailable(self):
        api.dependency_overrides[deps.get_store] = lambda: BrokenStore()
        r = self.client.post("/access/validate", json={"code": "ABCDEFGH2345", "deviceId": "gate-1"})
        self.assertEqual(r.status_code, 503)
        self.assertEqual(r.json(), {"code": "STORE_UNAVAILABLE", "message": "Service unavailable."})

    def test_healthz(self):
        self.assertEqual(self.client.get("/healthz").json(), {"status": "ok"})


class AdministrationEndpointTests(ApiTestCase):
    def test_requires_bearer_token(self):
        body = {"ownerId": 42, "ownerType": "employee"}
        self.assertEqual(self.client.post("/access/passcodes", json=body).status_code, 401)
        bad = {"Authorization": "Bearer not.a.jwt"}
        self.assertEqual(self.client.post("/access/passcodes", json=body, headers=bad).status_code, 401)

    def test_issue_uses_owner_defaults(self):
        out = self.issue(ownerType="visitor")
        self.assertEqual(out["usageLimit"], 5)
        self.assertEqual(out["usageCount"], 0)
        self.assertEqual(out["status"], "active")
        self.assertEqual(out["permissions"], ["basic_access"])
        self.assertEqual(len(out["code"]), 12)

    def test_issue_rejects_bad_arguments(self):
        for body in ({"ownerType": "contractor"}, {"usageLimit": 0}, {"ttlMinutes": -1}):
            r = self.client.post("/access/passcodes", json={"ownerId": 1, "ownerType": "employee", **body},
                                 headers=self.auth)
            self.assertEqual(r.status_code, 422)

    def test_bundle_carries_qr_image(self):
        r = self.client.post("/access/passcodes/qr", json={"ownerId": 42, "ownerType": "employee"}, headers=self.auth)
        bundle = r.json()
        self.assertTrue(bundle["qrImage"].startswith("data:image/png;base64,"))
        self.assertEqual(len(bundle["timeCode"]), 16)
        self.assertEqual(self.validate_qr(bundle["qrContent"])["success"], True)

    def test_get_passcode(self):
        code = self.issue(usageLimit=1)["code"]
        self.validate(code)
        r = self.client.get(f"/access/passcodes/{code}", headers=self.auth)
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["status"], "exhausted")
        self.assertEqual(r.json()["usageCount"], 1)
        r = self.client.get("/access/passcodes/ZZZZZZZZZZZZ", headers=self.auth)
        self.assertEqual(r.status_code, 404)

    def test_revoke(self):
        code = self.issue()["code"]
        r = self.client.post(f"/access/passcodes/{code}/revoke", headers=self.auth)
        self.assertEqual(r.json(), {"revoked": True})
        self.assertEqual(self.validate(code), {"success": False, "message": "credential revoked"})
        r = self.client.post(f"/access/passcodes/{code}/revoke", headers=self.auth)
        self.assertEqual(r.json(), {"revoked": False})

    def test_refresh_revokes_previous(self):
        old = self.issue()["code"]
        r = self.client.post("/access/owners/employee/42/refresh", headers=self.auth)
        self.assertEqual(r.status_code, 201)
        new = r.json()["code"]
        self.assertNotEqual(old, new)
        self.assertEqual(self.validate(old)["message"], "credential revoked")
        self.assertTrue(self.validate(new)["success"])

    def test_purge_nonces(self):
        r = self.client.post("/access/qr", json={"ownerId": 42, "ownerType": "employee", "ttlMinutes": 1},
                             headers=self.auth)
        self.validate_qr(r.json()["qrContent"])
        self.clock.set(T0 + timedelta(minutes=5))
        r = self.client.post("/access/maintenance/purge-nonces", headers=self.auth)
        self.assertEqual(r.json(), {"purged": 1})

    def test_current_owner_passcode(self):
        r = self.client.get("/access/owners/employee/42/passcode", headers=self.auth)
        self.assertEqual(r.status_code, 404)
        self.issue()
        self.clock.advance(seconds=1)
        newest = self.issue()["code"]
        r = self.client.get("/access/owners/employee/42/passcode", headers=self.auth)
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["code"], newest)
        self.assertEqual(r.json()["status"], "active")
        self.assertEqual(self.client.get("/access/owners/employee/42/passcode").status_code, 401)

    def test_batch_issue(self):
        body = {"ownerIds": [1, 2, 3], "ownerType": "visitor", "usageLimit": 2}
        r = self.client.post("/access/passcodes/batch", json=body, headers=self.auth)
        self.assertEqual(r.status_code, 201, r.text)
        out = r.json()
        self.assertEqual([p["ownerId"] for p in out["issued"]], [1, 2, 3])
        self.assertEqual(out["failed"], [])
        self.assertTrue(all(p["usageLimit"] == 2 for p in out["issued"]))
        self.assertTrue(self.validate(out["issued"][0]["code"])["success"])

    def test_batch_issue_rejects_bad_bodies(self):
        for body in ({"ownerIds": [], "ownerType": "visitor"},
                     {"ownerIds": [1], "ownerType": "contractor"},
                     {"ownerIds": list(range(501)), "ownerType": "visitor"}):
            r = self.client.post("/access/passcodes/batch", json=body, headers=self.auth)
            self.assertEqual(r.status_code, 422)

    def test_stats(self):
        code = self.issue(usageLimit=1)["code"]
        self.validate(code)
        revoked = self.issue()["code"]
        self.client.post(f"/access/passcodes/{revoked}/revoke", headers=self.auth)
        self.issue(ownerId=7, ownerType="visitor")

        r = self.client.get("/access/passcodes/stats", headers=self.auth)
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json(), {"total": 3, "active": 1, "exhausted": 1, "expired": 0, "revoked": 1})
        r = self.client.get("/access/passcodes/stats", params={"ownerId": 42, "ownerType": "employee"},
                            headers=self.auth)
        self.assertEqual(r.json()["total"], 2)
        self.assertEqual(self.client.get("/access/passcodes/stats").status_code, 401)


if __name__ == "__main__":
    unittest.main()
