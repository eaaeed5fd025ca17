import random
import unittest

from fastapi.testclient import TestClient

from bikeguard.app import create_app
from bikeguard.db import SqlDbClient
from bikeguard.dependencies import (
    get_db_client,
    get_identity_service,
    get_storage_client,
    get_telemetry_simulator,
)
from bikeguard.identity import InMemoryIdentityService, UserIdentity
from bikeguard.storage import InMemoryStorageClient
from bikeguard.telemetry import TelemetrySimulator

COOKIE = "bikeguard_session"

ALICE = UserIdentity(
    id="user-alice",
    email="alice@example.com",
    display_name="Alice Rider",
    picture="https://example.com/alice.png",
    given_name="Alice",
    family_name="Rider",
)
BOB = UserIdentity(id="user-bob", email="bob@example.com")


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.db = SqlDbClient.in_memory()
        self.identity = InMemoryIdentityService()
        self.identity.register("alice-session", ALICE)
        self.identity.register("bob-session", BOB)
        self.identity.register("alice-device", ALICE)
        self.identity.codes["good-code"] = "alice-session"
        self.simulator = TelemetrySimulator(rng=random.Random(7))

        app = create_app()
        app.dependency_overrides[get_db_client] = lambda: self.db
        app.dependency_overrides[get_identity_service] = lambda: self.identity
        app.dependency_overrides[get_storage_client] = lambda: InMemoryStorageClient()
        app.dependency_overrides[get_telemetry_simulator] = lambda: self.simulator
        self.client = TestClient(app)

    def login(self, token="alice-session"):
        self.client.cookies.set(COOKIE, token)

    def create_bike(self, **overrides):
        body = {"bike_name": "Commuter", "model": "CX-1"}
        body.update(overrides)
        response = self.client.post("/api/bikes", json=body)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()


class AuthTests(ApiTestCase):
    def test_redirect_url(self):
        response = self.client.get("/api/oauth/google/redirect_url")
        self.assertEqual(response.status_code, 200)
        self.assertIn("/oauth/google/", response.json()["redirectUrl"])

    def test_session_sets_cookie(self):
        response = self.client.post("/api/sessions", json={"code": "good-code"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})
        cookie_header = response.headers["set-cookie"]
        self.assertIn(f"{COOKIE}=alice-session", cookie_header)
        self.assertIn("HttpOnly", cookie_header)

    def test_session_without_code(self):
        response = self.client.post("/api/sessions", json={})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "No authorization code provided"})

    def test_session_with_bad_code(self):
        response = self.client.post("/api/sessions", json={"code": "nope"})
        self.assertEqual(response.status_code, 401)

    def test_users_me_requires_session(self):
        response = self.client.get("/api/users/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Unauthorized"})

        self.login("unknown-token")
        self.assertEqual(self.client.get("/api/users/me").status_code, 401)

    def test_users_me(self):
        self.login()
        response = self.client.get("/api/users/me")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], ALICE.id)
        self.assertEqual(response.json()["email"], ALICE.email)

    def test_logout_revokes_session(self):
        self.login()
        response = self.client.get("/api/logout")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})
        self.assertNotIn("alice-session", self.identity.tokens)

        self.login()
        self.assertEqual(self.client.get("/api/users/me").status_code, 401)

    def test_logout_without_cookie(self):
        response = self.client.get("/api/logout")
        self.assertEqual(response.status_code, 200)


class ProfileTests(ApiTestCase):
    def test_profile_created_on_first_read(self):
        self.login()
        self.assertIsNone(self.db.get_profile(ALICE.id))

        response = self.client.get("/api/profile")
        self.assertEqual(response.status_code, 200)
        profile = response.json()
        self.assertEqual(profile["id"], ALICE.id)
        self.assertEqual(profile["username"], "alice_rider")
        self.assertEqual(profile["first_name"], "Alice")
        self.assertEqual(profile["avatar_url"], ALICE.picture)

        again = self.client.get("/api/profile").json()
        self.assertEqual(again["created_at"], profile["created_at"])

    def test_update_profile(self):
        self.login()
        response = self.client.put("/api/profile", json={"bike_model": "Roadster"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["bike_model"], "Roadster")
        self.assertEqual(response.json()["first_name"], "Alice")

    def test_empty_profile_update(self):
        self.login()
        response = self.client.put("/api/profile", json={})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "No fields to update"})


class BikeTests(ApiTestCase):
    def test_create_and_list(self):
        self.login()
        bike = self.create_bike(brand="Acme", year=2020, estimated_value=1200)
        self.assertFalse(bike["is_stolen"])
        self.assertFalse(bike["is_primary"])
        self.assertEqual(bike["user_id"], ALICE.id)

        primary = self.create_bike(bike_name="Racer", is_primary=True)
        third = self.create_bike(bike_name="Spare")

        ids = [b["id"] for b in self.client.get("/api/bikes").json()]
        self.assertEqual(ids, [primary["id"], third["id"], bike["id"]])

    def test_create_validation(self):
        self.login()
        response = self.client.post("/api/bikes", json={"model": "CX-1"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("bike_name", response.json()["error"])

        response = self.client.post(
            "/api/bikes", json={"bike_name": "Old", "model": "X", "year": 1850}
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            "/api/bikes", json={"bike_name": "Neg", "model": "X", "estimated_value": -1}
        )
        self.assertEqual(response.status_code, 400)

    def test_other_owner_sees_not_found(self):
        self.login()
        bike = self.create_bike()

        self.login("bob-session")
        for method, path, body in (
            ("get", f"/api/bikes/{bike['id']}", None),
            ("put", f"/api/bikes/{bike['id']}", {"color": "red"}),
            ("put", f"/api/bikes/{bike['id']}/stolen", {"is_stolen": True}),
            ("delete", f"/api/bikes/{bike['id']}", None),
            ("post", f"/api/bikes/{bike['id']}/photo-upload-url", None),
        ):
            response = self.client.request(method, path, json=body)
            self.assertEqual(response.status_code, 404, path)
            self.assertEqual(response.json(), {"error": "Bike not found"})
        self.assertEqual(self.client.get("/api/bikes").json(), [])

        self.login()
        self.assertEqual(self.client.get(f"/api/bikes/{bike['id']}").status_code, 200)

    def test_update_bike(self):
        self.login()
        bike = self.create_bike(color="blue")

        response = self.client.put(f"/api/bikes/{bike['id']}", json={"color": None})
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["color"])
        self.assertEqual(response.json()["bike_name"], "Commuter")

        response = self.client.put(f"/api/bikes/{bike['id']}", json={})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "No fields to update"})

        response = self.client.put(f"/api/bikes/{bike['id']}", json={"bike_name": None})
        self.assertEqual(response.status_code, 400)

    def test_update_missing_bike_before_empty_check(self):
        self.login()
        response = self.client.put("/api/bikes/999", json={})
        self.assertEqual(response.status_code, 404)

    def test_stolen_toggle_and_delete(self):
        self.login()
        bike = self.create_bike()

        response = self.client.put(f"/api/bikes/{bike['id']}/stolen", json={"is_stolen": True})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["is_stolen"])
        self.assertEqual(self.client.get("/api/theft-reports").json(), [])

        response = self.client.delete(f"/api/bikes/{bike['id']}")
        self.assertEqual(response.json(), {"success": True})
        self.assertEqual(self.client.get(f"/api/bikes/{bike['id']}").status_code, 404)
        response = self.client.put(f"/api/bikes/{bike['id']}", json={"color": "red"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Bike not found"})
        self.assertEqual(self.client.delete(f"/api/bikes/{bike['id']}").status_code, 404)

    def test_stolen_round_trip_keeps_other_fields(self):
        self.login()
        bike = self.create_bike(brand="Acme", color="green", year=2021, is_primary=True)

        stolen = self.client.put(f"/api/bikes/{bike['id']}/stolen", json={"is_stolen": True})
        self.assertTrue(stolen.json()["is_stolen"])
        back = self.client.put(f"/api/bikes/{bike['id']}/stolen", json={"is_stolen": False})
        self.assertEqual(back.status_code, 200)
        restored = back.json()

        self.assertFalse(restored["is_stolen"])
        for key, value in bike.items():
            if key in ("is_stolen", "updated_at"):
                continue
            self.assertEqual(restored[key], value, key)

    def test_photo_upload_url(self):
        self.login()
        bike = self.create_bike()
        response = self.client.post(
            f"/api/bikes/{bike['id']}/photo-upload-url", json={"content_type": "image/png"}
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["path"], f"bikes/{ALICE.id}/{bike['id']}/photo")
        self.assertIn("op=put", payload["upload_url"])
        self.assertIn("type=image/png", payload["upload_url"])
        self.assertIn("op=get", payload["download_url"])

        response = self.client.post(
            f"/api/bikes/{bike['id']}/photo-upload-url", json={"content_type": "text/plain"}
        )
        self.assertEqual(response.status_code, 400)


class TheftReportTests(ApiTestCase):
    def file_report(self, bike_id):
        return self.client.post(
            "/api/theft-reports",
            json={
                "bike_id": bike_id,
                "theft_date": "2024-05-01",
                "theft_location": "Main St",
            },
        )

    def test_report_lifecycle(self):
        self.login()
        bike = self.create_bike()

        response = self.file_report(bike["id"])
        self.assertEqual(response.status_code, 201)
        report = response.json()
        self.assertEqual(report["status"], "reported")
        self.assertIsNone(report["recovered_at"])

        response = self.client.put(
            f"/api/theft-reports/{report['id']}", json={"status": "recovered"}
        )
        self.assertEqual(response.json()["status"], "recovered")
        self.assertIsNotNone(response.json()["recovered_at"])

        response = self.client.put(
            f"/api/theft-reports/{report['id']}", json={"status": "investigating"}
        )
        self.assertIsNone(response.json()["recovered_at"])

    def test_report_requires_owned_bike(self):
        self.login()
        bike = self.create_bike()

        self.login("bob-session")
        response = self.file_report(bike["id"])
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Bike not found"})

    def test_status_update_on_unknown_report(self):
        self.login()
        response = self.client.put("/api/theft-reports/42", json={"status": "closed"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Report not found"})


class DeviceEndpointTests(ApiTestCase):
    def test_security_alert_with_bearer_token(self):
        response = self.client.post(
            "/api/security-alert",
            json={"device_id": "dev-1", "alert_type": "tampering"},
            headers={"Authorization": "Bearer alice-device"},
        )
        self.assertEqual(response.status_code, 201, response.text)
        alert = response.json()
        self.assertEqual(alert["user_id"], ALICE.id)
        self.assertEqual(alert["severity"], "medium")
        self.assertFalse(alert["resolved"])

    def test_security_alert_with_body_token(self):
        response = self.client.post(
            "/api/security-alert",
            json={
                "device_id": "dev-1",
                "alert_type": "low_battery",
                "severity": "low",
                "jwt": "alice-device",
            },
        )
        self.assertEqual(response.status_code, 201)

    def test_device_token_errors(self):
        body = {"device_id": "dev-1", "alert_type": "tampering"}
        response = self.client.post("/api/security-alert", json=body)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Missing device token"})

        response = self.client.post(
            "/api/security-alert", json=body, headers={"Authorization": "Bearer forged"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid JWT token"})
        self.assertEqual(self.db.list_security_alerts(ALICE.id), [])

    def test_device_payload_validation(self):
        response = self.client.post(
            "/api/security-alert",
            json={"device_id": "dev-1", "alert_type": "explosion"},
            headers={"Authorization": "Bearer alice-device"},
        )
        self.assertEqual(response.status_code, 400)

    def test_resolve_security_alert(self):
        alert = self.db.create_security_alert(
            ALICE.id, {"device_id": "dev-1", "alert_type": "tampering", "severity": "high"}
        )
        self.login("bob-session")
        response = self.client.put(f"/api/security-alerts/{alert['id']}/resolve")
        self.assertEqual(response.status_code, 404)

        self.login()
        response = self.client.put(f"/api/security-alerts/{alert['id']}/resolve")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["resolved"])
        self.assertEqual(response.json()["resolved_by"], ALICE.id)
        self.assertIsNotNone(response.json()["resolved_at"])

        again = self.client.put(f"/api/security-alerts/{alert['id']}/resolve")
        self.assertEqual(again.status_code, 200)
        self.assertTrue(again.json()["resolved"])
        self.assertIsNotNone(again.json()["resolved_at"])

    def test_legacy_alert_flow(self):
        response = self.client.post(
            "/api/alert",
            json={"device_id": "dev-1", "alert_type": "crash", "latitude": 1.5},
            headers={"Authorization": "Bearer alice-device"},
        )
        self.assertEqual(response.status_code, 201)
        alert_id = response.json()["id"]

        self.login()
        alerts = self.client.get("/api/alerts").json()
        self.assertEqual([a["id"] for a in alerts], [alert_id])

        response = self.client.put(f"/api/alerts/{alert_id}/resolve")
        self.assertTrue(response.json()["resolved"])

    def test_sensor_data_feeds_live_data(self):
        response = self.client.post(
            "/api/sensor-data",
            json={"device_id": "dev-1", "speed": 0, "latitude": 51.5, "longitude": -0.12},
            headers={"Authorization": "Bearer alice-device"},
        )
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["success"])

        self.login()
        live = self.client.get("/api/live-data").json()
        self.assertEqual(live["speed"], 0)
        self.assertEqual(live["latitude"], 51.5)
        self.assertEqual(live["longitude"], -0.12)


class ContactTests(ApiTestCase):
    def add_contact(self, name, primary=False):
        response = self.client.post(
            "/api/emergency-contacts",
            json={
                "contact_name": name,
                "phone_number": "+15550100",
                "email": f"{name.lower()}@example.com",
                "is_primary": primary,
            },
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_primary_contacts_listed_first(self):
        self.login()
        first = self.add_contact("Carol")
        primary = self.add_contact("Dave", primary=True)
        last = self.add_contact("Erin")

        ids = [c["id"] for c in self.client.get("/api/emergency-contacts").json()]
        self.assertEqual(ids, [primary["id"], first["id"], last["id"]])

    def test_invalid_email(self):
        self.login()
        response = self.client.post(
            "/api/emergency-contacts",
            json={"contact_name": "X", "phone_number": "1", "email": "not-an-email"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("email", response.json()["error"])
        self.assertEqual(self.db.list_contacts(ALICE.id), [])

    def test_update_and_delete(self):
        self.login()
        contact = self.add_contact("Carol")

        response = self.client.put(
            f"/api/emergency-contacts/{contact['id']}", json={"is_primary": True}
        )
        self.assertTrue(response.json()["is_primary"])

        response = self.client.put(f"/api/emergency-contacts/{contact['id']}", json={})
        self.assertEqual(response.status_code, 400)

        self.login("bob-session")
        response = self.client.put(
            f"/api/emergency-contacts/{contact['id']}", json={"contact_name": "Mallory"}
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(
            self.client.delete(f"/api/emergency-contacts/{contact['id']}").status_code, 404
        )

        self.login()
        response = self.client.delete(f"/api/emergency-contacts/{contact['id']}")
        self.assertEqual(response.json(), {"success": True})


class DashboardTests(ApiTestCase):
    def test_settings_created_with_defaults(self):
        self.login()
        response = self.client.get("/api/system-settings")
        self.assertEqual(response.status_code, 200)
        settings = response.json()
        self.assertTrue(settings["crash_detection_enabled"])
        self.assertEqual(settings["theft_sensitivity"], 50)
        self.assertIsNotNone(self.db.get_system_settings(ALICE.id))

    def test_update_settings(self):
        self.login()
        response = self.client.put(
            "/api/system-settings",
            json={"blind_spot_enabled": False, "crash_sensitivity": 80},
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["blind_spot_enabled"])
        self.assertEqual(response.json()["crash_sensitivity"], 80)
        self.assertEqual(response.json()["theft_sensitivity"], 50)

        response = self.client.put("/api/system-settings", json={"theft_sensitivity": 101})
        self.assertEqual(response.status_code, 400)
        response = self.client.put("/api/system-settings", json={"theft_sensitivity": -1})
        self.assertEqual(response.status_code, 400)
        response = self.client.put("/api/system-settings", json={"crash_sensitivity": True})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.db.get_system_settings(ALICE.id)["crash_sensitivity"], 80)

        response = self.client.put("/api/system-settings", json={})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["crash_sensitivity"], 80)

    def test_live_data_without_any_data(self):
        self.login()
        response = self.client.get("/api/live-data")
        self.assertEqual(response.status_code, 200)
        live = response.json()
        self.assertIn(live["device_status"], ("online", "offline"))
        self.assertIsNone(live["current_bike_id"])
        self.assertTrue(live["theft_protection_active"])
        self.assertEqual(live["crash_sensitivity"], 50)
        self.assertIsNone(self.db.get_system_settings(ALICE.id))

    def test_live_data_uses_primary_bike_and_settings(self):
        self.login()
        self.create_bike()
        primary = self.create_bike(bike_name="Racer", is_primary=True)
        self.client.put(
            "/api/system-settings",
            json={"crash_detection_enabled": False, "blind_spot_sensitivity": 10},
        )

        live = self.client.get("/api/live-data").json()
        self.assertEqual(live["current_bike_id"], primary["id"])
        self.assertFalse(live["crash_detection_active"])
        self.assertEqual(live["blind_spot_sensitivity"], 10)

    def test_dashboard_stats(self):
        self.login()
        bike = self.create_bike()
        self.create_bike(bike_name="Second")
        self.client.post(
            "/api/theft-reports",
            json={"bike_id": bike["id"], "theft_date": "2024-05-01", "theft_location": "Park"},
        )
        resolved = self.db.create_security_alert(
            ALICE.id, {"device_id": "d", "alert_type": "tampering", "severity": "low"}
        )
        self.db.resolve_security_alert(ALICE.id, resolved["id"], resolved_by=ALICE.id)
        self.db.create_security_alert(
            ALICE.id, {"device_id": "d", "alert_type": "tampering", "severity": "low"}
        )
        self.db.record_tracking_session(
            ALICE.id,
            {
                "session_start": "2024-05-01T10:00:00+00:00",
                "session_end": "2024-05-01T11:00:00+00:00",
                "distance_km": 20.0,
                "duration_minutes": 60.0,
                "max_speed": 30.0,
            },
        )
        self.db.record_tracking_session(
            ALICE.id, {"distance_km": 5.0, "duration_minutes": 10.0, "is_active": True}
        )

        stats = self.client.get("/api/dashboard-stats").json()
        self.assertEqual(stats["bikes_count"], 2)
        self.assertEqual(stats["active_alerts"], 1)
        self.assertEqual(stats["theft_reports"], 1)
        self.assertEqual(stats["total_rides"], 1)
        self.assertEqual(stats["total_distance"], 20.0)
        self.assertEqual(stats["total_time"], 60.0)
        self.assertEqual(stats["avg_speed"], 30.0)

    def test_dashboard_stats_empty(self):
        self.login("bob-session")
        stats = self.client.get("/api/dashboard-stats").json()
        self.assertEqual(stats["total_rides"], 0)
        self.assertEqual(stats["bikes_count"], 0)
        self.assertEqual(stats["avg_speed"], 0.0)


class EndToEndTests(ApiTestCase):
    def test_stolen_bike_scenario(self):
        self.login()
        bike = self.create_bike(is_primary=True)
        self.client.put(f"/api/bikes/{bike['id']}/stolen", json={"is_stolen": True})
        report = self.client.post(
            "/api/theft-reports",
            json={"bike_id": bike["id"], "theft_date": "2024-05-01", "theft_location": "Park"},
        ).json()

        self.client.post(
            "/api/security-alert",
            json={"device_id": "dev-1", "bike_id": bike["id"], "alert_type": "unauthorized_movement",
                  "severity": "critical"},
            headers={"Authorization": "Bearer alice-device"},
        )
        alerts = self.client.get("/api/security-alerts").json()
        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0]["bike_id"], bike["id"])

        self.client.put(f"/api/theft-reports/{report['id']}", json={"status": "recovered"})
        self.client.put(f"/api/bikes/{bike['id']}/stolen", json={"is_stolen": False})
        self.client.put(f"/api/security-alerts/{alerts[0]['id']}/resolve")

        stats = self.client.get("/api/dashboard-stats").json()
        self.assertEqual(stats["active_alerts"], 0)
        self.assertEqual(stats["theft_reports"], 1)
        self.assertFalse(self.client.get(f"/api/bikes/{bike['id']}").json()["is_stolen"])

    def test_unknown_route_uses_error_shape(self):
        response = self.client.get("/api/does-not-exist")
        self.assertEqual(response.status_code, 404)
        self.assertIn("error", response.json())

    def test_malformed_json_body(self):
        self.login()
        response = self.client.post(
            "/api/bikes",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Malformed JSON body"})


if __name__ == "__main__":
    unittest.main()
