import threading
import unittest

from bikeguard.db import SqlDbClient


class SqlDbClientTests(unittest.TestCase):
    """
    Runs the SQLAlchemy client against in-memory SQLite.
    """

    def setUp(self):
        self.db = SqlDbClient.in_memory()

    def test_profile_roundtrip(self):
        self.assertIsNone(self.db.get_profile("u1"))
        created = self.db.create_profile("u1", {"username": "rider", "ignored": "x"})
        self.assertEqual(created["username"], "rider")
        self.assertNotIn("ignored", created)

        updated = self.db.update_profile("u1", {"first_name": "Ann"})
        self.assertEqual(updated["first_name"], "Ann")
        self.assertEqual(updated["username"], "rider")
        self.assertIsNone(self.db.update_profile("missing", {"first_name": "X"}))

    def test_update_rejects_unknown_fields(self):
        bike = self.db.create_bike("u1", {"bike_name": "A", "model": "M"})
        with self.assertRaises(ValueError):
            self.db.update_bike("u1", bike["id"], {"user_id": "u2"})
        with self.assertRaises(ValueError):
            self.db.update_bike("u1", bike["id"], {"is_stolen": True})

    def test_bike_ownership(self):
        bike = self.db.create_bike("u1", {"bike_name": "A", "model": "M"})
        self.assertIsNone(self.db.get_bike("u2", bike["id"]))
        self.assertIsNone(self.db.update_bike("u2", bike["id"], {"color": "red"}))
        self.assertIsNone(self.db.set_bike_stolen("u2", bike["id"], True))
        self.assertFalse(self.db.delete_bike("u2", bike["id"]))
        self.assertIsNotNone(self.db.get_bike("u1", bike["id"]))

    def test_primary_bike_picks_lowest_id(self):
        self.assertIsNone(self.db.get_primary_bike("u1"))
        self.db.create_bike("u1", {"bike_name": "A", "model": "M"})
        first = self.db.create_bike("u1", {"bike_name": "B", "model": "M", "is_primary": True})
        self.db.create_bike("u1", {"bike_name": "C", "model": "M", "is_primary": True})
        self.assertEqual(self.db.get_primary_bike("u1")["id"], first["id"])

    def test_theft_report_recovered_at(self):
        bike = self.db.create_bike("u1", {"bike_name": "A", "model": "M"})
        report = self.db.create_theft_report(
            "u1", {"bike_id": bike["id"], "theft_date": "2024-01-01", "theft_location": "X"}
        )
        self.assertEqual(report["status"], "reported")
        self.assertIsNotNone(report["reported_at"])

        recovered = self.db.set_theft_report_status("u1", report["id"], "recovered")
        self.assertIsNotNone(recovered["recovered_at"])
        closed = self.db.set_theft_report_status("u1", report["id"], "closed")
        self.assertIsNone(closed["recovered_at"])
        self.assertIsNone(self.db.set_theft_report_status("u2", report["id"], "closed"))

    def test_security_alerts_newest_first(self):
        first = self.db.create_security_alert(
            "u1", {"device_id": "d", "alert_type": "tampering", "severity": "low"}
        )
        second = self.db.create_security_alert(
            "u1", {"device_id": "d", "alert_type": "low_battery", "severity": "high"}
        )
        ids = [a["id"] for a in self.db.list_security_alerts("u1")]
        self.assertEqual(ids, [second["id"], first["id"]])
        self.assertEqual(self.db.list_security_alerts("u2"), [])

    def test_settings_lifecycle(self):
        self.assertIsNone(self.db.get_system_settings("u1"))
        with self.assertRaises(LookupError):
            self.db.update_system_settings("u1", {"theft_sensitivity": 10})

        created = self.db.create_system_settings("u1")
        self.assertEqual(created["crash_sensitivity"], 50)
        unchanged = self.db.update_system_settings("u1", {})
        self.assertEqual(unchanged["updated_at"], created["updated_at"])

        updated = self.db.update_system_settings("u1", {"theft_sensitivity": 10})
        self.assertEqual(updated["theft_sensitivity"], 10)

    def test_latest_sensor_reading(self):
        self.assertIsNone(self.db.latest_sensor_reading("u1"))
        self.db.record_sensor_reading("u1", {"device_id": "d", "speed": 10.0})
        latest = self.db.record_sensor_reading("u1", {"device_id": "d", "speed": 12.0})
        self.assertEqual(self.db.latest_sensor_reading("u1")["id"], latest["id"])

    def test_counts_are_per_owner(self):
        self.db.create_bike("u1", {"bike_name": "A", "model": "M"})
        self.db.create_bike("u2", {"bike_name": "B", "model": "M"})
        counts = self.db.dashboard_counts("u1")
        self.assertEqual(counts, {"bikes_count": 1, "active_alerts": 0, "theft_reports": 0})

    def test_in_memory_writes_from_many_threads(self):
        def add_bikes(owner):
            for n in range(10):
                self.db.create_bike(owner, {"bike_name": f"B{n}", "model": "M"})

        threads = [
            threading.Thread(target=add_bikes, args=(f"u{i}",)) for i in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for i in range(8):
            self.assertEqual(len(self.db.list_bikes(f"u{i}")), 10)


if __name__ == "__main__":
    unittest.main()
