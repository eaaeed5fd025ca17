"""
Live-data snapshot for the dashboard.

A snapshot blends three sources: the owner's primary bike, the latest stored
sensor sample and the owner's system settings. Sample fields that were never
recorded come from a simulator that sits behind the same ``TelemetrySource``
interface as the stored-sample path, so a real device feed can replace it
without touching callers.

The simulated values are illustrative filler with no continuity between
requests.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from bikeguard.db import DbClient, MOTION_FIELDS, utc_now_iso

SAMPLE_FIELDS = ("speed", "latitude", "longitude", *MOTION_FIELDS, "gps_accuracy")

DEFAULT_SENSITIVITY = 50


class TelemetrySource(Protocol):
    """Anything that can produce the latest sensor sample for an owner."""

    def latest_sample(self, user_id: str) -> Optional[dict[str, Any]]:
        ...


@dataclass
class StoredTelemetry:
    """Samples pushed by devices through the sensor-data endpoint."""

    db: DbClient

    def latest_sample(self, user_id: str) -> Optional[dict[str, Any]]:
        return self.db.latest_sensor_reading(user_id)


@dataclass
class TelemetrySimulator:
    """Random sample generator used when no real reading is available."""

    latitude: float = 40.7128
    longitude: float = -74.0060
    online_probability: float = 0.9
    rng: random.Random = field(default_factory=random.Random)

    def latest_sample(self, user_id: str) -> dict[str, Any]:
        rng = self.rng
        return {
            "speed": rng.randint(10, 49),
            "latitude": self.latitude + rng.uniform(-0.005, 0.005),
            "longitude": self.longitude + rng.uniform(-0.005, 0.005),
            "gyroscope_x": rng.uniform(-22.5, 22.5),
            "gyroscope_y": rng.uniform(-22.5, 22.5),
            "gyroscope_z": rng.uniform(-90.0, 90.0),
            "accelerometer_x": rng.uniform(-10.0, 10.0),
            "accelerometer_y": rng.uniform(-10.0, 10.0),
            "accelerometer_z": rng.uniform(8.0, 18.0),
            "gps_accuracy": rng.uniform(1.0, 6.0),
            "created_at": utc_now_iso(),
        }

    def device_online(self) -> bool:
        return self.rng.random() < self.online_probability


def _setting(settings_row: Optional[dict[str, Any]], name: str, default: Any) -> Any:
    if not settings_row or settings_row.get(name) is None:
        return default
    return settings_row[name]


def build_snapshot(
    *,
    primary_bike: Optional[dict[str, Any]],
    stored_sample: Optional[dict[str, Any]],
    settings_row: Optional[dict[str, Any]],
    simulator: TelemetrySimulator,
    user_id: str,
) -> dict[str, Any]:
    """
    Merge stored and simulated values field by field. Always returns a fully
    populated snapshot.
    """
    simulated = simulator.latest_sample(user_id)
    stored_sample = stored_sample or {}

    snapshot: dict[str, Any] = {}
    for name in SAMPLE_FIELDS:
        value = stored_sample.get(name)
        snapshot[name] = value if value is not None else simulated[name]

    snapshot.update(
        {
            "device_status": "online" if simulator.device_online() else "offline",
            "crash_detection_active": bool(
                _setting(settings_row, "crash_detection_enabled", True)
            ),
            "blind_spot_active": bool(_setting(settings_row, "blind_spot_enabled", True)),
            "theft_protection_active": bool(
                _setting(settings_row, "theft_protection_enabled", True)
            ),
            "current_bike_id": primary_bike["id"] if primary_bike else None,
            "crash_sensitivity": _setting(
                settings_row, "crash_sensitivity", DEFAULT_SENSITIVITY
            ),
            "blind_spot_sensitivity": _setting(
                settings_row, "blind_spot_sensitivity", DEFAULT_SENSITIVITY
            ),
            "theft_sensitivity": _setting(
                settings_row, "theft_sensitivity", DEFAULT_SENSITIVITY
            ),
            "last_gps_update": stored_sample.get("created_at") or simulated["created_at"],
        }
    )
    return snapshot
