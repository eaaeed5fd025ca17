"""
Relational store for BikeGuard, built on SQLAlchemy.

Every owned collection is scoped by ``user_id``; lookups that miss the owner
return ``None`` exactly as if the row did not exist.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    create_engine,
    func,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


Row = dict[str, Any]


# Explicit field lists for partial updates. Anything not listed here cannot be
# patched through the API.
PROFILE_FIELDS = ("username", "first_name", "last_name", "bike_model", "avatar_url")
BIKE_FIELDS = (
    "bike_name",
    "model",
    "brand",
    "serial_number",
    "license_plate",
    "color",
    "year",
    "estimated_value",
    "bike_photo_url",
    "is_primary",
)
CONTACT_FIELDS = ("contact_name", "phone_number", "email", "is_primary")
SETTINGS_FIELDS = (
    "crash_detection_enabled",
    "blind_spot_enabled",
    "theft_protection_enabled",
    "crash_sensitivity",
    "blind_spot_sensitivity",
    "theft_sensitivity",
)
MOTION_FIELDS = (
    "gyroscope_x",
    "gyroscope_y",
    "gyroscope_z",
    "accelerometer_x",
    "accelerometer_y",
    "accelerometer_z",
)
SECURITY_ALERT_FIELDS = (
    "bike_id",
    "device_id",
    "alert_type",
    "severity",
    "latitude",
    "longitude",
    "sensor_data",
    *MOTION_FIELDS,
    "gps_accuracy",
)
ALERT_FIELDS = (
    "device_id",
    "alert_type",
    "latitude",
    "longitude",
    *MOTION_FIELDS,
    "gps_accuracy",
)
SENSOR_READING_FIELDS = (
    "device_id",
    "bike_id",
    "speed",
    "latitude",
    "longitude",
    *MOTION_FIELDS,
    "gps_accuracy",
    "signal_strength",
    "battery_level",
)
TRACKING_SESSION_FIELDS = (
    "bike_id",
    "device_id",
    "session_start",
    "session_end",
    "start_latitude",
    "start_longitude",
    "end_latitude",
    "end_longitude",
    "max_speed",
    "distance_km",
    "duration_minutes",
    "is_active",
)

RECENT_ALERTS_LIMIT = 100


def utc_now_iso() -> str:
    """UTC ISO timestamp with a 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class DbClient(Protocol):
    """Interface for database access."""

    def get_profile(self, user_id: str) -> Optional[Row]:
        ...

    def create_profile(self, user_id: str, values: Mapping[str, Any]) -> Row:
        ...

    def update_profile(self, user_id: str, changes: Mapping[str, Any]) -> Optional[Row]:
        ...

    def list_bikes(self, user_id: str) -> list[Row]:
        ...

    def get_bike(self, user_id: str, bike_id: int) -> Optional[Row]:
        ...

    def get_primary_bike(self, user_id: str) -> Optional[Row]:
        ...

    def create_bike(self, user_id: str, values: Mapping[str, Any]) -> Row:
        ...

    def update_bike(
        self, user_id: str, bike_id: int, changes: Mapping[str, Any]
    ) -> Optional[Row]:
        ...

    def set_bike_stolen(
        self, user_id: str, bike_id: int, is_stolen: bool
    ) -> Optional[Row]:
        ...

    def delete_bike(self, user_id: str, bike_id: int) -> bool:
        ...

    def list_theft_reports(self, user_id: str) -> list[Row]:
        ...

    def create_theft_report(self, user_id: str, values: Mapping[str, Any]) -> Row:
        ...

    def set_theft_report_status(
        self, user_id: str, report_id: int, status: str
    ) -> Optional[Row]:
        ...

    def list_security_alerts(self, user_id: str) -> list[Row]:
        ...

    def create_security_alert(self, user_id: str, values: Mapping[str, Any]) -> Row:
        ...

    def resolve_security_alert(
        self, user_id: str, alert_id: int, resolved_by: str
    ) -> Optional[Row]:
        ...

    def list_alerts(self, user_id: str) -> list[Row]:
        ...

    def create_alert(self, user_id: str, values: Mapping[str, Any]) -> Row:
        ...

    def resolve_alert(self, user_id: str, alert_id: int) -> Optional[Row]:
        ...

    def list_contacts(self, user_id: str) -> list[Row]:
        ...

    def get_contact(self, user_id: str, contact_id: int) -> Optional[Row]:
        ...

    def create_contact(self, user_id: str, values: Mapping[str, Any]) -> Row:
        ...

    def update_contact(
        self, user_id: str, contact_id: int, changes: Mapping[str, Any]
    ) -> Optional[Row]:
        ...

    def delete_contact(self, user_id: str, contact_id: int) -> bool:
        ...

    def get_system_settings(self, user_id: str) -> Optional[Row]:
        ...

    def create_system_settings(self, user_id: str) -> Row:
        ...

    def update_system_settings(
        self, user_id: str, changes: Mapping[str, Any]
    ) -> Row:
        ...

    def record_sensor_reading(self, user_id: str, values: Mapping[str, Any]) -> Row:
        ...

    def latest_sensor_reading(self, user_id: str) -> Optional[Row]:
        ...

    def record_tracking_session(
        self, user_id: str, values: Mapping[str, Any]
    ) -> Row:
        ...

    def dashboard_counts(self, user_id: str) -> Row:
        ...

    def ride_stats(self, user_id: str) -> Row:
        ...


Base = declarative_base()


class _RowMixin:
    def as_dict(self) -> Row:
        return {c.name: getattr(self, c.key) for c in self.__table__.columns}


class ProfileRow(_RowMixin, Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    username = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    bike_model = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class BikeRow(_RowMixin, Base):
    __tablename__ = "bikes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    bike_name = Column(String, nullable=False)
    model = Column(String, nullable=False)
    brand = Column(String, nullable=True)
    serial_number = Column(String, nullable=True)
    license_plate = Column(String, nullable=True)
    color = Column(String, nullable=True)
    year = Column(Integer, nullable=True)
    estimated_value = Column(Float, nullable=True)
    bike_photo_url = Column(String, nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    is_stolen = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class TheftReportRow(_RowMixin, Base):
    __tablename__ = "theft_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bike_id = Column(Integer, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    theft_date = Column(String, nullable=False)
    theft_location = Column(String, nullable=False)
    theft_latitude = Column(Float, nullable=True)
    theft_longitude = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    police_report_number = Column(String, nullable=True)
    status = Column(String, nullable=False, default="reported")
    reported_at = Column(String, nullable=False)
    recovered_at = Column(String, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class SecurityAlertRow(_RowMixin, Base):
    __tablename__ = "security_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bike_id = Column(Integer, nullable=True)
    user_id = Column(String, nullable=False, index=True)
    device_id = Column(String, nullable=False)
    alert_type = Column(String, nullable=False)
    severity = Column(String, nullable=False, default="medium")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    sensor_data = Column(Text, nullable=True)
    gyroscope_x = Column(Float, nullable=True)
    gyroscope_y = Column(Float, nullable=True)
    gyroscope_z = Column(Float, nullable=True)
    accelerometer_x = Column(Float, nullable=True)
    accelerometer_y = Column(Float, nullable=True)
    accelerometer_z = Column(Float, nullable=True)
    gps_accuracy = Column(Float, nullable=True)
    resolved = Column(Boolean, nullable=False, default=False)
    resolved_by = Column(String, nullable=True)
    resolved_at = Column(String, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class AlertRow(_RowMixin, Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False, index=True)
    alert_type = Column(String, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    gyroscope_x = Column(Float, nullable=True)
    gyroscope_y = Column(Float, nullable=True)
    gyroscope_z = Column(Float, nullable=True)
    accelerometer_x = Column(Float, nullable=True)
    accelerometer_y = Column(Float, nullable=True)
    accelerometer_z = Column(Float, nullable=True)
    gps_accuracy = Column(Float, nullable=True)
    resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class EmergencyContactRow(_RowMixin, Base):
    __tablename__ = "emergency_contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    contact_name = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    email = Column(String, nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class SystemSettingsRow(_RowMixin, Base):
    __tablename__ = "system_settings"

    user_id = Column(String, primary_key=True)
    crash_detection_enabled = Column(Boolean, nullable=False, default=True)
    blind_spot_enabled = Column(Boolean, nullable=False, default=True)
    theft_protection_enabled = Column(Boolean, nullable=False, default=True)
    crash_sensitivity = Column(Integer, nullable=False, default=50)
    blind_spot_sensitivity = Column(Integer, nullable=False, default=50)
    theft_sensitivity = Column(Integer, nullable=False, default=50)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class SensorReadingRow(_RowMixin, Base):
    __tablename__ = "sensor_readings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False, index=True)
    bike_id = Column(Integer, nullable=True)
    speed = Column(Float, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    gyroscope_x = Column(Float, nullable=True)
    gyroscope_y = Column(Float, nullable=True)
    gyroscope_z = Column(Float, nullable=True)
    accelerometer_x = Column(Float, nullable=True)
    accelerometer_y = Column(Float, nullable=True)
    accelerometer_z = Column(Float, nullable=True)
    gps_accuracy = Column(Float, nullable=True)
    signal_strength = Column(Float, nullable=True)
    battery_level = Column(Float, nullable=True)
    created_at = Column(String, nullable=False)


class TrackingSessionRow(_RowMixin, Base):
    __tablename__ = "tracking_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bike_id = Column(Integer, nullable=True)
    user_id = Column(String, nullable=False, index=True)
    device_id = Column(String, nullable=True)
    session_start = Column(String, nullable=False)
    session_end = Column(String, nullable=True)
    start_latitude = Column(Float, nullable=True)
    start_longitude = Column(Float, nullable=True)
    end_latitude = Column(Float, nullable=True)
    end_longitude = Column(Float, nullable=True)
    max_speed = Column(Float, nullable=True)
    distance_km = Column(Float, nullable=True)
    duration_minutes = Column(Float, nullable=True)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


def _pick(values: Mapping[str, Any], fields: Iterable[str]) -> Row:
    return {name: values[name] for name in fields if name in values}


def _apply_changes(row: Base, changes: Mapping[str, Any], fields: tuple[str, ...]) -> None:
    unknown = set(changes) - set(fields)
    if unknown:
        raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")
    for name, value in changes.items():
        setattr(row, name, value)


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, **engine_kwargs: Any):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        if not engine_kwargs:
            engine_kwargs = {"pool_pre_ping": True, "pool_recycle": 1800}
        self.engine = create_engine(database_url, future=True, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)
        self._lock = nullcontext()

    @classmethod
    def in_memory(cls) -> "SqlDbClient":
        """
        SQLite in-memory database shared by every thread of the process.

        All threads use the one connection held by ``StaticPool``, so sessions
        are serialised behind a lock to keep each request in its own
        transaction. Meant for development and tests, not for serving traffic.
        """
        client = cls(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        client._lock = threading.RLock()
        return client

    def reset(self) -> None:
        """Drop and recreate every table (useful in tests)."""
        Base.metadata.drop_all(self.engine)
        Base.metadata.create_all(self.engine)

    # -- helpers ---------------------------------------------------------

    @contextmanager
    def _session(self):
        with self._lock:
            with self.Session() as session:
                yield session

    def _owned(self, session: Session, model, user_id: str, row_id: int):
        row = session.get(model, row_id)
        if row is None or row.user_id != user_id:
            return None
        return row

    def _insert(self, row: Base) -> Row:
        with self._session() as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return row.as_dict()

    def _list(self, stmt) -> list[Row]:
        with self._session() as session:
            return [row.as_dict() for row in session.execute(stmt).scalars()]

    # -- profiles --------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Row]:
        with self._session() as session:
            row = session.get(ProfileRow, user_id)
            return row.as_dict() if row else None

    def create_profile(self, user_id: str, values: Mapping[str, Any]) -> Row:
        now = utc_now_iso()
        return self._insert(
            ProfileRow(
                id=user_id,
                created_at=now,
                updated_at=now,
                **_pick(values, PROFILE_FIELDS),
            )
        )

    def update_profile(self, user_id: str, changes: Mapping[str, Any]) -> Optional[Row]:
        with self._session() as session:
            row = session.get(ProfileRow, user_id)
            if not row:
                return None
            _apply_changes(row, changes, PROFILE_FIELDS)
            row.updated_at = utc_now_iso()
            session.commit()
            return row.as_dict()

    # -- bikes -----------------------------------------------------------

    def list_bikes(self, user_id: str) -> list[Row]:
        return self._list(
            select(BikeRow)
            .where(BikeRow.user_id == user_id)
            .order_by(
                BikeRow.is_primary.desc(),
                BikeRow.created_at.desc(),
                BikeRow.id.desc(),
            )
        )

    def get_bike(self, user_id: str, bike_id: int) -> Optional[Row]:
        with self._session() as session:
            row = self._owned(session, BikeRow, user_id, bike_id)
            return row.as_dict() if row else None

    def get_primary_bike(self, user_id: str) -> Optional[Row]:
        with self._session() as session:
            stmt = (
                select(BikeRow)
                .where(BikeRow.user_id == user_id, BikeRow.is_primary.is_(True))
                .order_by(BikeRow.id.asc())
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            return row.as_dict() if row else None

    def create_bike(self, user_id: str, values: Mapping[str, Any]) -> Row:
        now = utc_now_iso()
        fields = _pick(values, BIKE_FIELDS)
        fields.setdefault("is_primary", False)
        return self._insert(
            BikeRow(
                user_id=user_id,
                is_stolen=False,
                created_at=now,
                updated_at=now,
                **fields,
            )
        )

    def update_bike(
        self, user_id: str, bike_id: int, changes: Mapping[str, Any]
    ) -> Optional[Row]:
        with self._session() as session:
            row = self._owned(session, BikeRow, user_id, bike_id)
            if not row:
                return None
            _apply_changes(row, changes, BIKE_FIELDS)
            row.updated_at = utc_now_iso()
            session.commit()
            return row.as_dict()

    def set_bike_stolen(
        self, user_id: str, bike_id: int, is_stolen: bool
    ) -> Optional[Row]:
        with self._session() as session:
            row = self._owned(session, BikeRow, user_id, bike_id)
            if not row:
                return None
            row.is_stolen = is_stolen
            row.updated_at = utc_now_iso()
            session.commit()
            return row.as_dict()

    def delete_bike(self, user_id: str, bike_id: int) -> bool:
        with self._session() as session:
            row = self._owned(session, BikeRow, user_id, bike_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    # -- theft reports ---------------------------------------------------

    def list_theft_reports(self, user_id: str) -> list[Row]:
        return self._list(
            select(TheftReportRow)
            .where(TheftReportRow.user_id == user_id)
            .order_by(TheftReportRow.created_at.desc(), TheftReportRow.id.desc())
        )

    def create_theft_report(self, user_id: str, values: Mapping[str, Any]) -> Row:
        now = utc_now_iso()
        return self._insert(
            TheftReportRow(
                user_id=user_id,
                bike_id=values["bike_id"],
                theft_date=values["theft_date"],
                theft_location=values["theft_location"],
                theft_latitude=values.get("theft_latitude"),
                theft_longitude=values.get("theft_longitude"),
                description=values.get("description"),
                police_report_number=values.get("police_report_number"),
                status="reported",
                reported_at=now,
                recovered_at=None,
                created_at=now,
                updated_at=now,
            )
        )

    def set_theft_report_status(
        self, user_id: str, report_id: int, status: str
    ) -> Optional[Row]:
        with self._session() as session:
            row = self._owned(session, TheftReportRow, user_id, report_id)
            if not row:
                return None
            now = utc_now_iso()
            row.status = status
            row.recovered_at = now if status == "recovered" else None
            row.updated_at = now
            session.commit()
            return row.as_dict()

    # -- security alerts -------------------------------------------------

    def list_security_alerts(self, user_id: str) -> list[Row]:
        return self._list(
            select(SecurityAlertRow)
            .where(SecurityAlertRow.user_id == user_id)
            .order_by(SecurityAlertRow.created_at.desc(), SecurityAlertRow.id.desc())
            .limit(RECENT_ALERTS_LIMIT)
        )

    def create_security_alert(self, user_id: str, values: Mapping[str, Any]) -> Row:
        now = utc_now_iso()
        return self._insert(
            SecurityAlertRow(
                user_id=user_id,
                resolved=False,
                created_at=now,
                updated_at=now,
                **_pick(values, SECURITY_ALERT_FIELDS),
            )
        )

    def resolve_security_alert(
        self, user_id: str, alert_id: int, resolved_by: str
    ) -> Optional[Row]:
        with self._session() as session:
            row = self._owned(session, SecurityAlertRow, user_id, alert_id)
            if not row:
                return None
            now = utc_now_iso()
            row.resolved = True
            row.resolved_by = resolved_by
            row.resolved_at = now
            row.updated_at = now
            session.commit()
            return row.as_dict()

    # -- legacy device alerts --------------------------------------------

    def list_alerts(self, user_id: str) -> list[Row]:
        return self._list(
            select(AlertRow)
            .where(AlertRow.user_id == user_id)
            .order_by(AlertRow.created_at.desc(), AlertRow.id.desc())
            .limit(RECENT_ALERTS_LIMIT)
        )

    def create_alert(self, user_id: str, values: Mapping[str, Any]) -> Row:
        now = utc_now_iso()
        return self._insert(
            AlertRow(
                user_id=user_id,
                resolved=False,
                created_at=now,
                updated_at=now,
                **_pick(values, ALERT_FIELDS),
            )
        )

    def resolve_alert(self, user_id: str, alert_id: int) -> Optional[Row]:
        with self._session() as session:
            row = self._owned(session, AlertRow, user_id, alert_id)
            if not row:
                return None
            row.resolved = True
            row.updated_at = utc_now_iso()
            session.commit()
            return row.as_dict()

    # -- emergency contacts ----------------------------------------------

    def list_contacts(self, user_id: str) -> list[Row]:
        return self._list(
            select(EmergencyContactRow)
            .where(EmergencyContactRow.user_id == user_id)
            .order_by(
                EmergencyContactRow.is_primary.desc(),
                EmergencyContactRow.created_at.asc(),
                EmergencyContactRow.id.asc(),
            )
        )

    def get_contact(self, user_id: str, contact_id: int) -> Optional[Row]:
        with self._session() as session:
            row = self._owned(session, EmergencyContactRow, user_id, contact_id)
            return row.as_dict() if row else None

    def create_contact(self, user_id: str, values: Mapping[str, Any]) -> Row:
        now = utc_now_iso()
        fields = _pick(values, CONTACT_FIELDS)
        fields.setdefault("is_primary", False)
        return self._insert(
            EmergencyContactRow(
                user_id=user_id, created_at=now, updated_at=now, **fields
            )
        )

    def update_contact(
        self, user_id: str, contact_id: int, changes: Mapping[str, Any]
    ) -> Optional[Row]:
        with self._session() as session:
            row = self._owned(session, EmergencyContactRow, user_id, contact_id)
            if not row:
                return None
            _apply_changes(row, changes, CONTACT_FIELDS)
            row.updated_at = utc_now_iso()
            session.commit()
            return row.as_dict()

    def delete_contact(self, user_id: str, contact_id: int) -> bool:
        with self._session() as session:
            row = self._owned(session, EmergencyContactRow, user_id, contact_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    # -- system settings -------------------------------------------------

    def get_system_settings(self, user_id: str) -> Optional[Row]:
        with self._session() as session:
            row = session.get(SystemSettingsRow, user_id)
            return row.as_dict() if row else None

    def create_system_settings(self, user_id: str) -> Row:
        now = utc_now_iso()
        return self._insert(
            SystemSettingsRow(
                user_id=user_id,
                crash_detection_enabled=True,
                blind_spot_enabled=True,
                theft_protection_enabled=True,
                crash_sensitivity=50,
                blind_spot_sensitivity=50,
                theft_sensitivity=50,
                created_at=now,
                updated_at=now,
            )
        )

    def update_system_settings(
        self, user_id: str, changes: Mapping[str, Any]
    ) -> Row:
        with self._session() as session:
            row = session.get(SystemSettingsRow, user_id)
            if not row:
                raise LookupError(f"No system settings for {user_id}")
            if changes:
                _apply_changes(row, changes, SETTINGS_FIELDS)
                row.updated_at = utc_now_iso()
                session.commit()
            return row.as_dict()

    # -- telemetry -------------------------------------------------------

    def record_sensor_reading(self, user_id: str, values: Mapping[str, Any]) -> Row:
        return self._insert(
            SensorReadingRow(
                user_id=user_id,
                created_at=utc_now_iso(),
                **_pick(values, SENSOR_READING_FIELDS),
            )
        )

    def latest_sensor_reading(self, user_id: str) -> Optional[Row]:
        with self._session() as session:
            stmt = (
                select(SensorReadingRow)
                .where(SensorReadingRow.user_id == user_id)
                .order_by(SensorReadingRow.created_at.desc(), SensorReadingRow.id.desc())
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            return row.as_dict() if row else None

    def record_tracking_session(
        self, user_id: str, values: Mapping[str, Any]
    ) -> Row:
        now = utc_now_iso()
        fields = _pick(values, TRACKING_SESSION_FIELDS)
        fields.setdefault("session_start", now)
        return self._insert(
            TrackingSessionRow(
                user_id=user_id, created_at=now, updated_at=now, **fields
            )
        )

    # -- aggregates ------------------------------------------------------

    def dashboard_counts(self, user_id: str) -> Row:
        with self._session() as session:
            bikes = session.scalar(
                select(func.count()).select_from(BikeRow).where(BikeRow.user_id == user_id)
            )
            active_alerts = session.scalar(
                select(func.count())
                .select_from(SecurityAlertRow)
                .where(
                    SecurityAlertRow.user_id == user_id,
                    SecurityAlertRow.resolved.is_(False),
                )
            )
            theft_reports = session.scalar(
                select(func.count())
                .select_from(TheftReportRow)
                .where(TheftReportRow.user_id == user_id)
            )
            return {
                "bikes_count": bikes or 0,
                "active_alerts": active_alerts or 0,
                "theft_reports": theft_reports or 0,
            }

    def ride_stats(self, user_id: str) -> Row:
        """Aggregates over completed tracking sessions only."""
        with self._session() as session:
            stmt = select(
                func.count(TrackingSessionRow.id),
                func.coalesce(func.sum(TrackingSessionRow.distance_km), 0),
                func.coalesce(func.sum(TrackingSessionRow.duration_minutes), 0),
                func.coalesce(func.avg(TrackingSessionRow.max_speed), 0),
            ).where(
                TrackingSessionRow.user_id == user_id,
                TrackingSessionRow.session_end.is_not(None),
            )
            total_rides, total_distance, total_time, avg_speed = session.execute(stmt).one()
            return {
                "total_rides": total_rides or 0,
                "total_distance": float(total_distance or 0),
                "total_time": float(total_time or 0),
                "avg_speed": float(avg_speed or 0),
            }
