"""
Pydantic schemas for the BikeGuard API.
"""

from __future__ import annotations

from datetime import date
from typing import ClassVar, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

Severity = Literal["low", "medium", "high", "critical"]
SecurityAlertType = Literal[
    "unauthorized_movement", "tampering", "low_battery", "geofence_breach"
]
DeviceAlertType = Literal["crash", "blind_spot", "manual_sos"]
TheftStatus = Literal["reported", "investigating", "recovered", "closed"]
DeviceStatus = Literal["online", "offline"]

MIN_BIKE_YEAR = 1900


def _check_bike_year(value: Optional[int]) -> Optional[int]:
    if value is None:
        return value
    max_year = date.today().year + 1
    if not MIN_BIKE_YEAR <= value <= max_year:
        raise ValueError(f"year must be between {MIN_BIKE_YEAR} and {max_year}")
    return value


class _PartialUpdate(BaseModel):
    """Patch body: only the keys the client sent are applied."""

    # Columns that exist on every row and may not be cleared with null.
    not_nullable: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_null_required(self):
        for name in self.not_nullable:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


# -- auth / profile -------------------------------------------------------


class SessionRequest(BaseModel):
    code: Optional[str] = None


class RedirectUrlResponse(BaseModel):
    redirectUrl: str


class SuccessResponse(BaseModel):
    success: bool = True


class UserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    picture: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None


class Profile(BaseModel):
    id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bike_model: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: str
    updated_at: str


class ProfileUpdate(_PartialUpdate):
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bike_model: Optional[str] = None
    avatar_url: Optional[str] = None


# -- bikes ----------------------------------------------------------------


class Bike(BaseModel):
    id: int
    user_id: str
    bike_name: str
    model: str
    brand: Optional[str] = None
    serial_number: Optional[str] = None
    license_plate: Optional[str] = None
    color: Optional[str] = None
    year: Optional[int] = None
    estimated_value: Optional[float] = None
    bike_photo_url: Optional[str] = None
    is_primary: bool
    is_stolen: bool
    created_at: str
    updated_at: str


class BikeCreate(BaseModel):
    bike_name: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    brand: Optional[str] = None
    serial_number: Optional[str] = None
    license_plate: Optional[str] = None
    color: Optional[str] = None
    year: Optional[int] = None
    estimated_value: Optional[float] = Field(default=None, ge=0)
    bike_photo_url: Optional[str] = None
    is_primary: bool = False

    @field_validator("year")
    @classmethod
    def check_year(cls, value: Optional[int]) -> Optional[int]:
        return _check_bike_year(value)


class BikeUpdate(_PartialUpdate):
    not_nullable: ClassVar[tuple[str, ...]] = ("bike_name", "model", "is_primary")

    bike_name: Optional[str] = Field(default=None, min_length=1)
    model: Optional[str] = Field(default=None, min_length=1)
    brand: Optional[str] = None
    serial_number: Optional[str] = None
    license_plate: Optional[str] = None
    color: Optional[str] = None
    year: Optional[int] = None
    estimated_value: Optional[float] = Field(default=None, ge=0)
    bike_photo_url: Optional[str] = None
    is_primary: Optional[bool] = None

    @field_validator("year")
    @classmethod
    def check_year(cls, value: Optional[int]) -> Optional[int]:
        return _check_bike_year(value)


class BikeStolenUpdate(BaseModel):
    is_stolen: bool


class PhotoUploadRequest(BaseModel):
    content_type: str = Field(default="image/jpeg", pattern=r"^image/[a-z0-9.+-]+$")


class PhotoUploadResponse(BaseModel):
    path: str
    upload_url: str
    download_url: str


# -- theft reports --------------------------------------------------------


class TheftReport(BaseModel):
    id: int
    bike_id: int
    user_id: str
    theft_date: str
    theft_location: str
    theft_latitude: Optional[float] = None
    theft_longitude: Optional[float] = None
    description: Optional[str] = None
    police_report_number: Optional[str] = None
    # Stored as given by the client; see TheftReportStatusUpdate.
    status: str
    reported_at: str
    recovered_at: Optional[str] = None
    created_at: str
    updated_at: str


class TheftReportCreate(BaseModel):
    bike_id: int
    theft_date: str = Field(..., min_length=1)
    theft_location: str = Field(..., min_length=1)
    theft_latitude: Optional[float] = None
    theft_longitude: Optional[float] = None
    description: Optional[str] = None
    police_report_number: Optional[str] = None


class TheftReportStatusUpdate(BaseModel):
    """
    Status is accepted as any string even though the ledger documents the
    closed set in ``TheftStatus``; clients are expected to follow
    reported -> investigating -> recovered | closed.
    """

    status: str


# -- device payloads ------------------------------------------------------


class _DevicePayload(BaseModel):
    device_id: str = Field(..., min_length=1)
    # Older firmware sends its token in the body instead of the header.
    jwt: Optional[str] = None


class _MotionFields(BaseModel):
    gyroscope_x: Optional[float] = None
    gyroscope_y: Optional[float] = None
    gyroscope_z: Optional[float] = None
    accelerometer_x: Optional[float] = None
    accelerometer_y: Optional[float] = None
    accelerometer_z: Optional[float] = None
    gps_accuracy: Optional[float] = None


class SecurityAlertCreate(_DevicePayload, _MotionFields):
    bike_id: Optional[int] = None
    alert_type: SecurityAlertType
    severity: Severity = "medium"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    sensor_data: Optional[str] = None


class AlertCreate(_DevicePayload, _MotionFields):
    alert_type: DeviceAlertType
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class SensorDataCreate(_DevicePayload, _MotionFields):
    bike_id: Optional[int] = None
    speed: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    signal_strength: Optional[float] = None
    battery_level: Optional[float] = None


class SensorDataResponse(BaseModel):
    success: bool = True
    id: int


class SecurityAlert(_MotionFields):
    id: int
    bike_id: Optional[int] = None
    user_id: str
    device_id: str
    alert_type: SecurityAlertType
    severity: Severity
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    sensor_data: Optional[str] = None
    resolved: bool
    resolved_by: Optional[str] = None
    resolved_at: Optional[str] = None
    created_at: str
    updated_at: str


class Alert(_MotionFields):
    id: int
    device_id: str
    user_id: str
    alert_type: DeviceAlertType
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    resolved: bool
    created_at: str
    updated_at: str


# -- emergency contacts ---------------------------------------------------


class EmergencyContact(BaseModel):
    id: int
    user_id: str
    contact_name: str
    phone_number: str
    email: str
    is_primary: bool
    created_at: str
    updated_at: str


class EmergencyContactCreate(BaseModel):
    contact_name: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    email: EmailStr
    is_primary: bool = False


class EmergencyContactUpdate(_PartialUpdate):
    not_nullable: ClassVar[tuple[str, ...]] = ("contact_name", "phone_number", "email", "is_primary")

    contact_name: Optional[str] = Field(default=None, min_length=1)
    phone_number: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    is_primary: Optional[bool] = None


# -- settings / dashboard -------------------------------------------------


class SystemSettings(BaseModel):
    user_id: str
    crash_detection_enabled: bool
    blind_spot_enabled: bool
    theft_protection_enabled: bool
    crash_sensitivity: int
    blind_spot_sensitivity: int
    theft_sensitivity: int
    created_at: str
    updated_at: str


class SystemSettingsUpdate(_PartialUpdate):
    not_nullable: ClassVar[tuple[str, ...]] = (
        "crash_detection_enabled",
        "blind_spot_enabled",
        "theft_protection_enabled",
        "crash_sensitivity",
        "blind_spot_sensitivity",
        "theft_sensitivity",
    )

    crash_detection_enabled: Optional[bool] = None
    blind_spot_enabled: Optional[bool] = None
    theft_protection_enabled: Optional[bool] = None
    crash_sensitivity: Optional[int] = Field(default=None, ge=0, le=100, strict=True)
    blind_spot_sensitivity: Optional[int] = Field(default=None, ge=0, le=100, strict=True)
    theft_sensitivity: Optional[int] = Field(default=None, ge=0, le=100, strict=True)


class DashboardStats(BaseModel):
    total_rides: int
    total_distance: float
    total_time: float
    avg_speed: float
    bikes_count: int
    active_alerts: int
    theft_reports: int


class LiveData(BaseModel):
    speed: float
    latitude: float
    longitude: float
    device_status: DeviceStatus
    crash_detection_active: bool
    blind_spot_active: bool
    theft_protection_active: bool
    current_bike_id: Optional[int] = None
    gyroscope_x: float
    gyroscope_y: float
    gyroscope_z: float
    accelerometer_x: float
    accelerometer_y: float
    accelerometer_z: float
    crash_sensitivity: int
    blind_spot_sensitivity: int
    theft_sensitivity: int
    gps_accuracy: float
    last_gps_update: str
