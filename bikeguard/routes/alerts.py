"""
Alert routes: device-originated security alerts, the older crash/SOS alert
log, and raw sensor samples.

Device endpoints authenticate with a bearer token verified against the
identity service on every request, independent of the user's session cookie.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header

from bikeguard.db import DbClient
from bikeguard.dependencies import (
    current_user,
    get_db_client,
    get_identity_service,
    verify_device,
)
from bikeguard.errors import NotFound
from bikeguard.identity import IdentityService, UserIdentity
from bikeguard.schemas import (
    Alert,
    AlertCreate,
    SecurityAlert,
    SecurityAlertCreate,
    SensorDataCreate,
    SensorDataResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["alerts"])

ALERT_NOT_FOUND = "Alert not found"


# -- security alerts --------------------------------------------------------


@router.get("/security-alerts", response_model=list[SecurityAlert])
def list_security_alerts(
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    return db.list_security_alerts(user.id)


@router.post("/security-alert", response_model=SecurityAlert, status_code=201)
def submit_security_alert(
    payload: SecurityAlertCreate,
    authorization: Optional[str] = Header(default=None),
    db: DbClient = Depends(get_db_client),
    identity: IdentityService = Depends(get_identity_service),
):
    user = verify_device(identity, authorization, payload.jwt, payload.device_id)
    alert = db.create_security_alert(user.id, payload.model_dump(exclude={"jwt"}))
    logger.info(
        "Security alert %s (%s, %s) from device %s for user %s",
        alert["id"],
        payload.alert_type,
        payload.severity,
        payload.device_id,
        user.id,
    )
    return alert


@router.put("/security-alerts/{alert_id}/resolve", response_model=SecurityAlert)
def resolve_security_alert(
    alert_id: int,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    # Resolving again re-stamps resolver and time.
    alert = db.resolve_security_alert(user.id, alert_id, resolved_by=user.id)
    if not alert:
        raise NotFound(ALERT_NOT_FOUND)
    return alert


# -- crash / blind-spot / SOS alerts ------------------------------------------


@router.get("/alerts", response_model=list[Alert])
def list_alerts(
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    return db.list_alerts(user.id)


@router.post("/alert", response_model=Alert, status_code=201)
def submit_alert(
    payload: AlertCreate,
    authorization: Optional[str] = Header(default=None),
    db: DbClient = Depends(get_db_client),
    identity: IdentityService = Depends(get_identity_service),
):
    user = verify_device(identity, authorization, payload.jwt, payload.device_id)
    alert = db.create_alert(user.id, payload.model_dump(exclude={"jwt"}))

    # Notification delivery (SMS/e-mail) is not wired up yet; record who would
    # have been contacted.
    contacts = db.list_contacts(user.id)
    logger.info(
        "Alert %s created for user %s, %d contacts to notify",
        alert["id"],
        user.id,
        len(contacts),
    )
    return alert


@router.put("/alerts/{alert_id}/resolve", response_model=Alert)
def resolve_alert(
    alert_id: int,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    alert = db.resolve_alert(user.id, alert_id)
    if not alert:
        raise NotFound(ALERT_NOT_FOUND)
    return alert


# -- sensor samples -----------------------------------------------------------


@router.post("/sensor-data", response_model=SensorDataResponse, status_code=201)
def submit_sensor_data(
    payload: SensorDataCreate,
    authorization: Optional[str] = Header(default=None),
    db: DbClient = Depends(get_db_client),
    identity: IdentityService = Depends(get_identity_service),
):
    user = verify_device(identity, authorization, payload.jwt, payload.device_id)
    reading = db.record_sensor_reading(user.id, payload.model_dump(exclude={"jwt"}))
    return SensorDataResponse(id=reading["id"])
