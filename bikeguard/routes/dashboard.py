"""
Dashboard routes: aggregate stats, the live-data snapshot and per-user
system settings.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from bikeguard.db import DbClient
from bikeguard.dependencies import (
    current_user,
    get_db_client,
    get_telemetry_simulator,
    get_telemetry_source,
)
from bikeguard.identity import UserIdentity
from bikeguard.schemas import DashboardStats, LiveData, SystemSettings, SystemSettingsUpdate
from bikeguard.telemetry import TelemetrySimulator, TelemetrySource, build_snapshot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


def _ensure_settings(db: DbClient, user_id: str) -> dict:
    settings = db.get_system_settings(user_id)
    if settings:
        return settings
    logger.info("Creating default system settings for user %s", user_id)
    return db.create_system_settings(user_id)


@router.get("/dashboard-stats", response_model=DashboardStats)
def dashboard_stats(
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    stats = dict(db.ride_stats(user.id))
    stats.update(db.dashboard_counts(user.id))
    return stats


@router.get("/live-data", response_model=LiveData)
def live_data(
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
    source: TelemetrySource = Depends(get_telemetry_source),
    simulator: TelemetrySimulator = Depends(get_telemetry_simulator),
):
    # Read-only: a missing settings row falls back to defaults without
    # creating one.
    return build_snapshot(
        primary_bike=db.get_primary_bike(user.id),
        stored_sample=source.latest_sample(user.id),
        settings_row=db.get_system_settings(user.id),
        simulator=simulator,
        user_id=user.id,
    )


@router.get("/system-settings", response_model=SystemSettings)
def get_system_settings(
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    return _ensure_settings(db, user.id)


@router.put("/system-settings", response_model=SystemSettings)
def update_system_settings(
    payload: SystemSettingsUpdate,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    _ensure_settings(db, user.id)
    return db.update_system_settings(user.id, payload.changes())
