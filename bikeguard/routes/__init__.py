"""
HTTP routes for the BikeGuard API, one module per resource group.
"""

from fastapi import APIRouter

from bikeguard.routes import (
    alerts,
    auth,
    bikes,
    contacts,
    dashboard,
    profile,
    theft_reports,
)

router = APIRouter()
router.include_router(auth.router)
router.include_router(profile.router)
router.include_router(bikes.router)
router.include_router(theft_reports.router)
router.include_router(alerts.router)
router.include_router(contacts.router)
router.include_router(dashboard.router)
