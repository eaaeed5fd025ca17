"""
Theft report ledger routes.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from bikeguard.db import DbClient
from bikeguard.dependencies import current_user, get_db_client
from bikeguard.errors import NotFound
from bikeguard.identity import UserIdentity
from bikeguard.schemas import TheftReport, TheftReportCreate, TheftReportStatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["theft-reports"])


@router.get("/theft-reports", response_model=list[TheftReport])
def list_theft_reports(
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    return db.list_theft_reports(user.id)


@router.post("/theft-reports", response_model=TheftReport, status_code=201)
def create_theft_report(
    payload: TheftReportCreate,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    if not db.get_bike(user.id, payload.bike_id):
        raise NotFound("Bike not found")
    report = db.create_theft_report(user.id, payload.model_dump())
    logger.info("Theft report %s filed for bike %s", report["id"], payload.bike_id)
    return report


@router.put("/theft-reports/{report_id}", response_model=TheftReport)
def update_theft_report_status(
    report_id: int,
    payload: TheftReportStatusUpdate,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    """
    Any status string is accepted and no transition order is enforced;
    ``recovered_at`` tracks whether the latest status is ``recovered``.
    """
    report = db.set_theft_report_status(user.id, report_id, payload.status)
    if not report:
        raise NotFound("Report not found")
    return report
