"""
Emergency contact routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from bikeguard.db import DbClient
from bikeguard.dependencies import current_user, get_db_client
from bikeguard.errors import NotFound, ValidationFailed
from bikeguard.identity import UserIdentity
from bikeguard.schemas import (
    EmergencyContact,
    EmergencyContactCreate,
    EmergencyContactUpdate,
    SuccessResponse,
)

router = APIRouter(tags=["emergency-contacts"])

CONTACT_NOT_FOUND = "Contact not found"


@router.get("/emergency-contacts", response_model=list[EmergencyContact])
def list_contacts(
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    """Primary contacts first, then in the order they were added."""
    return db.list_contacts(user.id)


@router.post("/emergency-contacts", response_model=EmergencyContact, status_code=201)
def create_contact(
    payload: EmergencyContactCreate,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    return db.create_contact(user.id, payload.model_dump())


@router.put("/emergency-contacts/{contact_id}", response_model=EmergencyContact)
def update_contact(
    contact_id: int,
    payload: EmergencyContactUpdate,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    if not db.get_contact(user.id, contact_id):
        raise NotFound(CONTACT_NOT_FOUND)
    changes = payload.changes()
    if not changes:
        raise ValidationFailed("No fields to update")
    contact = db.update_contact(user.id, contact_id, changes)
    if not contact:
        raise NotFound(CONTACT_NOT_FOUND)
    return contact


@router.delete("/emergency-contacts/{contact_id}", response_model=SuccessResponse)
def delete_contact(
    contact_id: int,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_contact(user.id, contact_id):
        raise NotFound(CONTACT_NOT_FOUND)
    return SuccessResponse()
