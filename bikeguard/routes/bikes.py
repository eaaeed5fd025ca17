"""
Bike registry routes.

Every lookup is scoped to the caller; a bike owned by someone else is
reported exactly like a missing one.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from bikeguard.config import get_settings
from bikeguard.db import DbClient
from bikeguard.dependencies import current_user, get_db_client, get_storage_client
from bikeguard.errors import NotFound, ValidationFailed
from bikeguard.identity import UserIdentity
from bikeguard.schemas import (
    Bike,
    BikeCreate,
    BikeStolenUpdate,
    BikeUpdate,
    PhotoUploadRequest,
    PhotoUploadResponse,
    SuccessResponse,
)
from bikeguard.storage import StorageClient, bike_photo_path

router = APIRouter(tags=["bikes"])

BIKE_NOT_FOUND = "Bike not found"


@router.get("/bikes", response_model=list[Bike])
def list_bikes(
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    return db.list_bikes(user.id)


@router.post("/bikes", response_model=Bike, status_code=201)
def create_bike(
    payload: BikeCreate,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    return db.create_bike(user.id, payload.model_dump())


@router.get("/bikes/{bike_id}", response_model=Bike)
def get_bike(
    bike_id: int,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    bike = db.get_bike(user.id, bike_id)
    if not bike:
        raise NotFound(BIKE_NOT_FOUND)
    return bike


@router.put("/bikes/{bike_id}", response_model=Bike)
def update_bike(
    bike_id: int,
    payload: BikeUpdate,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    if not db.get_bike(user.id, bike_id):
        raise NotFound(BIKE_NOT_FOUND)
    changes = payload.changes()
    if not changes:
        raise ValidationFailed("No fields to update")
    bike = db.update_bike(user.id, bike_id, changes)
    if not bike:
        raise NotFound(BIKE_NOT_FOUND)
    return bike


@router.delete("/bikes/{bike_id}", response_model=SuccessResponse)
def delete_bike(
    bike_id: int,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_bike(user.id, bike_id):
        raise NotFound(BIKE_NOT_FOUND)
    return SuccessResponse()


@router.put("/bikes/{bike_id}/stolen", response_model=Bike)
def set_bike_stolen(
    bike_id: int,
    payload: BikeStolenUpdate,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    # Only the flag changes; theft reports are filed separately by the client.
    bike = db.set_bike_stolen(user.id, bike_id, payload.is_stolen)
    if not bike:
        raise NotFound(BIKE_NOT_FOUND)
    return bike


@router.post("/bikes/{bike_id}/photo-upload-url", response_model=PhotoUploadResponse)
def bike_photo_upload_url(
    bike_id: int,
    payload: Optional[PhotoUploadRequest] = None,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    """
    Presigned upload target for the bike's photo. The client uploads the image
    and then stores ``path`` in ``bike_photo_url`` with a regular update.
    """
    if not db.get_bike(user.id, bike_id):
        raise NotFound(BIKE_NOT_FOUND)

    payload = payload or PhotoUploadRequest()
    expires_in = get_settings().photo_url_expires_seconds
    path = bike_photo_path(user.id, bike_id)
    return PhotoUploadResponse(
        path=path,
        upload_url=storage.presign_put(
            path, expires_in=expires_in, content_type=payload.content_type
        ),
        download_url=storage.presign_get(path, expires_in=expires_in),
    )
