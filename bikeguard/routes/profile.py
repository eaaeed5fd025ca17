"""
Profile of the signed-in user, created from identity data on first read.
"""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends

from bikeguard.db import DbClient
from bikeguard.dependencies import current_user, get_db_client
from bikeguard.errors import ValidationFailed
from bikeguard.identity import UserIdentity
from bikeguard.schemas import Profile, ProfileUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["profile"])


def _username_from(display_name: str | None) -> str | None:
    if not display_name:
        return None
    return re.sub(r"\s+", "_", display_name.strip().lower()) or None


def _ensure_profile(db: DbClient, user: UserIdentity) -> dict:
    profile = db.get_profile(user.id)
    if profile:
        return profile
    logger.info("Creating profile for user %s", user.id)
    return db.create_profile(
        user.id,
        {
            "username": _username_from(user.display_name),
            "first_name": user.given_name,
            "last_name": user.family_name,
            "avatar_url": user.picture,
        },
    )


@router.get("/profile", response_model=Profile)
def get_profile(
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    return _ensure_profile(db, user)


@router.put("/profile", response_model=Profile)
def update_profile(
    payload: ProfileUpdate,
    user: UserIdentity = Depends(current_user),
    db: DbClient = Depends(get_db_client),
):
    changes = payload.changes()
    if not changes:
        raise ValidationFailed("No fields to update")
    _ensure_profile(db, user)
    return db.update_profile(user.id, changes)
