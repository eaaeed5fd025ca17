"""
Session endpoints. Sessions themselves are issued and verified by the
external identity service; this module only moves the token in and out of
the cookie.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from bikeguard.config import get_settings
from bikeguard.dependencies import current_user, get_identity_service
from bikeguard.errors import ValidationFailed
from bikeguard.identity import IdentityService, UserIdentity
from bikeguard.schemas import (
    RedirectUrlResponse,
    SessionRequest,
    SuccessResponse,
    UserResponse,
)

router = APIRouter(tags=["auth"])


@router.get("/oauth/google/redirect_url", response_model=RedirectUrlResponse)
def google_redirect_url(identity: IdentityService = Depends(get_identity_service)):
    return RedirectUrlResponse(redirectUrl=identity.oauth_redirect_url("google"))


@router.post("/sessions", response_model=SuccessResponse)
def create_session(
    payload: SessionRequest,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
):
    if not payload.code:
        raise ValidationFailed("No authorization code provided")

    token = identity.exchange_code(payload.code)
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        token,
        httponly=True,
        path="/",
        samesite="none",
        secure=True,
        max_age=settings.session_max_age_seconds,
    )
    return SuccessResponse()


@router.get("/users/me", response_model=UserResponse)
def users_me(user: UserIdentity = Depends(current_user)):
    return user.as_dict()


@router.get("/logout", response_model=SuccessResponse)
def logout(
    request: Request,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
):
    settings = get_settings()
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        identity.delete_session(token)

    response.delete_cookie(
        settings.session_cookie_name,
        path="/",
        samesite="none",
        secure=True,
        httponly=True,
    )
    return SuccessResponse()
