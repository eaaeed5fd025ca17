"""
Identity context: the external user/session service and the two credential
forms (session cookie, device bearer token) that resolve through it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Union

import requests

from bikeguard.errors import AuthenticationFailed, IdentityServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserIdentity:
    """Opaque authenticated user as reported by the identity service."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    picture: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "picture": self.picture,
            "given_name": self.given_name,
            "family_name": self.family_name,
        }


@dataclass(frozen=True)
class SessionCredential:
    """Session token carried in the user's cookie."""

    token: str


@dataclass(frozen=True)
class DeviceCredential:
    """Bearer token presented by a sensor device."""

    token: str
    device_id: Optional[str] = None


Credential = Union[SessionCredential, DeviceCredential]


class IdentityService(Protocol):
    """Operations the API needs from the managed user/session service."""

    def oauth_redirect_url(self, provider: str) -> str:
        ...

    def exchange_code(self, code: str) -> str:
        ...

    def verify(self, credential: Credential) -> Optional[UserIdentity]:
        ...

    def delete_session(self, token: str) -> None:
        ...


def _identity_from_payload(payload: dict) -> UserIdentity:
    # The service nests provider profile fields under google_user_data.
    profile = payload.get("google_user_data") or {}
    return UserIdentity(
        id=str(payload["id"]),
        email=payload.get("email") or profile.get("email"),
        display_name=payload.get("display_name") or profile.get("name"),
        picture=payload.get("picture") or profile.get("picture"),
        given_name=payload.get("given_name") or profile.get("given_name"),
        family_name=payload.get("family_name") or profile.get("family_name"),
    )


@dataclass
class HttpIdentityService:
    """
    Client for the hosted users service. Every call is a fresh HTTP request:
    no caching and no retries.
    """

    api_url: str
    api_key: str
    timeout: float = 10.0
    session: requests.Session = field(default_factory=requests.Session)

    def _url(self, path: str) -> str:
        return f"{self.api_url.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers["x-api-key"] = self.api_key
        try:
            response = self.session.request(
                method, self._url(path), headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.warning("Identity service %s %s failed: %s", method, path, exc)
            raise IdentityServiceError(f"Identity service unreachable: {exc}") from exc
        if response.status_code >= 500:
            raise IdentityServiceError(
                f"Identity service error {response.status_code} on {path}"
            )
        return response

    def oauth_redirect_url(self, provider: str) -> str:
        response = self._request("GET", f"/oauth/{provider}/redirect_url")
        response.raise_for_status()
        return response.json()["redirect_url"]

    def exchange_code(self, code: str) -> str:
        response = self._request("POST", "/sessions", json={"code": code})
        if response.status_code in (400, 401, 403):
            raise AuthenticationFailed("Invalid authorization code")
        response.raise_for_status()
        return response.json()["session_token"]

    def verify(self, credential: Credential) -> Optional[UserIdentity]:
        # Session cookies and device tokens go through the same lookup.
        headers = {"Authorization": f"Bearer {credential.token}"}
        if isinstance(credential, DeviceCredential) and credential.device_id:
            headers["x-device-id"] = credential.device_id
        response = self._request("GET", "/users/me", headers=headers)
        if response.status_code in (401, 403, 404):
            return None
        response.raise_for_status()
        return _identity_from_payload(response.json())

    def delete_session(self, token: str) -> None:
        response = self._request(
            "DELETE",
            "/sessions",
            headers={"Authorization": f"Bearer {token}"},
        )
        if response.status_code not in (401, 404):
            response.raise_for_status()


@dataclass
class InMemoryIdentityService:
    """Token table standing in for the hosted service in tests and local runs."""

    tokens: dict[str, UserIdentity] = field(default_factory=dict)
    codes: dict[str, str] = field(default_factory=dict)
    base_url: str = "https://identity.example.test"

    def register(self, token: str, identity: UserIdentity) -> None:
        self.tokens[token] = identity

    def oauth_redirect_url(self, provider: str) -> str:
        return f"{self.base_url}/oauth/{provider}/authorize"

    def exchange_code(self, code: str) -> str:
        token = self.codes.get(code)
        if token is None:
            raise AuthenticationFailed("Invalid authorization code")
        return token

    def verify(self, credential: Credential) -> Optional[UserIdentity]:
        return self.tokens.get(credential.token)

    def delete_session(self, token: str) -> None:
        self.tokens.pop(token, None)
