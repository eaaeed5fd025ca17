"""
Error taxonomy and JSON error rendering.

Every failure leaves the API as ``{"error": "<message>"}`` with a status
code: 400 validation, 401 unauthenticated, 404 not found (or not owned),
502 when the identity service fails, 500 for anything else.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class BikeGuardError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(BikeGuardError):
    status_code = 400


class AuthenticationFailed(BikeGuardError):
    status_code = 401


class NotFound(BikeGuardError):
    """Resource is absent or belongs to another owner."""

    status_code = 404


class IdentityServiceError(Exception):
    """The external identity service could not be reached or misbehaved."""


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _format_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Malformed JSON body"
    # Drop the "body"/"query" prefix so the message names the field itself.
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc)
    msg = first.get("msg", "Invalid value")
    return f"{field}: {msg}" if field else msg


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BikeGuardError)
    async def _bikeguard_error(request: Request, exc: BikeGuardError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return _error(400, _format_validation_error(exc))

    @app.exception_handler(IdentityServiceError)
    async def _identity_error(request: Request, exc: IdentityServiceError):
        logger.error("Identity service failure on %s %s: %s", request.method, request.url.path, exc)
        return _error(502, str(exc))

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error(500, str(exc) or exc.__class__.__name__)
