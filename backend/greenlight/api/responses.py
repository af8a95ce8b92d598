"""
Error-to-response mapping for the HTTP boundary.

Every error response has the shape {"error": <message>} where message is a
string, or a field -> message object for validation failures.

Domain errors map to a fixed status and message. Anything else (store
timeouts, hash failures, programmer errors, bugs) is logged with the
request method and URI and collapsed into one generic 500 message.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import (
    AuthenticationRequiredError,
    DuplicateEmailError,
    EditConflictError,
    FailedValidationError,
    GreenlightError,
    InactiveAccountError,
    InvalidAuthenticationTokenError,
    InvalidCredentialsError,
    MalformedInputError,
    NotPermittedError,
    RecordNotFoundError,
)
from .helpers import EnvelopeResponse, envelope

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "the requested resource could not be found"
EDIT_CONFLICT_MESSAGE = "unable to update the record due to an edit conflict, please try again"
SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"
DUPLICATE_EMAIL_MESSAGE = "a user with this email address already exists"


def error_response(
    status_code: int,
    message: Any,
    headers: Mapping[str, str] | None = None,
) -> EnvelopeResponse:
    return envelope(status_code, {"error": message}, headers)


def log_error(request: Request, error: BaseException) -> None:
    uri = request.url.path
    if request.url.query:
        uri += "?" + request.url.query
    logger.error(
        str(error) or type(error).__name__,
        exc_info=error,
        extra={"method": request.method, "uri": uri},
    )


def server_error_response(request: Request, error: BaseException) -> EnvelopeResponse:
    log_error(request, error)
    return error_response(500, SERVER_ERROR_MESSAGE)


async def handle_greenlight_error(request: Request, exc: Exception) -> EnvelopeResponse:
    """Map a domain error to its response; internal ones become 500."""
    if isinstance(exc, RecordNotFoundError):
        return error_response(404, NOT_FOUND_MESSAGE)
    if isinstance(exc, EditConflictError):
        return error_response(409, EDIT_CONFLICT_MESSAGE)
    if isinstance(exc, FailedValidationError):
        return error_response(422, exc.errors)
    if isinstance(exc, DuplicateEmailError):
        return error_response(422, {"email": DUPLICATE_EMAIL_MESSAGE})
    if isinstance(exc, MalformedInputError):
        return error_response(400, exc.message)
    if isinstance(exc, InvalidCredentialsError):
        return error_response(401, exc.message)
    if isinstance(exc, InvalidAuthenticationTokenError):
        return error_response(401, exc.message, {"WWW-Authenticate": "Bearer"})
    if isinstance(exc, AuthenticationRequiredError):
        return error_response(401, exc.message)
    if isinstance(exc, (InactiveAccountError, NotPermittedError)):
        return error_response(403, exc.message)

    # StoreTimeoutError, PasswordHashError
    return server_error_response(request, exc)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> EnvelopeResponse:
    """Routing-level errors raised by Starlette (unknown path, wrong method)."""
    headers = dict(exc.headers or {})

    if exc.status_code == 404:
        return error_response(404, NOT_FOUND_MESSAGE, headers)
    if exc.status_code == 405:
        return error_response(
            405,
            f"the {request.method} method is not supported for this resource",
            headers,
        )
    return error_response(exc.status_code, exc.detail, headers)


async def handle_unexpected_error(request: Request, exc: Exception) -> EnvelopeResponse:
    return server_error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GreenlightError, handle_greenlight_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)
