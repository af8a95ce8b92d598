"""
Bearer-token authentication and authorization dependencies.

authenticate() runs for every request and resolves the caller:

    no Authorization header          -> ANONYMOUS_USER
    "Bearer <26-char token>" (live)  -> owning user
    anything else                    -> InvalidAuthenticationTokenError (401)

Route-level dependencies then narrow access:

    require_authenticated_user  anonymous -> 401
    require_activated_user      not activated -> 403
    require_permission(code)    missing permission -> 403

Invariants:
    - Unknown, expired and malformed tokens are indistinguishable to clients
    - Every request that reaches a handler has a user in its context
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import Depends, Request

from ..data import ANONYMOUS_USER, TokenScope, User, validate_token_plaintext
from ..errors import (
    AuthenticationRequiredError,
    InactiveAccountError,
    InvalidAuthenticationTokenError,
    NotPermittedError,
    RecordNotFoundError,
)
from ..validator import Validator
from .context import context_get_user, context_set_user
from .helpers import get_models

logger = logging.getLogger(__name__)


async def authenticate(request: Request) -> None:
    """Resolve the request user from the Authorization header."""
    header = request.headers.get("Authorization")
    if not header:
        context_set_user(request, ANONYMOUS_USER)
        return

    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise InvalidAuthenticationTokenError()

    token = parts[1]
    v = Validator()
    validate_token_plaintext(v, token)
    if not v.valid():
        raise InvalidAuthenticationTokenError()

    try:
        user = await get_models(request).users.get_for_token(TokenScope.AUTHENTICATION, token)
    except RecordNotFoundError:
        raise InvalidAuthenticationTokenError()

    context_set_user(request, user)


async def require_authenticated_user(request: Request) -> User:
    user = context_get_user(request)
    if user.is_anonymous():
        raise AuthenticationRequiredError()
    return user


async def require_activated_user(user: User = Depends(require_authenticated_user)) -> User:
    if not user.activated:
        raise InactiveAccountError()
    return user


def require_permission(code: str) -> Callable[..., Awaitable[User]]:
    """Build a dependency admitting activated users holding code."""

    async def _require_permission(
        request: Request,
        user: User = Depends(require_activated_user),
    ) -> User:
        permissions = await get_models(request).permissions.get_all_for_user(user.id)
        if not permissions.include(code):
            logger.info(
                "Permission denied",
                extra={"user_id": user.id, "permission": code},
            )
            raise NotPermittedError(code)
        return user

    return _require_permission
