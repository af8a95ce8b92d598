"""
Per-request user context.

The authentication dependency stores the resolved user on request.state.
Handlers read it back with context_get_user().
"""

from __future__ import annotations

from fastapi import Request

from ..data import User
from ..errors import MissingRequestUserError


def context_set_user(request: Request, user: User) -> None:
    request.state.user = user


def context_get_user(request: Request) -> User:
    """Return the user resolved for this request.

    Raises:
        MissingRequestUserError: If authentication has not run. This is a
            wiring mistake, not a client error.
    """
    user = getattr(request.state, "user", None)
    if not isinstance(user, User):
        raise MissingRequestUserError("missing user value in request context")
    return user
