"""
User registration and activation routes.

    POST /v1/users            register, 202 Accepted
    PUT  /v1/users/activated  activate with a one-time token

Registration returns before the welcome email is sent. The email is handed
to the TaskSupervisor, so a slow or failing SMTP server never affects the
response.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from fastapi import APIRouter, Request

from ..data import TokenScope, User, validate_token_plaintext, validate_user
from ..errors import DuplicateEmailError, FailedValidationError, RecordNotFoundError
from ..validator import Validator
from .decoder import RequestModel, read_json
from .helpers import envelope, get_config, get_mailer, get_models, get_supervisor
from .responses import DUPLICATE_EMAIL_MESSAGE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users", tags=["users"])

WELCOME_TEMPLATE = "user_welcome.tmpl"


class RegisterUserInput(RequestModel):
    name: str = ""
    email: str = ""
    password: str = ""


class ActivateUserInput(RequestModel):
    token: str = ""


@router.post("")
async def register_user(request: Request):
    config = get_config(request)
    models = get_models(request)

    data = await read_json(request, RegisterUserInput, config.http.max_body_bytes)

    user = User(name=data.name, email=data.email, activated=False)
    user.password.plaintext = data.password

    v = Validator()
    validate_user(v, user)
    if not v.valid():
        raise FailedValidationError(v.errors)

    # bcrypt is CPU bound
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, user.password.set, data.password, config.auth.bcrypt_cost)

    try:
        await models.users.insert(user)
    except DuplicateEmailError:
        v.add_error("email", DUPLICATE_EMAIL_MESSAGE)
        raise FailedValidationError(v.errors)

    await models.permissions.add_for_user(user.id, "movies:read")

    token = await models.tokens.new(
        user.id,
        timedelta(hours=config.auth.activation_token_ttl_hours),
        TokenScope.ACTIVATION,
    )

    get_supervisor(request).run(
        get_mailer(request).send,
        user.email,
        WELCOME_TEMPLATE,
        {"activationToken": token.plaintext, "userId": user.id},
    )

    return envelope(202, {"user": user.to_dict()})


@router.put("/activated")
async def activate_user(request: Request):
    config = get_config(request)
    models = get_models(request)

    data = await read_json(request, ActivateUserInput, config.http.max_body_bytes)

    v = Validator()
    validate_token_plaintext(v, data.token)
    if not v.valid():
        raise FailedValidationError(v.errors)

    try:
        user = await models.users.get_for_token(TokenScope.ACTIVATION, data.token)
    except RecordNotFoundError:
        v.add_error("token", "invalid or expired activation token")
        raise FailedValidationError(v.errors)

    user.activated = True
    await models.users.update(user)

    await models.tokens.delete_all_for_user(TokenScope.ACTIVATION, user.id)

    logger.info("Activated user", extra={"user_id": user.id})
    return envelope(200, {"user": user.to_dict()})
