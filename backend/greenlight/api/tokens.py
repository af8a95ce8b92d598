"""
Authentication token route.

    POST /v1/tokens/authentication   exchange email + password for a bearer token

An unknown email and a wrong password produce the same 401 response, and
both pay for one bcrypt comparison.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

from fastapi import APIRouter, Request

from ..data import TokenScope, spend_password_check, validate_email, validate_password_plaintext
from ..errors import FailedValidationError, InvalidCredentialsError, RecordNotFoundError
from ..validator import Validator
from .decoder import RequestModel, read_json
from .helpers import envelope, get_config, get_models

router = APIRouter(prefix="/v1/tokens", tags=["tokens"])


class CreateAuthenticationTokenInput(RequestModel):
    email: str = ""
    password: str = ""


@router.post("/authentication")
async def create_authentication_token(request: Request):
    config = get_config(request)
    models = get_models(request)

    data = await read_json(request, CreateAuthenticationTokenInput, config.http.max_body_bytes)

    v = Validator()
    validate_email(v, data.email)
    validate_password_plaintext(v, data.password)
    if not v.valid():
        raise FailedValidationError(v.errors)

    loop = asyncio.get_running_loop()
    try:
        user = await models.users.get_by_email(data.email)
    except RecordNotFoundError:
        await loop.run_in_executor(None, spend_password_check, data.password, config.auth.bcrypt_cost)
        raise InvalidCredentialsError()

    if not await loop.run_in_executor(None, user.password.matches, data.password):
        raise InvalidCredentialsError()

    token = await models.tokens.new(
        user.id,
        timedelta(hours=config.auth.authentication_token_ttl_hours),
        TokenScope.AUTHENTICATION,
    )

    return envelope(201, {"authentication_token": token.to_dict()})
