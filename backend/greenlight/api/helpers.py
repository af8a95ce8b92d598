"""
Request readers and the JSON response writer shared by all routers.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from ..background import TaskSupervisor
from ..config import ServerConfig
from ..data import Models
from ..errors import RecordNotFoundError
from ..mailer import Mailer
from ..validator import Validator

_ID_RX = re.compile(r"^[+-]?[0-9]+\Z")
_MAX_ID = 2**63 - 1


class EnvelopeResponse(JSONResponse):
    """Tab-indented JSON with a trailing newline, readable from a terminal."""

    def render(self, content: Any) -> bytes:
        return (json.dumps(content, indent="\t", ensure_ascii=False) + "\n").encode("utf-8")


def envelope(
    status_code: int,
    data: dict[str, Any],
    headers: Mapping[str, str] | None = None,
) -> EnvelopeResponse:
    """Write data as the top-level JSON object of the response."""
    return EnvelopeResponse(content=data, status_code=status_code, headers=dict(headers or {}))


def read_id_param(request: Request) -> int:
    """Parse the {id} path parameter.

    Raises:
        RecordNotFoundError: If id is not an integer >= 1.
    """
    raw = request.path_params.get("id", "")
    if not _ID_RX.match(raw):
        raise RecordNotFoundError()
    value = int(raw)
    if value < 1 or value > _MAX_ID:
        raise RecordNotFoundError()
    return value


def read_string(qs: Mapping[str, str], key: str, default: str) -> str:
    """Return the query value for key, or default when absent or empty."""
    return qs.get(key) or default


def read_csv(qs: Mapping[str, str], key: str, default: list[str]) -> list[str]:
    """Split the query value for key on commas, or return default."""
    value = qs.get(key)
    if not value:
        return default
    return value.split(",")


def read_int(qs: Mapping[str, str], key: str, default: int, v: Validator) -> int:
    """Parse the query value for key as an integer.

    A value that does not parse is recorded on v and default is returned.
    """
    value = qs.get(key)
    if not value:
        return default
    if not _ID_RX.match(value):
        v.add_error(key, "must be an integer value")
        return default
    return int(value)


def get_config(request: Request) -> ServerConfig:
    return request.app.state.config


def get_models(request: Request) -> Models:
    return request.app.state.models


def get_supervisor(request: Request) -> TaskSupervisor:
    return request.app.state.supervisor


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer
