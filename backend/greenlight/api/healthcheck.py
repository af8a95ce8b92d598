"""Liveness endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Request

from .._version import __version__
from .helpers import envelope, get_config

router = APIRouter(tags=["healthcheck"])


@router.get("/v1/healthcheck")
async def healthcheck(request: Request):
    config = get_config(request)
    return envelope(
        200,
        {
            "status": "available",
            "system_info": {
                "environment": config.http.env.value,
                "version": __version__,
            },
        },
    )
