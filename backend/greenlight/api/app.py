"""
FastAPI application factory for Greenlight.

This module wires the routers, the authentication dependency and the error
handlers onto one FastAPI app. Collaborators are passed in explicitly and
stored on app.state; handlers reach them through the helpers.get_* accessors.
"""

from __future__ import annotations

from fastapi import Depends, FastAPI

from .._version import __version__
from ..background import TaskSupervisor
from ..config import ServerConfig
from ..data import Models
from ..mailer import Mailer
from . import healthcheck, movies, tokens, users
from .auth import authenticate
from .responses import register_exception_handlers


def create_app(
    config: ServerConfig,
    models: Models,
    supervisor: TaskSupervisor,
    mailer: Mailer,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Server configuration
        models: Stores sharing one Database
        supervisor: Executor for fire-and-forget work
        mailer: Outbound email sender

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Greenlight",
        description="JSON API for a movie catalogue.",
        version=__version__,
        dependencies=[Depends(authenticate)],
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.config = config
    app.state.models = models
    app.state.supervisor = supervisor
    app.state.mailer = mailer

    app.include_router(healthcheck.router)
    app.include_router(movies.router)
    app.include_router(users.router)
    app.include_router(tokens.router)

    register_exception_handlers(app)

    return app
