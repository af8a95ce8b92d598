"""
Greenlight - Main entry point.

This module starts the Greenlight API server:
- SQLite database (schema created on startup)
- HTTP server (FastAPI on uvicorn)
- TaskSupervisor for fire-and-forget work (welcome emails)

Usage:
    python -m backend.greenlight.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The schema exists before the first request is accepted
    - Shutdown waits up to SHUTDOWN_GRACE_SECONDS for in-flight requests
    - Shutdown does NOT wait for background units; queued ones are
      cancelled and running ones are abandoned

How to change safely:
    - Keep the supervisor shutdown after the HTTP server has stopped, so
      no request can schedule work on a closed supervisor
    - Test shutdown sequence with a slow SMTP server
"""

from __future__ import annotations

import asyncio
import logging
import sys

import json_log_formatter
import uvicorn

from .api import create_app
from .background import TaskSupervisor
from .config import ServerConfig
from .data import Database, Models
from .mailer import Mailer

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class Server:
    """Greenlight server orchestrator.

    Manages the lifecycle of all server components:
    - Database
    - HTTP server
    - Background task supervisor

    Attributes:
        config: Server configuration
        database: SQLite handle
        models: Stores over the database
        supervisor: Background task supervisor

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Returns after SIGINT/SIGTERM, once in-flight requests drained
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False

        # Components (initialized in start())
        self.database: Database | None = None
        self.models: Models | None = None
        self.supervisor: TaskSupervisor | None = None
        self.http_server: uvicorn.Server | None = None

    async def start(self) -> None:
        """Start the server and serve until shutdown is requested."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting Greenlight server")
        self.config.log_config()

        try:
            self.database = Database(
                path=self.config.database.path,
                wal_mode=self.config.database.wal_mode,
                busy_timeout_ms=self.config.database.busy_timeout_ms,
                query_timeout_seconds=self.config.database.query_timeout_seconds,
            )
            self.database.initialize()
            self.models = Models.from_database(self.database)

            self.supervisor = TaskSupervisor()

            mailer = Mailer(
                host=self.config.smtp.host,
                port=self.config.smtp.port,
                username=self.config.smtp.username,
                password=self.config.smtp.password,
                sender=self.config.smtp.sender,
                timeout=self.config.smtp.timeout_seconds,
            )

            app = create_app(self.config, self.models, self.supervisor, mailer)

            self.http_server = uvicorn.Server(
                uvicorn.Config(
                    app,
                    host=self.config.http.host,
                    port=self.config.http.port,
                    log_config=None,
                    timeout_graceful_shutdown=self.config.http.shutdown_grace_seconds,
                )
            )

            self._running = True
            logger.info(
                "Greenlight server started",
                extra={"addr": f"{self.config.http.host}:{self.config.http.port}"},
            )

            # Returns once SIGINT/SIGTERM was received and in-flight requests drained
            await self.http_server.serve()

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if not self._running:
            return

        logger.info("Stopping Greenlight server")

        if self.supervisor:
            self.supervisor.shutdown()

        self._running = False
        logger.info("Greenlight server stopped")


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)

    # uvicorn installs SIGINT/SIGTERM handlers for the duration of serve()
    server = Server(config)
    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
