"""
Configuration management for Greenlight.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set explicit values for critical settings
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep from_env() and the dataclass defaults in sync
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class Environment(Enum):
    """Deployment environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration.

    Attributes:
        host: Address to bind the HTTP server
        port: Port to listen on
        env: Deployment environment name
        max_body_bytes: Largest accepted JSON request body
        shutdown_grace_seconds: Time allowed for in-flight requests on shutdown
    """

    host: str = "0.0.0.0"
    port: int = 4000
    env: Environment = Environment.DEVELOPMENT
    max_body_bytes: int = 1_048_576  # 1MB
    shutdown_grace_seconds: int = 30

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        env_str = os.getenv("ENV", "development").lower()
        try:
            env = Environment(env_str)
        except ValueError:
            raise ValueError(
                f"Invalid ENV '{env_str}'. Must be one of: development, staging, production"
            )

        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "4000")),
            env=env,
            max_body_bytes=int(os.getenv("MAX_BODY_BYTES", str(1_048_576))),
            shutdown_grace_seconds=int(os.getenv("SHUTDOWN_GRACE_SECONDS", "30")),
        )


@dataclass(frozen=True)
class DatabaseConfig:
    """SQLite storage configuration.

    Attributes:
        path: SQLite database file
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        query_timeout_seconds: Upper bound for any single store operation
    """

    path: str = "./greenlight.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    query_timeout_seconds: float = 3.0

    @classmethod
    def from_env(cls) -> DatabaseConfig:
        """Load configuration from environment variables."""
        return cls(
            path=os.getenv("DB_PATH", "./greenlight.db"),
            wal_mode=os.getenv("DB_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("DB_BUSY_TIMEOUT_MS", "5000")),
            query_timeout_seconds=float(os.getenv("DB_QUERY_TIMEOUT_SECONDS", "3.0")),
        )


@dataclass(frozen=True)
class AuthConfig:
    """Credential and token configuration.

    Attributes:
        bcrypt_cost: bcrypt work factor (log2 rounds)
        activation_token_ttl_hours: Lifetime of activation tokens
        authentication_token_ttl_hours: Lifetime of authentication tokens
    """

    bcrypt_cost: int = 12
    activation_token_ttl_hours: int = 72
    authentication_token_ttl_hours: int = 24

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Load configuration from environment variables."""
        return cls(
            bcrypt_cost=int(os.getenv("BCRYPT_COST", "12")),
            activation_token_ttl_hours=int(os.getenv("ACTIVATION_TOKEN_TTL_HOURS", "72")),
            authentication_token_ttl_hours=int(
                os.getenv("AUTHENTICATION_TOKEN_TTL_HOURS", "24")
            ),
        )


@dataclass(frozen=True)
class SmtpConfig:
    """Outbound email configuration.

    Attributes:
        host: SMTP server host
        port: SMTP server port
        username: SMTP username (optional)
        password: SMTP password (optional)
        sender: From header for outgoing mail
        timeout_seconds: Connection timeout for a single delivery
    """

    host: str = "localhost"
    port: int = 25
    username: str | None = None
    password: str | None = None
    sender: str = "Greenlight <no-reply@greenlight.local>"
    timeout_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> SmtpConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("SMTP_HOST", "localhost"),
            port=int(os.getenv("SMTP_PORT", "25")),
            username=os.getenv("SMTP_USERNAME"),
            password=os.getenv("SMTP_PASSWORD"),
            sender=os.getenv("SMTP_SENDER", "Greenlight <no-reply@greenlight.local>"),
            timeout_seconds=float(os.getenv("SMTP_TIMEOUT_SECONDS", "5")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    This aggregates all configuration sections and provides validation.

    Attributes:
        http: HTTP server configuration
        database: SQLite configuration
        auth: Password hashing and token lifetimes
        smtp: Outbound email configuration
        observability: Logging configuration
    """

    http: HttpConfig = field(default_factory=HttpConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            http=HttpConfig.from_env(),
            database=DatabaseConfig.from_env(),
            auth=AuthConfig.from_env(),
            smtp=SmtpConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not 4 <= self.auth.bcrypt_cost <= 31:
            raise ValueError("BCRYPT_COST must be between 4 and 31")

        if self.http.max_body_bytes <= 0:
            raise ValueError("MAX_BODY_BYTES must be positive")

        if self.database.query_timeout_seconds <= 0:
            raise ValueError("DB_QUERY_TIMEOUT_SECONDS must be positive")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be one of: json, text")

        if not self.database.path:
            raise ValueError("DB_PATH is required")

        if self.http.env == Environment.PRODUCTION and self.auth.bcrypt_cost < 10:
            logger.warning(
                f"BCRYPT_COST={self.auth.bcrypt_cost} is weak for production deployments"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "env": self.http.env.value,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "db_path": self.database.path,
                "db_query_timeout_seconds": self.database.query_timeout_seconds,
                "bcrypt_cost": self.auth.bcrypt_cost,
                "smtp_host": self.smtp.host,
                "smtp_port": self.smtp.port,
                "log_level": self.observability.log_level,
            },
        )
