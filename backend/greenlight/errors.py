"""
Error types for Greenlight.

This module defines the closed set of failures the service reports:
- GreenlightError: Base exception for expected, recoverable failures
- RecordNotFoundError / EditConflictError: store outcomes
- FailedValidationError: field-level validation messages
- InvalidCredentialsError and friends: authentication outcomes
- MalformedInputError: boundary decode failures, subdivided by kind
- StoreTimeoutError / PasswordHashError: internal faults

Programmer errors (InvalidDecodeTargetError, MissingRequestUserError,
UnsafeSortError) do NOT inherit from GreenlightError. They are never mapped
to a client-facing response and only reach the generic 500 handler.

Invariants:
    - Domain errors carry a stable code for programmatic handling
    - Internal errors are logged server-side and never echoed to clients
    - Credential failures never reveal whether an account exists
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class GreenlightError(Exception):
    """Base exception for all expected Greenlight errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "GREENLIGHT_ERROR"
        self.details = details or {}


class RecordNotFoundError(GreenlightError):
    """No record matched the lookup."""

    def __init__(self, message: str = "record not found") -> None:
        super().__init__(message, code="NOT_FOUND")


class EditConflictError(GreenlightError):
    """Optimistic update matched zero rows.

    Raised when the version the caller last observed is no longer current,
    or the row vanished between read and write. The two are not
    distinguishable at the store.
    """

    def __init__(self, message: str = "edit conflict") -> None:
        super().__init__(message, code="EDIT_CONFLICT")


class DuplicateEmailError(GreenlightError):
    """A user with the same email address already exists."""

    def __init__(self, email: str | None = None) -> None:
        super().__init__("duplicate email", code="DUPLICATE_EMAIL")
        self.email = email


class FailedValidationError(GreenlightError):
    """One or more fields failed validation.

    Attributes:
        errors: Mapping of field name to the first failing message
    """

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(
            "validation failed",
            code="VALIDATION_FAILED",
            details={"errors": dict(errors)},
        )
        self.errors = dict(errors)


class InvalidCredentialsError(GreenlightError):
    """Email/password pair did not authenticate."""

    def __init__(self) -> None:
        super().__init__("invalid authentication credentials", code="INVALID_CREDENTIALS")


class InvalidAuthenticationTokenError(GreenlightError):
    """Bearer token is malformed, unknown or expired."""

    def __init__(self) -> None:
        super().__init__("invalid or missing authentication token", code="INVALID_TOKEN")


class AuthenticationRequiredError(GreenlightError):
    """Anonymous caller attempted an authenticated operation."""

    def __init__(self) -> None:
        super().__init__(
            "you must be authenticated to access this resource",
            code="AUTHENTICATION_REQUIRED",
        )


class InactiveAccountError(GreenlightError):
    """Authenticated user has not activated their account."""

    def __init__(self) -> None:
        super().__init__(
            "your user account must be activated to access this resource",
            code="INACTIVE_ACCOUNT",
        )


class NotPermittedError(GreenlightError):
    """Authenticated user lacks the required permission code."""

    def __init__(self, permission: str) -> None:
        super().__init__(
            "your user account doesn't have the necessary permissions to access this resource",
            code="NOT_PERMITTED",
            details={"permission": permission},
        )
        self.permission = permission


class MalformedInputKind(Enum):
    """Classification of boundary decode failures."""

    SYNTAX = "syntax"
    TRUNCATED = "truncated"
    EMPTY = "empty"
    TYPE_MISMATCH = "type_mismatch"
    UNKNOWN_FIELD = "unknown_field"
    TOO_LARGE = "too_large"
    MULTIPLE_VALUES = "multiple_values"
    OTHER = "other"


class MalformedInputError(GreenlightError):
    """Request body could not be decoded.

    Attributes:
        kind: Which class of malformation occurred
        offset: Offset of a syntax error (character, or byte for invalid UTF-8), when known
        field_name: Offending field for type-mismatch / unknown-field
        limit: Configured body size limit for too-large bodies
    """

    def __init__(
        self,
        kind: MalformedInputKind,
        message: str,
        offset: int | None = None,
        field_name: str | None = None,
        limit: int | None = None,
    ) -> None:
        super().__init__(
            message,
            code="MALFORMED_INPUT",
            details={
                "kind": kind.value,
                "offset": offset,
                "field": field_name,
                "limit": limit,
            },
        )
        self.kind = kind
        self.offset = offset
        self.field_name = field_name
        self.limit = limit


class StoreTimeoutError(GreenlightError):
    """A store operation exceeded its time budget."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(
            f"store operation {operation!r} timed out after {timeout}s",
            code="INTERNAL",
            details={"operation": operation, "timeout": timeout},
        )
        self.operation = operation
        self.timeout = timeout


class PasswordHashError(GreenlightError):
    """Stored password hash could not be compared (corrupt or missing)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INTERNAL")


class InvalidDecodeTargetError(TypeError):
    """The boundary decoder was handed a destination it cannot populate."""


class MissingRequestUserError(RuntimeError):
    """A handler asked for the request user before authentication ran."""


class UnsafeSortError(ValueError):
    """A sort value outside the safelist reached the query builder."""
