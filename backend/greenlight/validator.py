"""
Field-level validation for Greenlight.

A Validator is a per-request accumulator of field -> message. The first
failing check for a field wins; later failures for the same field are
absorbed so that each field reports exactly one actionable message.

Invariants:
    - Validators are never shared across requests (no locking)
    - valid() is True iff no failing check has been recorded
"""

from __future__ import annotations

import re
from collections.abc import Hashable, Iterable

import email_validator


class Validator:
    """Accumulates validation errors keyed by field name.

    Example:
        >>> v = Validator()
        >>> v.check(False, "title", "must be provided")
        >>> v.check(False, "title", "must not be more than 500 bytes long")
        >>> v.errors
        {'title': 'must be provided'}
    """

    def __init__(self) -> None:
        self.errors: dict[str, str] = {}

    def valid(self) -> bool:
        """Return True if no errors have been recorded."""
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        """Record message under key unless key already has an entry."""
        if key not in self.errors:
            self.errors[key] = message

    def check(self, ok: bool, key: str, message: str) -> None:
        """Record message under key only if ok is false."""
        if not ok:
            self.add_error(key, message)


def permitted_value(value: Hashable, *permitted: Hashable) -> bool:
    """Return True if value is one of the permitted values."""
    return value in permitted


def matches(value: str, rx: re.Pattern[str]) -> bool:
    """Return True if value matches the whole pattern."""
    return rx.fullmatch(value) is not None


def is_email_address(value: str) -> bool:
    """Return True if value is a syntactically valid email address.

    Deliverability is not checked; no DNS lookups happen during validation.
    """
    try:
        email_validator.validate_email(value, check_deliverability=False)
    except email_validator.EmailNotValidError:
        return False
    return True


def unique(values: Iterable[Hashable]) -> bool:
    """Return True if no element of values appears twice."""
    seen = set()
    for value in values:
        if value in seen:
            return False
        seen.add(value)
    return True
