"""
Movie runtime codec.

Runtimes are stored as an integer number of minutes and travel over JSON
as the string "<n> mins", e.g. "102 mins".
"""

from __future__ import annotations

import re
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer

INVALID_RUNTIME_FORMAT = "invalid runtime format"

_NUMBER_RX = re.compile(r"^-?[0-9]+\Z")


def format_runtime(minutes: int) -> str:
    """Render minutes as the JSON runtime string."""
    return f"{minutes} mins"


def parse_runtime(value: Any) -> int:
    """Parse a "<n> mins" string into minutes.

    Raises:
        ValueError: If value is not a string of exactly that shape.
    """
    if not isinstance(value, str):
        raise ValueError(INVALID_RUNTIME_FORMAT)

    parts = value.split(" ")
    if len(parts) != 2 or parts[1] != "mins":
        raise ValueError(INVALID_RUNTIME_FORMAT)

    # int() alone would also accept "+5", "1_0" and non-ASCII digits
    if not _NUMBER_RX.match(parts[0]):
        raise ValueError(INVALID_RUNTIME_FORMAT)

    minutes = int(parts[0])
    if not -(2**31) <= minutes < 2**31:
        raise ValueError(INVALID_RUNTIME_FORMAT)
    return minutes


Runtime = Annotated[
    int,
    BeforeValidator(parse_runtime),
    PlainSerializer(format_runtime, return_type=str, when_used="json"),
]
"""Pydantic field type for request/response models carrying a runtime."""
