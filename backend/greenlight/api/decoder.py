"""
Boundary decoder for JSON request bodies.

read_json() turns a request body into a pydantic model instance or raises a
MalformedInputError whose kind says exactly what was wrong:

    TOO_LARGE        body exceeds the configured limit
    EMPTY            body is empty or whitespace
    SYNTAX           badly formed JSON, with a character offset when known
    TRUNCATED        JSON ended before the value was complete
    MULTIPLE_VALUES  more than one JSON value in the body
    UNKNOWN_FIELD    a key the target model does not declare
    TYPE_MISMATCH    a value of the wrong JSON type for a field
    OTHER            anything else (e.g. "invalid runtime format")

Passing a target that is not a pydantic model class is a coding error and
raises InvalidDecodeTargetError, which is never mapped to a 4xx response.

Invariants:
    - At most max_bytes + one chunk is ever buffered
    - Exactly one top-level JSON value is accepted
    - Request models must forbid extra fields (ConfigDict(extra="forbid"))
"""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

from fastapi import Request
from pydantic import BaseModel, ConfigDict, ValidationError

from ..errors import InvalidDecodeTargetError, MalformedInputError, MalformedInputKind

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_TYPE_ERRORS = frozenset({"int_from_float", "int_parsing", "bool_parsing", "string_sub_type"})


class RequestModel(BaseModel):
    """Base class for JSON request bodies.

    Strict mode keeps JSON types honest: "5" is not an int and 5 is not a str.
    """

    model_config = ConfigDict(extra="forbid", strict=True)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


_decoder = json.JSONDecoder(parse_constant=_reject_constant)


async def read_body(request: Request, max_bytes: int) -> bytes:
    """Read the request body, refusing to buffer more than max_bytes.

    Raises:
        MalformedInputError: TOO_LARGE if the limit was exceeded.
    """
    too_large = MalformedInputError(
        MalformedInputKind.TOO_LARGE,
        f"body must not be larger than {max_bytes} bytes",
        limit=max_bytes,
    )

    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > max_bytes:
        raise too_large

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_bytes:
            raise too_large
    return bytes(body)


def decode_json(body: bytes) -> Any:
    """Parse exactly one JSON value from body.

    Raises:
        MalformedInputError: EMPTY, SYNTAX, TRUNCATED or MULTIPLE_VALUES.
    """
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedInputError(
            MalformedInputKind.SYNTAX,
            f"body contains badly-formed JSON (at byte {e.start})",
            offset=e.start,
        )

    content = text.rstrip()
    start = len(content) - len(content.lstrip())
    if start == len(content):
        raise MalformedInputError(MalformedInputKind.EMPTY, "body must not be empty")

    try:
        value, end = _decoder.raw_decode(content, start)
    except json.JSONDecodeError as e:
        if e.pos >= len(content):
            raise MalformedInputError(
                MalformedInputKind.TRUNCATED, "body contains badly-formed JSON"
            )
        raise MalformedInputError(
            MalformedInputKind.SYNTAX,
            f"body contains badly-formed JSON (at character {e.pos})",
            offset=e.pos,
        )
    except ValueError:
        # NaN / Infinity
        raise MalformedInputError(MalformedInputKind.SYNTAX, "body contains badly-formed JSON")

    if content[end:].strip():
        raise MalformedInputError(
            MalformedInputKind.MULTIPLE_VALUES, "body must only contain a single JSON value"
        )
    return value


def classify_validation_error(error: ValidationError) -> MalformedInputError:
    """Map the first pydantic error onto a MalformedInputError."""
    first = error.errors()[0]
    err_type = first["type"]
    field_name = ".".join(str(part) for part in first["loc"]) or None

    if err_type == "extra_forbidden":
        return MalformedInputError(
            MalformedInputKind.UNKNOWN_FIELD,
            f'body contains unknown key "{field_name}"',
            field_name=field_name,
        )

    if err_type.endswith("_type") or err_type in _TYPE_ERRORS:
        if field_name is None:
            return MalformedInputError(
                MalformedInputKind.TYPE_MISMATCH, "body contains incorrect JSON type"
            )
        return MalformedInputError(
            MalformedInputKind.TYPE_MISMATCH,
            f'body contains incorrect JSON type for field "{field_name}"',
            field_name=field_name,
        )

    cause = first.get("ctx", {}).get("error")
    message = str(cause) if cause is not None else first["msg"]
    return MalformedInputError(MalformedInputKind.OTHER, message, field_name=field_name)


async def read_json(request: Request, model_cls: type[M], max_bytes: int) -> M:
    """Decode the request body into an instance of model_cls.

    Args:
        request: Incoming request
        model_cls: RequestModel subclass describing the expected body
        max_bytes: Largest accepted body

    Returns:
        Validated model instance

    Raises:
        MalformedInputError: If the body is not acceptable
        InvalidDecodeTargetError: If model_cls is not a pydantic model class
    """
    if not (isinstance(model_cls, type) and issubclass(model_cls, BaseModel)):
        raise InvalidDecodeTargetError(f"cannot decode JSON into {model_cls!r}")

    body = await read_body(request, max_bytes)
    value = decode_json(body)

    try:
        return model_cls.model_validate(value)
    except ValidationError as e:
        raise classify_validation_error(e)
