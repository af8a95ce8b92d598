"""
Unit tests for the JSON boundary decoder.

Tests cover:
- Each MalformedInputKind is produced for its class of input
- Offsets and field names are reported when known
- A non-model decode target is a programmer error
"""

import pytest
from starlette.requests import Request

from backend.greenlight.api.decoder import RequestModel, decode_json, read_json
from backend.greenlight.api.movies import CreateMovieInput
from backend.greenlight.errors import (
    GreenlightError,
    InvalidDecodeTargetError,
    MalformedInputError,
    MalformedInputKind,
)


def make_request(body: bytes, chunk_size: int | None = None) -> Request:
    """Build a POST request whose body arrives in chunks."""
    chunks = [body] if chunk_size is None else [
        body[i:i + chunk_size] for i in range(0, len(body), chunk_size)
    ] or [b""]
    messages = [
        {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
        for i, chunk in enumerate(chunks)
    ]

    async def receive():
        return messages.pop(0)

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "headers": [],
        "query_string": b"",
    }
    return Request(scope, receive)


class _Credentials(RequestModel):
    email: str = ""
    password: str = ""


class TestDecodeJson:
    """Tests for decode_json()."""

    def test_single_object(self):
        assert decode_json(b' {"a": 1}\n') == {"a": 1}

    @pytest.mark.parametrize("body", [b"", b"   ", b"\n\t"])
    def test_empty(self, body):
        with pytest.raises(MalformedInputError) as exc:
            decode_json(body)
        assert exc.value.kind is MalformedInputKind.EMPTY
        assert exc.value.message == "body must not be empty"

    def test_syntax_error_reports_offset(self):
        with pytest.raises(MalformedInputError) as exc:
            decode_json(b'{"title" "Moana"}')
        assert exc.value.kind is MalformedInputKind.SYNTAX
        assert exc.value.offset == 9
        assert exc.value.message == "body contains badly-formed JSON (at character 9)"

    @pytest.mark.parametrize("body", [b'{"title": "Moana"', b'{"title": ', b"["])
    def test_truncated(self, body):
        with pytest.raises(MalformedInputError) as exc:
            decode_json(body)
        assert exc.value.kind is MalformedInputKind.TRUNCATED

    @pytest.mark.parametrize("body", [b'{"a": 1}{"b": 2}', b'{"a": 1} :~()'])
    def test_multiple_values(self, body):
        with pytest.raises(MalformedInputError) as exc:
            decode_json(body)
        assert exc.value.kind is MalformedInputKind.MULTIPLE_VALUES

    def test_nan_is_rejected(self):
        with pytest.raises(MalformedInputError) as exc:
            decode_json(b'{"year": NaN}')
        assert exc.value.kind is MalformedInputKind.SYNTAX

    def test_invalid_utf8(self):
        with pytest.raises(MalformedInputError) as exc:
            decode_json(b'{"title": "\xff"}')
        assert exc.value.kind is MalformedInputKind.SYNTAX

    def test_invalid_utf8_reports_byte_offset(self):
        """The offset counts bytes, so a preceding two-byte character shifts it by two."""
        with pytest.raises(MalformedInputError) as exc:
            decode_json(b'{"t": "\xc3\xa9\xff"}')
        assert exc.value.message == "body contains badly-formed JSON (at byte 9)"
        assert exc.value.offset == 9


class TestReadJson:
    """Tests for read_json()."""

    @pytest.mark.asyncio
    async def test_decodes_model(self):
        request = make_request(b'{"title": "Moana", "year": 2016, "runtime": "107 mins", "genres": ["animation"]}')
        data = await read_json(request, CreateMovieInput, 1024)

        assert data.title == "Moana"
        assert data.year == 2016
        assert data.runtime == 107
        assert data.genres == ["animation"]

    @pytest.mark.asyncio
    async def test_too_large(self):
        request = make_request(b'{"email": "' + b"a" * 100 + b'"}', chunk_size=16)
        with pytest.raises(MalformedInputError) as exc:
            await read_json(request, _Credentials, 64)
        assert exc.value.kind is MalformedInputKind.TOO_LARGE
        assert exc.value.limit == 64
        assert exc.value.message == "body must not be larger than 64 bytes"

    @pytest.mark.asyncio
    async def test_unknown_field(self):
        request = make_request(b'{"email": "a@b.c", "admin": true}')
        with pytest.raises(MalformedInputError) as exc:
            await read_json(request, _Credentials, 1024)
        assert exc.value.kind is MalformedInputKind.UNKNOWN_FIELD
        assert exc.value.field_name == "admin"
        assert exc.value.message == 'body contains unknown key "admin"'

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body,field_name",
        [
            (b'{"title": 123}', "title"),
            (b'{"year": "2016"}', "year"),
            (b'{"year": 2016.5}', "year"),
            (b'{"genres": "animation"}', "genres"),
        ],
    )
    async def test_type_mismatch(self, body, field_name):
        with pytest.raises(MalformedInputError) as exc:
            await read_json(make_request(body), CreateMovieInput, 1024)
        assert exc.value.kind is MalformedInputKind.TYPE_MISMATCH
        assert exc.value.field_name == field_name
        assert exc.value.message == f'body contains incorrect JSON type for field "{field_name}"'

    @pytest.mark.asyncio
    async def test_top_level_type_mismatch(self):
        with pytest.raises(MalformedInputError) as exc:
            await read_json(make_request(b'["Moana"]'), CreateMovieInput, 1024)
        assert exc.value.kind is MalformedInputKind.TYPE_MISMATCH
        assert exc.value.field_name is None

    @pytest.mark.asyncio
    async def test_other_decode_error(self):
        """Field codecs report their own message."""
        with pytest.raises(MalformedInputError) as exc:
            await read_json(make_request(b'{"runtime": "107"}'), CreateMovieInput, 1024)
        assert exc.value.kind is MalformedInputKind.OTHER
        assert exc.value.message == "invalid runtime format"

    @pytest.mark.asyncio
    async def test_invalid_target_is_programmer_error(self):
        """A non-model target raises outside the domain error hierarchy."""
        with pytest.raises(InvalidDecodeTargetError) as exc:
            await read_json(make_request(b"{}"), dict, 1024)
        assert not isinstance(exc.value, GreenlightError)
