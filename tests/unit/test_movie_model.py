"""
Unit tests for the Movie record and its validation.
"""

from datetime import datetime

import pytest

from backend.greenlight.data.movies import Movie, _fts_query, validate_movie
from backend.greenlight.validator import Validator


def valid_movie(**overrides):
    fields = {"title": "Moana", "year": 2016, "runtime": 107, "genres": ["animation", "adventure"]}
    fields.update(overrides)
    return Movie(**fields)


class TestMovie:
    """Tests for Movie."""

    def test_to_dict(self):
        movie = valid_movie(id=1, version=3, created_at=1_700_000_000_000)
        assert movie.to_dict() == {
            "id": 1,
            "title": "Moana",
            "year": 2016,
            "runtime": "107 mins",
            "genres": ["animation", "adventure"],
            "version": 3,
        }

    def test_to_dict_omits_empty_fields(self):
        movie = Movie(id=1, title="Untitled", version=1)
        assert movie.to_dict() == {"id": 1, "title": "Untitled", "version": 1}


class TestValidateMovie:
    """Tests for validate_movie()."""

    def test_valid(self):
        v = Validator()
        validate_movie(v, valid_movie())
        assert v.valid()

    @pytest.mark.parametrize(
        "overrides,field,message",
        [
            ({"title": ""}, "title", "must be provided"),
            ({"title": "x" * 501}, "title", "must not be more than 500 bytes long"),
            ({"year": 0}, "year", "must be provided"),
            ({"year": 1887}, "year", "must be greater than 1888"),
            ({"year": datetime.now().year + 1}, "year", "must not be in the future"),
            ({"runtime": 0}, "runtime", "must be provided"),
            ({"runtime": -1}, "runtime", "must be a positive integer"),
            ({"genres": []}, "genres", "must contain at least 1 genre"),
            ({"genres": list("abcdef")}, "genres", "must not contain more than 5 genres"),
            ({"genres": ["drama", "drama"]}, "genres", "must not contain duplicate values"),
        ],
    )
    def test_invalid(self, overrides, field, message):
        v = Validator()
        validate_movie(v, valid_movie(**overrides))
        assert v.errors == {field: message}

    def test_multibyte_title_length_is_in_bytes(self):
        v = Validator()
        validate_movie(v, valid_movie(title="é" * 251))
        assert v.errors == {"title": "must not be more than 500 bytes long"}


class TestFtsQuery:
    """Tests for title search query building."""

    def test_words_are_quoted(self):
        assert _fts_query("black panther") == '"black" "panther"'

    def test_quotes_are_escaped(self):
        assert _fts_query('say "hi"') == '"say" """hi"""'

    def test_no_words(self):
        assert _fts_query("") is None
        assert _fts_query("  -- !! ") is None
