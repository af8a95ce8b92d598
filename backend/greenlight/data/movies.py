"""
Versioned movie store for Greenlight.

Movies are mutable records guarded by optimistic concurrency control.
Every row carries a version that starts at 1 and is incremented by exactly
one on each successful update. An update names the version the caller last
observed; the write happens only if that version is still current.

The compare-and-swap is a single UPDATE ... WHERE id = ? AND version = ?
statement, so SQLite evaluates the predicate and the write atomically.
There is no explicit lock: contention degrades to EditConflictError and
the caller may re-read and retry.

Invariants:
    - id, created_at and the initial version are assigned by the store
    - No update ever overwrites a version newer than the one supplied
    - A zero-row update is reported as EditConflictError, whether the row
      was concurrently modified or deleted
    - get_all() returns an empty list, never None, when nothing matches

How to change safely:
    - Never split the version check and the write into two statements
    - Keep sort columns restricted to Filters.sort_safelist
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..errors import EditConflictError, RecordNotFoundError
from ..validator import Validator, unique
from .database import Database
from .filters import Filters, Metadata, calculate_metadata
from .runtime import format_runtime

logger = logging.getLogger(__name__)

MOVIE_SORT_SAFELIST = ("id", "title", "year", "runtime", "-id", "-title", "-year", "-runtime")

_COLUMNS = "id, created_at, title, year, runtime, genres_json, version"


@dataclass
class Movie:
    """A movie record.

    Attributes:
        id: Store-assigned identity (0 until inserted)
        title: Movie title
        year: Release year
        runtime: Runtime in minutes
        genres: Genre names
        created_at: Store-assigned creation timestamp (Unix ms)
        version: Optimistic concurrency version (1 after insert)
    """

    title: str = ""
    year: int = 0
    runtime: int = 0
    genres: list[str] = field(default_factory=list)
    id: int = 0
    created_at: int = 0
    version: int = 0

    def to_dict(self) -> dict[str, Any]:
        """JSON representation. created_at is internal and omitted."""
        data: dict[str, Any] = {"id": self.id, "title": self.title}
        if self.year:
            data["year"] = self.year
        if self.runtime:
            data["runtime"] = format_runtime(self.runtime)
        if self.genres:
            data["genres"] = list(self.genres)
        data["version"] = self.version
        return data


def validate_movie(v: Validator, movie: Movie) -> None:
    """Record field errors for movie on v."""
    v.check(movie.title != "", "title", "must be provided")
    v.check(len(movie.title.encode()) <= 500, "title", "must not be more than 500 bytes long")

    v.check(movie.year != 0, "year", "must be provided")
    v.check(movie.year >= 1888, "year", "must be greater than 1888")
    v.check(movie.year <= datetime.now().year, "year", "must not be in the future")

    v.check(movie.runtime != 0, "runtime", "must be provided")
    v.check(movie.runtime > 0, "runtime", "must be a positive integer")

    v.check(len(movie.genres) >= 1, "genres", "must contain at least 1 genre")
    v.check(len(movie.genres) <= 5, "genres", "must not contain more than 5 genres")
    v.check(unique(movie.genres), "genres", "must not contain duplicate values")


def _row_to_movie(row: sqlite3.Row) -> Movie:
    return Movie(
        id=row["id"],
        created_at=row["created_at"],
        title=row["title"],
        year=row["year"],
        runtime=row["runtime"],
        genres=json.loads(row["genres_json"]),
        version=row["version"],
    )


def _fts_query(title: str) -> str | None:
    """Turn free text into an FTS5 query requiring every word.

    Each word is quoted so user input can never be parsed as FTS5 syntax.
    Returns None if no searchable word remains.
    """
    terms = []
    for word in title.split():
        if not any(c.isalnum() for c in word):
            continue
        terms.append('"' + word.replace('"', '""') + '"')
    return " ".join(terms) or None


class MovieStore:
    """CRUD over movies with optimistic-concurrency updates.

    Thread safety:
        Stateless apart from the Database handle; safe to share.

    Example:
        >>> store = MovieStore(db)
        >>> movie = Movie(title="Inception", year=2010, runtime=148, genres=["sci-fi"])
        >>> await store.insert(movie)
        >>> movie.id, movie.version
        (1, 1)
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def insert(self, movie: Movie) -> None:
        """Insert movie, populating id, created_at and version on it."""

        def _insert(conn: sqlite3.Connection) -> sqlite3.Row:
            return conn.execute(
                """
                INSERT INTO movies (title, year, runtime, genres_json)
                VALUES (?, ?, ?, ?)
                RETURNING id, created_at, version
                """,
                (movie.title, movie.year, movie.runtime, json.dumps(movie.genres)),
            ).fetchone()

        row = await self.db.run("movies.insert", _insert)
        movie.id = row["id"]
        movie.created_at = row["created_at"]
        movie.version = row["version"]

        logger.debug("Created movie", extra={"movie_id": movie.id})

    async def get(self, movie_id: int) -> Movie:
        """Fetch a movie by id.

        Raises:
            RecordNotFoundError: If id is not positive or no row matches.
        """
        if movie_id < 1:
            raise RecordNotFoundError()

        def _get(conn: sqlite3.Connection) -> sqlite3.Row | None:
            return conn.execute(
                f"SELECT {_COLUMNS} FROM movies WHERE id = ?",
                (movie_id,),
            ).fetchone()

        row = await self.db.run("movies.get", _get)
        if row is None:
            raise RecordNotFoundError()
        return _row_to_movie(row)

    async def update(self, movie: Movie) -> None:
        """Write movie's business fields if movie.version is still current.

        On success movie.version is set to the new version.

        Raises:
            EditConflictError: If no row has this id at this version.
        """

        def _update(conn: sqlite3.Connection) -> sqlite3.Row | None:
            return conn.execute(
                """
                UPDATE movies
                SET title = ?, year = ?, runtime = ?, genres_json = ?, version = version + 1
                WHERE id = ? AND version = ?
                RETURNING version
                """,
                (
                    movie.title,
                    movie.year,
                    movie.runtime,
                    json.dumps(movie.genres),
                    movie.id,
                    movie.version,
                ),
            ).fetchone()

        row = await self.db.run("movies.update", _update)
        if row is None:
            logger.info(
                "Edit conflict on movie update",
                extra={"movie_id": movie.id, "expected_version": movie.version},
            )
            raise EditConflictError()

        movie.version = row["version"]

    async def delete(self, movie_id: int) -> None:
        """Delete a movie.

        Raises:
            RecordNotFoundError: If id is not positive or no row was deleted.
        """
        if movie_id < 1:
            raise RecordNotFoundError()

        def _delete(conn: sqlite3.Connection) -> int:
            return conn.execute("DELETE FROM movies WHERE id = ?", (movie_id,)).rowcount

        if await self.db.run("movies.delete", _delete) == 0:
            raise RecordNotFoundError()

        logger.debug("Deleted movie", extra={"movie_id": movie_id})

    async def get_all(
        self,
        title: str,
        genres: list[str],
        filters: Filters,
    ) -> tuple[list[Movie], Metadata]:
        """List movies matching title words and containing all genres.

        Args:
            title: Free text; every word must appear in the title ("" = any)
            genres: Genres the movie must include ([] = any)
            filters: Validated page, page size and sort

        Returns:
            Tuple of (movies, pagination metadata)
        """
        query = f"SELECT count(*) OVER() AS total, {_COLUMNS} FROM movies WHERE 1 = 1"
        params: list[Any] = []

        fts = _fts_query(title)
        if fts is not None:
            query += " AND id IN (SELECT rowid FROM movies_fts WHERE movies_fts MATCH ?)"
            params.append(fts)
        elif title.strip():
            # Only punctuation was given; nothing can match
            return [], Metadata()

        if genres:
            query += """
                AND NOT EXISTS (
                    SELECT 1 FROM json_each(?) AS wanted
                    WHERE wanted.value NOT IN (SELECT value FROM json_each(movies.genres_json))
                )
            """
            params.append(json.dumps(genres))

        query += f" ORDER BY {filters.sort_column()} {filters.sort_direction()}, id ASC"
        query += " LIMIT ? OFFSET ?"
        params.extend([filters.limit(), filters.offset()])

        def _get_all(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute(query, params).fetchall()

        rows = await self.db.run("movies.get_all", _get_all)

        total_records = rows[0]["total"] if rows else 0
        movies = [_row_to_movie(row) for row in rows]
        return movies, calculate_metadata(total_records, filters.page, filters.page_size)
