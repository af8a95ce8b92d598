"""
Movie routes.

    GET    /v1/movies        list (movies:read)
    POST   /v1/movies        create (movies:write)
    GET    /v1/movies/{id}   show (movies:read)
    PATCH  /v1/movies/{id}   partial update (movies:write)
    DELETE /v1/movies/{id}   delete (movies:write)

PATCH honours an optional X-Expected-Version header. When present and not
equal to the stored version the request fails with an edit conflict before
the body is read, so a client holding a stale copy never overwrites a newer
one even if its PATCH would touch different fields.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from ..data import (
    MOVIE_SORT_SAFELIST,
    Filters,
    Movie,
    validate_filters,
    validate_movie,
)
from ..data.runtime import Runtime
from ..errors import EditConflictError, FailedValidationError
from ..validator import Validator
from .auth import require_permission
from .decoder import RequestModel, read_json
from .helpers import (
    envelope,
    get_config,
    get_models,
    read_csv,
    read_id_param,
    read_int,
    read_string,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/movies", tags=["movies"])

can_read = [Depends(require_permission("movies:read"))]
can_write = [Depends(require_permission("movies:write"))]


class CreateMovieInput(RequestModel):
    title: str = ""
    year: int = 0
    runtime: Runtime = 0
    genres: list[str] | None = None


class UpdateMovieInput(RequestModel):
    title: str | None = None
    year: int | None = None
    runtime: Runtime | None = None
    genres: list[str] | None = None


def _raise_if_invalid(v: Validator) -> None:
    if not v.valid():
        raise FailedValidationError(v.errors)


@router.get("", dependencies=can_read)
async def list_movies(request: Request):
    qs = request.query_params
    v = Validator()

    title = read_string(qs, "title", "")
    genres = read_csv(qs, "genres", [])
    filters = Filters(
        page=read_int(qs, "page", 1, v),
        page_size=read_int(qs, "page_size", 20, v),
        sort=read_string(qs, "sort", "id"),
        sort_safelist=MOVIE_SORT_SAFELIST,
    )

    validate_filters(v, filters)
    _raise_if_invalid(v)

    movies, metadata = await get_models(request).movies.get_all(title, genres, filters)
    return envelope(
        200,
        {
            "movies": [movie.to_dict() for movie in movies],
            "metadata": metadata.to_dict(),
        },
    )


@router.post("", dependencies=can_write)
async def create_movie(request: Request):
    config = get_config(request)
    data = await read_json(request, CreateMovieInput, config.http.max_body_bytes)

    movie = Movie(
        title=data.title,
        year=data.year,
        runtime=data.runtime,
        genres=data.genres if data.genres is not None else [],
    )

    v = Validator()
    v.check(data.genres is not None, "genres", "must be provided")
    validate_movie(v, movie)
    _raise_if_invalid(v)

    await get_models(request).movies.insert(movie)

    return envelope(
        201,
        {"movie": movie.to_dict()},
        headers={"Location": f"/v1/movies/{movie.id}"},
    )


@router.get("/{id}", dependencies=can_read)
async def show_movie(request: Request):
    movie_id = read_id_param(request)
    movie = await get_models(request).movies.get(movie_id)
    return envelope(200, {"movie": movie.to_dict()})


@router.patch("/{id}", dependencies=can_write)
async def update_movie(request: Request):
    config = get_config(request)
    models = get_models(request)

    movie_id = read_id_param(request)
    movie = await models.movies.get(movie_id)

    expected = request.headers.get("X-Expected-Version")
    if expected and expected != str(movie.version):
        raise EditConflictError()

    data = await read_json(request, UpdateMovieInput, config.http.max_body_bytes)

    if data.title is not None:
        movie.title = data.title
    if data.year is not None:
        movie.year = data.year
    if data.runtime is not None:
        movie.runtime = data.runtime
    if data.genres is not None:
        movie.genres = data.genres

    v = Validator()
    validate_movie(v, movie)
    _raise_if_invalid(v)

    await models.movies.update(movie)

    return envelope(200, {"movie": movie.to_dict()})


@router.delete("/{id}", dependencies=can_write)
async def delete_movie(request: Request):
    movie_id = read_id_param(request)
    await get_models(request).movies.delete(movie_id)
    return envelope(200, {"message": "movie successfully deleted"})
