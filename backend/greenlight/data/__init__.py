"""
Data layer for Greenlight.

Models bundles every store over one Database handle so that handlers receive
a single explicit dependency instead of reaching for module-level state.
"""

from __future__ import annotations

from dataclasses import dataclass

from .database import Database
from .filters import Filters, Metadata, calculate_metadata, validate_filters
from .movies import MOVIE_SORT_SAFELIST, Movie, MovieStore, validate_movie
from .permissions import Permissions, PermissionStore
from .tokens import Token, TokenScope, TokenStore, generate_token, validate_token_plaintext
from .users import (
    ANONYMOUS_USER,
    Password,
    User,
    UserStore,
    spend_password_check,
    validate_email,
    validate_password_plaintext,
    validate_user,
)


@dataclass
class Models:
    """All stores, sharing one Database."""

    movies: MovieStore
    users: UserStore
    tokens: TokenStore
    permissions: PermissionStore

    @classmethod
    def from_database(cls, db: Database) -> Models:
        return cls(
            movies=MovieStore(db),
            users=UserStore(db),
            tokens=TokenStore(db),
            permissions=PermissionStore(db),
        )


__all__ = [
    "ANONYMOUS_USER",
    "Database",
    "Filters",
    "MOVIE_SORT_SAFELIST",
    "Metadata",
    "Models",
    "Movie",
    "MovieStore",
    "Password",
    "PermissionStore",
    "Permissions",
    "Token",
    "TokenScope",
    "TokenStore",
    "User",
    "UserStore",
    "calculate_metadata",
    "generate_token",
    "spend_password_check",
    "validate_email",
    "validate_filters",
    "validate_movie",
    "validate_password_plaintext",
    "validate_token_plaintext",
    "validate_user",
]
