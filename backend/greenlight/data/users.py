"""
Users and password credentials for Greenlight.

A user's password lives in two forms. The plaintext exists only while a
request is being handled, long enough to validate its shape; the bcrypt
hash is the only form written to the database. Neither to_dict() nor any
log record ever includes either form.

Invariants:
    - Password.plaintext is never persisted, serialized or logged
    - Password.matches() distinguishes "mismatch" (False) from "could not
      compare" (PasswordHashError)
    - User updates follow the same version compare-and-swap as movies
"""

from __future__ import annotations

import functools
import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any

import bcrypt

from ..errors import DuplicateEmailError, EditConflictError, PasswordHashError, RecordNotFoundError
from ..validator import Validator, is_email_address
from .database import Database
from .tokens import hash_token

logger = logging.getLogger(__name__)

DEFAULT_BCRYPT_COST = 12

_COLUMNS = "users.id, users.created_at, users.name, users.email, users.password_hash, users.activated, users.version"


class Password:
    """bcrypt-backed password credential.

    Attributes:
        plaintext: Transient plaintext, None once loaded from storage
        hash: bcrypt hash bytes, None until set()
    """

    __slots__ = ("plaintext", "hash")

    def __init__(self, hash: bytes | None = None) -> None:
        self.plaintext: str | None = None
        self.hash = hash

    def __repr__(self) -> str:
        return "Password(<redacted>)"

    def set(self, plaintext: str, cost: int = DEFAULT_BCRYPT_COST) -> None:
        """Hash plaintext with the given bcrypt cost and keep it transiently.

        Raises:
            PasswordHashError: If bcrypt rejects the input.
        """
        try:
            hashed = bcrypt.hashpw(plaintext.encode(), bcrypt.gensalt(rounds=cost))
        except ValueError as e:
            raise PasswordHashError(f"failed to hash password: {e}")
        self.plaintext = plaintext
        self.hash = hashed

    def matches(self, plaintext: str) -> bool:
        """Compare plaintext against the stored hash in constant time.

        Returns:
            True on match, False on mismatch

        Raises:
            PasswordHashError: If there is no hash or it is corrupt.
        """
        if not self.hash:
            raise PasswordHashError("no password hash to compare against")
        try:
            return bcrypt.checkpw(plaintext.encode(), self.hash)
        except ValueError as e:
            raise PasswordHashError(f"failed to compare password hash: {e}")


@functools.lru_cache(maxsize=None)
def _decoy_hash(cost: int) -> bytes:
    return bcrypt.hashpw(b"greenlight-decoy-password", bcrypt.gensalt(rounds=cost))


def spend_password_check(plaintext: str, cost: int = DEFAULT_BCRYPT_COST) -> None:
    """Do the bcrypt work of a failed Password.matches() when there is no account.

    An unknown email then costs as much as a wrong password.
    """
    bcrypt.checkpw(plaintext.encode(), _decoy_hash(cost))


@dataclass
class User:
    """A registered account.

    Attributes:
        id: Store-assigned identity
        created_at: Creation timestamp (Unix ms)
        name: Display name
        email: Unique email address (case-insensitive)
        password: Password credential
        activated: Whether the account has been activated
        version: Optimistic concurrency version
    """

    name: str = ""
    email: str = ""
    password: Password = field(default_factory=Password)
    activated: bool = False
    id: int = 0
    created_at: int = 0
    version: int = 0

    def is_anonymous(self) -> bool:
        return self is ANONYMOUS_USER

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": _format_timestamp(self.created_at),
            "name": self.name,
            "email": self.email,
            "activated": self.activated,
        }


ANONYMOUS_USER = User()
"""Sentinel for requests without an Authorization header."""


def _format_timestamp(ms: int) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(ms / 1000))


def validate_email(v: Validator, email: str) -> None:
    v.check(email != "", "email", "must be provided")
    v.check(is_email_address(email), "email", "must be a valid email address")


def validate_password_plaintext(v: Validator, password: str) -> None:
    v.check(password != "", "password", "must be provided")
    v.check(len(password.encode()) >= 8, "password", "must be at least 8 bytes long")
    v.check(len(password.encode()) <= 72, "password", "must not be more than 72 bytes long")


def validate_user(v: Validator, user: User) -> None:
    """Record field errors for a user about to be inserted or updated.

    The password is checked only when a plaintext is present, i.e. when it
    was supplied by the client in this request.
    """
    v.check(user.name != "", "name", "must be provided")
    v.check(len(user.name.encode()) <= 500, "name", "must not be more than 500 bytes long")

    validate_email(v, user.email)

    if user.password.plaintext is not None:
        validate_password_plaintext(v, user.password.plaintext)


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        created_at=row["created_at"],
        name=row["name"],
        email=row["email"],
        password=Password(hash=row["password_hash"]),
        activated=bool(row["activated"]),
        version=row["version"],
    )


class UserStore:
    """CRUD over users.

    Thread safety:
        Stateless apart from the Database handle; safe to share.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def insert(self, user: User) -> None:
        """Insert user, populating id, created_at and version on it.

        Raises:
            DuplicateEmailError: If the email is already registered.
        """

        def _insert(conn: sqlite3.Connection) -> sqlite3.Row:
            return conn.execute(
                """
                INSERT INTO users (name, email, password_hash, activated)
                VALUES (?, ?, ?, ?)
                RETURNING id, created_at, version
                """,
                (user.name, user.email, user.password.hash, int(user.activated)),
            ).fetchone()

        try:
            row = await self.db.run("users.insert", _insert)
        except sqlite3.IntegrityError as e:
            if "users.email" in str(e):
                raise DuplicateEmailError(user.email)
            raise

        user.id = row["id"]
        user.created_at = row["created_at"]
        user.version = row["version"]

        logger.info("Registered user", extra={"user_id": user.id})

    async def get_by_email(self, email: str) -> User:
        """Fetch a user by email (case-insensitive).

        Raises:
            RecordNotFoundError: If no user has this email.
        """

        def _get(conn: sqlite3.Connection) -> sqlite3.Row | None:
            return conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE email = ?",
                (email,),
            ).fetchone()

        row = await self.db.run("users.get_by_email", _get)
        if row is None:
            raise RecordNotFoundError()
        return _row_to_user(row)

    async def update(self, user: User) -> None:
        """Write user fields if user.version is still current.

        Raises:
            DuplicateEmailError: If the new email belongs to another user.
            EditConflictError: If no row has this id at this version.
        """

        def _update(conn: sqlite3.Connection) -> sqlite3.Row | None:
            return conn.execute(
                """
                UPDATE users
                SET name = ?, email = ?, password_hash = ?, activated = ?, version = version + 1
                WHERE id = ? AND version = ?
                RETURNING version
                """,
                (
                    user.name,
                    user.email,
                    user.password.hash,
                    int(user.activated),
                    user.id,
                    user.version,
                ),
            ).fetchone()

        try:
            row = await self.db.run("users.update", _update)
        except sqlite3.IntegrityError as e:
            if "users.email" in str(e):
                raise DuplicateEmailError(user.email)
            raise

        if row is None:
            logger.info(
                "Edit conflict on user update",
                extra={"user_id": user.id, "expected_version": user.version},
            )
            raise EditConflictError()

        user.version = row["version"]

    async def get_for_token(self, scope: str, plaintext: str) -> User:
        """Fetch the user owning a live token of the given scope.

        Expired and unknown tokens are indistinguishable.

        Raises:
            RecordNotFoundError: If no non-expired token matches.
        """
        token_hash = hash_token(plaintext)
        now_ms = int(time.time() * 1000)

        def _get(conn: sqlite3.Connection) -> sqlite3.Row | None:
            return conn.execute(
                f"""
                SELECT {_COLUMNS}
                FROM users
                INNER JOIN tokens ON tokens.user_id = users.id
                WHERE tokens.hash = ? AND tokens.scope = ? AND tokens.expiry > ?
                """,
                (token_hash, scope, now_ms),
            ).fetchone()

        row = await self.db.run("users.get_for_token", _get)
        if row is None:
            raise RecordNotFoundError()
        return _row_to_user(row)
