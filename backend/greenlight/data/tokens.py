"""
Bearer token issuance and verification for Greenlight.

A token is 16 bytes from the OS CSPRNG, base32-encoded without padding to
a 26-character plaintext. The plaintext is handed to the caller exactly
once; only its SHA-256 digest is stored. Verification hashes the presented
value and looks the digest up, so a stored hash is never reversed.

Invariants:
    - Plaintext is never persisted or logged
    - Plaintext length is TOKEN_PLAINTEXT_LENGTH; activation input is
      validated against it
    - Unknown and expired tokens fail identically (RecordNotFoundError)
    - Tokens are created and deleted, never updated
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from ..errors import RecordNotFoundError
from ..validator import Validator
from .database import Database

logger = logging.getLogger(__name__)

TOKEN_ENTROPY_BYTES = 16
TOKEN_PLAINTEXT_LENGTH = 26


class TokenScope(str, Enum):
    """What a token authorizes."""

    ACTIVATION = "activation"
    AUTHENTICATION = "authentication"


@dataclass
class Token:
    """An issued token.

    Attributes:
        plaintext: Value returned to the client (empty once loaded from storage)
        hash: SHA-256 digest of plaintext
        user_id: Owning user
        expiry: Expiry timestamp (Unix ms)
        scope: Token scope
    """

    plaintext: str
    hash: bytes
    user_id: int
    expiry: int
    scope: TokenScope

    def __repr__(self) -> str:
        return f"Token(user_id={self.user_id}, scope={self.scope.value}, expiry={self.expiry})"

    def to_dict(self) -> dict[str, Any]:
        expiry = datetime.fromtimestamp(self.expiry / 1000, tz=timezone.utc)
        return {"token": self.plaintext, "expiry": expiry.isoformat()}


def hash_token(plaintext: str) -> bytes:
    return hashlib.sha256(plaintext.encode()).digest()


def generate_token(user_id: int, ttl: timedelta, scope: TokenScope) -> Token:
    """Create a fresh token without storing it."""
    random_bytes = secrets.token_bytes(TOKEN_ENTROPY_BYTES)
    plaintext = base64.b32encode(random_bytes).decode("ascii").rstrip("=")

    return Token(
        plaintext=plaintext,
        hash=hash_token(plaintext),
        user_id=user_id,
        expiry=int((time.time() + ttl.total_seconds()) * 1000),
        scope=scope,
    )


def validate_token_plaintext(v: Validator, plaintext: str) -> None:
    v.check(plaintext != "", "token", "must be provided")
    v.check(
        len(plaintext.encode()) == TOKEN_PLAINTEXT_LENGTH,
        "token",
        f"must be {TOKEN_PLAINTEXT_LENGTH} bytes long",
    )


class TokenStore:
    """Issue, verify and purge tokens.

    Thread safety:
        Stateless apart from the Database handle; safe to share.

    Example:
        >>> store = TokenStore(db)
        >>> token = await store.new(7, timedelta(hours=72), TokenScope.ACTIVATION)
        >>> await store.verify(TokenScope.ACTIVATION, token.plaintext)
        7
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def new(self, user_id: int, ttl: timedelta, scope: TokenScope) -> Token:
        """Generate and store a token, returning it with its plaintext."""
        token = generate_token(user_id, ttl, scope)
        await self.insert(token)
        return token

    async def insert(self, token: Token) -> None:
        def _insert(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO tokens (hash, user_id, expiry, scope) VALUES (?, ?, ?, ?)",
                (token.hash, token.user_id, token.expiry, token.scope.value),
            )

        await self.db.run("tokens.insert", _insert)
        logger.debug(
            "Issued token",
            extra={"user_id": token.user_id, "scope": token.scope.value},
        )

    async def verify(self, scope: TokenScope, plaintext: str) -> int:
        """Return the owner of a live token with this scope and plaintext.

        Raises:
            RecordNotFoundError: If no such token exists or it has expired.
        """
        token_hash = hash_token(plaintext)
        now_ms = int(time.time() * 1000)

        def _verify(conn: sqlite3.Connection) -> sqlite3.Row | None:
            return conn.execute(
                "SELECT user_id FROM tokens WHERE hash = ? AND scope = ? AND expiry > ?",
                (token_hash, scope.value, now_ms),
            ).fetchone()

        row = await self.db.run("tokens.verify", _verify)
        if row is None:
            raise RecordNotFoundError()
        return row["user_id"]

    async def delete_all_for_user(self, scope: TokenScope, user_id: int) -> int:
        """Delete every token of scope owned by user_id.

        Returns:
            Number of tokens removed
        """

        def _delete(conn: sqlite3.Connection) -> int:
            return conn.execute(
                "DELETE FROM tokens WHERE scope = ? AND user_id = ?",
                (scope.value, user_id),
            ).rowcount

        deleted = await self.db.run("tokens.delete_all_for_user", _delete)
        logger.debug(
            "Purged tokens",
            extra={"user_id": user_id, "scope": scope.value, "deleted": deleted},
        )
        return deleted
