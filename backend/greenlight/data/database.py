"""
SQLite handle for Greenlight.

This module owns the single database file and is the only place that opens
connections. Every store receives a Database instance in its constructor;
there is no module-level connection or pool.

Store operations are written as plain synchronous functions taking a
connection, and are executed through Database.run(), which moves them onto
a worker thread and bounds them with a timeout so that a wedged database
cannot block a request indefinitely.

Invariants:
    - One connection per operation (SQLite handles concurrency via WAL mode)
    - Every run() call is one transaction; a timed-out call never commits
    - Timeouts surface as StoreTimeoutError, never as a domain error

How to change safely:
    - Schema changes must be additive (CREATE ... IF NOT EXISTS)
    - Keep FTS triggers in sync with the movies table columns

Table schema:
    movies:
        - id INTEGER PRIMARY KEY AUTOINCREMENT
        - created_at INTEGER (Unix ms)
        - title TEXT
        - year INTEGER
        - runtime INTEGER (minutes)
        - genres_json TEXT (JSON array)
        - version INTEGER (starts at 1)

    movies_fts:
        - FTS5 virtual table over movies.title

    users:
        - id INTEGER PRIMARY KEY AUTOINCREMENT
        - created_at INTEGER
        - name TEXT
        - email TEXT UNIQUE COLLATE NOCASE
        - password_hash BLOB
        - activated INTEGER (0/1)
        - version INTEGER

    tokens:
        - hash BLOB PRIMARY KEY (SHA-256 of plaintext)
        - user_id INTEGER -> users.id ON DELETE CASCADE
        - expiry INTEGER (Unix ms)
        - scope TEXT

    permissions / users_permissions:
        - code TEXT UNIQUE
        - (user_id, permission_id) PRIMARY KEY
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from ..errors import StoreTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PERMISSIONS = ("movies:read", "movies:write")


class Database:
    """Explicit handle to the Greenlight SQLite database.

    Thread safety:
        Each operation opens its own connection, so a Database can be
        shared by any number of concurrent tasks and worker threads.

    Example:
        >>> db = Database("/var/lib/greenlight/greenlight.db")
        >>> db.initialize()
        >>> count = await db.run("count_movies", lambda conn: conn.execute(
        ...     "SELECT COUNT(*) FROM movies").fetchone()[0])
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        query_timeout_seconds: float = 3.0,
    ) -> None:
        """Initialize the database handle.

        Args:
            path: SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            query_timeout_seconds: Upper bound for run()
        """
        self.path = Path(path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.query_timeout_seconds = query_timeout_seconds

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection and close it afterwards.

        Yields:
            SQLite connection in autocommit mode (explicit transactions)
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")

            yield conn
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the schema if it does not exist."""
        with self.connect() as conn:
            self._create_schema(conn)
        logger.info("Initialized database", extra={"db_path": str(self.path)})

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            -- Movies table
            CREATE TABLE IF NOT EXISTS movies (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at INTEGER NOT NULL DEFAULT (CAST((julianday('now') - 2440587.5) * 86400000 AS INTEGER)),
                title TEXT NOT NULL,
                year INTEGER NOT NULL,
                runtime INTEGER NOT NULL,
                genres_json TEXT NOT NULL DEFAULT '[]',
                version INTEGER NOT NULL DEFAULT 1
            );

            CREATE INDEX IF NOT EXISTS idx_movies_year ON movies(year);

            -- FTS5 virtual table for title search
            CREATE VIRTUAL TABLE IF NOT EXISTS movies_fts USING fts5(
                title,
                content='movies',
                content_rowid='id'
            );

            -- Triggers to keep FTS in sync
            CREATE TRIGGER IF NOT EXISTS movies_ai AFTER INSERT ON movies BEGIN
                INSERT INTO movies_fts(rowid, title) VALUES (new.id, new.title);
            END;

            CREATE TRIGGER IF NOT EXISTS movies_ad AFTER DELETE ON movies BEGIN
                INSERT INTO movies_fts(movies_fts, rowid, title)
                VALUES('delete', old.id, old.title);
            END;

            CREATE TRIGGER IF NOT EXISTS movies_au AFTER UPDATE ON movies BEGIN
                INSERT INTO movies_fts(movies_fts, rowid, title)
                VALUES('delete', old.id, old.title);
                INSERT INTO movies_fts(rowid, title) VALUES (new.id, new.title);
            END;

            -- Users table
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at INTEGER NOT NULL DEFAULT (CAST((julianday('now') - 2440587.5) * 86400000 AS INTEGER)),
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                password_hash BLOB NOT NULL,
                activated INTEGER NOT NULL DEFAULT 0,
                version INTEGER NOT NULL DEFAULT 1
            );

            -- Tokens table (only the hash of the plaintext is stored)
            CREATE TABLE IF NOT EXISTS tokens (
                hash BLOB PRIMARY KEY,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                expiry INTEGER NOT NULL,
                scope TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_tokens_user_scope ON tokens(user_id, scope);

            -- Permissions
            CREATE TABLE IF NOT EXISTS permissions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                code TEXT NOT NULL UNIQUE
            );

            CREATE TABLE IF NOT EXISTS users_permissions (
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                permission_id INTEGER NOT NULL REFERENCES permissions(id) ON DELETE CASCADE,
                PRIMARY KEY (user_id, permission_id)
            );

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

        conn.executemany(
            "INSERT OR IGNORE INTO permissions (code) VALUES (?)",
            [(code,) for code in DEFAULT_PERMISSIONS],
        )

    async def run(
        self,
        operation: str,
        fn: Callable[[sqlite3.Connection], T],
        timeout: float | None = None,
    ) -> T:
        """Execute fn(conn) on a worker thread, bounded by a timeout.

        fn runs inside a single transaction that is committed only if the
        caller is still waiting. On timeout the connection is interrupted
        and the transaction rolled back, so a StoreTimeoutError always means
        nothing was written. A worker that already started its COMMIT when
        the deadline passed is waited for instead, and its result returned.

        Args:
            operation: Name used in logs and timeout errors
            fn: Synchronous function receiving an open connection
            timeout: Override for the configured query timeout

        Returns:
            Whatever fn returns

        Raises:
            StoreTimeoutError: If fn did not finish in time
        """
        timeout = timeout if timeout is not None else self.query_timeout_seconds
        attempt = _Attempt()

        def _call() -> T:
            with self.connect() as conn:
                if not attempt.bind(conn):
                    raise StoreTimeoutError(operation, timeout)
                try:
                    conn.execute("BEGIN")
                    try:
                        result = fn(conn)
                    except BaseException:
                        if conn.in_transaction:
                            conn.execute("ROLLBACK")
                        raise

                    if not attempt.claim_commit():
                        if conn.in_transaction:
                            conn.execute("ROLLBACK")
                        raise StoreTimeoutError(operation, timeout)

                    conn.execute("COMMIT")
                    return result
                finally:
                    attempt.unbind()

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, _call)
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
        except asyncio.TimeoutError:
            if not attempt.abandon():
                return await future

            future.add_done_callback(_discard_abandoned)
            logger.error(
                "Store operation timed out",
                extra={"operation": operation, "timeout": timeout},
            )
            raise StoreTimeoutError(operation, timeout)

    @staticmethod
    @contextmanager
    def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        """Run a block atomically, rolling back on error.

        Inside run() the block becomes a SAVEPOINT of the enclosing
        transaction. On a bare connection it is BEGIN IMMEDIATE / COMMIT.
        """
        if conn.in_transaction:
            conn.execute("SAVEPOINT block")
            try:
                yield conn
            except Exception:
                conn.execute("ROLLBACK TO block")
                conn.execute("RELEASE block")
                raise
            conn.execute("RELEASE block")
            return

        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except Exception:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")


class _Attempt:
    """Hand-off between a run() caller and its worker thread.

    Whichever side moves first wins: the worker by claiming the commit, the
    caller by abandoning the attempt. Once abandoned the worker's connection
    is interrupted and its transaction is never committed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        self._abandoned = False
        self._committing = False

    def bind(self, conn: sqlite3.Connection) -> bool:
        with self._lock:
            self._conn = conn
            return not self._abandoned

    def unbind(self) -> None:
        with self._lock:
            self._conn = None

    def claim_commit(self) -> bool:
        with self._lock:
            if self._abandoned:
                return False
            self._committing = True
            return True

    def abandon(self) -> bool:
        """Abandon the attempt. False if the worker is already committing."""
        with self._lock:
            if self._committing:
                return False
            self._abandoned = True
            if self._conn is not None:
                self._conn.interrupt()
            return True


def _discard_abandoned(future: asyncio.Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None and not isinstance(exc, StoreTimeoutError):
        logger.debug("Abandoned store operation ended with %r", exc)
