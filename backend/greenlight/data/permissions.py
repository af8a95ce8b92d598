"""
Permission codes granted to users.

Codes are plain strings such as "movies:read". The set of known codes is
seeded by Database.initialize(); granting an unknown code is a no-op.
"""

from __future__ import annotations

import logging
import sqlite3

from .database import Database

logger = logging.getLogger(__name__)


class Permissions(list):
    """List of permission codes held by one user."""

    def include(self, code: str) -> bool:
        return code in self


class PermissionStore:
    """Grant and look up permission codes."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def add_for_user(self, user_id: int, *codes: str) -> None:
        """Grant codes to user_id. Already-held codes are ignored."""

        def _add(conn: sqlite3.Connection) -> None:
            with Database.transaction(conn):
                conn.executemany(
                    """
                    INSERT OR IGNORE INTO users_permissions (user_id, permission_id)
                    SELECT ?, id FROM permissions WHERE code = ?
                    """,
                    [(user_id, code) for code in codes],
                )

        await self.db.run("permissions.add_for_user", _add)
        logger.debug("Granted permissions", extra={"user_id": user_id, "codes": list(codes)})

    async def get_all_for_user(self, user_id: int) -> Permissions:
        def _get(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute(
                """
                SELECT permissions.code
                FROM permissions
                INNER JOIN users_permissions ON users_permissions.permission_id = permissions.id
                WHERE users_permissions.user_id = ?
                ORDER BY permissions.code
                """,
                (user_id,),
            ).fetchall()

        rows = await self.db.run("permissions.get_all_for_user", _get)
        return Permissions(row["code"] for row in rows)
