"""
Persistent storage for bot users and their ban fields.

Only the moderation engine writes the ban columns; roles are written by the
admin operations.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

import aiosqlite

from channelwarden.datatypes.moderation_datatypes import BanStatus, User, UserRole


_COLUMNS = (
    "id, external_id, username, role, ban_status, ban_reason, "
    "banned_at, ban_expires_at, banned_by"
)


def _row_to_user(row: aiosqlite.Row) -> User:
    return User(
        id=row["id"],
        external_id=row["external_id"],
        username=row["username"],
        role=UserRole(row["role"]),
        ban_status=BanStatus(row["ban_status"]),
        ban_reason=row["ban_reason"],
        banned_at=row["banned_at"],
        ban_expires_at=row["ban_expires_at"],
        banned_by=row["banned_by"],
    )


class UserRepo:
    """Low-level CRUD for the ``users`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def ensure(
        conn: aiosqlite.Connection,
        external_id: int,
        username: Optional[str] = None,
        role: UserRole = UserRole.USER,
    ) -> User:
        """Create the user on first contact and return the stored row.

        An existing row keeps its role; the username is refreshed when given.
        """
        await conn.execute(
            """
            INSERT INTO users (external_id, username, role)
            VALUES (?, ?, ?)
            ON CONFLICT(external_id) DO UPDATE SET
                username = COALESCE(excluded.username, users.username)
            """,
            (external_id, username, role.value),
        )
        user = await UserRepo.get_by_external_id(conn, external_id)
        assert user is not None
        return user

    @staticmethod
    async def set_ban_state(
        conn: aiosqlite.Connection,
        user_id: int,
        status: BanStatus,
        reason: str,
        banned_at: int,
        expires_at: Optional[int],
        banned_by: int,
    ) -> None:
        await conn.execute(
            """
            UPDATE users
            SET ban_status = ?, ban_reason = ?, banned_at = ?, ban_expires_at = ?, banned_by = ?
            WHERE id = ?
            """,
            (status.value, reason, banned_at, expires_at, banned_by, user_id),
        )

    @staticmethod
    async def clear_ban_state(conn: aiosqlite.Connection, user_id: int) -> None:
        await conn.execute(
            """
            UPDATE users
            SET ban_status = 'active', ban_reason = NULL, banned_at = NULL,
                ban_expires_at = NULL, banned_by = NULL
            WHERE id = ?
            """,
            (user_id,),
        )

    @staticmethod
    async def set_role(conn: aiosqlite.Connection, user_id: int, role: UserRole) -> None:
        await conn.execute("UPDATE users SET role = ? WHERE id = ?", (role.value, user_id))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get_by_external_id(conn: aiosqlite.Connection, external_id: int) -> Optional[User]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM users WHERE external_id = ?",
            (external_id,),
        )
        row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    @staticmethod
    async def get_by_id(conn: aiosqlite.Connection, user_id: int) -> Optional[User]:
        cursor = await conn.execute(f"SELECT {_COLUMNS} FROM users WHERE id = ?", (user_id,))
        row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    @staticmethod
    async def get_by_username(conn: aiosqlite.Connection, username: str) -> Optional[User]:
        """Case-insensitive lookup; a leading ``@`` is ignored."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM users WHERE username = ? COLLATE NOCASE LIMIT 1",
            (username.lstrip("@"),),
        )
        row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    @staticmethod
    async def list_by_roles(conn: aiosqlite.Connection, roles: Iterable[UserRole]) -> List[User]:
        values = [role.value for role in roles]
        if not values:
            return []
        placeholders = ", ".join("?" for _ in values)
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM users WHERE role IN ({placeholders}) ORDER BY id",
            values,
        )
        return [_row_to_user(row) for row in await cursor.fetchall()]
