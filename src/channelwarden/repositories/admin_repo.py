"""
Storage for admin permissions and bot settings (command toggles).
"""

from __future__ import annotations

import json
from typing import Any, Iterable, List, Optional

import aiosqlite


class PermissionRepo:
    """Low-level access to the ``admin_permissions`` table."""

    @staticmethod
    async def grant(
        conn: aiosqlite.Connection,
        user_id: int,
        permissions: Iterable[str],
        granted_by: int,
        now: int,
    ) -> None:
        await conn.executemany(
            """
            INSERT INTO admin_permissions (user_id, permission, granted_by, is_active, granted_at)
            VALUES (?, ?, ?, 1, ?)
            ON CONFLICT(user_id, permission) DO UPDATE SET
                is_active  = 1,
                granted_by = excluded.granted_by,
                granted_at = excluded.granted_at
            """,
            [(user_id, permission, granted_by, now) for permission in permissions],
        )

    @staticmethod
    async def revoke(conn: aiosqlite.Connection, user_id: int, permissions: Iterable[str]) -> None:
        await conn.executemany(
            "UPDATE admin_permissions SET is_active = 0 WHERE user_id = ? AND permission = ?",
            [(user_id, permission) for permission in permissions],
        )

    @staticmethod
    async def revoke_all(conn: aiosqlite.Connection, user_id: int) -> None:
        await conn.execute("UPDATE admin_permissions SET is_active = 0 WHERE user_id = ?", (user_id,))

    @staticmethod
    async def list_active(conn: aiosqlite.Connection, user_id: int) -> List[str]:
        cursor = await conn.execute(
            "SELECT permission FROM admin_permissions WHERE user_id = ? AND is_active = 1 ORDER BY permission",
            (user_id,),
        )
        return [row[0] for row in await cursor.fetchall()]


class SettingsRepo:
    """Key/value rows of the ``bot_settings`` table, values stored as JSON."""

    @staticmethod
    async def upsert(conn: aiosqlite.Connection, key: str, value: Any, updated_by: int, now: int) -> None:
        await conn.execute(
            """
            INSERT INTO bot_settings (setting_key, setting_value, updated_by, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(setting_key) DO UPDATE SET
                setting_value = excluded.setting_value,
                updated_by    = excluded.updated_by,
                updated_at    = excluded.updated_at
            """,
            (key, json.dumps(value), updated_by, now),
        )

    @staticmethod
    async def get(conn: aiosqlite.Connection, key: str) -> Optional[Any]:
        cursor = await conn.execute("SELECT setting_value FROM bot_settings WHERE setting_key = ?", (key,))
        row = await cursor.fetchone()
        return json.loads(row[0]) if row else None
