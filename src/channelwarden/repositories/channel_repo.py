"""Registry of distribution channels a new ban fans out to."""

from __future__ import annotations

from typing import List, Optional

import aiosqlite


class ChannelRepo:
    """Low-level CRUD for the ``distribution_channels`` table."""

    @staticmethod
    async def upsert(
        conn: aiosqlite.Connection,
        channel_id: str,
        title: Optional[str] = None,
        is_active: bool = True,
    ) -> None:
        await conn.execute(
            """
            INSERT INTO distribution_channels (channel_id, title, is_active)
            VALUES (?, ?, ?)
            ON CONFLICT(channel_id) DO UPDATE SET
                title     = COALESCE(excluded.title, distribution_channels.title),
                is_active = excluded.is_active
            """,
            (str(channel_id), title, int(is_active)),
        )

    @staticmethod
    async def list_active(conn: aiosqlite.Connection) -> List[str]:
        """Return active channel ids in registration order."""
        cursor = await conn.execute(
            "SELECT channel_id FROM distribution_channels WHERE is_active = 1 ORDER BY rowid"
        )
        return [str(row[0]) for row in await cursor.fetchall()]
