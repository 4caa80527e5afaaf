"""
Append-only storage for ban records.

Channel sets are stored as a JSON array of channel ids. Timestamps are
INTEGER unix seconds.
"""

from __future__ import annotations

import json
from typing import List, Optional

import aiosqlite

from channelwarden.datatypes.moderation_datatypes import BanKind, BanRecord

_COLUMNS = "id, user_id, external_id, reason, kind, expires_at, channels, created_by, active, created_at"


def _row_to_record(row: aiosqlite.Row) -> BanRecord:
    return BanRecord(
        id=row["id"],
        user_id=row["user_id"],
        external_id=row["external_id"],
        reason=row["reason"],
        kind=BanKind(row["kind"]),
        expires_at=row["expires_at"],
        channels=[str(c) for c in json.loads(row["channels"] or "[]")],
        created_by=row["created_by"],
        active=bool(row["active"]),
        created_at=row["created_at"],
    )


class BanRecordRepo:
    """Low-level access to the ``ban_records`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(conn: aiosqlite.Connection, record: BanRecord) -> int:
        """Insert a record and return its id.

        Raises ``aiosqlite.IntegrityError`` when the user already has an
        active record.
        """
        cursor = await conn.execute(
            """
            INSERT INTO ban_records
                (user_id, external_id, reason, kind, expires_at, channels, created_by, active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.user_id,
                record.external_id,
                record.reason,
                record.kind.value,
                record.expires_at,
                json.dumps(list(record.channels)),
                record.created_by,
                int(record.active),
                record.created_at,
            ),
        )
        return int(cursor.lastrowid)

    @staticmethod
    async def deactivate_all(conn: aiosqlite.Connection, user_id: int) -> int:
        """Flip every active record of the user to inactive; return how many changed."""
        cursor = await conn.execute(
            "UPDATE ban_records SET active = 0 WHERE user_id = ? AND active = 1",
            (user_id,),
        )
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get_active(conn: aiosqlite.Connection, user_id: int) -> Optional[BanRecord]:
        """Return the latest active record of the user, if any."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM ban_records WHERE user_id = ? AND active = 1 "
            "ORDER BY created_at DESC, id DESC LIMIT 1",
            (user_id,),
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    @staticmethod
    async def list_for_user(conn: aiosqlite.Connection, user_id: int) -> List[BanRecord]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM ban_records WHERE user_id = ? ORDER BY id",
            (user_id,),
        )
        return [_row_to_record(row) for row in await cursor.fetchall()]

    @staticmethod
    async def list_active(conn: aiosqlite.Connection, limit: int = 20) -> List[BanRecord]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM ban_records WHERE active = 1 "
            "ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [_row_to_record(row) for row in await cursor.fetchall()]

    @staticmethod
    async def get_expired(conn: aiosqlite.Connection, now: int) -> List[BanRecord]:
        """Return active temporary records whose ``expires_at <= now``."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM ban_records "
            "WHERE kind = 'temporary' AND active = 1 AND expires_at IS NOT NULL AND expires_at <= ? "
            "ORDER BY expires_at",
            (now,),
        )
        return [_row_to_record(row) for row in await cursor.fetchall()]

    @staticmethod
    async def count_active(conn: aiosqlite.Connection, kind: Optional[BanKind] = None) -> int:
        if kind is None:
            cursor = await conn.execute("SELECT COUNT(*) FROM ban_records WHERE active = 1")
        else:
            cursor = await conn.execute(
                "SELECT COUNT(*) FROM ban_records WHERE active = 1 AND kind = ?",
                (kind.value,),
            )
        row = await cursor.fetchone()
        return int(row[0])
