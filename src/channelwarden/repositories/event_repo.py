"""
Write-once event tables: behavior events (anomaly input), security events
and admin actions (audit trail).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import aiosqlite

from channelwarden.datatypes.moderation_datatypes import BehaviorEvent, SecurityEvent, Severity


class BehaviorEventRepo:

    @staticmethod
    async def insert(conn: aiosqlite.Connection, event: BehaviorEvent) -> None:
        await conn.execute(
            "INSERT INTO behavior_events (user_id, action_type, created_at) VALUES (?, ?, ?)",
            (event.user_id, event.action_type, event.created_at),
        )

    @staticmethod
    async def count_by_type(conn: aiosqlite.Connection, user_id: int, since: int) -> Dict[str, int]:
        """Count the user's events newer than ``since`` grouped by action type."""
        cursor = await conn.execute(
            """
            SELECT action_type, COUNT(*) AS count
            FROM behavior_events
            WHERE user_id = ? AND created_at > ?
            GROUP BY action_type
            """,
            (user_id, since),
        )
        return {row["action_type"]: int(row["count"]) for row in await cursor.fetchall()}

    @staticmethod
    async def purge_older_than(conn: aiosqlite.Connection, cutoff: int) -> int:
        cursor = await conn.execute("DELETE FROM behavior_events WHERE created_at <= ?", (cutoff,))
        return cursor.rowcount


class SecurityEventRepo:

    @staticmethod
    async def insert(conn: aiosqlite.Connection, event: SecurityEvent) -> int:
        cursor = await conn.execute(
            """
            INSERT INTO security_events (user_id, event_type, severity, details, automatic_action, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                event.user_id,
                event.event_type,
                event.severity.value,
                json.dumps(event.details, default=str),
                event.automatic_action,
                event.created_at,
            ),
        )
        return int(cursor.lastrowid)

    @staticmethod
    async def list_for_user(conn: aiosqlite.Connection, user_id: int) -> List[SecurityEvent]:
        cursor = await conn.execute(
            "SELECT id, user_id, event_type, severity, details, automatic_action, created_at "
            "FROM security_events WHERE user_id = ? ORDER BY id",
            (user_id,),
        )
        return [
            SecurityEvent(
                id=row["id"],
                user_id=row["user_id"],
                event_type=row["event_type"],
                severity=Severity(row["severity"]),
                details=json.loads(row["details"] or "{}"),
                automatic_action=row["automatic_action"],
                created_at=row["created_at"],
            )
            for row in await cursor.fetchall()
        ]

    @staticmethod
    async def count_since(conn: aiosqlite.Connection, since: int, automatic_only: bool = False) -> int:
        query = "SELECT COUNT(*) FROM security_events WHERE created_at > ?"
        if automatic_only:
            query += " AND automatic_action IS NOT NULL"
        cursor = await conn.execute(query, (since,))
        row = await cursor.fetchone()
        return int(row[0])


class AdminActionRepo:

    @staticmethod
    async def insert(
        conn: aiosqlite.Connection,
        admin_id: int,
        action_type: str,
        target_type: str,
        target_id: Optional[int],
        details: Dict[str, Any],
        created_at: int,
    ) -> None:
        await conn.execute(
            """
            INSERT INTO admin_actions (admin_id, action_type, target_type, target_id, details, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (admin_id, action_type, target_type, target_id, json.dumps(details, default=str), created_at),
        )

    @staticmethod
    async def list_for_admin(conn: aiosqlite.Connection, admin_id: int) -> List[Dict[str, Any]]:
        cursor = await conn.execute(
            "SELECT action_type, target_type, target_id, details, created_at "
            "FROM admin_actions WHERE admin_id = ? ORDER BY id",
            (admin_id,),
        )
        return [
            {
                "action_type": row["action_type"],
                "target_type": row["target_type"],
                "target_id": row["target_id"],
                "details": json.loads(row["details"] or "{}"),
                "created_at": row["created_at"],
            }
            for row in await cursor.fetchall()
        ]
