"""
Moderation engine: ban, warning and unban state transitions.

The engine is the only writer of the users' ban fields and of ban records.
Every call for one subject runs under that subject's lock, so a second ban
for the same user waits and then sees the first one's record.

Write path of a ban
-------------------
1. Reject when the subject is unknown or already has an active record
   (unless a warning is being upgraded to a real ban).
2. Fan out to the active distribution channels (real bans only).
3. In ONE transaction: deactivate the upgraded warning, insert the ban
   record with the channels that actually succeeded, update the user row,
   append the security event and the admin action.
4. If that transaction fails, undo the channel bans (best-effort) and raise
   ``PersistenceError``.
5. Notify the subject in the background; delivery failures are only logged.
"""

from __future__ import annotations

import asyncio
import math
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

import aiosqlite

from channelwarden.database.db_connection import ConnectionManager
from channelwarden.datatypes.moderation_datatypes import (
    MAX_BAN_DURATION_HOURS,
    BanKind,
    BanRecord,
    FanoutAction,
    ModerationOutcome,
    ModerationResult,
    SecurityEvent,
    Severity,
)
from channelwarden.errors import PersistenceError
from channelwarden.moderation.fanout_executor import ChannelFanoutExecutor
from channelwarden.moderation.subject_locks import SubjectLocks
from channelwarden.repositories.ban_record_repo import BanRecordRepo
from channelwarden.repositories.channel_repo import ChannelRepo
from channelwarden.repositories.event_repo import AdminActionRepo, SecurityEventRepo
from channelwarden.repositories.user_repo import UserRepo
from channelwarden.transport.channel_transport import ChannelTransport, MessageRenderer, PlainMessageRenderer
from channelwarden.util.logger import get_logger

logger = get_logger("moderation_engine")

SECONDS_PER_HOUR = 3600


class ModerationEngine:
    """
    Owns ban/unban transitions and hands channel work to the fan-out executor.

    Attributes:
        db: Connection manager used for every read and write.
        fanout: Executor applying channel bans and unbans.
        transport: Chat network collaborator used for subject notifications.
        renderer: Templating collaborator producing notification text.
        system_actor_id: Actor id recorded for automatic actions.
    """

    def __init__(
        self,
        db: ConnectionManager,
        fanout: ChannelFanoutExecutor,
        transport: ChannelTransport,
        *,
        renderer: Optional[MessageRenderer] = None,
        system_actor_id: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db = db
        self.fanout = fanout
        self.transport = transport
        self.renderer = renderer or PlainMessageRenderer()
        self.system_actor_id = system_actor_id
        self._clock = clock
        self._locks = SubjectLocks()
        self._notifications: Set[asyncio.Task[None]] = set()

    def _now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------
    # Ban
    # ------------------------------------------------------------------

    async def ban(
        self,
        subject_id: int,
        reason: str,
        kind: BanKind | str,
        duration_hours: Optional[float] = None,
        actor_id: Optional[int] = None,
        *,
        upgrade_warning: bool = False,
    ) -> ModerationResult:
        """
        Ban or warn a subject across the active distribution channels.

        Args:
            subject_id: Platform id of the subject.
            reason: Free-text reason stored on the record.
            kind: ``warning``, ``temporary`` or ``permanent``.
            duration_hours: Required and positive for temporary bans.
            actor_id: Operator id; defaults to the system actor.
            upgrade_warning: Replace an active warning with this real ban
                instead of rejecting the call as already banned.

        Returns:
            ModerationResult; success means at least one channel was banned
            (always true for a recorded warning).

        Raises:
            PersistenceError: The ban writes failed and were rolled back.
        """
        try:
            kind = BanKind(kind)
        except ValueError:
            return ModerationResult(False, ModerationOutcome.INVALID, reason=f"unknown ban kind {kind!r}")

        reason = (reason or "").strip()
        if not reason:
            return ModerationResult(False, ModerationOutcome.INVALID, reason="reason is required")
        if kind is BanKind.TEMPORARY and not _valid_duration(duration_hours):
            return ModerationResult(
                False,
                ModerationOutcome.INVALID,
                reason=f"temporary bans need a duration between 0 and {MAX_BAN_DURATION_HOURS} hours",
            )

        actor = self.system_actor_id if actor_id is None else actor_id

        async with self._locks.hold(subject_id):
            async with self.db.read() as conn:
                user = await UserRepo.get_by_external_id(conn, subject_id)
                active = await BanRecordRepo.get_active(conn, user.id) if user else None
                channels = await ChannelRepo.list_active(conn) if kind.touches_channels else []

            if user is None:
                logger.warning("[MODERATION ENGINE] Ban rejected: subject %s is unknown", subject_id)
                return ModerationResult(False, ModerationOutcome.NOT_FOUND, reason="subject not found")

            if active is not None:
                upgrading = upgrade_warning and active.kind is BanKind.WARNING and kind.touches_channels
                if not upgrading:
                    logger.info(
                        "[MODERATION ENGINE] Ban rejected: subject %s already has an active %s",
                        subject_id,
                        active.kind.value,
                    )
                    return ModerationResult(
                        False,
                        ModerationOutcome.ALREADY_BANNED,
                        reason=active.reason,
                        record=active,
                    )

            now = self._now()
            expires_at = None
            if kind is BanKind.TEMPORARY:
                expires_at = now + int(float(duration_hours) * SECONDS_PER_HOUR)

            affected: List[str] = []
            total = 0
            if kind.touches_channels:
                fanout_result = await self.fanout.execute(FanoutAction.BAN, subject_id, channels)
                affected = fanout_result.affected_channels
                total = fanout_result.total_count
                if not affected:
                    logger.error(
                        "[MODERATION ENGINE] Ban of subject %s failed on all %d channels, nothing recorded",
                        subject_id,
                        total,
                    )
                    return ModerationResult(
                        False,
                        ModerationOutcome.FAILED,
                        affected_channel_count=0,
                        total_channel_count=total,
                        reason="no channel accepted the ban" if total else "no active distribution channels",
                    )

            record = BanRecord(
                user_id=user.id,
                external_id=subject_id,
                reason=reason,
                kind=kind,
                created_by=actor,
                channels=affected,
                expires_at=expires_at,
                active=True,
                created_at=now,
            )

            try:
                async with self.db.transaction() as conn:
                    if active is not None:
                        await BanRecordRepo.deactivate_all(conn, user.id)
                    record.id = await BanRecordRepo.insert(conn, record)
                    await UserRepo.set_ban_state(
                        conn,
                        user_id=user.id,
                        status=kind.status,
                        reason=reason,
                        banned_at=now,
                        expires_at=expires_at,
                        banned_by=actor,
                    )
                    details: Dict[str, Any] = {
                        "ban_type": kind.value,
                        "reason": reason,
                        "channels_affected": len(affected),
                        "channels_total": total,
                        "expires_at": expires_at,
                        "banned_by": actor,
                        "upgraded_warning_id": active.id if active is not None else None,
                    }
                    await SecurityEventRepo.insert(
                        conn,
                        SecurityEvent(
                            user_id=user.id,
                            event_type="user_banned" if kind.touches_channels else "user_warned",
                            severity=Severity.HIGH if kind is BanKind.PERMANENT else Severity.MEDIUM,
                            details=details,
                            created_at=now,
                        ),
                    )
                    await AdminActionRepo.insert(
                        conn,
                        admin_id=actor,
                        action_type="ban_user" if kind.touches_channels else "warn_user",
                        target_type="user",
                        target_id=user.id,
                        details=details,
                        created_at=now,
                    )
            except aiosqlite.Error as exc:
                logger.error(
                    "[MODERATION ENGINE] Persisting ban of subject %s failed: %s",
                    subject_id,
                    exc,
                    exc_info=True,
                )
                if affected:
                    await self._compensate(subject_id, affected)
                raise PersistenceError(f"ban of subject {subject_id} was not recorded") from exc

        logger.info(
            "[MODERATION ENGINE] %s recorded for subject %s by %s (%d/%d channels)",
            kind.value,
            subject_id,
            actor,
            len(affected),
            total,
        )
        self._notify(
            subject_id,
            "warning_notice" if kind is BanKind.WARNING else "ban_notice",
            {"reason": reason, "kind": kind, "expires_at": _format_ts(expires_at)},
        )

        outcome = ModerationOutcome.APPLIED if len(affected) == total else ModerationOutcome.PARTIAL
        return ModerationResult(
            True,
            outcome,
            affected_channel_count=len(affected),
            total_channel_count=total,
            reason=reason,
            record=record,
        )

    async def _compensate(self, subject_id: int, channels: List[str]) -> None:
        """Undo channel bans whose record could not be written."""
        result = await self.fanout.execute(FanoutAction.UNBAN, subject_id, channels)
        if not result.complete:
            logger.error(
                "[MODERATION ENGINE] Compensating unban left subject %s banned on %s",
                subject_id,
                [o.channel_id for o in result.failed],
            )

    # ------------------------------------------------------------------
    # Unban
    # ------------------------------------------------------------------

    async def unban(self, subject_id: int, actor_id: Optional[int] = None) -> ModerationResult:
        """
        Lift the subject's active ban or warning.

        The channels come from the active ban record, so exactly the channels
        that were banned get unbanned. The ban state is cleared even when
        some channels reject the unban.

        Raises:
            PersistenceError: The unban writes failed and were rolled back.
        """
        actor = self.system_actor_id if actor_id is None else actor_id

        async with self._locks.hold(subject_id):
            async with self.db.read() as conn:
                user = await UserRepo.get_by_external_id(conn, subject_id)
                active = await BanRecordRepo.get_active(conn, user.id) if user else None

            if user is None:
                return ModerationResult(False, ModerationOutcome.NOT_FOUND, reason="subject not found")
            if active is None:
                logger.info("[MODERATION ENGINE] Unban skipped: subject %s is not banned", subject_id)
                return ModerationResult(False, ModerationOutcome.NOT_BANNED, reason="subject is not banned")

            channels = active.channels if active.kind.touches_channels else []
            fanout_result = await self.fanout.execute(FanoutAction.UNBAN, subject_id, channels)
            now = self._now()

            try:
                async with self.db.transaction() as conn:
                    await UserRepo.clear_ban_state(conn, user.id)
                    deactivated = await BanRecordRepo.deactivate_all(conn, user.id)
                    details: Dict[str, Any] = {
                        "ban_record_id": active.id,
                        "ban_type": active.kind.value,
                        "channels_affected": fanout_result.affected_count,
                        "channels_total": fanout_result.total_count,
                        "channels_failed": [o.channel_id for o in fanout_result.failed],
                        "records_deactivated": deactivated,
                        "unbanned_by": actor,
                    }
                    await SecurityEventRepo.insert(
                        conn,
                        SecurityEvent(
                            user_id=user.id,
                            event_type="user_unbanned",
                            severity=Severity.LOW,
                            details=details,
                            created_at=now,
                        ),
                    )
                    await AdminActionRepo.insert(
                        conn,
                        admin_id=actor,
                        action_type="unban_user",
                        target_type="user",
                        target_id=user.id,
                        details=details,
                        created_at=now,
                    )
            except aiosqlite.Error as exc:
                logger.error(
                    "[MODERATION ENGINE] Persisting unban of subject %s failed: %s",
                    subject_id,
                    exc,
                    exc_info=True,
                )
                raise PersistenceError(f"unban of subject {subject_id} was not recorded") from exc

        logger.info(
            "[MODERATION ENGINE] Subject %s unbanned by %s (%d/%d channels)",
            subject_id,
            actor,
            fanout_result.affected_count,
            fanout_result.total_count,
        )
        self._notify(subject_id, "unban_notice", {"reason": active.reason})

        return ModerationResult(
            True,
            ModerationOutcome.APPLIED if fanout_result.complete else ModerationOutcome.PARTIAL,
            affected_channel_count=fanout_result.affected_count,
            total_channel_count=fanout_result.total_count,
            reason=active.reason,
            record=active,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def is_banned(self, subject_id: int) -> bool:
        """True when the subject is temporarily or permanently banned; warnings do not count."""
        async with self.db.read() as conn:
            user = await UserRepo.get_by_external_id(conn, subject_id)
        return bool(user and user.is_banned)

    async def active_record(self, subject_id: int) -> Optional[BanRecord]:
        async with self.db.read() as conn:
            user = await UserRepo.get_by_external_id(conn, subject_id)
            return await BanRecordRepo.get_active(conn, user.id) if user else None

    async def list_active_bans(self, limit: int = 20) -> List[BanRecord]:
        """Most recent active records first, warnings included."""
        async with self.db.read() as conn:
            return await BanRecordRepo.list_active(conn, limit)

    async def security_statistics(self) -> Dict[str, int]:
        """Counters shown on the security dashboard."""
        since = self._now() - 24 * SECONDS_PER_HOUR
        async with self.db.read() as conn:
            active = await BanRecordRepo.count_active(conn)
            warnings = await BanRecordRepo.count_active(conn, BanKind.WARNING)
            recent = await SecurityEventRepo.count_since(conn, since)
            automatic = await SecurityEventRepo.count_since(conn, since, automatic_only=True)
        return {
            "banned_users": active - warnings,
            "active_warnings": warnings,
            "recent_events": recent,
            "auto_actions": automatic,
        }

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    async def lift_expired_bans(self, now: Optional[int] = None) -> int:
        """
        Unban every subject whose temporary ban has expired.

        Returns:
            Number of subjects unbanned.
        """
        cutoff = self._now() if now is None else now
        async with self.db.read() as conn:
            expired = await BanRecordRepo.get_expired(conn, cutoff)

        lifted = 0
        for record in expired:
            try:
                result = await self.unban(record.external_id, self.system_actor_id)
            except PersistenceError:
                logger.error(
                    "[MODERATION ENGINE] Could not lift expired ban %s of subject %s",
                    record.id,
                    record.external_id,
                    exc_info=True,
                )
                continue
            if result.success:
                lifted += 1
        if lifted:
            logger.info("[MODERATION ENGINE] Lifted %d expired temporary bans", lifted)
        return lifted

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify(self, subject_id: int, kind: str, context: Dict[str, Any]) -> None:
        task = asyncio.create_task(self._deliver(subject_id, kind, context), name=f"channelwarden-notify-{subject_id}")
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def _deliver(self, subject_id: int, kind: str, context: Dict[str, Any]) -> None:
        try:
            text = self.renderer.render(kind, context)
            await self.transport.send_direct_message(subject_id, text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("[MODERATION ENGINE] Could not notify subject %s (%s): %s", subject_id, kind, exc)

    async def wait_for_notifications(self) -> None:
        """Wait until every notification queued so far has been attempted."""
        if self._notifications:
            await asyncio.gather(*list(self._notifications), return_exceptions=True)


def _valid_duration(duration_hours: Optional[float]) -> bool:
    try:
        hours = float(duration_hours)
    except (TypeError, ValueError):
        return False
    return math.isfinite(hours) and 0 < hours <= MAX_BAN_DURATION_HOURS


def _format_ts(timestamp: Optional[int]) -> Optional[str]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
