"""
Anomaly detector: frequency rules over a sliding window of behavior events.

A subject is suspicious as soon as one action type occurs strictly more often
than its rule's threshold inside the window. Rules are checked in table order
and the first triggered rule decides the verdict.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from channelwarden.configuration.section_settings import AnomalySettings
from channelwarden.database.db_connection import ConnectionManager
from channelwarden.datatypes.anomaly_datatypes import (
    DEFAULT_ANOMALY_RULES,
    MAX_CONFIDENCE,
    AnomalyRule,
    RecommendedAction,
    SuspicionVerdict,
)
from channelwarden.datatypes.moderation_datatypes import (
    BanKind,
    BehaviorEvent,
    ModerationResult,
    SecurityEvent,
    Severity,
)
from channelwarden.moderation.moderation_engine import ModerationEngine
from channelwarden.repositories.event_repo import BehaviorEventRepo, SecurityEventRepo
from channelwarden.repositories.user_repo import UserRepo
from channelwarden.util.logger import get_logger

logger = get_logger("anomaly_detector")


class AnomalyDetector:
    """
    Scores behavior windows and escalates high-severity patterns.

    Attributes:
        rules: Ordered rule table; the first triggered rule wins.
        window_seconds: Length of the sliding window.
        auto_ban_hours: Duration of the automatic temporary ban.
    """

    def __init__(
        self,
        db: ConnectionManager,
        engine: ModerationEngine,
        *,
        rules: Sequence[AnomalyRule] = DEFAULT_ANOMALY_RULES,
        window_seconds: int = 3600,
        auto_ban_hours: int = 24,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db = db
        self.engine = engine
        self.rules = list(rules)
        self.window_seconds = window_seconds
        self.auto_ban_hours = auto_ban_hours
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        db: ConnectionManager,
        engine: ModerationEngine,
        settings: AnomalySettings,
    ) -> "AnomalyDetector":
        return cls(
            db,
            engine,
            rules=settings.rules,
            window_seconds=settings.window_seconds,
            auto_ban_hours=settings.auto_ban_hours,
        )

    def evaluate(self, counts: Mapping[str, int]) -> SuspicionVerdict:
        """
        Decide whether a window of per-action-type counts is suspicious.

        Args:
            counts: Events per action type inside the window.

        Returns:
            The verdict of the first rule whose count exceeds its threshold,
            or a clean verdict.
        """
        for rule in self.rules:
            count = int(counts.get(rule.action_type, 0))
            if count <= rule.threshold:
                continue

            high = rule.severity is Severity.HIGH
            return SuspicionVerdict(
                is_suspicious=True,
                severity=rule.severity,
                pattern=rule.action_type,
                count=count,
                confidence=min(count / rule.threshold, MAX_CONFIDENCE),
                recommended_action=RecommendedAction.TEMPORARY_BAN if high else RecommendedAction.WARNING,
                auto_action=high,
            )
        return SuspicionVerdict.clean()

    async def monitor(
        self,
        subject_id: int,
        action_type: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[SuspicionVerdict]:
        """
        Record one action of a subject and react to the resulting window.

        Unknown subjects are ignored and yield ``None``. A suspicious window
        writes a ``suspicious_activity`` security event; a window recommending
        an automatic action also bans the subject temporarily as the system
        actor.
        """
        now = int(self._clock())
        since = now - self.window_seconds

        async with self.db.transaction() as conn:
            user = await UserRepo.get_by_external_id(conn, subject_id)
            if user is None:
                return None
            await BehaviorEventRepo.insert(conn, BehaviorEvent(user.id, action_type, now))
            counts = await BehaviorEventRepo.count_by_type(conn, user.id, since)

            verdict = self.evaluate(counts)
            if verdict.is_suspicious:
                await SecurityEventRepo.insert(
                    conn,
                    SecurityEvent(
                        user_id=user.id,
                        event_type="suspicious_activity",
                        severity=verdict.severity or Severity.LOW,
                        details={
                            "pattern": verdict.pattern,
                            "count": verdict.count,
                            "confidence": verdict.confidence,
                            "window_seconds": self.window_seconds,
                            "context": context or {},
                        },
                        automatic_action=str(verdict.recommended_action) if verdict.auto_action else None,
                        created_at=now,
                    ),
                )

        if not verdict.is_suspicious:
            return verdict

        logger.warning(
            "[ANOMALY DETECTOR] Subject %s exceeded %s (%d events, confidence %.2f, severity %s)",
            subject_id,
            verdict.pattern,
            verdict.count,
            verdict.confidence,
            verdict.severity,
        )
        if verdict.auto_action:
            await self._execute_automatic_action(subject_id, verdict)
        return verdict

    async def _execute_automatic_action(self, subject_id: int, verdict: SuspicionVerdict) -> ModerationResult:
        result = await self.engine.ban(
            subject_id,
            reason=f"Automatic ban: suspicious {verdict.pattern} ({verdict.count} in {self.window_seconds}s)",
            kind=BanKind.TEMPORARY,
            duration_hours=self.auto_ban_hours,
            actor_id=self.engine.system_actor_id,
            upgrade_warning=True,
        )
        if result.success:
            logger.info(
                "[ANOMALY DETECTOR] Automatic %dh ban of subject %s applied on %d/%d channels",
                self.auto_ban_hours,
                subject_id,
                result.affected_channel_count,
                result.total_channel_count,
            )
        else:
            logger.info("[ANOMALY DETECTOR] Automatic ban of subject %s not applied: %s", subject_id, result.outcome)
        return result
