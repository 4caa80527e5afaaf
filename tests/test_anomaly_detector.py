"""Tests for the anomaly detector."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from channelwarden.anomaly.anomaly_detector import AnomalyDetector
from channelwarden.configuration.section_settings import AnomalySettings
from channelwarden.datatypes.anomaly_datatypes import AnomalyRule, RecommendedAction
from channelwarden.datatypes.moderation_datatypes import BanKind, BanStatus, Severity
from channelwarden.repositories.event_repo import SecurityEventRepo
from channelwarden.repositories.user_repo import UserRepo


@pytest.fixture
def detector(db, engine, clock) -> AnomalyDetector:
    return AnomalyDetector(db, engine, window_seconds=3600, auto_ban_hours=24, clock=clock)


class TestEvaluate:
    """``evaluate`` is pure, so these tests run without a database."""

    @pytest.fixture
    def detector(self) -> AnomalyDetector:
        return AnomalyDetector(None, None)

    def test_count_at_threshold_is_clean(self, detector):
        verdict = detector.evaluate({"spam_messages": 20, "rapid_searches": 50})

        assert not verdict.is_suspicious
        assert verdict.recommended_action is None

    def test_spam_above_threshold_is_high_and_automatic(self, detector):
        verdict = detector.evaluate({"spam_messages": 21})

        assert verdict.is_suspicious
        assert verdict.severity is Severity.HIGH
        assert verdict.pattern == "spam_messages"
        assert verdict.confidence == pytest.approx(1.05)
        assert verdict.recommended_action is RecommendedAction.TEMPORARY_BAN
        assert verdict.auto_action

    @pytest.mark.parametrize(
        "action_type, threshold",
        [("rapid_searches", 50), ("failed_commands", 15), ("multiple_channels", 10)],
    )
    def test_lower_severities_only_warn(self, detector, action_type, threshold):
        verdict = detector.evaluate({action_type: threshold + 1})

        assert verdict.is_suspicious
        assert 1.0 < verdict.confidence <= 2.0
        assert verdict.recommended_action is RecommendedAction.WARNING
        assert not verdict.auto_action

    def test_confidence_is_capped(self, detector):
        verdict = detector.evaluate({"multiple_channels": 500})

        assert verdict.confidence == 2.0
        assert verdict.severity is Severity.LOW

    def test_first_rule_in_table_order_wins(self, detector):
        verdict = detector.evaluate({"multiple_channels": 11, "spam_messages": 21})

        assert verdict.pattern == "spam_messages"

    def test_unknown_action_types_are_ignored(self, detector):
        assert not detector.evaluate({"downloads": 10_000}).is_suspicious

    def test_custom_rule_table_order(self):
        detector = AnomalyDetector(
            None,
            None,
            rules=[AnomalyRule("multiple_channels", 10, Severity.LOW), AnomalyRule("spam_messages", 20, Severity.HIGH)],
        )

        verdict = detector.evaluate({"multiple_channels": 11, "spam_messages": 21})

        assert verdict.pattern == "multiple_channels"
        assert not verdict.auto_action

    def test_rule_threshold_must_be_positive(self):
        with pytest.raises(ValueError):
            AnomalyRule("spam_messages", 0, Severity.HIGH)

    def test_from_settings(self):
        settings = AnomalySettings(
            {"window_seconds": 60, "auto_ban_hours": 6, "rules": {"spam_messages": {"threshold": 3, "severity": "high"}}}
        )
        detector = AnomalyDetector.from_settings(None, None, settings)

        assert detector.window_seconds == 60
        assert detector.auto_ban_hours == 6
        assert [r.action_type for r in detector.rules] == ["spam_messages"]
        assert detector.evaluate({"spam_messages": 4}).auto_action


class TestMonitor:

    @pytest.mark.asyncio
    async def test_unknown_subject_is_ignored(self, detector):
        assert await detector.monitor(31337, "spam_messages") is None

    @pytest.mark.asyncio
    async def test_quiet_subject_stays_clean(self, detector, subject):
        for _ in range(5):
            verdict = await detector.monitor(subject.external_id, "spam_messages")

        assert not verdict.is_suspicious

    @pytest.mark.asyncio
    async def test_spam_burst_triggers_automatic_temporary_ban(self, db, detector, engine, clock, channels, subject):
        for _ in range(20):
            verdict = await detector.monitor(subject.external_id, "spam_messages")
            assert not verdict.is_suspicious

        verdict = await detector.monitor(subject.external_id, "spam_messages", {"chat": "A"})

        assert verdict.is_suspicious
        assert verdict.count == 21
        assert await engine.is_banned(subject.external_id)

        record = await engine.active_record(subject.external_id)
        assert record.kind is BanKind.TEMPORARY
        assert record.created_by == 0
        assert record.expires_at == int(clock.now) + 24 * 3600

        async with db.read() as conn:
            events = await SecurityEventRepo.list_for_user(conn, subject.id)
        suspicious = [e for e in events if e.event_type == "suspicious_activity"]
        assert len(suspicious) == 1
        assert suspicious[0].automatic_action == "temporary_ban"
        assert suspicious[0].details["context"] == {"chat": "A"}

    @pytest.mark.asyncio
    async def test_automatic_ban_upgrades_a_warning(self, detector, engine, channels, subject):
        await engine.ban(subject.external_id, "earlier warning", BanKind.WARNING)

        for _ in range(21):
            await detector.monitor(subject.external_id, "spam_messages")

        assert await engine.is_banned(subject.external_id)

    @pytest.mark.asyncio
    async def test_warning_level_pattern_does_not_ban(self, db, detector, engine, channels, subject):
        for _ in range(11):
            verdict = await detector.monitor(subject.external_id, "multiple_channels")

        assert verdict.is_suspicious
        assert verdict.recommended_action is RecommendedAction.WARNING
        assert not await engine.is_banned(subject.external_id)
        async with db.read() as conn:
            user = await UserRepo.get_by_external_id(conn, subject.external_id)
        assert user.ban_status is BanStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_events_outside_window_are_not_counted(self, detector, clock, subject):
        for _ in range(20):
            await detector.monitor(subject.external_id, "spam_messages")

        clock.advance(3601)
        verdict = await detector.monitor(subject.external_id, "spam_messages")

        assert not verdict.is_suspicious

    @pytest.mark.asyncio
    async def test_automatic_ban_uses_system_actor(self, db, engine, clock, subject):
        engine.ban = AsyncMock(return_value=SimpleNamespace(success=False, outcome="failed"))
        detector = AnomalyDetector(db, engine, window_seconds=3600, auto_ban_hours=12, clock=clock)

        for _ in range(21):
            await detector.monitor(subject.external_id, "spam_messages")

        engine.ban.assert_awaited_once()
        kwargs = engine.ban.await_args.kwargs
        assert kwargs["kind"] is BanKind.TEMPORARY
        assert kwargs["duration_hours"] == 12
        assert kwargs["actor_id"] == 0
        assert kwargs["upgrade_warning"] is True
