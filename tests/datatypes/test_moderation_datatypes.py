"""Tests for the moderation enums and result records."""

from channelwarden.datatypes.moderation_datatypes import (
    BanKind,
    BanStatus,
    ChannelOutcome,
    FanoutAction,
    FanoutResult,
    ModerationOutcome,
    ModerationResult,
    UserRole,
)
from channelwarden.datatypes.session_datatypes import ToolName


def test_only_real_bans_count_as_banned():
    assert BanStatus.TEMP_BANNED.is_banned
    assert BanStatus.PERMANENTLY_BANNED.is_banned
    assert not BanStatus.WARNED.is_banned
    assert not BanStatus.ACTIVE.is_banned


def test_ban_kind_maps_to_status():
    assert BanKind.WARNING.status is BanStatus.WARNED
    assert BanKind.TEMPORARY.status is BanStatus.TEMP_BANNED
    assert BanKind.PERMANENT.status is BanStatus.PERMANENTLY_BANNED
    assert not BanKind.WARNING.touches_channels
    assert BanKind.PERMANENT.touches_channels


def test_role_ranking():
    assert UserRole.OWNER.at_least(UserRole.ADMIN)
    assert UserRole.ADMIN.at_least(UserRole.ADMIN)
    assert not UserRole.PREMIUM.at_least(UserRole.ADMIN)


def test_fanout_action_inverse():
    assert FanoutAction.BAN.inverse is FanoutAction.UNBAN
    assert FanoutAction.UNBAN.inverse is FanoutAction.BAN


def test_fanout_result_accounting():
    result = FanoutResult(
        FanoutAction.BAN,
        7,
        [ChannelOutcome("A", True), ChannelOutcome("B", False, "timeout"), ChannelOutcome("C", True)],
    )

    assert result.affected_channels == ["A", "C"]
    assert result.affected_count == 2
    assert result.total_count == 3
    assert [o.channel_id for o in result.failed] == ["B"]
    assert not result.complete


def test_moderation_result_is_truthy_on_success():
    ok = ModerationResult(True, ModerationOutcome.PARTIAL, 2, 3, "spam")
    rejected = ModerationResult(False, ModerationOutcome.ALREADY_BANNED)

    assert ok
    assert not rejected
    assert ok.as_dict() == {
        "success": True,
        "outcome": "partial",
        "affectedChannelCount": 2,
        "totalChannelCount": 3,
        "reason": "spam",
    }


def test_tool_name_parse():
    assert ToolName.parse(" Ban_User ") is ToolName.BAN_USER
    assert ToolName.parse(ToolName.LIST_ADMINS) is ToolName.LIST_ADMINS
    assert ToolName.parse("reboot") is None
