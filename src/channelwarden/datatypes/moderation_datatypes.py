"""
Moderation enums and records shared by the engine, the fan-out executor and
the repositories.

Timestamps are INTEGER unix seconds (UTC) everywhere, matching the storage
format, so no timezone conversion happens between layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class UserRole(Enum):
    """Roles known to the bot, lowest privilege first."""

    USER = "user"
    PREMIUM = "premium"
    ADMIN = "admin"
    OWNER = "owner"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def at_least(self, other: "UserRole") -> bool:
        return self.rank >= other.rank


_ROLE_RANK = {
    UserRole.USER: 0,
    UserRole.PREMIUM: 1,
    UserRole.ADMIN: 2,
    UserRole.OWNER: 3,
}


class BanStatus(Enum):
    ACTIVE = "active"
    WARNED = "warned"
    TEMP_BANNED = "temp-banned"
    PERMANENTLY_BANNED = "permanently-banned"

    def __str__(self) -> str:
        return self.value

    @property
    def is_banned(self) -> bool:
        return self in (BanStatus.TEMP_BANNED, BanStatus.PERMANENTLY_BANNED)


# Upper bound for temporary bans (ten years)
MAX_BAN_DURATION_HOURS = 24 * 365 * 10


class BanKind(Enum):
    WARNING = "warning"
    TEMPORARY = "temporary"
    PERMANENT = "permanent"

    def __str__(self) -> str:
        return self.value

    @property
    def touches_channels(self) -> bool:
        """Warnings never change channel membership."""
        return self is not BanKind.WARNING

    @property
    def status(self) -> BanStatus:
        return _KIND_STATUS[self]


_KIND_STATUS = {
    BanKind.WARNING: BanStatus.WARNED,
    BanKind.TEMPORARY: BanStatus.TEMP_BANNED,
    BanKind.PERMANENT: BanStatus.PERMANENTLY_BANNED,
}


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class FanoutAction(Enum):
    BAN = "ban"
    UNBAN = "unban"

    def __str__(self) -> str:
        return self.value

    @property
    def inverse(self) -> "FanoutAction":
        return FanoutAction.UNBAN if self is FanoutAction.BAN else FanoutAction.BAN


class ModerationOutcome(Enum):
    """Verdict rendered to the operator for a ban or unban call."""

    APPLIED = "applied"
    PARTIAL = "partial"
    FAILED = "failed"
    ALREADY_BANNED = "already_banned"
    NOT_BANNED = "not_banned"
    NOT_FOUND = "not_found"
    INVALID = "invalid"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class User:
    """A row of the ``users`` table."""

    id: int
    external_id: int
    username: Optional[str] = None
    role: UserRole = UserRole.USER
    ban_status: BanStatus = BanStatus.ACTIVE
    ban_reason: Optional[str] = None
    banned_at: Optional[int] = None
    ban_expires_at: Optional[int] = None
    banned_by: Optional[int] = None

    @property
    def is_banned(self) -> bool:
        return self.ban_status.is_banned


@dataclass(slots=True)
class BanRecord:
    """One moderation decision. Only the ``active`` flag ever changes after insert.

    Attributes:
        user_id: Internal id of the subject.
        external_id: Platform id of the subject at the time of the decision.
        channels: Channel ids the decision was actually applied to.
        created_by: Actor id; the configured system actor for automatic bans.
    """

    user_id: int
    external_id: int
    reason: str
    kind: BanKind
    created_by: int
    channels: List[str] = field(default_factory=list)
    expires_at: Optional[int] = None
    active: bool = True
    created_at: Optional[int] = None
    id: Optional[int] = None


@dataclass(slots=True)
class BehaviorEvent:
    user_id: int
    action_type: str
    created_at: int


@dataclass(slots=True)
class SecurityEvent:
    user_id: int
    event_type: str
    severity: Severity
    details: Dict[str, Any] = field(default_factory=dict)
    automatic_action: Optional[str] = None
    created_at: Optional[int] = None
    id: Optional[int] = None


@dataclass(slots=True)
class ChannelOutcome:
    """Result of one remote call made during a fan-out."""

    channel_id: str
    ok: bool
    error: Optional[str] = None


@dataclass(slots=True)
class FanoutResult:
    action: FanoutAction
    subject_id: int
    outcomes: List[ChannelOutcome] = field(default_factory=list)

    @property
    def affected_channels(self) -> List[str]:
        return [o.channel_id for o in self.outcomes if o.ok]

    @property
    def failed(self) -> List[ChannelOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def affected_count(self) -> int:
        return len(self.affected_channels)

    @property
    def total_count(self) -> int:
        return len(self.outcomes)

    @property
    def complete(self) -> bool:
        return self.affected_count == self.total_count


@dataclass(slots=True)
class ModerationResult:
    """Structured verdict handed to the presentation layer.

    ``bool(result)`` is the success flag so callers can treat it as the
    boolean outcome of the call.
    """

    success: bool
    outcome: ModerationOutcome
    affected_channel_count: int = 0
    total_channel_count: int = 0
    reason: str = ""
    record: Optional[BanRecord] = None

    def __bool__(self) -> bool:
        return self.success

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "outcome": self.outcome.value,
            "affectedChannelCount": self.affected_channel_count,
            "totalChannelCount": self.total_channel_count,
            "reason": self.reason,
        }
