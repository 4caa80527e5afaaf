from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from channelwarden.datatypes.moderation_datatypes import Severity

MAX_CONFIDENCE = 2.0


class RecommendedAction(Enum):
    TEMPORARY_BAN = "temporary_ban"
    WARNING = "warning"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class AnomalyRule:
    """Frequency ceiling for one action type inside the detection window."""

    action_type: str
    threshold: int
    severity: Severity

    def __post_init__(self) -> None:
        if self.threshold <= 0:
            raise ValueError(f"threshold for {self.action_type!r} must be positive")


@dataclass(frozen=True, slots=True)
class SuspicionVerdict:
    """Outcome of evaluating one window of behavior events.

    Attributes:
        pattern: Action type whose rule triggered, None when not suspicious.
        count: Events of that type in the window.
        confidence: ``count / threshold`` capped at ``MAX_CONFIDENCE``.
    """

    is_suspicious: bool
    severity: Optional[Severity] = None
    pattern: Optional[str] = None
    count: int = 0
    confidence: float = 0.0
    recommended_action: Optional[RecommendedAction] = None
    auto_action: bool = False

    @classmethod
    def clean(cls) -> "SuspicionVerdict":
        return cls(is_suspicious=False)


DEFAULT_ANOMALY_RULES = (
    AnomalyRule("spam_messages", 20, Severity.HIGH),
    AnomalyRule("rapid_searches", 50, Severity.MEDIUM),
    AnomalyRule("failed_commands", 15, Severity.MEDIUM),
    AnomalyRule("multiple_channels", 10, Severity.LOW),
)
