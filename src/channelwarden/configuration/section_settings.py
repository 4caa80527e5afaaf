from typing import Any, Dict, List

from channelwarden.datatypes.anomaly_datatypes import AnomalyRule, DEFAULT_ANOMALY_RULES
from channelwarden.datatypes.moderation_datatypes import Severity


class SectionSettings:
    """Typed accessor around one mapping section of the YAML configuration.

    Missing or malformed values fall back to the defaults passed to the
    accessors, so a partial config file is always usable.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return self.data

    def _float(self, key: str, default: float) -> float:
        try:
            return float(self.data.get(key, default))
        except (TypeError, ValueError):
            return default

    def _int(self, key: str, default: int) -> int:
        try:
            return int(self.data.get(key, default))
        except (TypeError, ValueError):
            return default


class FanoutSettings(SectionSettings):
    """Throttling knobs for the channel fan-out executor."""

    @property
    def delay_seconds(self) -> float:
        return max(0.0, self._float("delay_seconds", 0.1))

    @property
    def max_concurrency(self) -> int:
        return max(1, self._int("max_concurrency", 3))

    @property
    def call_timeout_seconds(self) -> float:
        return max(0.1, self._float("call_timeout_seconds", 10.0))


class AnomalySettings(SectionSettings):
    """Window size, rule table and automatic-ban duration for the anomaly detector."""

    @property
    def window_seconds(self) -> int:
        return max(1, self._int("window_seconds", 3600))

    @property
    def auto_ban_hours(self) -> int:
        return max(1, self._int("auto_ban_hours", 24))

    @property
    def rules(self) -> List[AnomalyRule]:
        """Return the rule table in declaration order.

        The YAML mapping order is kept because the first triggered rule wins.
        """
        raw = self.data.get("rules")
        if not isinstance(raw, dict) or not raw:
            return list(DEFAULT_ANOMALY_RULES)

        rules: List[AnomalyRule] = []
        for action_type, spec in raw.items():
            if not isinstance(spec, dict):
                continue
            try:
                rules.append(
                    AnomalyRule(
                        action_type=str(action_type),
                        threshold=int(spec["threshold"]),
                        severity=Severity(str(spec.get("severity", "low")).lower()),
                    )
                )
            except (KeyError, TypeError, ValueError):
                continue
        return rules or list(DEFAULT_ANOMALY_RULES)


class ModerationSettings(SectionSettings):

    @property
    def system_actor_id(self) -> int:
        return self._int("system_actor_id", 0)


class SessionSettings(SectionSettings):

    @property
    def ttl_seconds(self) -> float:
        """Idle lifetime of a command session; 0 keeps sessions until completed or cancelled."""
        return max(0.0, self._float("ttl_seconds", 900.0))

    @property
    def cancel_keywords(self) -> List[str]:
        value = self.data.get("cancel_keywords")
        if isinstance(value, list) and value:
            return [str(v) for v in value]
        return ["/cancel", "cancel", "إلغاء"]

    @property
    def skip_keywords(self) -> List[str]:
        value = self.data.get("skip_keywords")
        if isinstance(value, list) and value:
            return [str(v) for v in value]
        return ["skip", "-", "تخطي"]


class SweeperSettings(SectionSettings):

    @property
    def interval_seconds(self) -> float:
        return max(1.0, self._float("interval_seconds", 60.0))
