from __future__ import annotations
from pathlib import Path
import fcntl
import os
from typing import Any, Dict
import yaml

from channelwarden.configuration.section_settings import (
    AnomalySettings,
    FanoutSettings,
    ModerationSettings,
    SessionSettings,
    SweeperSettings,
)
from channelwarden.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path(os.getenv("CHANNELWARDEN_CONFIG", "./config/app_config.yml")).resolve()
DEFAULT_DB_PATH = Path("./data/channelwarden.db")


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``config/app_config.yml`` and exposes each
    top-level section through a typed settings helper. Uses fcntl file locks
    for safe concurrent access across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                if not isinstance(data, dict):
                    logger.warning("[APP CONFIGURATION] Config %s is not a mapping, using defaults.", self.config_path)
                    return {}
                return data
        except FileNotFoundError:
            logger.warning("[APP CONFIGURATION] Config file %s not found, using defaults.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the cached configuration mapping. Callers should not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        """Return the SQLite database path.

        ``CHANNELWARDEN_DB`` overrides the ``database.path`` key.
        """
        env_path = os.getenv("CHANNELWARDEN_DB")
        if env_path:
            return Path(env_path).resolve()
        section = self._data.get("database", {})
        if isinstance(section, dict) and section.get("path"):
            return Path(str(section["path"])).resolve()
        return DEFAULT_DB_PATH.resolve()

    @property
    def fanout(self) -> FanoutSettings:
        return FanoutSettings(self._data.get("fanout"))

    @property
    def anomaly(self) -> AnomalySettings:
        return AnomalySettings(self._data.get("anomaly"))

    @property
    def moderation(self) -> ModerationSettings:
        return ModerationSettings(self._data.get("moderation"))

    @property
    def sessions(self) -> SessionSettings:
        return SessionSettings(self._data.get("sessions"))

    @property
    def sweeper(self) -> SweeperSettings:
        return SweeperSettings(self._data.get("sweeper"))


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
