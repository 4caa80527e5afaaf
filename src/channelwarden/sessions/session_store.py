"""
Storage of in-flight command sessions, one per operator.

The controller receives a ``SessionStore`` instead of reaching for a global
map, so a persistent store can replace the in-memory one without touching the
state machine.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from channelwarden.datatypes.session_datatypes import CommandSession
from channelwarden.util.logger import get_logger

logger = get_logger("session_store")


class SessionStore(ABC):
    """Keyed by operator id. ``put`` replaces any existing session of that operator."""

    @abstractmethod
    def get(self, operator_id: int) -> Optional[CommandSession]:
        ...

    @abstractmethod
    def put(self, session: CommandSession) -> None:
        ...

    @abstractmethod
    def delete(self, operator_id: int) -> Optional[CommandSession]:
        ...

    def has(self, operator_id: int) -> bool:
        return self.get(operator_id) is not None


class InMemorySessionStore(SessionStore):
    """
    Dictionary-backed store with an optional idle timeout.

    A session untouched for longer than ``ttl_seconds`` is treated as absent
    and dropped on the next access. ``ttl_seconds=0`` disables expiry.
    """

    def __init__(self, ttl_seconds: float = 900.0, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = max(0.0, ttl_seconds)
        self._clock = clock
        self._sessions: Dict[int, CommandSession] = {}

    def _expired(self, session: CommandSession) -> bool:
        return bool(self.ttl_seconds) and self._clock() - session.touched_at > self.ttl_seconds

    def get(self, operator_id: int) -> Optional[CommandSession]:
        session = self._sessions.get(operator_id)
        if session is not None and self._expired(session):
            del self._sessions[operator_id]
            logger.info("[SESSION STORE] Session of operator %s (%s) expired", operator_id, session.tool)
            return None
        return session

    def put(self, session: CommandSession) -> None:
        self._sessions[session.operator_id] = session

    def delete(self, operator_id: int) -> Optional[CommandSession]:
        return self._sessions.pop(operator_id, None)

    def purge_expired(self) -> int:
        expired = [oid for oid, s in self._sessions.items() if self._expired(s)]
        for operator_id in expired:
            del self._sessions[operator_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
