"""
Data structures for multi-step operator command sessions.

A session collects one validated value per step of the selected tool; the
assembled mapping is handed to the tool handler once the last step is answered.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ToolName(Enum):
    """Administrative operations reachable through a command session."""

    BAN_USER = "ban_user"
    UNBAN_USER = "unban_user"
    CREATE_ADMIN = "create_admin"
    REMOVE_ADMIN = "remove_admin"
    MANAGE_PERMISSIONS = "manage_permissions"
    TOGGLE_COMMAND = "toggle_command"
    ADD_CONTENT = "add_content"
    EDIT_CONTENT = "edit_content"
    DELETE_CONTENT = "delete_content"
    LIST_ADMINS = "list_admins"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "str | ToolName") -> Optional["ToolName"]:
        if isinstance(value, ToolName):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(slots=True)
class CommandSession:
    """Conversation state of one operator.

    Attributes:
        step_index: Zero-based index of the step awaiting input.
        data: Values collected so far, keyed by step key.
        touched_at: Wall-clock time of the last accepted change, used for TTL.
    """

    operator_id: int
    tool: ToolName
    step_index: int = 0
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    touched_at: float = field(default_factory=time.time)

    def advanced(self, key: str, value: Any, now: Optional[float] = None) -> "CommandSession":
        """Return a new session with ``value`` stored and the step index moved forward.

        The original session is never mutated, so a store holding it only
        sees complete transitions.
        """
        data = dict(self.data)
        data[key] = value
        return CommandSession(
            operator_id=self.operator_id,
            tool=self.tool,
            step_index=self.step_index + 1,
            data=data,
            created_at=self.created_at,
            touched_at=time.time() if now is None else now,
        )


class SessionStatus(Enum):
    STARTED = "started"
    ADVANCED = "advanced"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INVALID_INPUT = "invalid_input"
    REJECTED = "rejected"
    NO_SESSION = "no_session"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ToolResult:
    """Structured outcome of a terminal admin operation."""

    success: bool
    code: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success


@dataclass(slots=True)
class SessionReply:
    """What the presentation layer needs to answer the operator.

    ``prompt`` is the key of the step now awaiting input; ``error`` carries the
    rejection code for REJECTED and INVALID_INPUT replies.
    """

    status: SessionStatus
    tool: Optional[ToolName] = None
    step_index: int = 0
    step_count: int = 0
    prompt: Optional[str] = None
    error: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    result: Any = None
