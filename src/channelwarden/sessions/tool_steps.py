"""
Step tables of the command session tools.

Each tool is an ordered list of ``StepSpec``. A step parses the operator's raw
text into a typed value or raises ``StepValidationError`` with a rejection
code; the controller never stores a value that did not parse.

Steps can be optional (answered with a skip keyword, stored as ``None``) and
conditional (``applies`` decides from the values collected so far; a step
that does not apply is stored as ``None`` without prompting).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from channelwarden.admin.admin_operations import GRANT_ACTIONS, TOGGLE_ROLES, split_permissions
from channelwarden.datatypes.moderation_datatypes import MAX_BAN_DURATION_HOURS, BanKind, UserRole
from channelwarden.datatypes.session_datatypes import ToolName
from channelwarden.errors import StepValidationError

Parser = Callable[[str], Any]


@dataclass(frozen=True, slots=True)
class StepSpec:
    key: str
    parse: Parser
    optional: bool = False
    applies: Optional[Callable[[Dict[str, Any]], bool]] = None

    def applies_to(self, data: Dict[str, Any]) -> bool:
        return self.applies is None or bool(self.applies(data))


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Steps of one tool plus the lowest role allowed to start it."""

    name: ToolName
    required_role: UserRole
    steps: Tuple[StepSpec, ...] = field(default_factory=tuple)


# ----------------------------------------------------------------------
# Parsers
# ----------------------------------------------------------------------

def _is_ascii_number(text: str) -> bool:
    return text.isascii() and text.isdigit()


def parse_positive_int(raw: str) -> int:
    text = raw.strip()
    if not _is_ascii_number(text) or int(text) <= 0:
        raise StepValidationError("not_a_positive_number", f"expected a positive whole number, got {raw!r}")
    return int(text)


def parse_user_reference(raw: str) -> int | str:
    """A platform id, an internal id or an ``@username``."""
    text = raw.strip()
    if text.startswith("@") and len(text) > 1:
        return text
    if _is_ascii_number(text):
        return int(text)
    raise StepValidationError("invalid_user_reference", f"expected a user id or @username, got {raw!r}")


def parse_ban_kind(raw: str) -> BanKind:
    try:
        return BanKind(raw.strip().lower())
    except ValueError:
        raise StepValidationError("invalid_ban_kind", f"expected warning, temporary or permanent, got {raw!r}")


def parse_duration_hours(raw: str) -> float:
    try:
        hours = float(raw.strip())
    except ValueError:
        raise StepValidationError("invalid_duration", f"expected a number of hours, got {raw!r}")
    if not math.isfinite(hours) or hours <= 0:
        raise StepValidationError("invalid_duration", "duration must be a positive number of hours")
    if hours > MAX_BAN_DURATION_HOURS:
        raise StepValidationError("invalid_duration", f"duration is capped at {MAX_BAN_DURATION_HOURS} hours")
    return hours


def parse_text(raw: str) -> str:
    text = raw.strip()
    if not text:
        raise StepValidationError("empty_input")
    return text


def parse_url(raw: str) -> str:
    text = raw.strip()
    if not text.startswith(("http://", "https://")) or len(text) <= len("https://"):
        raise StepValidationError("invalid_url", f"expected an http(s) URL, got {raw!r}")
    return text


def parse_grant_action(raw: str) -> str:
    text = raw.strip().lower()
    if text not in GRANT_ACTIONS:
        raise StepValidationError("invalid_action", "expected grant or revoke")
    return text


def parse_permission_list(raw: str) -> List[str]:
    known, unknown = split_permissions(raw.replace(";", ",").split(","))
    if unknown:
        raise StepValidationError("invalid_permissions", f"unknown permissions: {', '.join(unknown)}")
    if not known:
        raise StepValidationError("empty_input")
    return known


def parse_command_name(raw: str) -> str:
    text = raw.strip().lstrip("/").lower()
    if not text or not text.replace("_", "").isalnum():
        raise StepValidationError("invalid_command", f"expected a command name, got {raw!r}")
    return text


def parse_toggle(raw: str) -> bool:
    text = raw.strip().lower()
    if text in ("enable", "enabled", "on", "1", "true"):
        return True
    if text in ("disable", "disabled", "off", "0", "false"):
        return False
    raise StepValidationError("invalid_toggle", "expected enable or disable")


def parse_toggle_role(raw: str) -> str:
    text = raw.strip().lower()
    if text not in TOGGLE_ROLES:
        raise StepValidationError("invalid_role", f"expected one of {', '.join(TOGGLE_ROLES)}")
    return text


def _is_temporary(data: Dict[str, Any]) -> bool:
    return data.get("ban_kind") is BanKind.TEMPORARY


# ----------------------------------------------------------------------
# Tool table
# ----------------------------------------------------------------------

TOOL_SPECS: Dict[ToolName, ToolSpec] = {
    ToolName.BAN_USER: ToolSpec(
        ToolName.BAN_USER,
        UserRole.ADMIN,
        (
            StepSpec("subject_id", parse_positive_int),
            StepSpec("ban_kind", parse_ban_kind),
            StepSpec("duration_hours", parse_duration_hours, applies=_is_temporary),
            StepSpec("reason", parse_text),
        ),
    ),
    ToolName.UNBAN_USER: ToolSpec(
        ToolName.UNBAN_USER,
        UserRole.ADMIN,
        (StepSpec("subject_id", parse_positive_int),),
    ),
    ToolName.CREATE_ADMIN: ToolSpec(
        ToolName.CREATE_ADMIN,
        UserRole.OWNER,
        (
            StepSpec("target_user", parse_user_reference),
            StepSpec("permissions", parse_permission_list, optional=True),
        ),
    ),
    ToolName.REMOVE_ADMIN: ToolSpec(
        ToolName.REMOVE_ADMIN,
        UserRole.OWNER,
        (StepSpec("target_user", parse_user_reference),),
    ),
    ToolName.MANAGE_PERMISSIONS: ToolSpec(
        ToolName.MANAGE_PERMISSIONS,
        UserRole.OWNER,
        (
            StepSpec("target_user", parse_user_reference),
            StepSpec("action", parse_grant_action),
            StepSpec("permissions", parse_permission_list),
        ),
    ),
    ToolName.TOGGLE_COMMAND: ToolSpec(
        ToolName.TOGGLE_COMMAND,
        UserRole.ADMIN,
        (
            StepSpec("command_name", parse_command_name),
            StepSpec("enabled", parse_toggle),
            StepSpec("role", parse_toggle_role, optional=True),
        ),
    ),
    ToolName.ADD_CONTENT: ToolSpec(
        ToolName.ADD_CONTENT,
        UserRole.ADMIN,
        (
            StepSpec("section", parse_text),
            StepSpec("title", parse_text),
            StepSpec("title_arabic", parse_text, optional=True),
            StepSpec("description", parse_text, optional=True),
            StepSpec("file_url", parse_url),
            StepSpec("poster_url", parse_url, optional=True),
        ),
    ),
    ToolName.EDIT_CONTENT: ToolSpec(
        ToolName.EDIT_CONTENT,
        UserRole.ADMIN,
        (
            StepSpec("content_id", parse_positive_int),
            StepSpec("title", parse_text, optional=True),
            StepSpec("description", parse_text, optional=True),
        ),
    ),
    ToolName.DELETE_CONTENT: ToolSpec(
        ToolName.DELETE_CONTENT,
        UserRole.ADMIN,
        (StepSpec("content_id", parse_positive_int),),
    ),
    ToolName.LIST_ADMINS: ToolSpec(ToolName.LIST_ADMINS, UserRole.ADMIN),
}
