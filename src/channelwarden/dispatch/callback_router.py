"""
Inline-button callback routing.

Callback payloads are parsed once into a ``CallbackCommand`` and dispatched
through a handler table keyed by ``CallbackKind``. Handlers never see the raw
payload string.

Payload format is ``<prefix><argument>``; exact kinds carry no argument::

    owner_tool_ban_user          -> START_TOOL("ban_user")
    confirm_ban_temp_42_24       -> CONFIRM_TEMPORARY_BAN("42_24")
    cancel_session               -> CANCEL_SESSION
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from channelwarden.datatypes.moderation_datatypes import BanKind, UserRole
from channelwarden.moderation.moderation_engine import ModerationEngine
from channelwarden.moderation.subject_directory import SubjectDirectory
from channelwarden.sessions.command_session_controller import CommandSessionController
from channelwarden.util.logger import get_logger

logger = get_logger("callback_router")

PANEL_BAN_REASON = "Banned from the security panel"
PANEL_WARNING_REASON = "Warned from the security panel"


class CallbackKind(Enum):
    """Known callback payloads; the value is the wire prefix (or the whole payload)."""

    START_TOOL = "owner_tool_"
    CANCEL_SESSION = "cancel_session"
    BANNED_LIST = "security_banned_list"
    SECURITY_STATS = "security_detailed_stats"
    CONFIRM_PERMANENT_BAN = "confirm_ban_permanent_"
    CONFIRM_TEMPORARY_BAN = "confirm_ban_temp_"
    CONFIRM_WARNING = "confirm_warning_"
    UNBAN = "security_unban_"
    UNKNOWN = ""

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def takes_argument(self) -> bool:
        return self.value.endswith("_")


# Longest prefix first so no prefix shadows a longer one
_PREFIX_KINDS = sorted(
    (kind for kind in CallbackKind if kind.takes_argument),
    key=lambda kind: len(kind.value),
    reverse=True,
)
_EXACT_KINDS = {kind.value: kind for kind in CallbackKind if kind.value and not kind.takes_argument}


@dataclass(frozen=True, slots=True)
class CallbackCommand:
    kind: CallbackKind
    argument: Optional[str] = None
    raw: str = ""

    @property
    def parts(self) -> List[str]:
        return self.argument.split("_") if self.argument else []

    def int_part(self, index: int) -> int:
        """Return ``parts[index]`` as an int; raises ValueError or IndexError when absent."""
        return int(self.parts[index])


def parse_callback(data: str) -> CallbackCommand:
    """Turn a raw payload into a ``CallbackCommand``; unknown payloads map to UNKNOWN."""
    raw = (data or "").strip()
    exact = _EXACT_KINDS.get(raw)
    if exact is not None:
        return CallbackCommand(exact, raw=raw)
    for kind in _PREFIX_KINDS:
        if raw.startswith(kind.value) and len(raw) > len(kind.value):
            return CallbackCommand(kind, raw[len(kind.value):], raw=raw)
    return CallbackCommand(CallbackKind.UNKNOWN, raw=raw)


CallbackHandler = Callable[[int, CallbackCommand], Awaitable[Any]]


class CallbackRouter:
    """
    Handler table for callback kinds.

    A handler can require a minimum operator role; the role is looked up
    through the subject directory before the handler runs.
    """

    def __init__(self, directory: SubjectDirectory) -> None:
        self.directory = directory
        self._handlers: Dict[CallbackKind, Tuple[CallbackHandler, Optional[UserRole]]] = {}

    def register(self, kind: CallbackKind, handler: CallbackHandler, required_role: Optional[UserRole] = None) -> None:
        if kind is CallbackKind.UNKNOWN:
            raise ValueError("cannot register a handler for unknown callbacks")
        self._handlers[kind] = (handler, required_role)

    def is_registered(self, kind: CallbackKind) -> bool:
        return kind in self._handlers

    async def route(self, operator_id: int, data: str) -> Any:
        """
        Parse ``data`` and run the matching handler.

        Returns:
            The handler's return value, or ``None`` when the payload is
            unknown, has no handler, or the operator lacks the role.
        """
        command = parse_callback(data)
        entry = self._handlers.get(command.kind)
        if entry is None:
            logger.debug("[CALLBACK ROUTER] No handler for callback %r", command.raw)
            return None

        handler, required_role = entry
        if required_role is not None:
            operator = await self.directory.get_user(operator_id)
            if operator is None or operator.is_banned or not operator.role.at_least(required_role):
                logger.warning("[CALLBACK ROUTER] Operator %s may not use %s", operator_id, command.kind)
                return None

        try:
            return await handler(operator_id, command)
        except (ValueError, IndexError) as exc:
            logger.warning("[CALLBACK ROUTER] Malformed callback %r: %s", command.raw, exc)
            return None


def build_moderation_router(
    directory: SubjectDirectory,
    engine: ModerationEngine,
    controller: CommandSessionController,
) -> CallbackRouter:
    """Router wired with the session and security panel callbacks."""
    router = CallbackRouter(directory)

    async def start_tool(operator_id: int, command: CallbackCommand) -> Any:
        return await controller.start(operator_id, command.argument or "")

    async def cancel_session(operator_id: int, command: CallbackCommand) -> Any:
        return controller.cancel(operator_id)

    async def banned_list(operator_id: int, command: CallbackCommand) -> Any:
        return await engine.list_active_bans()

    async def security_stats(operator_id: int, command: CallbackCommand) -> Any:
        return await engine.security_statistics()

    async def confirm_permanent(operator_id: int, command: CallbackCommand) -> Any:
        return await engine.ban(command.int_part(0), PANEL_BAN_REASON, BanKind.PERMANENT, actor_id=operator_id, upgrade_warning=True)

    async def confirm_temporary(operator_id: int, command: CallbackCommand) -> Any:
        return await engine.ban(
            command.int_part(0),
            PANEL_BAN_REASON,
            BanKind.TEMPORARY,
            duration_hours=command.int_part(1),
            actor_id=operator_id,
            upgrade_warning=True,
        )

    async def confirm_warning(operator_id: int, command: CallbackCommand) -> Any:
        return await engine.ban(command.int_part(0), PANEL_WARNING_REASON, BanKind.WARNING, actor_id=operator_id)

    async def unban(operator_id: int, command: CallbackCommand) -> Any:
        return await engine.unban(command.int_part(0), actor_id=operator_id)

    # Role checks for START_TOOL happen in the controller per tool
    router.register(CallbackKind.START_TOOL, start_tool)
    router.register(CallbackKind.CANCEL_SESSION, cancel_session)
    router.register(CallbackKind.BANNED_LIST, banned_list, UserRole.ADMIN)
    router.register(CallbackKind.SECURITY_STATS, security_stats, UserRole.ADMIN)
    router.register(CallbackKind.CONFIRM_PERMANENT_BAN, confirm_permanent, UserRole.ADMIN)
    router.register(CallbackKind.CONFIRM_TEMPORARY_BAN, confirm_temporary, UserRole.ADMIN)
    router.register(CallbackKind.CONFIRM_WARNING, confirm_warning, UserRole.ADMIN)
    router.register(CallbackKind.UNBAN, unban, UserRole.ADMIN)
    return router
