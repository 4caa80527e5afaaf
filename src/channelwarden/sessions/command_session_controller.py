"""
Command session controller: per-operator state machine for multi-step tools.

Lifecycle of a session::

    start(tool) -> [submit(step 0) -> ... -> submit(last step)] -> dispatch
                         \\-> cancel keyword / cancel() -> removed

Invalid input never changes the stored session; the operator is re-prompted
for the same step. The session is removed before the tool handler runs, so a
failing handler cannot leave a half-finished session behind.
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from channelwarden.admin.admin_operations import ADD_CONTENT, DELETE_CONTENT, EDIT_CONTENT, AdminOperations
from channelwarden.configuration.section_settings import SessionSettings
from channelwarden.database.db_connection import ConnectionManager
from channelwarden.datatypes.moderation_datatypes import BanKind, ModerationResult
from channelwarden.datatypes.session_datatypes import (
    CommandSession,
    SessionReply,
    SessionStatus,
    ToolName,
    ToolResult,
)
from channelwarden.errors import StepValidationError
from channelwarden.moderation.moderation_engine import ModerationEngine
from channelwarden.repositories.user_repo import UserRepo
from channelwarden.sessions.session_store import SessionStore
from channelwarden.sessions.tool_steps import TOOL_SPECS, ToolSpec
from channelwarden.transport.channel_transport import CatalogGateway
from channelwarden.util.logger import get_logger

logger = get_logger("command_session_controller")

ToolHandler = Callable[[int, Dict[str, Any]], Awaitable[ToolResult]]

DEFAULT_CANCEL_KEYWORDS = ("/cancel", "cancel", "إلغاء")
DEFAULT_SKIP_KEYWORDS = ("skip", "-", "تخطي")


def _from_moderation(result: ModerationResult) -> ToolResult:
    return ToolResult(result.success, str(result.outcome), result.as_dict())


class CommandSessionController:
    """
    Collects tool input step by step and dispatches the assembled map.

    Attributes:
        store: Session storage, one session per operator.
        handlers: ``ToolName`` to coroutine taking ``(operator_id, data)``.
    """

    def __init__(
        self,
        db: ConnectionManager,
        store: SessionStore,
        engine: ModerationEngine,
        admin: AdminOperations,
        catalog: CatalogGateway,
        *,
        cancel_keywords: Iterable[str] = DEFAULT_CANCEL_KEYWORDS,
        skip_keywords: Iterable[str] = DEFAULT_SKIP_KEYWORDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db = db
        self.store = store
        self.engine = engine
        self.admin = admin
        self.catalog = catalog
        self.cancel_keywords = {k.strip().lower() for k in cancel_keywords}
        self.skip_keywords = {k.strip().lower() for k in skip_keywords}
        self._clock = clock

        self.handlers: Dict[ToolName, ToolHandler] = {
            ToolName.BAN_USER: self._ban_user,
            ToolName.UNBAN_USER: self._unban_user,
            ToolName.CREATE_ADMIN: self._create_admin,
            ToolName.REMOVE_ADMIN: self._remove_admin,
            ToolName.MANAGE_PERMISSIONS: self._manage_permissions,
            ToolName.TOGGLE_COMMAND: self._toggle_command,
            ToolName.ADD_CONTENT: self._add_content,
            ToolName.EDIT_CONTENT: self._edit_content,
            ToolName.DELETE_CONTENT: self._delete_content,
            ToolName.LIST_ADMINS: self._list_admins,
        }

    @classmethod
    def from_settings(
        cls,
        db: ConnectionManager,
        store: SessionStore,
        engine: ModerationEngine,
        admin: AdminOperations,
        catalog: CatalogGateway,
        settings: SessionSettings,
    ) -> "CommandSessionController":
        return cls(
            db,
            store,
            engine,
            admin,
            catalog,
            cancel_keywords=settings.cancel_keywords,
            skip_keywords=settings.skip_keywords,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self, operator_id: int, tool_name: str | ToolName) -> SessionReply:
        """
        Open a session for ``tool_name``.

        Rejected when the operator already has a session, the tool is
        unknown, or the operator's role is below the tool's required role.
        Tools without steps run immediately.
        """
        tool = ToolName.parse(tool_name)
        if tool is None:
            return SessionReply(SessionStatus.REJECTED, error="unknown_tool")
        spec = TOOL_SPECS[tool]

        async with self.db.read() as conn:
            operator = await UserRepo.get_by_external_id(conn, operator_id)
        if operator is None or operator.is_banned or not operator.role.at_least(spec.required_role):
            logger.warning("[SESSION CONTROLLER] Operator %s may not start %s", operator_id, tool)
            return SessionReply(SessionStatus.REJECTED, tool=tool, error="not_authorized")

        if self.store.has(operator_id):
            current = self.store.get(operator_id)
            return SessionReply(
                SessionStatus.REJECTED,
                tool=current.tool if current else tool,
                error="session_active",
            )

        if not spec.steps:
            result = await self._dispatch(operator_id, tool, {})
            return SessionReply(SessionStatus.COMPLETED, tool=tool, payload={}, result=result)

        now = self._clock()
        session = self._skip_inapplicable(
            spec, CommandSession(operator_id=operator_id, tool=tool, created_at=now, touched_at=now), now
        )
        self.store.put(session)
        logger.debug("[SESSION CONTROLLER] Operator %s started %s", operator_id, tool)
        return self._prompt_reply(SessionStatus.STARTED, spec, session)

    async def submit(self, operator_id: int, raw_input: str) -> SessionReply:
        """
        Answer the current step of the operator's session.

        Returns:
            ADVANCED with the next prompt, COMPLETED with the handler result,
            INVALID_INPUT with the session unchanged, CANCELLED for a cancel
            keyword, or NO_SESSION.
        """
        session = self.store.get(operator_id)
        if session is None:
            return SessionReply(SessionStatus.NO_SESSION)

        text = (raw_input or "").strip()
        if text.lower() in self.cancel_keywords:
            return self.cancel(operator_id)

        spec = TOOL_SPECS[session.tool]
        step = spec.steps[session.step_index]

        if text.lower() in self.skip_keywords:
            if not step.optional:
                return self._prompt_reply(SessionStatus.INVALID_INPUT, spec, session, error="value_required")
            value = None
        else:
            try:
                value = step.parse(text)
            except StepValidationError as exc:
                logger.debug(
                    "[SESSION CONTROLLER] Operator %s sent invalid %s: %s",
                    operator_id,
                    step.key,
                    exc.code,
                )
                return self._prompt_reply(SessionStatus.INVALID_INPUT, spec, session, error=exc.code)

        now = self._clock()
        advanced = self._skip_inapplicable(spec, session.advanced(step.key, value, now), now)

        if advanced.step_index < len(spec.steps):
            self.store.put(advanced)
            return self._prompt_reply(SessionStatus.ADVANCED, spec, advanced)

        self.store.delete(operator_id)
        payload = dict(advanced.data)
        result = await self._dispatch(operator_id, session.tool, payload)
        return SessionReply(
            SessionStatus.COMPLETED,
            tool=session.tool,
            step_index=advanced.step_index,
            step_count=len(spec.steps),
            payload=payload,
            result=result,
        )

    def cancel(self, operator_id: int) -> SessionReply:
        """Remove the operator's session, whatever its state."""
        session = self.store.delete(operator_id)
        if session is None:
            return SessionReply(SessionStatus.NO_SESSION)
        logger.debug("[SESSION CONTROLLER] Operator %s cancelled %s", operator_id, session.tool)
        return SessionReply(SessionStatus.CANCELLED, tool=session.tool, step_index=session.step_index)

    def current(self, operator_id: int) -> Optional[CommandSession]:
        return self.store.get(operator_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _skip_inapplicable(spec: ToolSpec, session: CommandSession, now: float) -> CommandSession:
        while session.step_index < len(spec.steps):
            step = spec.steps[session.step_index]
            if step.applies_to(session.data):
                break
            session = session.advanced(step.key, None, now)
        return session

    @staticmethod
    def _prompt_reply(
        status: SessionStatus,
        spec: ToolSpec,
        session: CommandSession,
        error: Optional[str] = None,
    ) -> SessionReply:
        step = spec.steps[session.step_index]
        return SessionReply(
            status,
            tool=session.tool,
            step_index=session.step_index,
            step_count=len(spec.steps),
            prompt=step.key,
            error=error,
        )

    async def _dispatch(self, operator_id: int, tool: ToolName, data: Dict[str, Any]) -> ToolResult:
        result = await self.handlers[tool](operator_id, data)
        logger.info(
            "[SESSION CONTROLLER] %s by operator %s finished: %s",
            tool,
            operator_id,
            result.code,
        )
        return result

    # ------------------------------------------------------------------
    # Tool handlers
    # ------------------------------------------------------------------

    async def _ban_user(self, operator_id: int, data: Dict[str, Any]) -> ToolResult:
        kind: BanKind = data["ban_kind"]
        result = await self.engine.ban(
            data["subject_id"],
            data["reason"],
            kind,
            duration_hours=data.get("duration_hours"),
            actor_id=operator_id,
            upgrade_warning=True,
        )
        return _from_moderation(result)

    async def _unban_user(self, operator_id: int, data: Dict[str, Any]) -> ToolResult:
        return _from_moderation(await self.engine.unban(data["subject_id"], actor_id=operator_id))

    async def _create_admin(self, operator_id: int, data: Dict[str, Any]) -> ToolResult:
        return await self.admin.create_admin(operator_id, data["target_user"], data.get("permissions"))

    async def _remove_admin(self, operator_id: int, data: Dict[str, Any]) -> ToolResult:
        return await self.admin.remove_admin(operator_id, data["target_user"])

    async def _manage_permissions(self, operator_id: int, data: Dict[str, Any]) -> ToolResult:
        return await self.admin.manage_permissions(operator_id, data["target_user"], data["action"], data["permissions"])

    async def _toggle_command(self, operator_id: int, data: Dict[str, Any]) -> ToolResult:
        return await self.admin.toggle_command(
            operator_id,
            data["command_name"],
            data["enabled"],
            data.get("role") or "all",
        )

    async def _list_admins(self, operator_id: int, data: Dict[str, Any]) -> ToolResult:
        return await self.admin.list_admins(operator_id)

    async def _add_content(self, operator_id: int, data: Dict[str, Any]) -> ToolResult:
        _, rejection = await self.admin.authorize(operator_id, ADD_CONTENT)
        if rejection:
            return rejection
        fields = {k: v for k, v in data.items() if v is not None}
        return ToolResult(True, "content_added", await self.catalog.add_content(operator_id, fields))

    async def _edit_content(self, operator_id: int, data: Dict[str, Any]) -> ToolResult:
        _, rejection = await self.admin.authorize(operator_id, EDIT_CONTENT)
        if rejection:
            return rejection
        fields = {k: v for k, v in data.items() if k != "content_id" and v is not None}
        if not fields:
            return ToolResult(False, "nothing_to_change", {"content_id": data["content_id"]})
        return ToolResult(True, "content_edited", await self.catalog.edit_content(operator_id, data["content_id"], fields))

    async def _delete_content(self, operator_id: int, data: Dict[str, Any]) -> ToolResult:
        _, rejection = await self.admin.authorize(operator_id, DELETE_CONTENT)
        if rejection:
            return rejection
        return ToolResult(True, "content_deleted", await self.catalog.delete_content(operator_id, data["content_id"]))
