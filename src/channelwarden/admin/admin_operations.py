"""
Admin team management and command toggles.

Authorization follows one rule: owners may do everything, admins may do what
their active permissions allow, everyone else is rejected. Banned operators
are always rejected.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from channelwarden.database.db_connection import ConnectionManager
from channelwarden.datatypes.moderation_datatypes import User, UserRole
from channelwarden.datatypes.session_datatypes import ToolResult
from channelwarden.moderation.subject_directory import SubjectDirectory
from channelwarden.repositories.admin_repo import PermissionRepo, SettingsRepo
from channelwarden.repositories.event_repo import AdminActionRepo
from channelwarden.repositories.user_repo import UserRepo
from channelwarden.util.logger import get_logger

logger = get_logger("admin_operations")

MANAGE_CONTENT = "MANAGE_CONTENT"
ADD_CONTENT = "ADD_CONTENT"
EDIT_CONTENT = "EDIT_CONTENT"
DELETE_CONTENT = "DELETE_CONTENT"
VIEW_ADMIN_PANEL = "VIEW_ADMIN_PANEL"

PERMISSIONS = frozenset({MANAGE_CONTENT, ADD_CONTENT, EDIT_CONTENT, DELETE_CONTENT, VIEW_ADMIN_PANEL})
DEFAULT_ADMIN_PERMISSIONS = (ADD_CONTENT, EDIT_CONTENT, DELETE_CONTENT, MANAGE_CONTENT)

TOGGLE_ROLES = ("all", "user", "premium", "admin", "owner")
GRANT_ACTIONS = {"grant": "granted", "revoke": "revoked"}


def command_setting_key(command_name: str, role: str = "all") -> str:
    return f"command_{command_name}_enabled_{role}"


def split_permissions(values: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Split requested permission names into (known, unknown), upper-cased and de-duplicated."""
    known: List[str] = []
    unknown: List[str] = []
    for value in values:
        name = str(value).strip().upper()
        if not name:
            continue
        bucket = known if name in PERMISSIONS else unknown
        if name not in bucket:
            bucket.append(name)
    return known, unknown


class AdminOperations:
    """Owner and admin operations backed by the users and permissions tables."""

    def __init__(
        self,
        db: ConnectionManager,
        directory: SubjectDirectory,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db = db
        self.directory = directory
        self._clock = clock

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    async def authorize(self, operator_id: int, permission: Optional[str] = None) -> Tuple[Optional[User], Optional[ToolResult]]:
        """
        Check that the operator may act.

        Args:
            operator_id: Platform id of the operator.
            permission: Permission an admin needs; ``None`` means owner only.

        Returns:
            ``(operator, None)`` when allowed, ``(operator_or_None, rejection)`` otherwise.
        """
        async with self.db.read() as conn:
            operator = await UserRepo.get_by_external_id(conn, operator_id)
            if operator is None:
                return None, ToolResult(False, "not_authorized")
            if operator.is_banned:
                return operator, ToolResult(False, "operator_banned")
            if operator.role is UserRole.OWNER:
                return operator, None
            if permission is not None and operator.role is UserRole.ADMIN:
                granted = await PermissionRepo.list_active(conn, operator.id)
                if permission in granted:
                    return operator, None
        logger.warning(
            "[ADMIN OPERATIONS] Operator %s (%s) lacks %s",
            operator_id,
            operator.role,
            permission or "owner role",
        )
        return operator, ToolResult(False, "not_authorized")

    async def permissions_of(self, operator_id: int) -> List[str]:
        async with self.db.read() as conn:
            user = await UserRepo.get_by_external_id(conn, operator_id)
            if user is None:
                return []
            if user.role is UserRole.OWNER:
                return sorted(PERMISSIONS)
            return await PermissionRepo.list_active(conn, user.id)

    # ------------------------------------------------------------------
    # Admin team
    # ------------------------------------------------------------------

    async def create_admin(
        self,
        operator_id: int,
        target: int | str,
        permissions: Optional[Iterable[str]] = None,
    ) -> ToolResult:
        """Promote an existing, non-banned user to admin with the given (or default) permissions."""
        operator, rejection = await self.authorize(operator_id)
        if rejection:
            return rejection

        granted, unknown = split_permissions(permissions or DEFAULT_ADMIN_PERMISSIONS)
        if unknown:
            return ToolResult(False, "invalid_permissions", {"invalid": unknown})

        user = await self.directory.find_user(target)
        if user is None:
            return ToolResult(False, "not_found", {"target": str(target)})
        if user.is_banned:
            return ToolResult(False, "target_banned", {"user_id": user.id})
        if user.role.at_least(UserRole.ADMIN):
            return ToolResult(False, "already_admin", {"user_id": user.id, "role": user.role.value})

        now = int(self._clock())
        async with self.db.transaction() as conn:
            await UserRepo.set_role(conn, user.id, UserRole.ADMIN)
            await PermissionRepo.grant(conn, user.id, granted, operator_id, now)
            await AdminActionRepo.insert(
                conn,
                admin_id=operator_id,
                action_type="ADMIN_CREATE",
                target_type="user",
                target_id=user.id,
                details={"previous_role": user.role.value, "permissions": granted},
                created_at=now,
            )

        logger.info("[ADMIN OPERATIONS] %s promoted user %s to admin with %s", operator_id, user.external_id, granted)
        return ToolResult(
            True,
            "admin_created",
            {"user_id": user.id, "external_id": user.external_id, "username": user.username, "permissions": granted},
        )

    async def remove_admin(self, operator_id: int, target: int | str, revoke_permissions: bool = True) -> ToolResult:
        """Demote an admin back to a regular user; owners cannot be removed."""
        operator, rejection = await self.authorize(operator_id)
        if rejection:
            return rejection

        user = await self.directory.find_user(target)
        if user is None:
            return ToolResult(False, "not_found", {"target": str(target)})
        if user.role is UserRole.OWNER:
            return ToolResult(False, "cannot_remove_owner", {"user_id": user.id})
        if user.role is not UserRole.ADMIN:
            return ToolResult(False, "not_admin", {"user_id": user.id, "role": user.role.value})

        now = int(self._clock())
        async with self.db.transaction() as conn:
            revoked = await PermissionRepo.list_active(conn, user.id)
            if revoke_permissions:
                await PermissionRepo.revoke_all(conn, user.id)
            await UserRepo.set_role(conn, user.id, UserRole.USER)
            await AdminActionRepo.insert(
                conn,
                admin_id=operator_id,
                action_type="ADMIN_REMOVE",
                target_type="user",
                target_id=user.id,
                details={"permissions_revoked": revoked if revoke_permissions else [], "revoke_permissions": revoke_permissions},
                created_at=now,
            )

        logger.info("[ADMIN OPERATIONS] %s removed admin %s", operator_id, user.external_id)
        return ToolResult(
            True,
            "admin_removed",
            {"user_id": user.id, "external_id": user.external_id, "revoked_permissions": revoked if revoke_permissions else []},
        )

    async def manage_permissions(
        self,
        operator_id: int,
        target: int | str,
        action: str,
        permissions: Iterable[str],
    ) -> ToolResult:
        """Grant or revoke permissions of an admin. Unknown permission names reject the whole call."""
        operator, rejection = await self.authorize(operator_id)
        if rejection:
            return rejection

        action = str(action).strip().lower()
        if action not in GRANT_ACTIONS:
            return ToolResult(False, "invalid_action", {"action": action})

        changed, unknown = split_permissions(permissions)
        if unknown or not changed:
            return ToolResult(False, "invalid_permissions", {"invalid": unknown})

        user = await self.directory.find_user(target)
        if user is None:
            return ToolResult(False, "not_found", {"target": str(target)})
        if user.is_banned:
            return ToolResult(False, "target_banned", {"user_id": user.id})
        if user.role is not UserRole.ADMIN:
            return ToolResult(False, "not_admin", {"user_id": user.id, "role": user.role.value})

        now = int(self._clock())
        async with self.db.transaction() as conn:
            if action == "grant":
                await PermissionRepo.grant(conn, user.id, changed, operator_id, now)
            else:
                await PermissionRepo.revoke(conn, user.id, changed)
            current = await PermissionRepo.list_active(conn, user.id)
            await AdminActionRepo.insert(
                conn,
                admin_id=operator_id,
                action_type=f"PERMISSION_{action.upper()}",
                target_type="user",
                target_id=user.id,
                details={"permissions": changed, "current_permissions": current},
                created_at=now,
            )

        done = GRANT_ACTIONS[action]
        logger.info("[ADMIN OPERATIONS] %s %s %s for admin %s", operator_id, done, changed, user.external_id)
        return ToolResult(True, f"permissions_{done}", {"user_id": user.id, "permissions": changed, "current_permissions": current})

    async def list_admins(self, operator_id: int) -> ToolResult:
        operator, rejection = await self.authorize(operator_id, VIEW_ADMIN_PANEL)
        if rejection:
            return rejection

        admins: List[Dict[str, Any]] = []
        async with self.db.read() as conn:
            for user in await UserRepo.list_by_roles(conn, (UserRole.OWNER, UserRole.ADMIN)):
                admins.append(
                    {
                        "user_id": user.id,
                        "external_id": user.external_id,
                        "username": user.username,
                        "role": user.role.value,
                        "banned": user.is_banned,
                        "permissions": sorted(PERMISSIONS) if user.role is UserRole.OWNER
                        else await PermissionRepo.list_active(conn, user.id),
                    }
                )
        return ToolResult(True, "admins_listed", {"admins": admins})

    # ------------------------------------------------------------------
    # Command toggles
    # ------------------------------------------------------------------

    async def toggle_command(self, operator_id: int, command_name: str, enabled: bool, role: str = "all") -> ToolResult:
        """Enable or disable a bot command for one role (or ``all``)."""
        operator, rejection = await self.authorize(operator_id, MANAGE_CONTENT)
        if rejection:
            return rejection

        command_name = str(command_name).strip().lstrip("/").lower()
        if not command_name:
            return ToolResult(False, "invalid_command")
        if role not in TOGGLE_ROLES:
            return ToolResult(False, "invalid_role", {"role": role})

        key = command_setting_key(command_name, role)
        now = int(self._clock())
        async with self.db.transaction() as conn:
            await SettingsRepo.upsert(conn, key, bool(enabled), operator_id, now)
            await AdminActionRepo.insert(
                conn,
                admin_id=operator_id,
                action_type="COMMAND_TOGGLE",
                target_type="command",
                target_id=None,
                details={"command": command_name, "enabled": bool(enabled), "role": role},
                created_at=now,
            )

        logger.info(
            "[ADMIN OPERATIONS] %s %s command /%s for %s",
            operator_id,
            "enabled" if enabled else "disabled",
            command_name,
            role,
        )
        return ToolResult(True, "command_toggled", {"command": command_name, "enabled": bool(enabled), "role": role})

    async def is_command_enabled(self, command_name: str, role: UserRole | str = "all") -> bool:
        """A role-specific toggle wins over the ``all`` toggle; commands are enabled by default."""
        role_name = str(role)
        async with self.db.read() as conn:
            specific = await SettingsRepo.get(conn, command_setting_key(command_name, role_name))
            if specific is not None:
                return bool(specific)
            general = await SettingsRepo.get(conn, command_setting_key(command_name, "all"))
        return True if general is None else bool(general)
