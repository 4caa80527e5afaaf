"""Tests for admin team management and command toggles."""

import pytest

from channelwarden.admin.admin_operations import (
    ADD_CONTENT,
    DEFAULT_ADMIN_PERMISSIONS,
    MANAGE_CONTENT,
    VIEW_ADMIN_PANEL,
    AdminOperations,
    command_setting_key,
    split_permissions,
)
from channelwarden.datatypes.moderation_datatypes import BanKind, UserRole
from channelwarden.repositories.event_repo import AdminActionRepo


@pytest.fixture
def admin_ops(db, directory, clock) -> AdminOperations:
    return AdminOperations(db, directory, clock=clock)


def test_split_permissions():
    known, unknown = split_permissions([" add_content", "ADD_CONTENT", "launch_rockets", ""])

    assert known == [ADD_CONTENT]
    assert unknown == ["LAUNCH_ROCKETS"]


def test_command_setting_key():
    assert command_setting_key("search", "user") == "command_search_enabled_user"


class TestAdminTeam:

    @pytest.mark.asyncio
    async def test_owner_creates_admin(self, db, admin_ops, directory, owner, subject):
        result = await admin_ops.create_admin(owner.external_id, subject.external_id)

        assert result.success
        assert result.code == "admin_created"
        assert (await directory.get_user(subject.external_id)).role is UserRole.ADMIN
        assert await admin_ops.permissions_of(subject.external_id) == sorted(DEFAULT_ADMIN_PERMISSIONS)

        async with db.read() as conn:
            actions = await AdminActionRepo.list_for_admin(conn, owner.external_id)
        assert [a["action_type"] for a in actions] == ["ADMIN_CREATE"]

    @pytest.mark.asyncio
    async def test_only_owner_creates_admins(self, admin_ops, admin_user, subject):
        result = await admin_ops.create_admin(admin_user.external_id, subject.external_id)

        assert not result.success
        assert result.code == "not_authorized"

    @pytest.mark.asyncio
    async def test_banned_user_cannot_become_admin(self, admin_ops, engine, channels, owner, subject):
        await engine.ban(subject.external_id, "spam", BanKind.PERMANENT)

        result = await admin_ops.create_admin(owner.external_id, subject.external_id)

        assert result.code == "target_banned"

    @pytest.mark.asyncio
    async def test_existing_admin_is_rejected(self, admin_ops, owner, admin_user):
        result = await admin_ops.create_admin(owner.external_id, admin_user.external_id)

        assert result.code == "already_admin"

    @pytest.mark.asyncio
    async def test_unknown_target(self, admin_ops, owner):
        result = await admin_ops.create_admin(owner.external_id, "@nobody")

        assert result.code == "not_found"

    @pytest.mark.asyncio
    async def test_unknown_permission_rejects_creation(self, admin_ops, directory, owner, subject):
        result = await admin_ops.create_admin(owner.external_id, subject.external_id, ["ADD_CONTENT", "ROOT"])

        assert result.code == "invalid_permissions"
        assert result.data["invalid"] == ["ROOT"]
        assert (await directory.get_user(subject.external_id)).role is UserRole.USER

    @pytest.mark.asyncio
    async def test_remove_admin_revokes_permissions(self, admin_ops, directory, owner, subject):
        await admin_ops.create_admin(owner.external_id, subject.external_id)

        result = await admin_ops.remove_admin(owner.external_id, subject.external_id)

        assert result.success
        assert sorted(result.data["revoked_permissions"]) == sorted(DEFAULT_ADMIN_PERMISSIONS)
        assert (await directory.get_user(subject.external_id)).role is UserRole.USER
        assert await admin_ops.permissions_of(subject.external_id) == []

    @pytest.mark.asyncio
    async def test_owner_cannot_be_removed(self, admin_ops, owner):
        result = await admin_ops.remove_admin(owner.external_id, owner.external_id)

        assert result.code == "cannot_remove_owner"

    @pytest.mark.asyncio
    async def test_remove_non_admin(self, admin_ops, owner, subject):
        assert (await admin_ops.remove_admin(owner.external_id, subject.external_id)).code == "not_admin"

    @pytest.mark.asyncio
    async def test_grant_and_revoke_permissions(self, admin_ops, owner, admin_user):
        granted = await admin_ops.manage_permissions(owner.external_id, admin_user.external_id, "grant", ["view_admin_panel", "manage_content"])
        revoked = await admin_ops.manage_permissions(owner.external_id, admin_user.external_id, "revoke", [MANAGE_CONTENT])

        assert granted.code == "permissions_granted"
        assert granted.data["current_permissions"] == [MANAGE_CONTENT, VIEW_ADMIN_PANEL]
        assert revoked.code == "permissions_revoked"
        assert revoked.data["current_permissions"] == [VIEW_ADMIN_PANEL]

    @pytest.mark.asyncio
    async def test_manage_permissions_validation(self, admin_ops, owner, admin_user, subject):
        bad_action = await admin_ops.manage_permissions(owner.external_id, admin_user.external_id, "toggle", [MANAGE_CONTENT])
        bad_perm = await admin_ops.manage_permissions(owner.external_id, admin_user.external_id, "grant", ["FLY"])
        not_admin = await admin_ops.manage_permissions(owner.external_id, subject.external_id, "grant", [MANAGE_CONTENT])

        assert bad_action.code == "invalid_action"
        assert bad_perm.code == "invalid_permissions"
        assert not_admin.code == "not_admin"

    @pytest.mark.asyncio
    async def test_list_admins_needs_panel_permission(self, admin_ops, owner, admin_user):
        denied = await admin_ops.list_admins(admin_user.external_id)
        await admin_ops.manage_permissions(owner.external_id, admin_user.external_id, "grant", [VIEW_ADMIN_PANEL])
        allowed = await admin_ops.list_admins(admin_user.external_id)

        assert denied.code == "not_authorized"
        assert allowed.success
        roles = {a["external_id"]: a["role"] for a in allowed.data["admins"]}
        assert roles == {owner.external_id: "owner", admin_user.external_id: "admin"}

    @pytest.mark.asyncio
    async def test_banned_operator_is_rejected(self, admin_ops, engine, channels, directory, owner):
        other_owner = await directory.ensure_owner(3)
        await engine.ban(other_owner.external_id, "compromised", BanKind.PERMANENT)

        result = await admin_ops.list_admins(other_owner.external_id)

        assert result.code == "operator_banned"


class TestCommandToggles:

    @pytest.mark.asyncio
    async def test_commands_enabled_by_default(self, admin_ops):
        assert await admin_ops.is_command_enabled("search", "user")

    @pytest.mark.asyncio
    async def test_role_specific_toggle_wins(self, admin_ops, owner):
        await admin_ops.toggle_command(owner.external_id, "search", False)
        await admin_ops.toggle_command(owner.external_id, "/Search", True, "premium")

        assert not await admin_ops.is_command_enabled("search", UserRole.USER)
        assert await admin_ops.is_command_enabled("search", UserRole.PREMIUM)

    @pytest.mark.asyncio
    async def test_admin_needs_manage_content(self, admin_ops, owner, admin_user):
        denied = await admin_ops.toggle_command(admin_user.external_id, "search", False)
        await admin_ops.manage_permissions(owner.external_id, admin_user.external_id, "grant", [MANAGE_CONTENT])
        allowed = await admin_ops.toggle_command(admin_user.external_id, "search", False, "user")

        assert denied.code == "not_authorized"
        assert allowed.code == "command_toggled"
        assert allowed.data == {"command": "search", "enabled": False, "role": "user"}

    @pytest.mark.asyncio
    async def test_invalid_role(self, admin_ops, owner):
        result = await admin_ops.toggle_command(owner.external_id, "search", False, "robots")

        assert result.code == "invalid_role"
