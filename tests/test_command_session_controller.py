"""Tests for the command session controller."""

import pytest
import pytest_asyncio

from channelwarden.admin.admin_operations import AdminOperations, DEFAULT_ADMIN_PERMISSIONS
from channelwarden.datatypes.moderation_datatypes import BanKind, UserRole
from channelwarden.datatypes.session_datatypes import SessionStatus, ToolName
from channelwarden.sessions.command_session_controller import CommandSessionController
from channelwarden.sessions.session_store import InMemorySessionStore


@pytest.fixture
def store(clock) -> InMemorySessionStore:
    return InMemorySessionStore(ttl_seconds=900, clock=clock)


@pytest.fixture
def controller(db, store, engine, directory, catalog, clock) -> CommandSessionController:
    admin = AdminOperations(db, directory, clock=clock)
    return CommandSessionController(db, store, engine, admin, catalog, clock=clock)


@pytest_asyncio.fixture
async def content_admin(controller, directory, owner):
    """Admin created by the owner, holding the default content permissions."""
    editor = await directory.ensure_user(3, "editor")
    created = await controller.admin.create_admin(owner.external_id, editor.external_id)
    assert created.success
    return await directory.get_user(editor.external_id)


class TestStart:

    @pytest.mark.asyncio
    async def test_start_prompts_first_step(self, controller, store, admin_user):
        reply = await controller.start(admin_user.external_id, "ban_user")

        assert reply.status is SessionStatus.STARTED
        assert reply.tool is ToolName.BAN_USER
        assert reply.prompt == "subject_id"
        assert reply.step_count == 4
        assert store.has(admin_user.external_id)

    @pytest.mark.asyncio
    async def test_unknown_tool(self, controller, admin_user):
        reply = await controller.start(admin_user.external_id, "format_disk")

        assert reply.status is SessionStatus.REJECTED
        assert reply.error == "unknown_tool"

    @pytest.mark.asyncio
    async def test_second_start_is_rejected(self, controller, store, admin_user):
        await controller.start(admin_user.external_id, "ban_user")

        reply = await controller.start(admin_user.external_id, "unban_user")

        assert reply.status is SessionStatus.REJECTED
        assert reply.error == "session_active"
        assert store.get(admin_user.external_id).tool is ToolName.BAN_USER

    @pytest.mark.asyncio
    async def test_role_below_tool_requirement(self, controller, store, subject, admin_user):
        regular = await controller.start(subject.external_id, "ban_user")
        admin_only = await controller.start(admin_user.external_id, "create_admin")
        stranger = await controller.start(999999, "ban_user")

        assert regular.error == "not_authorized"
        assert admin_only.error == "not_authorized"
        assert stranger.error == "not_authorized"
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_tool_without_steps_runs_immediately(self, controller, store, owner):
        reply = await controller.start(owner.external_id, ToolName.LIST_ADMINS)

        assert reply.status is SessionStatus.COMPLETED
        assert reply.result.success
        assert [a["external_id"] for a in reply.result.data["admins"]] == [owner.external_id]
        assert not store.has(owner.external_id)


class TestSubmit:

    @pytest.mark.asyncio
    async def test_permanent_ban_wizard(self, controller, store, engine, channels, admin_user, subject):
        operator = admin_user.external_id
        await controller.start(operator, "ban_user")

        step1 = await controller.submit(operator, str(subject.external_id))
        step2 = await controller.submit(operator, "Permanent")
        done = await controller.submit(operator, "spamming links")

        assert step1.status is SessionStatus.ADVANCED
        assert step1.prompt == "ban_kind"
        assert step2.prompt == "reason"
        assert done.status is SessionStatus.COMPLETED
        assert done.payload == {
            "subject_id": subject.external_id,
            "ban_kind": BanKind.PERMANENT,
            "duration_hours": None,
            "reason": "spamming links",
        }
        assert done.result.success
        assert done.result.code == "applied"
        assert done.result.data["affectedChannelCount"] == 3
        assert await engine.is_banned(subject.external_id)
        assert not store.has(operator)

    @pytest.mark.asyncio
    async def test_temporary_ban_requires_duration(self, controller, engine, channels, admin_user, subject):
        operator = admin_user.external_id
        await controller.start(operator, "ban_user")
        await controller.submit(operator, str(subject.external_id))

        duration_prompt = await controller.submit(operator, "temporary")
        skipped = await controller.submit(operator, "skip")
        zero = await controller.submit(operator, "0")
        accepted = await controller.submit(operator, "12")
        done = await controller.submit(operator, "flooding")

        assert duration_prompt.prompt == "duration_hours"
        assert skipped.status is SessionStatus.INVALID_INPUT
        assert skipped.error == "value_required"
        assert zero.error == "invalid_duration"
        assert accepted.prompt == "reason"
        assert done.result.success
        record = await engine.active_record(subject.external_id)
        assert record.kind is BanKind.TEMPORARY

    @pytest.mark.asyncio
    async def test_invalid_input_leaves_session_unchanged(self, controller, store, admin_user):
        operator = admin_user.external_id
        await controller.start(operator, "ban_user")
        before = store.get(operator)

        reply = await controller.submit(operator, "not-a-number")

        assert reply.status is SessionStatus.INVALID_INPUT
        assert reply.error == "not_a_positive_number"
        assert reply.prompt == "subject_id"
        assert store.get(operator) is before
        assert before.step_index == 0
        assert before.data == {}

    @pytest.mark.asyncio
    async def test_non_ascii_digits_are_invalid_input(self, controller, store, admin_user):
        operator = admin_user.external_id
        await controller.start(operator, "unban_user")

        reply = await controller.submit(operator, "²")

        assert reply.status is SessionStatus.INVALID_INPUT
        assert reply.error == "not_a_positive_number"
        assert store.get(operator).step_index == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", ["nan", "inf", "1e308"])
    async def test_unusable_duration_keeps_session(self, controller, store, engine, channels, admin_user, subject, duration):
        operator = admin_user.external_id
        await controller.start(operator, "ban_user")
        await controller.submit(operator, str(subject.external_id))
        await controller.submit(operator, "temporary")

        reply = await controller.submit(operator, duration)

        assert reply.status is SessionStatus.INVALID_INPUT
        assert reply.error == "invalid_duration"
        assert reply.prompt == "duration_hours"
        assert store.has(operator)
        assert await engine.active_record(subject.external_id) is None

    @pytest.mark.asyncio
    async def test_submit_without_session(self, controller, admin_user):
        reply = await controller.submit(admin_user.external_id, "1001")

        assert reply.status is SessionStatus.NO_SESSION

    @pytest.mark.asyncio
    async def test_cancel_keyword_then_restart(self, controller, store, admin_user):
        operator = admin_user.external_id
        await controller.start(operator, "ban_user")
        await controller.submit(operator, "1001")

        cancelled = await controller.submit(operator, "إلغاء")
        restarted = await controller.start(operator, "unban_user")

        assert cancelled.status is SessionStatus.CANCELLED
        assert restarted.status is SessionStatus.STARTED
        assert store.get(operator).tool is ToolName.UNBAN_USER

    @pytest.mark.asyncio
    async def test_expired_session_is_gone(self, controller, clock, admin_user):
        operator = admin_user.external_id
        await controller.start(operator, "ban_user")

        clock.advance(901)
        reply = await controller.submit(operator, "1001")

        assert reply.status is SessionStatus.NO_SESSION
        assert (await controller.start(operator, "ban_user")).status is SessionStatus.STARTED

    @pytest.mark.asyncio
    async def test_unban_tool(self, controller, engine, channels, admin_user, subject):
        await engine.ban(subject.external_id, "spam", BanKind.PERMANENT)
        await controller.start(admin_user.external_id, "unban_user")

        done = await controller.submit(admin_user.external_id, str(subject.external_id))

        assert done.status is SessionStatus.COMPLETED
        assert done.result.success
        assert not await engine.is_banned(subject.external_id)

    @pytest.mark.asyncio
    async def test_add_content_skips_optional_fields(self, controller, catalog, content_admin):
        operator = content_admin.external_id
        await controller.start(operator, "add_content")
        for answer in ("movies", "Arrival", "-", "skip", "ftp://nope"):
            reply = await controller.submit(operator, answer)

        assert reply.status is SessionStatus.INVALID_INPUT
        assert reply.error == "invalid_url"

        await controller.submit(operator, "https://cdn.example.org/arrival.mp4")
        done = await controller.submit(operator, "skip")

        assert done.status is SessionStatus.COMPLETED
        assert catalog.added == [
            {"section": "movies", "title": "Arrival", "file_url": "https://cdn.example.org/arrival.mp4"}
        ]

    @pytest.mark.asyncio
    async def test_edit_content_with_nothing_to_change(self, controller, catalog, content_admin):
        operator = content_admin.external_id
        await controller.start(operator, "edit_content")
        await controller.submit(operator, "7")
        await controller.submit(operator, "skip")

        done = await controller.submit(operator, "skip")

        assert not done.result.success
        assert done.result.code == "nothing_to_change"
        assert catalog.edited == []

    @pytest.mark.asyncio
    async def test_content_tools_need_content_permissions(self, controller, catalog, owner, content_admin):
        revoked = await controller.admin.manage_permissions(
            owner.external_id,
            content_admin.external_id,
            "revoke",
            ["ADD_CONTENT", "EDIT_CONTENT", "DELETE_CONTENT", "MANAGE_CONTENT"],
        )
        assert revoked.data["current_permissions"] == []

        await controller.start(content_admin.external_id, "delete_content")
        done = await controller.submit(content_admin.external_id, "7")

        assert done.status is SessionStatus.COMPLETED
        assert not done.result.success
        assert done.result.code == "not_authorized"
        assert catalog.deleted == []

    @pytest.mark.asyncio
    async def test_owner_deletes_content(self, controller, catalog, owner):
        await controller.start(owner.external_id, "delete_content")

        done = await controller.submit(owner.external_id, "7")

        assert done.result.code == "content_deleted"
        assert catalog.deleted == [7]

    @pytest.mark.asyncio
    async def test_admin_without_permissions_cannot_add_content(self, controller, catalog, admin_user):
        operator = admin_user.external_id
        await controller.start(operator, "add_content")
        for answer in ("movies", "Arrival", "skip", "skip", "https://cdn.example.org/arrival.mp4"):
            await controller.submit(operator, answer)

        done = await controller.submit(operator, "skip")

        assert done.result.code == "not_authorized"
        assert catalog.added == []

    @pytest.mark.asyncio
    async def test_create_admin_with_default_permissions(self, controller, owner, subject, directory):
        await controller.start(owner.external_id, "create_admin")
        await controller.submit(owner.external_id, "@subject")

        done = await controller.submit(owner.external_id, "skip")

        assert done.result.success
        assert done.result.data["permissions"] == list(DEFAULT_ADMIN_PERMISSIONS)
        promoted = await directory.get_user(subject.external_id)
        assert promoted.role is UserRole.ADMIN


@pytest.mark.asyncio
async def test_cancel_without_session(controller):
    assert controller.cancel(42).status is SessionStatus.NO_SESSION
