"""
Users and distribution channels as seen by the moderation core.

Users are created on first contact and never deleted. Channels are registered
once and deactivated instead of deleted so old ban records stay readable.
"""

from __future__ import annotations

from typing import List, Optional

from channelwarden.database.db_connection import ConnectionManager
from channelwarden.datatypes.moderation_datatypes import User, UserRole
from channelwarden.repositories.channel_repo import ChannelRepo
from channelwarden.repositories.user_repo import UserRepo
from channelwarden.util.logger import get_logger

logger = get_logger("subject_directory")


def _is_ascii_number(text: str) -> bool:
    return text.isascii() and text.isdigit()


class SubjectDirectory:
    """Registry of users and distribution channels."""

    def __init__(self, db: ConnectionManager) -> None:
        self.db = db

    async def ensure_user(
        self,
        external_id: int,
        username: Optional[str] = None,
        role: UserRole = UserRole.USER,
    ) -> User:
        """Return the user with ``external_id``, creating it with ``role`` if new."""
        async with self.db.transaction() as conn:
            return await UserRepo.ensure(conn, external_id, username, role)

    async def ensure_owner(self, external_id: int) -> User:
        """Create the user if needed and give it the owner role."""
        async with self.db.transaction() as conn:
            user = await UserRepo.ensure(conn, external_id, role=UserRole.OWNER)
            if user.role is not UserRole.OWNER:
                await UserRepo.set_role(conn, user.id, UserRole.OWNER)
                user.role = UserRole.OWNER
        logger.info("[SUBJECT DIRECTORY] User %s is an owner", external_id)
        return user

    async def get_user(self, external_id: int) -> Optional[User]:
        async with self.db.read() as conn:
            return await UserRepo.get_by_external_id(conn, external_id)

    async def find_user(self, identifier: int | str) -> Optional[User]:
        """
        Resolve what an operator typed into a user.

        ``@name`` (or any non-numeric text) is looked up as a username; a
        number is tried as a platform id first and then as an internal id.
        """
        text = str(identifier).strip()
        if not text:
            return None

        async with self.db.read() as conn:
            digits = text.lstrip("-")
            if text.startswith("@") or not _is_ascii_number(digits):
                return await UserRepo.get_by_username(conn, text)

            number = int(text)
            user = await UserRepo.get_by_external_id(conn, number)
            if user is None:
                user = await UserRepo.get_by_id(conn, number)
            return user

    async def register_channel(self, channel_id: str, title: Optional[str] = None) -> None:
        async with self.db.transaction() as conn:
            await ChannelRepo.upsert(conn, channel_id, title, is_active=True)
        logger.info("[SUBJECT DIRECTORY] Registered distribution channel %s", channel_id)

    async def deactivate_channel(self, channel_id: str) -> None:
        async with self.db.transaction() as conn:
            await ChannelRepo.upsert(conn, channel_id, is_active=False)
        logger.info("[SUBJECT DIRECTORY] Deactivated distribution channel %s", channel_id)

    async def active_channels(self) -> List[str]:
        async with self.db.read() as conn:
            return await ChannelRepo.list_active(conn)
