"""
Pytest configuration and fixtures for channelwarden tests.
"""

import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Set, Tuple

# Keep test logs out of the project tree
os.environ.setdefault("CHANNELWARDEN_LOGS_DIR", tempfile.mkdtemp(prefix="channelwarden-logs-"))

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

import pytest
import pytest_asyncio

from channelwarden.database.db_connection import ConnectionManager
from channelwarden.database.db_schema import SchemaManager
from channelwarden.datatypes.moderation_datatypes import User, UserRole
from channelwarden.moderation.fanout_executor import ChannelFanoutExecutor
from channelwarden.moderation.moderation_engine import ModerationEngine
from channelwarden.moderation.subject_directory import SubjectDirectory
from channelwarden.transport.channel_transport import CatalogGateway, ChannelTransport


class FakeClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport(ChannelTransport):
    """
    Records every call. Channels in ``failing`` raise, channels in
    ``rejecting`` return False, channels in ``slow`` never answer in time.
    """

    def __init__(self) -> None:
        self.failing: Set[str] = set()
        self.rejecting: Set[str] = set()
        self.slow: Set[str] = set()
        self.dm_fails = False
        self.calls: List[Tuple[str, str, int]] = []
        self.messages: List[Tuple[int, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _apply(self, action: str, channel_id: str, subject_id: int) -> bool:
        self.calls.append((action, channel_id, subject_id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if channel_id in self.slow:
                await asyncio.sleep(60)
            if channel_id in self.failing:
                raise RuntimeError(f"{action} refused by {channel_id}")
            return channel_id not in self.rejecting
        finally:
            self.in_flight -= 1

    async def apply_ban(self, channel_id: str, subject_id: int) -> bool:
        return await self._apply("ban", channel_id, subject_id)

    async def apply_unban(self, channel_id: str, subject_id: int) -> bool:
        return await self._apply("unban", channel_id, subject_id)

    async def send_direct_message(self, subject_id: int, text: str) -> None:
        if self.dm_fails:
            raise RuntimeError("subject blocked the bot")
        self.messages.append((subject_id, text))

    def channels_for(self, action: str, subject_id: int) -> List[str]:
        return [c for a, c, s in self.calls if a == action and s == subject_id]


class FakeCatalog(CatalogGateway):
    def __init__(self) -> None:
        self.added: List[Dict] = []
        self.edited: List[Tuple[int, Dict]] = []
        self.deleted: List[int] = []

    async def add_content(self, operator_id, fields):
        self.added.append(fields)
        return {"content_id": len(self.added), **fields}

    async def edit_content(self, operator_id, content_id, fields):
        self.edited.append((content_id, fields))
        return {"content_id": content_id, **fields}

    async def delete_content(self, operator_id, content_id):
        self.deleted.append(content_id)
        return {"content_id": content_id}


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh database with the schema applied."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "channelwarden-test.db")
    async with manager.transaction() as conn:
        await SchemaManager.initialize_schema(conn)
    yield manager
    await manager.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def directory(db) -> SubjectDirectory:
    return SubjectDirectory(db)


@pytest.fixture
def engine(db, transport, clock) -> ModerationEngine:
    fanout = ChannelFanoutExecutor(transport, delay_seconds=0, max_concurrency=3, call_timeout=0.5)
    return ModerationEngine(db, fanout, transport, system_actor_id=0, clock=clock)


@pytest_asyncio.fixture
async def channels(directory) -> List[str]:
    """Three registered distribution channels A, B and C."""
    for channel_id in ("A", "B", "C"):
        await directory.register_channel(channel_id)
    return ["A", "B", "C"]


@pytest_asyncio.fixture
async def subject(directory) -> User:
    return await directory.ensure_user(1001, "subject")


@pytest_asyncio.fixture
async def owner(directory) -> User:
    return await directory.ensure_owner(1)


@pytest_asyncio.fixture
async def admin_user(directory) -> User:
    return await directory.ensure_user(2, "helper", role=UserRole.ADMIN)
