"""Tests for the keyed subject locks."""

import asyncio

import pytest

from channelwarden.moderation.subject_locks import SubjectLocks


@pytest.mark.asyncio
async def test_same_key_runs_one_at_a_time():
    locks = SubjectLocks()
    order = []
    release = asyncio.Event()

    async def first():
        async with locks.hold(7):
            order.append("first-in")
            await release.wait()
            order.append("first-out")

    async def second():
        async with locks.hold(7):
            order.append("second-in")

    t1 = asyncio.create_task(first())
    await asyncio.sleep(0)
    t2 = asyncio.create_task(second())
    await asyncio.sleep(0)

    assert locks.is_locked(7)
    assert order == ["first-in"]

    release.set()
    await asyncio.gather(t1, t2)

    assert order == ["first-in", "first-out", "second-in"]


@pytest.mark.asyncio
async def test_other_keys_do_not_wait():
    locks = SubjectLocks()

    async with locks.hold(1):
        assert not locks.is_locked(2)
        async with locks.hold(2):
            assert locks.is_locked(1)
            assert locks.is_locked(2)


@pytest.mark.asyncio
async def test_idle_locks_are_dropped():
    locks = SubjectLocks()

    async with locks.hold("a"):
        assert len(locks) == 1

    assert len(locks) == 0
    assert not locks.is_locked("a")
