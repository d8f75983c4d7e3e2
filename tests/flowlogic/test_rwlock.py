#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import copy

import anyio
import pytest

import flowlogic


async def test_shared_readers():
    rwlock = flowlogic.RWLock()
    counts = []

    async def read():
        async with rwlock.reader:
            await anyio.sleep(0.01)

            counts.append(rwlock.reader_count)

    async with anyio.create_task_group() as tg:
        for _ in range(3):
            tg.start_soon(read)

    assert counts[0] == 3
    assert rwlock.reader_count == 0


async def test_exclusive_writer():
    rwlock = flowlogic.RWLock()
    log = []

    async def read():
        async with rwlock.reader:
            log.append("read")

    async with anyio.create_task_group() as tg:
        async with rwlock.writer:
            assert rwlock.writing

            tg.start_soon(read)

            await anyio.sleep(0.01)

            assert rwlock.read_waiting == 1
            assert log == []

            log.append("write")

    assert log == ["write", "read"]
    assert not rwlock.writing


async def test_writer_waits_for_readers():
    rwlock = flowlogic.RWLock()
    log = []

    async def write():
        async with rwlock.writer:
            log.append(("write", rwlock.reader_count))

    async with anyio.create_task_group() as tg:
        await rwlock.acquire_read()
        await rwlock.acquire_read()

        tg.start_soon(write)

        await anyio.sleep(0.01)

        assert rwlock.write_waiting == 1

        rwlock.release_read()

        await anyio.sleep(0.01)

        assert log == []

        rwlock.release_read()

    assert log == [("write", 0)]


async def test_readers_overtake_without_priority():
    rwlock = flowlogic.RWLock()

    async with anyio.create_task_group() as tg:
        async with rwlock.reader:
            tg.start_soon(rwlock.write, anyio.sleep, 0)

            await anyio.sleep(0.01)

            assert await rwlock.acquire_read(blocking=False)

            rwlock.release_read()


async def test_writer_priority():
    rwlock = flowlogic.RWLock(writer_priority=True)
    log = []

    async def read(name):
        async with rwlock.reader:
            log.append(name)

    async def write(name):
        async with rwlock.writer:
            log.append(name)

    async with anyio.create_task_group() as tg:
        async with rwlock.reader:
            tg.start_soon(write, "w1")

            await anyio.sleep(0.01)

            assert not await rwlock.acquire_read(blocking=False)

            tg.start_soon(read, "r1")
            tg.start_soon(read, "r2")

            await anyio.sleep(0.01)

            tg.start_soon(write, "w2")

            await anyio.sleep(0.01)

            assert rwlock.write_waiting == 2
            assert rwlock.read_waiting == 2

    assert log[:2] == ["w1", "w2"]
    assert sorted(log[2:]) == ["r1", "r2"]


async def test_readers_released_together():
    rwlock = flowlogic.RWLock()
    counts = []

    async def read():
        async with rwlock.reader:
            counts.append(rwlock.reader_count)

            await anyio.sleep(0.01)

    async with anyio.create_task_group() as tg:
        async with rwlock.writer:
            for _ in range(3):
                tg.start_soon(read)

            await anyio.sleep(0.01)

        # all readers are admitted by the single release
        assert rwlock.reader_count == 3

    assert counts == [3, 3, 3]


async def test_timeout():
    timeouts = []
    hooks = flowlogic.Hooks(on_timeout=lambda: timeouts.append(True))
    rwlock = flowlogic.RWLock(timeout=0.01, hooks=hooks)

    async with rwlock.writer:
        with pytest.raises(flowlogic.WaitTimeoutError):
            await rwlock.acquire_read()

        with pytest.raises(flowlogic.WaitTimeoutError):
            await rwlock.acquire_write()

        assert rwlock.read_waiting == 0
        assert rwlock.write_waiting == 0

    assert timeouts == [True, True]


async def test_abandoned_writer_lets_readers_in():
    rwlock = flowlogic.RWLock(writer_priority=True)
    log = []

    async def read():
        async with rwlock.reader:
            log.append("read")

    async def write():
        with pytest.raises(flowlogic.WaitTimeoutError):
            await rwlock.acquire_write(timeout=0.02)

    async with anyio.create_task_group() as tg:
        await rwlock.acquire_read()

        tg.start_soon(write)

        await anyio.sleep(0.005)

        tg.start_soon(read)

        await anyio.sleep(0.05)

        assert log == ["read"]

        rwlock.release_read()


async def test_release_unlocked():
    rwlock = flowlogic.RWLock()

    with pytest.raises(RuntimeError):
        rwlock.release_read()

    with pytest.raises(RuntimeError):
        rwlock.release_write()


async def test_views_as_decorators():
    rwlock = flowlogic.RWLock()
    table = {}

    @rwlock.writer
    async def store(key, value):
        assert rwlock.writing

        table[key] = value

    @rwlock.reader
    async def lookup(key):
        assert rwlock.reader_count == 1

        return table[key]

    await store("a", 1)

    assert await lookup("a") == 1
    assert await rwlock.read(lookup.__wrapped__, "a") == 1


class TestRWLock:
    def test_validation(self):
        with pytest.raises(flowlogic.InvalidConfigurationError):
            flowlogic.RWLock(timeout=-1)

    def test_copy(self):
        rwlock = flowlogic.RWLock(writer_priority=True, timeout=1)
        rwlock_copy = copy.copy(rwlock)

        assert rwlock_copy.writer_priority
        assert rwlock_copy is not rwlock

    def test_views(self):
        rwlock = flowlogic.RWLock()

        assert isinstance(rwlock.reader, flowlogic.ReaderView)
        assert isinstance(rwlock.writer, flowlogic.WriterView)
        assert rwlock.reader is rwlock.reader
        assert "unlocked" in repr(rwlock.writer)
