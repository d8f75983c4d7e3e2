#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import copy

import anyio
import pytest

import flowlogic


async def _run_queued(queue, names):
    gate = anyio.Event()
    log = []

    async def job(name, priority=0):
        log.append(name)

    async with anyio.create_task_group() as tg:
        tg.start_soon(queue.execute, gate.wait)

        await anyio.sleep(0.01)

        for name, priority in names:
            tg.start_soon(queue.execute, job, name, priority)

            await anyio.sleep(0.01)

        gate.set()

    return log


async def test_fifo():
    queue = flowlogic.FunctionQueue()

    names = [("a", 0), ("b", 0), ("c", 0)]

    assert await _run_queued(queue, names) == ["a", "b", "c"]


async def test_lifo():
    queue = flowlogic.FunctionQueue(1, "lifo")

    names = [("a", 0), ("b", 0), ("c", 0)]

    assert await _run_queued(queue, names) == ["c", "b", "a"]


async def test_priority():
    queue = flowlogic.FunctionQueue(
        1,
        flowlogic.QueueMode.PRIORITY,
        priority_fn=lambda name, priority=0: priority,
    )

    names = [("a", 1), ("b", 5), ("c", 3)]

    assert await _run_queued(queue, names) == ["b", "c", "a"]


async def test_concurrency():
    queue = flowlogic.FunctionQueue(3)
    running = 0
    peak = 0

    async def job():
        nonlocal running, peak

        running += 1
        peak = max(peak, running)

        await anyio.sleep(0.01)

        running -= 1

    async with anyio.create_task_group() as tg:
        for _ in range(7):
            tg.start_soon(queue.execute, job)

        await anyio.sleep(0.005)

        assert queue.running == 3
        assert queue.queue_length == 4

    assert peak == 3
    assert queue.running == 0


async def test_max_queue_size():
    overflows = []
    hooks = flowlogic.Hooks(on_overflow=lambda: overflows.append(True))
    queue = flowlogic.FunctionQueue(max_queue_size=1, hooks=hooks)
    gate = anyio.Event()

    async with anyio.create_task_group() as tg:
        tg.start_soon(queue.execute, gate.wait)

        await anyio.sleep(0.01)

        tg.start_soon(queue.execute, anyio.sleep, 0)

        await anyio.sleep(0.01)

        with pytest.raises(flowlogic.CapacityExceededError):
            await queue.execute(anyio.sleep, 0)

        gate.set()

    assert overflows == [True]


async def test_queue_change():
    sizes = []
    positions = []
    hooks = flowlogic.Hooks(
        on_queue_change=sizes.append,
        on_waiting=positions.append,
    )
    queue = flowlogic.FunctionQueue(hooks=hooks)
    gate = anyio.Event()

    async with anyio.create_task_group() as tg:
        tg.start_soon(queue.execute, gate.wait)

        await anyio.sleep(0.01)

        for _ in range(2):
            tg.start_soon(queue.execute, anyio.sleep, 0)

            await anyio.sleep(0.01)

        gate.set()

    assert positions == [1, 2]
    assert sizes == [1, 2, 1, 0]


async def test_cancelled_while_queued():
    sizes = []
    hooks = flowlogic.Hooks(on_queue_change=sizes.append)
    queue = flowlogic.FunctionQueue(hooks=hooks)

    async with anyio.create_task_group() as tg:
        tg.start_soon(queue.execute, anyio.sleep, 0.05)

        await anyio.sleep(0.01)

        with anyio.move_on_after(0.01):
            await queue.execute(anyio.sleep, 0)

        assert queue.queue_length == 0

    assert sizes == [1, 0]


async def test_decorator():
    queue = flowlogic.FunctionQueue()

    @queue
    async def job(x):
        assert queue.running == 1

        return x + 1

    assert await job(1) == 2
    assert queue.running == 0


class TestFunctionQueue:
    def test_validation(self):
        with pytest.raises(flowlogic.InvalidConfigurationError):
            flowlogic.FunctionQueue(0)

        with pytest.raises(flowlogic.InvalidConfigurationError):
            flowlogic.FunctionQueue(max_queue_size=0)

    def test_copy(self):
        queue = flowlogic.FunctionQueue(2, "lifo", max_queue_size=5)
        queue_copy = copy.copy(queue)

        assert queue_copy.concurrency == 2
        assert queue_copy.mode is flowlogic.QueueMode.LIFO
        assert queue_copy.max_queue_size == 5
        assert "running=0, queued=0" in repr(queue_copy)
