#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import anyio
import pytest

import flowlogic

from flowlogic import BackpressureStrategy


class _FixedRandom:
    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


async def _record(log, name):
    log.append(name)

    return name


@pytest.mark.parametrize(
    "strategy",
    [
        BackpressureStrategy.DROP,
        BackpressureStrategy.ERROR,
    ],
)
async def test_reject_when_busy(strategy):
    overflows = []
    hooks = flowlogic.Hooks(on_overflow=lambda: overflows.append(True))
    controller = flowlogic.BackpressureController(
        strategy,
        max_concurrent=1,
        hooks=hooks,
    )
    gate = anyio.Event()

    async with anyio.create_task_group() as tg:
        tg.start_soon(controller.execute, gate.wait)

        await anyio.sleep(0.01)

        assert controller.is_under_pressure

        with pytest.raises(flowlogic.CapacityExceededError):
            await controller.execute(anyio.sleep, 0)

        gate.set()

    assert overflows == [True]
    assert controller.active_executions == 0
    assert not controller.is_under_pressure

    # capacity is back once the first call has completed
    log = []

    await controller.execute(_record, log, "third")

    assert log == ["third"]
    assert overflows == [True]


async def test_buffer():
    full = []
    hooks = flowlogic.Hooks(on_buffer_full=lambda: full.append(True))
    controller = flowlogic.BackpressureController(
        "buffer",
        max_concurrent=1,
        buffer_size=2,
        hooks=hooks,
    )
    gate = anyio.Event()
    log = []

    async with anyio.create_task_group() as tg:
        tg.start_soon(controller.execute, gate.wait)

        await anyio.sleep(0.01)

        for name in "ab":
            tg.start_soon(controller.execute, _record, log, name)

            await anyio.sleep(0.01)

        assert controller.buffered == 2

        with pytest.raises(flowlogic.CapacityExceededError):
            await controller.execute(_record, log, "c")

        gate.set()

    assert log == ["a", "b"]
    assert full == [True]
    assert controller.buffered == 0
    assert controller.active_executions == 0


async def test_drop_oldest():
    dropped = []
    hooks = flowlogic.Hooks(on_item_dropped=dropped.append)
    controller = flowlogic.BackpressureController(
        "drop_oldest",
        max_concurrent=1,
        buffer_size=1,
        hooks=hooks,
    )
    gate = anyio.Event()
    log = []
    evicted = []

    async def submit(name):
        try:
            await controller.execute(_record, log, name)
        except flowlogic.EvictedError:
            evicted.append(name)

    async with anyio.create_task_group() as tg:
        tg.start_soon(controller.execute, gate.wait)

        await anyio.sleep(0.01)

        tg.start_soon(submit, "a")

        await anyio.sleep(0.01)

        tg.start_soon(submit, "b")

        await anyio.sleep(0.01)

        assert controller.buffered == 1

        gate.set()

    assert log == ["b"]
    assert evicted == ["a"]
    assert [item.args for item in dropped] == [(log, "a")]


async def test_sample():
    dropped = []
    hooks = flowlogic.Hooks(on_item_dropped=dropped.append)
    controller = flowlogic.BackpressureController(
        "sample",
        max_concurrent=1,
        sample_rate=0.5,
        rng=_FixedRandom(0.9, 0.1),
        hooks=hooks,
    )
    gate = anyio.Event()
    log = []

    async with anyio.create_task_group() as tg:
        tg.start_soon(controller.execute, gate.wait)

        await anyio.sleep(0.01)

        with pytest.raises(flowlogic.CapacityExceededError):
            await controller.execute(_record, log, "dropped")

        tg.start_soon(controller.execute, _record, log, "sampled")

        await anyio.sleep(0.01)

        assert controller.buffered == 1

        gate.set()

    assert log == ["sampled"]
    assert [item.args for item in dropped] == [(log, "dropped")]


async def test_throttle():
    dropped = []
    hooks = flowlogic.Hooks(on_item_dropped=dropped.append)
    controller = flowlogic.BackpressureController(
        "throttle",
        max_concurrent=1,
        buffer_size=1,
        hooks=hooks,
    )
    gate = anyio.Event()
    log = []

    async with anyio.create_task_group() as tg:
        tg.start_soon(controller.execute, gate.wait)

        await anyio.sleep(0.01)

        for name in "abc":
            tg.start_soon(controller.execute, _record, log, name)

            await anyio.sleep(0.01)

        # the rest are suspended before the buffer
        assert controller.buffered == 1

        gate.set()

    assert log == ["a", "b", "c"]
    assert dropped == []


async def test_cancelled_while_buffered():
    controller = flowlogic.BackpressureController(max_concurrent=1)
    gate = anyio.Event()

    async with anyio.create_task_group() as tg:
        tg.start_soon(controller.execute, gate.wait)

        await anyio.sleep(0.01)

        with anyio.move_on_after(0.01):
            await controller.execute(anyio.sleep, 0)

        assert controller.buffered == 0

        gate.set()

    assert controller.active_executions == 0


async def test_error_releases_slot():
    controller = flowlogic.BackpressureController(max_concurrent=1)

    async def fail():
        assert controller.active_executions == 1

        raise ValueError

    with pytest.raises(ValueError):
        await controller.execute(fail)

    assert controller.active_executions == 0


async def test_decorator():
    controller = flowlogic.BackpressureController(max_concurrent=2)

    @controller
    async def work(x):
        return x * 3

    assert await work(2) == 6


class TestBackpressureController:
    def test_validation(self):
        with pytest.raises(flowlogic.InvalidConfigurationError):
            flowlogic.BackpressureController(max_concurrent=0)

        with pytest.raises(flowlogic.InvalidConfigurationError):
            flowlogic.BackpressureController(buffer_size=0)

        with pytest.raises(flowlogic.InvalidConfigurationError):
            flowlogic.BackpressureController(sample_rate=1.5)

        with pytest.raises(ValueError):
            flowlogic.BackpressureController("random")

    def test_properties(self):
        controller = flowlogic.BackpressureController(
            "drop_oldest",
            max_concurrent=3,
            buffer_size=7,
            sample_rate=0.2,
        )

        assert controller.strategy is BackpressureStrategy.DROP_OLDEST
        assert controller.max_concurrent == 3
        assert controller.buffer_capacity == 7
        assert controller.sample_rate == 0.2
        assert controller.buffered == 0
        assert not controller.is_under_pressure
        assert "active=0, buffered=0" in repr(controller)
