#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import logging

import anyio
import pytest

import flowlogic


async def test_rendezvous():
    barrier = flowlogic.Barrier(3)
    indices = []
    passed = []

    async def party():
        indices.append(await barrier.wait())
        passed.append(barrier.waiting)

    async with anyio.create_task_group() as tg:
        for _ in range(2):
            tg.start_soon(party)

        await anyio.sleep(0.01)

        assert barrier.arrived_count == 2
        assert barrier.waiting == 2
        assert passed == []

        tg.start_soon(party)

    assert sorted(indices) == [0, 1, 2]
    assert passed == [0, 0, 0]
    assert barrier.arrived_count == 0


async def test_single_party():
    barrier = flowlogic.Barrier(1, cyclic=True)

    assert await barrier.wait() == 0
    assert await barrier == 0


async def test_action():
    calls = []

    async def action():
        calls.append(barrier.waiting)

    barrier = flowlogic.Barrier(2, action=action)

    async with anyio.create_task_group() as tg:
        tg.start_soon(barrier.wait)
        tg.start_soon(barrier.wait)

    assert calls == [0]


async def test_sync_action():
    calls = []
    barrier = flowlogic.Barrier(2, action=lambda: calls.append(True))

    async with anyio.create_task_group() as tg:
        tg.start_soon(barrier.wait)
        tg.start_soon(barrier.wait)

    assert calls == [True]


async def test_failing_action(caplog):
    def action():
        raise ZeroDivisionError

    barrier = flowlogic.Barrier(2, action=action)
    errors = []

    async def party():
        try:
            await barrier.wait()
        except (ZeroDivisionError, flowlogic.BrokenBarrierError) as exc:
            errors.append(type(exc))

    with caplog.at_level(logging.ERROR, logger="flowlogic"):
        async with anyio.create_task_group() as tg:
            tg.start_soon(party)

            await anyio.sleep(0.01)

            tg.start_soon(party)

    # the completing party fails first, with the action's own error
    assert errors == [ZeroDivisionError, flowlogic.BrokenBarrierError]
    assert barrier.broken

    records = [
        record
        for record in caplog.records
        if "action failed" in record.getMessage()
    ]

    assert len(records) == 1
    assert records[0].exc_info[0] is ZeroDivisionError


async def test_cyclic():
    barrier = flowlogic.Barrier(2, cyclic=True)
    rounds = []

    async def party():
        for i in range(3):
            await barrier.wait()

            rounds.append(i)

    async with anyio.create_task_group() as tg:
        tg.start_soon(party)
        tg.start_soon(party)

    assert sorted(rounds) == [0, 0, 1, 1, 2, 2]
    assert not barrier.broken


async def test_single_use():
    barrier = flowlogic.Barrier(1)

    assert await barrier.wait() == 0
    assert barrier.broken

    with pytest.raises(flowlogic.BrokenBarrierError):
        await barrier.wait()

    barrier.reset()

    assert not barrier.broken
    assert await barrier.wait() == 0


async def test_timeout_breaks():
    timeouts = []
    hooks = flowlogic.Hooks(on_timeout=lambda: timeouts.append(True))
    barrier = flowlogic.Barrier(3, hooks=hooks)
    errors = []

    async def party(timeout):
        try:
            await barrier.wait(timeout=timeout)
        except flowlogic.WaitTimeoutError as exc:
            errors.append(str(exc))

    async with anyio.create_task_group() as tg:
        tg.start_soon(party, None)

        await anyio.sleep(0.01)

        tg.start_soon(party, 0.01)

    assert len(errors) == 2
    assert "another party timed out" in errors
    assert timeouts == [True]
    assert barrier.broken

    with pytest.raises(flowlogic.BrokenBarrierError):
        await barrier.wait()


async def test_cancelled_party_breaks():
    barrier = flowlogic.Barrier(3)
    errors = []

    async def party():
        try:
            await barrier.wait()
        except flowlogic.BrokenBarrierError:
            errors.append(True)

    async with anyio.create_task_group() as tg:
        tg.start_soon(party)

        with anyio.move_on_after(0.01):
            await barrier.wait()

    assert errors == [True]
    assert barrier.broken


async def test_reset_breaks_waiters():
    barrier = flowlogic.Barrier(2, cyclic=True)
    errors = []

    async def party():
        try:
            await barrier.wait()
        except flowlogic.BrokenBarrierError:
            errors.append(True)

    async with anyio.create_task_group() as tg:
        tg.start_soon(party)

        await anyio.sleep(0.01)

        barrier.reset()

    assert errors == [True]
    assert not barrier.broken
    assert barrier.arrived_count == 0


async def test_execute():
    barrier = flowlogic.Barrier(2)
    results = []

    @barrier
    async def compute(x):
        return x * x

    async def run(x):
        results.append(await compute(x))

    async with anyio.create_task_group() as tg:
        tg.start_soon(run, 2)
        tg.start_soon(run, 3)

    assert sorted(results) == [4, 9]


class TestBarrier:
    def test_validation(self):
        with pytest.raises(flowlogic.InvalidConfigurationError):
            flowlogic.Barrier(0)

        with pytest.raises(flowlogic.InvalidConfigurationError):
            flowlogic.Barrier(2, timeout=-1)

    def test_properties(self):
        barrier = flowlogic.Barrier(4, cyclic=True)

        assert barrier.parties == 4
        assert barrier.cyclic
        assert not barrier.broken
        assert barrier.waiting == 0
