#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import anyio
import pytest

import flowlogic

from flowlogic import RateLimitStrategy
from flowlogic.lowlevel import async_clock


async def _admission_times(limiter, n):
    start = async_clock()
    times = []

    async def call():
        await limiter.acquire()

        times.append(async_clock() - start)

    async with anyio.create_task_group() as tg:
        for _ in range(n):
            tg.start_soon(call)

    return sorted(times)


async def test_token_bucket_burst():
    limiter = flowlogic.RateLimiter(3, 0.1)

    times = await _admission_times(limiter, 4)

    assert times[2] < 0.05
    assert times[3] >= 0.09
    assert limiter.available_tokens == 2


async def test_token_bucket_timeout():
    timeouts = []
    hooks = flowlogic.Hooks(on_timeout=lambda: timeouts.append(True))
    limiter = flowlogic.RateLimiter(1, 1.0, hooks=hooks)

    await limiter.acquire()

    start = async_clock()

    with pytest.raises(flowlogic.WaitTimeoutError):
        await limiter.acquire(timeout=0.01)

    # known to be impossible, so no waiting at all
    assert async_clock() - start < 0.5
    assert timeouts == [True]


@pytest.mark.parametrize(
    "strategy",
    [
        RateLimitStrategy.FIXED_WINDOW,
        RateLimitStrategy.SLIDING_WINDOW,
    ],
)
async def test_window(strategy):
    limiter = flowlogic.RateLimiter(2, 0.05, strategy)

    times = await _admission_times(limiter, 3)

    assert times[1] < 0.04
    assert times[2] >= 0.045
    assert limiter.calls_in_window == 2


async def test_window_timeout():
    limiter = flowlogic.RateLimiter(1, 1.0, "sliding_window")

    await limiter.acquire()

    with pytest.raises(flowlogic.WaitTimeoutError):
        await limiter.acquire(timeout=0.01)

    assert limiter.calls_in_window == 1


async def test_leaky_bucket():
    waiting = []
    hooks = flowlogic.Hooks(on_waiting=waiting.append)
    limiter = flowlogic.RateLimiter(2, 0.1, "leaky_bucket", hooks=hooks)

    times = await _admission_times(limiter, 3)

    # one call per window / max_calls seconds
    assert times[1] - times[0] >= 0.04
    assert times[2] - times[1] >= 0.04
    assert sorted(waiting) == [1, 2, 3]

    await anyio.sleep(0.15)

    assert limiter.timer is None
    assert limiter.queue_length == 0


async def test_leaky_bucket_timeout():
    limiter = flowlogic.RateLimiter(1, 0.1, "leaky_bucket")

    with pytest.raises(flowlogic.WaitTimeoutError):
        await limiter.acquire(timeout=0.01)

    assert limiter.queue_length == 0

    limiter.dispose()

    assert limiter.timer is None


async def test_dispose():
    limiter = flowlogic.RateLimiter(1, 1.0, "leaky_bucket")

    async with anyio.create_task_group() as tg:
        tg.start_soon(limiter.acquire)

        await anyio.sleep(0.01)

        timer = limiter.timer

        assert timer is not None

        limiter.dispose()

        assert timer.cancelled
        assert limiter.queue_length == 1

        tg.cancel_scope.cancel()

    assert limiter.queue_length == 0


@pytest.mark.parametrize(
    "strategy",
    [
        flowlogic.RateLimitStrategy.TOKEN_BUCKET,
        flowlogic.RateLimitStrategy.FIXED_WINDOW,
        flowlogic.RateLimitStrategy.SLIDING_WINDOW,
    ],
)
async def test_reset(strategy):
    limiter = flowlogic.RateLimiter(2, 10.0, strategy)

    await limiter.acquire()
    await limiter.acquire()

    with pytest.raises(flowlogic.WaitTimeoutError):
        await limiter.acquire(timeout=0.01)

    limiter.reset()

    assert limiter.available_tokens == 2
    assert limiter.calls_in_window == 0
    assert limiter.queue_length == 0

    with anyio.fail_after(1):
        await limiter.acquire()
        await limiter.acquire()


async def test_reset_keeps_leaky_waiters():
    limiter = flowlogic.RateLimiter(2, 10.0, "leaky_bucket")

    async with anyio.create_task_group() as tg:
        tg.start_soon(limiter.acquire)

        await anyio.sleep(0.01)

        assert limiter.queue_length == 1

        limiter.reset()

        assert limiter.queue_length == 1
        assert limiter.available_tokens == 2
        assert limiter.calls_in_window == 0

        tg.cancel_scope.cancel()

    limiter.dispose()

    assert limiter.queue_length == 0


async def test_negative_timeout():
    limiter = flowlogic.RateLimiter(1, 1.0)

    with pytest.raises(ValueError):
        await limiter.acquire(timeout=-1)


async def test_decorator_and_context():
    limiter = flowlogic.RateLimiter(5, 1.0)

    @limiter
    async def work(x):
        return x

    assert await work(1) == 1
    assert await limiter.execute(work.__wrapped__, 2) == 2

    async with limiter:
        pass

    assert limiter.available_tokens == 2


class TestRateLimiter:
    def test_validation(self):
        with pytest.raises(flowlogic.InvalidConfigurationError):
            flowlogic.RateLimiter(0, 1.0)

        with pytest.raises(flowlogic.InvalidConfigurationError):
            flowlogic.RateLimiter(1, 0)

        with pytest.raises(ValueError):
            flowlogic.RateLimiter(1, 1.0, "random")

    def test_properties(self):
        limiter = flowlogic.RateLimiter(10, 2.0, "fixed_window")

        assert limiter.max_calls == 10
        assert limiter.window == 2.0
        assert limiter.strategy is RateLimitStrategy.FIXED_WINDOW
        assert limiter.timer is None
        assert "calls=0" in repr(limiter)
