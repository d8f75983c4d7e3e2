#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

from math import isinf, isnan

from flowlogic.meta import replaces

from ._libraries import current_async_library


def _asyncio_clock() -> float:
    from asyncio import get_running_loop

    @replaces(globals())
    def _asyncio_clock():
        return get_running_loop().time()

    return _asyncio_clock()


def _trio_clock() -> float:
    global _trio_clock

    from trio import current_time as _trio_clock

    return _trio_clock()


async def _asyncio_sleep(seconds: float, /) -> None:
    from asyncio import get_running_loop, sleep

    @replaces(globals())
    async def _asyncio_sleep(seconds, /):
        if isinf(seconds):
            # a timer at infinity overflows on some event loops
            await get_running_loop().create_future()
        else:
            await sleep(seconds)

    await _asyncio_sleep(seconds)


async def _trio_sleep(seconds: float, /) -> None:
    global _trio_sleep

    from trio import sleep as _trio_sleep

    await _trio_sleep(seconds)


def async_clock() -> float:
    """
    Return the current time of the running event loop, in seconds.

    Deadlines, window boundaries and enqueue timestamps kept by the
    controllers are all measured on this clock, so compute your own
    deadlines with it too.
    """

    library = current_async_library()

    if library == "asyncio":
        return _asyncio_clock()

    if library == "trio":
        return _trio_clock()

    msg = f"unsupported async library {library!r}"
    raise RuntimeError(msg)


async def async_sleep(seconds: float, /) -> None:
    """
    Suspend the current task for *seconds*.

    :data:`math.inf` sleeps until cancelled.

    Raises:
      ValueError:
        if *seconds* is negative or NaN.
    """

    if isnan(seconds) or seconds < 0:
        msg = f"seconds must be a non-negative number, got {seconds!r}"
        raise ValueError(msg)

    library = current_async_library()

    if library == "asyncio":
        await _asyncio_sleep(seconds)
    elif library == "trio":
        await _trio_sleep(seconds)
    else:
        msg = f"unsupported async library {library!r}"
        raise RuntimeError(msg)


async def async_sleep_until(deadline: float, /) -> None:
    """
    Suspend the current task until :func:`async_clock` reaches *deadline*.

    A deadline in the past is a zero-length sleep, not an error.

    Raises:
      ValueError:
        if *deadline* is NaN.
    """

    if isnan(deadline):
        msg = "deadline must not be NaN"
        raise ValueError(msg)

    await async_sleep(max(0.0, deadline - async_clock()))
