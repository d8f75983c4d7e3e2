#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import os

from typing import Final

from flowlogic.meta import replaces

from ._libraries import current_async_library


def _checkpoints_enabled(library: str, /, *, default: bool) -> bool:
    # FLOWLOGIC_<LIBRARY>_CHECKPOINTS wins over FLOWLOGIC_ASYNC_CHECKPOINTS
    for variable in (
        f"FLOWLOGIC_{library.upper()}_CHECKPOINTS",
        "FLOWLOGIC_ASYNC_CHECKPOINTS",
    ):
        value = os.getenv(variable)

        if value is not None:
            return bool(value)

    return default


_CHECKPOINTS_ENABLED: Final[dict[str, bool]] = {
    "asyncio": _checkpoints_enabled("asyncio", default=False),
    "trio": _checkpoints_enabled("trio", default=True),
}


async def _asyncio_checkpoint() -> None:
    from asyncio import sleep

    @replaces(globals())
    async def _asyncio_checkpoint():
        await sleep(0)

    await _asyncio_checkpoint()


async def _trio_checkpoint() -> None:
    global _trio_checkpoint

    from trio.lowlevel import checkpoint as _trio_checkpoint

    await _trio_checkpoint()


def async_checkpoint_enabled() -> bool:
    """
    Return :data:`True` if :func:`async_checkpoint` does anything for the
    current async library.

    By default, it does on Trio and does not on asyncio, where an extra
    round trip through the event loop is expensive. Set
    ``FLOWLOGIC_ASYNC_CHECKPOINTS``, or ``FLOWLOGIC_ASYNCIO_CHECKPOINTS`` and
    ``FLOWLOGIC_TRIO_CHECKPOINTS`` for a single library, to a non-empty
    value to enable them, or to an empty one to disable them.
    """

    library = current_async_library(failsafe=True)

    return _CHECKPOINTS_ENABLED.get(library, False)


async def async_checkpoint(*, force: bool = False) -> None:
    """
    Yield to the scheduler and let a pending cancellation in.

    Every blocking operation of a controller that completes without waiting
    calls it, so cancellation is observed the same way whether the caller
    was suspended or not. With *force*, it checkpoints even when
    checkpoints are disabled.
    """

    library = current_async_library()

    if library == "asyncio":
        if force or _CHECKPOINTS_ENABLED["asyncio"]:
            await _asyncio_checkpoint()
    elif library == "trio":
        if force or _CHECKPOINTS_ENABLED["trio"]:
            await _trio_checkpoint()
    else:
        msg = f"unsupported async library {library!r}"
        raise RuntimeError(msg)
