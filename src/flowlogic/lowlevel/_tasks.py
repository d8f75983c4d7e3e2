#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from contextlib import nullcontext
from functools import partial
from inspect import iscoroutinefunction
from typing import Any, TypeVar

from wrapt import decorator, when_imported

from flowlogic.meta import replaces

from ._libraries import current_async_library

if sys.version_info >= (3, 9):
    from collections.abc import Awaitable, Callable
else:
    from typing import Awaitable, Callable

_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])

# an extra scope entered around asyncio shielding
_asyncio_shield_scope: Callable[[], Any] = nullcontext


@when_imported("anyio")
def _(anyio):
    global _asyncio_shield_scope

    # anyio scopes cancel the host task again on every loop iteration
    _asyncio_shield_scope = partial(anyio.CancelScope, shield=True)


async def _asyncio_shielded_call(wrapped, args, kwargs, /):
    from asyncio import CancelledError, ensure_future, shield

    @replaces(globals())
    async def _asyncio_shielded_call(wrapped, args, kwargs, /):
        cancellation = None

        with _asyncio_shield_scope():
            future = ensure_future(wrapped(*args, **kwargs))

            while not future.done():
                try:
                    await shield(future)
                except CancelledError as exc:
                    cancellation = exc

        if cancellation is not None:
            try:
                raise cancellation
            finally:
                del cancellation

        return future.result()

    return await _asyncio_shielded_call(wrapped, args, kwargs)


async def _trio_shielded_call(wrapped, args, kwargs, /):
    from trio import CancelScope

    @replaces(globals())
    async def _trio_shielded_call(wrapped, args, kwargs, /):
        with CancelScope(shield=True):
            return await wrapped(*args, **kwargs)

    return await _trio_shielded_call(wrapped, args, kwargs)


@decorator
async def _shielded(wrapped, instance, args, kwargs, /):
    library = current_async_library()

    if library == "asyncio":
        return await _asyncio_shielded_call(wrapped, args, kwargs)

    if library == "trio":
        return await _trio_shielded_call(wrapped, args, kwargs)

    msg = f"unsupported async library {library!r}"
    raise RuntimeError(msg)


def shield(wrapped: _CallableT, /) -> _CallableT:
    """
    Make calls to the coroutine function *wrapped* run to completion even if
    the caller is cancelled.

    The cancellation is not lost: it is raised in the caller once the call
    has finished. Controllers wrap the steps that must not be interrupted
    halfway with it, like a monitor waiter taking the lock back.
    """

    if not iscoroutinefunction(wrapped):
        msg = f"a coroutine function was expected, got {wrapped!r}"
        raise TypeError(msg)

    return _shielded(wrapped)
