#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from inspect import isawaitable, iscoroutinefunction
from typing import Any, TypeVar

from wrapt import decorator

if sys.version_info >= (3, 9):
    from collections.abc import Awaitable, Callable
else:
    from typing import Awaitable, Callable

_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])


def wrap_with(
    execute: Callable[..., Awaitable[Any]],
    wrapped: _CallableT,
    /,
) -> _CallableT:
    """
    Wrap the coroutine function *wrapped* so that every call goes through
    ``execute(wrapped, *args, **kwargs)``.

    The wrapper keeps the signature of *wrapped* and works for methods too.
    """

    if not iscoroutinefunction(wrapped):
        msg = f"a coroutine function was expected, got {wrapped!r}"
        raise TypeError(msg)

    @decorator
    async def _wrapper(wrapped, instance, args, kwargs, /):
        return await execute(wrapped, *args, **kwargs)

    return _wrapper(wrapped)


async def call_action(action: Callable[[], object], /) -> None:
    """Call *action* and await its result if it is awaitable."""

    result = action()

    if isawaitable(result):
        await result
