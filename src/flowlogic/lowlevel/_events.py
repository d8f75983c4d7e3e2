#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from typing import TYPE_CHECKING, Any, final

from ._waiters import create_async_waiter

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import Generator
    else:
        from typing import Generator

    from ._waiters import AsyncWaiter


@final
class AsyncEvent:
    """
    A one-shot continuation handle owned by exactly one waiting task.

    Controllers put such events into their wait queues and resume the owner
    by calling :meth:`set`. The return value of :meth:`set` tells the caller
    whether the owner will actually observe the event: it is :data:`False`
    for an event that has already been set or whose owner has given up
    waiting (see :meth:`cancelled`), and in that case whatever was meant to be
    handed over must be passed on to someone else.
    """

    __slots__ = (
        "__weakref__",
        "_is_cancelled",
        "_is_set",
        "_waiter",
    )

    _is_cancelled: bool
    _is_set: bool
    _waiter: AsyncWaiter | None

    def __init__(self, /) -> None:
        self._is_cancelled = False
        self._is_set = False
        self._waiter = None

    def __init_subclass__(cls, /, **kwargs: Any) -> None:
        bcs = AsyncEvent
        bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

        msg = f"type '{bcs_repr}' is not an acceptable base type"
        raise TypeError(msg)

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        if self._is_set:
            state = "set"
        elif self._is_cancelled:
            state = "cancelled"
        elif self._waiter is not None:
            state = "waiting"
        else:
            state = "unset"

        return f"<{cls_repr} at {id(self):#x} [{state}]>"

    def __bool__(self, /) -> bool:
        return self._is_set

    def __await__(self, /) -> Generator[Any, Any, bool]:
        return (yield from self.wait().__await__())

    async def wait(self, /, timeout: float | None = None) -> bool:
        """
        Wait until the event is set. Return :data:`False` if *timeout*
        seconds have elapsed first.

        After a timeout or a cancellation, the event is marked as cancelled
        unless it had been set in the meantime: a set that races a timeout
        always wins.
        """

        if self._is_set:
            return True

        if self._is_cancelled:
            return False

        if timeout is not None and timeout <= 0:
            self._is_cancelled = True

            return False

        self._waiter = waiter = create_async_waiter()

        try:
            await waiter.wait(timeout)
        finally:
            self._waiter = None

            if not self._is_set:
                self._is_cancelled = True

        return self._is_set

    def set(self, /) -> bool:
        """
        Set the event and wake up its owner.

        Return :data:`True` if the owner will observe it.
        """

        if self._is_set or self._is_cancelled:
            return False

        self._is_set = True

        if (waiter := self._waiter) is not None:
            waiter.wake()

        return True

    def is_set(self, /) -> bool:
        """..."""

        return self._is_set

    def cancel(self, /) -> bool:
        """
        Mark the event as cancelled without setting it.

        Used to retract a handle that has not been waited on yet. Return
        :data:`True` on success.
        """

        if self._is_set or self._is_cancelled:
            return False

        self._is_cancelled = True

        if (waiter := self._waiter) is not None:
            waiter.wake()

        return True

    def cancelled(self, /) -> bool:
        """..."""

        return self._is_cancelled


def create_async_event() -> AsyncEvent:
    """..."""

    return AsyncEvent()
