#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2024 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from collections import deque
from typing import TYPE_CHECKING, Any, TypeVar

from ._lock import Lock
from ._wrappers import wrap_with
from .lowlevel import async_clock, create_async_event, shield

if sys.version_info >= (3, 9):
    from collections.abc import Awaitable, Callable
else:
    from typing import Awaitable, Callable

if TYPE_CHECKING:
    from types import TracebackType

    if sys.version_info >= (3, 11):
        from typing import Self
    else:
        from typing_extensions import Self

    from ._hooks import Hooks

_T = TypeVar("_T")
_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])


class Monitor:
    """
    A mutex with condition waiting.

    A task that holds the monitor may suspend until some predicate over the
    shared state changes, releasing the monitor while it waits. Tasks that
    change the state call :meth:`notify` or :meth:`notify_all`.

    Example:
      .. code:: python

        monitor = flowlogic.Monitor()
        items = []

        async def consume():
            async with monitor:
                await monitor.wait_while(lambda: not items)

                return items.pop()

        async def produce(item):
            async with monitor:
                items.append(item)
                monitor.notify()
    """

    __slots__ = (
        "__weakref__",
        "_conditions",
        "_lock",
        "_reacquire",
    )

    def __new__(cls, /, *, hooks: Hooks | None = None) -> Self:
        """..."""

        self = object.__new__(cls)

        self._conditions = deque()
        self._lock = Lock(hooks=hooks)
        self._reacquire = shield(self._lock.acquire)

        return self

    def __repr__(self, /) -> str:
        """..."""

        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = f"{cls_repr}()"

        if self._lock.locked:
            extra = f"locked, waiting={len(self._conditions)}"
        else:
            extra = f"unlocked, waiting={len(self._conditions)}"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    async def __aenter__(self, /) -> Self:
        """..."""

        await self._lock.acquire()

        return self

    async def __aexit__(
        self,
        /,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """..."""

        self._lock.release()

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        """..."""

        return wrap_with(self.synchronized, wrapped)

    async def synchronized(
        self,
        body: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """
        Run ``await body(*args, **kwargs)`` while holding the monitor.
        """

        async with self:
            return await body(*args, **kwargs)

    async def wait_while(
        self,
        predicate: Callable[[], object],
        /,
        *,
        timeout: float | None = None,
    ) -> bool:
        """
        Wait while *predicate* returns a true value.

        Must be called while holding the monitor. The monitor is released for
        the duration of each wait and re-acquired before *predicate* is
        checked again, so spurious wake-ups are harmless.

        Returns :data:`False` if the predicate still held when *timeout*
        seconds elapsed. The monitor is held again in either case.

        Raises:
          RuntimeError:
            if the monitor is not held.
        """

        if not self._lock.locked:
            msg = "cannot wait on un-acquired monitor"
            raise RuntimeError(msg)

        if timeout is not None:
            deadline = async_clock() + timeout
        else:
            deadline = None

        while predicate():
            if deadline is not None:
                remaining = deadline - async_clock()

                if remaining <= 0:
                    return False
            else:
                remaining = None

            self._conditions.append(event := create_async_event())
            self._lock.release()

            try:
                await event.wait(remaining)
            finally:
                if event.cancelled():
                    try:
                        self._conditions.remove(event)
                    except ValueError:
                        pass

                await self._reacquire(timeout=None)

        return True

    async def wait_until(
        self,
        predicate: Callable[[], object],
        /,
        *,
        timeout: float | None = None,
    ) -> bool:
        """
        Wait until *predicate* returns a true value. See :meth:`wait_while`.
        """

        return await self.wait_while(lambda: not predicate(), timeout=timeout)

    def notify(self, /) -> int:
        """
        Wake up the oldest waiting task. Return the number of tasks woken.
        """

        conditions = self._conditions

        while conditions:
            if conditions.popleft().set():
                return 1

        return 0

    def notify_all(self, /) -> int:
        """
        Wake up all waiting tasks. Return the number of tasks woken.
        """

        notified = 0
        conditions = self._conditions

        while conditions:
            if conditions.popleft().set():
                notified += 1

        return notified

    @property
    def locked(self, /) -> bool:
        """
        Whether the monitor is currently held.
        """

        return self._lock.locked

    @property
    def waiting(self, /) -> int:
        """
        The current number of tasks waiting for a notification.
        """

        return len(self._conditions)
