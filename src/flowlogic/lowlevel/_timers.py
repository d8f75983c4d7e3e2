#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from logging import Logger, getLogger
from typing import TYPE_CHECKING, Final

from ._libraries import current_async_library

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import Callable
    else:
        from typing import Callable

LOGGER: Final[Logger] = getLogger(__name__)


class PeriodicTimer:
    """
    A handle to a callback that the running event loop invokes every
    *interval* seconds.

    The callback stops the timer by returning a false value. An exception
    raised by the callback is logged and also stops the timer.
    """

    __slots__ = (
        "__weakref__",
        "_callback",
        "_cancelled",
        "_interval",
    )

    def __init__(
        self,
        /,
        interval: float,
        callback: Callable[[], object],
    ) -> None:
        self._callback = callback
        self._cancelled = False
        self._interval = interval

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = f"{cls_repr}({self._interval!r}, {self._callback!r})"

        if self._cancelled:
            extra = "cancelled"
        else:
            extra = "running"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    def _fire(self, /) -> bool:
        if self._cancelled:
            return False

        try:
            keep_running = self._callback()
        except Exception:
            LOGGER.exception("exception calling callback for %r", self)

            keep_running = False

        if not keep_running:
            self._cancelled = True

        return not self._cancelled

    def cancel(self, /) -> None:
        """Stop the timer. Does nothing if it is already stopped."""

        self._cancelled = True

    @property
    def cancelled(self, /) -> bool:
        """..."""

        return self._cancelled

    @property
    def interval(self, /) -> float:
        """..."""

        return self._interval


def _call_periodically_asyncio(
    interval: float,
    callback: Callable[[], object],
    /,
) -> PeriodicTimer:
    global _call_periodically_asyncio

    from asyncio import get_running_loop

    class _AsyncioTimer(PeriodicTimer):
        __slots__ = (
            "_deadline",
            "_handle",
            "_loop",
        )

        def __init__(self, /, interval, callback):
            super().__init__(interval, callback)

            self._loop = loop = get_running_loop()
            self._deadline = loop.time() + interval
            self._handle = loop.call_at(self._deadline, self._tick)

        def _tick(self, /):
            self._handle = None

            if self._fire():
                # a late tick never fires twice in a row
                self._deadline = max(
                    self._deadline + self._interval,
                    self._loop.time(),
                )
                self._handle = self._loop.call_at(self._deadline, self._tick)

        def cancel(self, /):
            super().cancel()

            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    _call_periodically_asyncio = _AsyncioTimer

    return _call_periodically_asyncio(interval, callback)


def _call_periodically_trio(
    interval: float,
    callback: Callable[[], object],
    /,
) -> PeriodicTimer:
    global _call_periodically_trio

    from trio import CancelScope, current_time, sleep_until
    from trio.lowlevel import spawn_system_task

    class _TrioTimer(PeriodicTimer):
        __slots__ = ("_scope",)

        def __init__(self, /, interval, callback):
            super().__init__(interval, callback)

            self._scope = CancelScope()

            spawn_system_task(
                self._run,
                name=f"{self.__class__.__qualname__}._run",
            )

        async def _run(self, /):
            with self._scope:
                deadline = current_time()

                while True:
                    deadline = max(deadline + self._interval, current_time())

                    await sleep_until(deadline)

                    if not self._fire():
                        break

        def cancel(self, /):
            super().cancel()

            self._scope.cancel()

    _call_periodically_trio = _TrioTimer

    return _call_periodically_trio(interval, callback)


def call_periodically(
    interval: float,
    callback: Callable[[], object],
    /,
) -> PeriodicTimer:
    """
    Start calling *callback* every *interval* seconds on the running event
    loop, and return the timer handle.
    """

    if not interval > 0:
        msg = "interval must be > 0"
        raise ValueError(msg)

    library = current_async_library()

    if library == "asyncio":
        return _call_periodically_asyncio(interval, callback)

    if library == "trio":
        return _call_periodically_trio(interval, callback)

    msg = f"unsupported async library {library!r}"
    raise RuntimeError(msg)
