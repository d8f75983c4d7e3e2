#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

from typing import Any, NoReturn, Protocol, final

from ._libraries import current_async_library


class AsyncWaiter(Protocol):
    """
    A one-shot suspension point for exactly one task.

    The task calls :meth:`wait`, and any other code running on the same event
    loop calls :meth:`wake` to resume it. A wake-up that arrives after the
    waiter has stopped waiting (because of a timeout or a cancellation) is
    ignored.
    """

    __slots__ = ()

    async def wait(self, /, timeout: float | None = None) -> bool:
        """
        Suspend until woken. Return :data:`False` if *timeout* seconds have
        elapsed first.
        """

    def wake(self, /) -> None:
        """..."""


def _create_asyncio_waiter() -> AsyncWaiter:
    global _create_asyncio_waiter

    from asyncio import get_running_loop

    def _expire(future):
        if not future.done():
            future.set_result(False)

    @final
    class _AsyncioWaiter(AsyncWaiter):
        __slots__ = (
            "__future",
            "__loop",
        )

        def __init__(self, /) -> None:
            self.__future = None
            self.__loop = get_running_loop()

        def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
            bcs = _AsyncioWaiter
            bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

            msg = f"type '{bcs_repr}' is not an acceptable base type"
            raise TypeError(msg)

        def __reduce__(self, /) -> NoReturn:
            msg = f"cannot reduce {self!r}"
            raise TypeError(msg)

        async def wait(self, /, timeout: float | None = None) -> bool:
            self.__future = future = self.__loop.create_future()

            if timeout is not None:
                handle = self.__loop.call_later(timeout, _expire, future)
            else:
                handle = None

            try:
                return await future
            finally:
                self.__future = None

                if handle is not None:
                    handle.cancel()

        def wake(self, /) -> None:
            future = self.__future

            if future is not None and not future.done():
                future.set_result(True)

    _create_asyncio_waiter = _AsyncioWaiter

    return _create_asyncio_waiter()


def _create_trio_waiter() -> AsyncWaiter:
    global _create_trio_waiter

    from trio import move_on_after
    from trio.lowlevel import (
        Abort,
        current_task,
        reschedule,
        wait_task_rescheduled,
    )

    @final
    class _TrioWaiter(AsyncWaiter):
        __slots__ = ("__task",)

        def __init__(self, /) -> None:
            self.__task = None

        def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
            bcs = _TrioWaiter
            bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

            msg = f"type '{bcs_repr}' is not an acceptable base type"
            raise TypeError(msg)

        def __reduce__(self, /) -> NoReturn:
            msg = f"cannot reduce {self!r}"
            raise TypeError(msg)

        def __abort(self, /, raise_cancel: Any) -> Abort:
            # the task will be rescheduled by trio itself, so a later wake()
            # must not touch it
            self.__task = None

            return Abort.SUCCEEDED

        async def wait(self, /, timeout: float | None = None) -> bool:
            self.__task = current_task()

            try:
                if timeout is None:
                    await wait_task_rescheduled(self.__abort)

                    return True

                with move_on_after(timeout):
                    await wait_task_rescheduled(self.__abort)

                    return True

                return False
            finally:
                self.__task = None

        def wake(self, /) -> None:
            task = self.__task

            if task is not None:
                self.__task = None

                reschedule(task)

    _create_trio_waiter = _TrioWaiter

    return _create_trio_waiter()


def create_async_waiter() -> AsyncWaiter:
    """..."""

    library = current_async_library()

    if library == "asyncio":
        return _create_asyncio_waiter()

    if library == "trio":
        return _create_trio_waiter()

    msg = f"unsupported async library {library!r}"
    raise RuntimeError(msg)
