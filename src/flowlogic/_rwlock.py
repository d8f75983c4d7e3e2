#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from collections import deque
from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Final, TypeVar

from ._errors import InvalidConfigurationError, WaitTimeoutError
from ._hooks import NOOP_HOOKS, fire
from ._wrappers import wrap_with
from .lowlevel import async_checkpoint, create_async_event
from .meta import DEFAULT, DefaultType

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

LOGGER: Final[Logger] = getLogger(__name__)


class RWLock:
    """
    A reader-writer lock: any number of readers, or exactly one writer.

    A reader is admitted if no writer holds the lock and, with
    *writer_priority*, no writer is queued. A writer is admitted if nobody
    holds the lock. On release, queued writers are served one at a time
    first; once no writer can run, all queued readers are admitted together.

    *writer_priority* guarantees writer progress under read-heavy load at
    the cost of reader latency. Without it, a steady stream of readers can
    starve writers.

    Example:
      .. code:: python

        rwlock = flowlogic.RWLock(writer_priority=True)

        @rwlock.reader
        async def lookup(key):
            return table[key]

        @rwlock.writer
        async def store(key, value):
            table[key] = value
    """

    __slots__ = (
        "__weakref__",
        "_hooks",
        "_read_waiters",
        "_reader",
        "_readers",
        "_timeout",
        "_write_waiters",
        "_writer",
        "_writer_priority",
        "_writing",
    )

    def __new__(
        cls,
        /,
        *,
        writer_priority: bool = False,
        timeout: float | None = None,
        hooks: Hooks | None = None,
    ) -> Self:
        """..."""

        if timeout is not None and not timeout >= 0:
            msg = "timeout must be >= 0 or None"
            raise InvalidConfigurationError(msg)

        self = object.__new__(cls)

        self._hooks = NOOP_HOOKS if hooks is None else hooks
        self._timeout = timeout
        self._writer_priority = writer_priority

        self._readers = 0
        self._writing = False

        self._read_waiters = deque()
        self._write_waiters = deque()

        self._reader = ReaderView(self)
        self._writer = WriterView(self)

        return self

    def __getnewargs_ex__(self, /) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """..."""

        return (
            (),
            {
                "writer_priority": self._writer_priority,
                "timeout": self._timeout,
            },
        )

    def __getstate__(self, /) -> None:
        """
        Disables the use of internal state for pickling and copying.
        """

        return None

    def __copy__(self, /) -> Self:
        """..."""

        return self.__class__(
            writer_priority=self._writer_priority,
            timeout=self._timeout,
            hooks=self._hooks,
        )

    def __repr__(self, /) -> str:
        """..."""

        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = f"{cls_repr}(writer_priority={self._writer_priority!r})"

        if self._writing:
            state = "writing"
        elif self._readers:
            state = f"reading, readers={self._readers}"
        else:
            state = "unlocked"

        extra = (
            f"{state}, read_waiting={len(self._read_waiters)},"
            f" write_waiting={len(self._write_waiters)}"
        )

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    def _can_read(self, /) -> bool:
        if self._writing:
            return False

        return not (self._writer_priority and self._write_waiters)

    def _can_write(self, /) -> bool:
        return not self._writing and not self._readers

    def _process(self, /) -> None:
        if self._writing:
            return

        if not self._readers:
            write_waiters = self._write_waiters

            while write_waiters:
                if write_waiters.popleft().set():
                    self._writing = True

                    return

        if self._writer_priority and self._write_waiters:
            return

        read_waiters = self._read_waiters

        while read_waiters:
            if read_waiters.popleft().set():
                self._readers += 1

    async def _wait(
        self,
        /,
        waiters: deque[Any],
        release: Callable[[], None],
        timeout: float | None,
    ) -> None:
        waiters.append(event := create_async_event())

        fire(self._hooks, "on_waiting", len(waiters))

        success = False

        try:
            success = await event.wait(timeout)
        finally:
            if not success:
                if event.cancelled():
                    try:
                        waiters.remove(event)
                    except ValueError:
                        pass
                    else:
                        # readers held back by this writer may go now
                        self._process()
                else:
                    release()

        if not success:
            LOGGER.debug("%r: acquire timed out after %r s", self, timeout)

            fire(self._hooks, "on_timeout")

            msg = f"the lock was not acquired within {timeout!r} seconds"
            raise WaitTimeoutError(msg)

    async def acquire_read(
        self,
        /,
        *,
        blocking: bool = True,
        timeout: float | DefaultType | None = DEFAULT,
    ) -> bool:
        """
        Acquire the lock for reading.

        Returns :data:`False` only when *blocking* is false and the lock
        cannot be acquired immediately.

        Raises:
          WaitTimeoutError:
            if the lock was not acquired within *timeout* seconds.
        """

        if timeout is DEFAULT:
            timeout = self._timeout

        if self._can_read():
            self._readers += 1

            if blocking:
                try:
                    await async_checkpoint()
                except BaseException:
                    self.release_read()
                    raise

            return True

        if not blocking:
            return False

        await self._wait(self._read_waiters, self.release_read, timeout)

        return True

    async def acquire_write(
        self,
        /,
        *,
        blocking: bool = True,
        timeout: float | DefaultType | None = DEFAULT,
    ) -> bool:
        """
        Acquire the lock for writing. See :meth:`acquire_read`.
        """

        if timeout is DEFAULT:
            timeout = self._timeout

        if self._can_write() and not self._write_waiters:
            self._writing = True

            if blocking:
                try:
                    await async_checkpoint()
                except BaseException:
                    self.release_write()
                    raise

            return True

        if not blocking:
            return False

        await self._wait(self._write_waiters, self.release_write, timeout)

        return True

    def release_read(self, /) -> None:
        """
        Release a read acquisition.

        Raises:
          RuntimeError:
            if the lock is not held for reading.
        """

        if self._readers <= 0:
            msg = "release unlocked lock"
            raise RuntimeError(msg)

        self._readers -= 1

        self._process()

    def release_write(self, /) -> None:
        """
        Release the write acquisition.

        Raises:
          RuntimeError:
            if the lock is not held for writing.
        """

        if not self._writing:
            msg = "release unlocked lock"
            raise RuntimeError(msg)

        self._writing = False

        self._process()

    async def read(
        self,
        body: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """
        Run ``await body(*args, **kwargs)`` holding the lock for reading.
        """

        await self.acquire_read()

        try:
            return await body(*args, **kwargs)
        finally:
            self.release_read()

    async def write(
        self,
        body: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """
        Run ``await body(*args, **kwargs)`` holding the lock for writing.
        """

        await self.acquire_write()

        try:
            return await body(*args, **kwargs)
        finally:
            self.release_write()

    @property
    def reader(self, /) -> ReaderView:
        """
        The read side of the lock, usable with ``async with`` and as a
        decorator.
        """

        return self._reader

    @property
    def writer(self, /) -> WriterView:
        """
        The write side of the lock, usable with ``async with`` and as a
        decorator.
        """

        return self._writer

    @property
    def writer_priority(self, /) -> bool:
        """..."""

        return self._writer_priority

    @property
    def reader_count(self, /) -> int:
        """
        The current number of tasks holding the lock for reading.
        """

        return self._readers

    @property
    def writing(self, /) -> bool:
        """
        Whether a task holds the lock for writing.
        """

        return self._writing

    @property
    def read_waiting(self, /) -> int:
        """..."""

        return len(self._read_waiters)

    @property
    def write_waiting(self, /) -> int:
        """..."""

        return len(self._write_waiters)


class ReaderView:
    """..."""

    __slots__ = ("_lock",)

    def __init__(self, /, lock: RWLock) -> None:
        self._lock = lock

    def __repr__(self, /) -> str:
        return f"<reader of {self._lock!r}>"

    async def __aenter__(self, /) -> Self:
        await self._lock.acquire_read()

        return self

    async def __aexit__(
        self,
        /,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self._lock.release_read()

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        return wrap_with(self._lock.read, wrapped)


class WriterView:
    """..."""

    __slots__ = ("_lock",)

    def __init__(self, /, lock: RWLock) -> None:
        self._lock = lock

    def __repr__(self, /) -> str:
        return f"<writer of {self._lock!r}>"

    async def __aenter__(self, /) -> Self:
        await self._lock.acquire_write()

        return self

    async def __aexit__(
        self,
        /,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self._lock.release_write()

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        return wrap_with(self._lock.write, wrapped)
