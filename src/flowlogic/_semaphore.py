#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2024 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Final, TypeVar

from ._enums import QueueMode
from ._errors import InvalidConfigurationError, WaitTimeoutError
from ._hooks import NOOP_HOOKS, Hooks, fire
from ._wrappers import wrap_with
from .lowlevel import WaitQueue, async_checkpoint, create_async_event
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

    from .lowlevel import WaitEntry

_T = TypeVar("_T")
_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])

LOGGER: Final[Logger] = getLogger(__name__)


def _check_timeout(timeout: float | None, /) -> None:
    if timeout is not None and not timeout >= 0:
        msg = "timeout must be >= 0 or None"
        raise InvalidConfigurationError(msg)


class Semaphore:
    """
    A counting semaphore with a configurable service order.

    Holds *capacity* permits. :meth:`acquire` takes one or waits for one;
    :meth:`release` hands the permit directly to the next waiter (according
    to *queue_mode*) or returns it to the pool. Handing over instead of
    returning means that a newcomer can never overtake a waiter.

    Only :attr:`~flowlogic.QueueMode.FIFO` guarantees arrival-order service.
    In :attr:`~flowlogic.QueueMode.PRIORITY` mode, callers pass *priority*
    to :meth:`acquire`; without it, the order is FIFO.

    Example:
      .. code:: python

        semaphore = flowlogic.Semaphore(3)

        @semaphore
        async def fetch(url):
            ...  # at most three fetches run at a time
    """

    __slots__ = (
        "__weakref__",
        "_capacity",
        "_held",
        "_hooks",
        "_timeout",
        "_waiters",
    )

    def __new__(
        cls,
        /,
        capacity: int = 1,
        queue_mode: QueueMode | str = QueueMode.FIFO,
        *,
        timeout: float | None = None,
        hooks: Hooks | None = None,
    ) -> Self:
        """..."""

        if capacity < 1:
            msg = "capacity must be >= 1"
            raise InvalidConfigurationError(msg)

        _check_timeout(timeout)

        self = object.__new__(cls)

        self._capacity = capacity
        self._held = 0
        self._hooks = NOOP_HOOKS if hooks is None else hooks
        self._timeout = timeout
        self._waiters = WaitQueue(queue_mode)

        return self

    def __getnewargs_ex__(self, /) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """
        Returns arguments that can be used to create new instances with the
        same configuration.

        The current state does not affect the arguments.
        """

        return (
            (self._capacity, self._waiters.mode),
            {"timeout": self._timeout},
        )

    def __getstate__(self, /) -> None:
        """
        Disables the use of internal state for pickling and copying.
        """

        return None

    def __copy__(self, /) -> Self:
        """..."""

        args, kwargs = self.__getnewargs_ex__()

        return self.__class__(*args, hooks=self._hooks, **kwargs)

    def __repr__(self, /) -> str:
        """..."""

        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = (
            f"{cls_repr}({self._capacity!r}, {self._waiters.mode.value!r})"
        )

        available = self._capacity - self._held

        if available > 0:
            extra = f"available={available}"
        else:
            extra = f"available={available}, waiting={len(self._waiters)}"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    async def __aenter__(self, /) -> Self:
        """..."""

        await self.acquire()

        return self

    async def __aexit__(
        self,
        /,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """..."""

        self.release()

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        """
        Decorate the coroutine function *wrapped* so that every call runs
        under a permit.
        """

        return wrap_with(self.execute, wrapped)

    def _on_wait(self, /, entry: WaitEntry) -> None:
        fire(self._hooks, "on_waiting", self._waiters.position(entry))

    async def acquire(
        self,
        /,
        *,
        blocking: bool = True,
        timeout: float | DefaultType | None = DEFAULT,
        priority: float | None = None,
    ) -> bool:
        """
        Acquire a permit.

        Returns :data:`False` only when *blocking* is false and no permit is
        free. *timeout* defaults to the one the semaphore was created with.

        Raises:
          WaitTimeoutError:
            if no permit was handed over within *timeout* seconds.
        """

        if timeout is DEFAULT:
            timeout = self._timeout

        if self._held < self._capacity and not self._waiters:
            self._held += 1

            if blocking:
                try:
                    await async_checkpoint()
                except BaseException:
                    self._release()
                    raise

            return True

        if not blocking:
            return False

        entry = self._waiters.push(
            event := create_async_event(),
            priority=priority,
        )

        self._on_wait(entry)

        success = False

        try:
            success = await event.wait(timeout)
        finally:
            if not success:
                if event.cancelled():
                    self._waiters.discard(entry)
                else:
                    self._release()

        if not success:
            LOGGER.debug("%r: acquire timed out after %r s", self, timeout)

            fire(self._hooks, "on_timeout")

            msg = f"no permit was acquired within {timeout!r} seconds"
            raise WaitTimeoutError(msg)

        return True

    def _release(self, /) -> None:
        waiters = self._waiters

        while waiters:
            if waiters.pop().event.set():
                return  # handed over

        self._held -= 1

    def release(self, /) -> None:
        """
        Release a permit.

        Raises:
          RuntimeError:
            if there is no acquired permit to release.
        """

        if self._held <= 0:
            msg = "semaphore released too many times"
            raise RuntimeError(msg)

        self._release()

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """
        Run ``await fn(*args, **kwargs)`` under a permit. The permit is
        released on every exit path.
        """

        await self.acquire()

        try:
            return await fn(*args, **kwargs)
        finally:
            self.release()

    @property
    def capacity(self, /) -> int:
        """
        The maximum number of permits.
        """

        return self._capacity

    @property
    def queue_mode(self, /) -> QueueMode:
        """..."""

        return self._waiters.mode

    @property
    def timeout(self, /) -> float | None:
        """..."""

        return self._timeout

    @property
    def held(self, /) -> int:
        """
        The current number of outstanding acquisitions.
        """

        return self._held

    @property
    def available_permits(self, /) -> int:
        """
        The current number of free permits.
        """

        return self._capacity - self._held

    @property
    def queue_length(self, /) -> int:
        """
        The current number of tasks waiting to acquire.
        """

        return len(self._waiters)
