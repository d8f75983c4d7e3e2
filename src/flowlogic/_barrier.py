#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2024 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Final, TypeVar

from ._errors import (
    BrokenBarrierError,
    InvalidConfigurationError,
    LatchUnderflowError,
    WaitTimeoutError,
)
from ._hooks import NOOP_HOOKS, fire
from ._wrappers import call_action, wrap_with
from .lowlevel import async_checkpoint, create_async_event
from .meta import DEFAULT, DefaultType

if sys.version_info >= (3, 9):
    from collections.abc import Awaitable, Callable
else:
    from typing import Awaitable, Callable

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import Generator
    else:
        from typing import Generator

    if sys.version_info >= (3, 11):
        from typing import Self
    else:
        from typing_extensions import Self

    from ._hooks import Hooks

_T = TypeVar("_T")
_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])

LOGGER: Final[Logger] = getLogger(__name__)


class Barrier:
    """
    A rendezvous point for a fixed number of tasks.

    Each of *parties* tasks calls :meth:`wait`; the first ``parties - 1``
    suspend, and the last one runs the optional *action* (a plain or async
    callable), then resumes everyone. A cyclic barrier starts over after each
    release; a non-cyclic one is broken from then on.

    If a waiter times out, the barrier breaks and the other waiters fail with
    :exc:`WaitTimeoutError`. If a waiter is cancelled or the action raises,
    they fail with :exc:`BrokenBarrierError`. A broken barrier rejects every
    call until :meth:`reset`.
    """

    __slots__ = (
        "__weakref__",
        "_action",
        "_arrived",
        "_broken",
        "_cyclic",
        "_hooks",
        "_parties",
        "_timeout",
        "_waiters",
    )

    def __new__(
        cls,
        /,
        parties: int,
        *,
        cyclic: bool = False,
        action: Callable[[], object] | None = None,
        timeout: float | None = None,
        hooks: Hooks | None = None,
    ) -> Self:
        """..."""

        if parties < 1:
            msg = "parties must be >= 1"
            raise InvalidConfigurationError(msg)

        if timeout is not None and not timeout >= 0:
            msg = "timeout must be >= 0 or None"
            raise InvalidConfigurationError(msg)

        self = object.__new__(cls)

        self._action = action
        self._cyclic = cyclic
        self._hooks = NOOP_HOOKS if hooks is None else hooks
        self._parties = parties
        self._timeout = timeout

        self._arrived = 0
        self._broken = False
        self._waiters = []

        return self

    def __getnewargs_ex__(self, /) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """
        Returns arguments that can be used to create new instances with the
        same configuration.

        The current state does not affect the arguments.
        """

        return (
            (self._parties,),
            {
                "cyclic": self._cyclic,
                "action": self._action,
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

        args, kwargs = self.__getnewargs_ex__()

        return self.__class__(*args, hooks=self._hooks, **kwargs)

    def __repr__(self, /) -> str:
        """..."""

        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = (
            f"{cls_repr}({self._parties!r}, cyclic={self._cyclic!r})"
        )

        if self._broken:
            extra = "broken"
        else:
            extra = f"waiting, arrived={self._arrived}"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    def __await__(self, /) -> Generator[Any, Any, int]:
        """..."""

        return (yield from self.wait().__await__())

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        """
        Decorate the coroutine function *wrapped* so that every call runs it
        and then waits at the barrier.
        """

        return wrap_with(self.execute, wrapped)

    def _break(self, /, error: type[Exception]) -> None:
        waiters, self._waiters = self._waiters, []

        self._arrived = 0
        self._broken = True

        for token in waiters:
            token[1] = error
            token[0].set()

    async def _release(self, /) -> None:
        waiters, self._waiters = self._waiters, []

        self._arrived = 0

        if not self._cyclic:
            self._broken = True

        if self._action is not None:
            try:
                await call_action(self._action)
            except BaseException:
                LOGGER.exception("%r: barrier action failed", self)

                for token in waiters:
                    token[1] = BrokenBarrierError
                    token[0].set()

                self._break(BrokenBarrierError)
                raise

        for token in waiters:
            token[0].set()

    async def wait(
        self,
        /,
        *,
        timeout: float | DefaultType | None = DEFAULT,
    ) -> int:
        """
        Wait until all parties have arrived.

        Returns the arrival index of the calling task, from ``0`` for the
        first arrival to ``parties - 1`` for the one that completed the
        rendezvous.

        Raises:
          BrokenBarrierError:
            if the barrier is or becomes broken.
          WaitTimeoutError:
            if this or another waiter timed out.
        """

        if timeout is DEFAULT:
            timeout = self._timeout

        if self._broken:
            msg = "barrier is broken"
            raise BrokenBarrierError(msg)

        index = self._arrived
        self._arrived += 1

        if self._arrived >= self._parties:
            await self._release()

            return index

        self._waiters.append(token := [create_async_event(), None])

        event = token[0]

        try:
            success = await event.wait(timeout)
        except BaseException:
            if not event.is_set():
                self._discard(token)
                self._break(BrokenBarrierError)

            raise

        if not success:
            self._discard(token)
            self._break(WaitTimeoutError)

            fire(self._hooks, "on_timeout")

            msg = f"not all parties arrived within {timeout!r} seconds"
            raise WaitTimeoutError(msg)

        if (error := token[1]) is not None:
            if error is WaitTimeoutError:
                msg = "another party timed out"
            else:
                msg = "barrier was broken while waiting"

            raise error(msg)

        return index

    def _discard(self, /, token: list[Any]) -> None:
        try:
            self._waiters.remove(token)
        except ValueError:
            pass

    def reset(self, /) -> None:
        """
        Return the barrier to its initial state.

        Tasks that are currently waiting fail with :exc:`BrokenBarrierError`.
        """

        self._break(BrokenBarrierError)

        self._broken = False

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """
        Run ``await fn(*args, **kwargs)``, wait at the barrier, and return the
        result of the call.
        """

        result = await fn(*args, **kwargs)

        await self.wait()

        return result

    @property
    def parties(self, /) -> int:
        """
        The initial number of tasks required to pass the barrier.
        """

        return self._parties

    @property
    def cyclic(self, /) -> bool:
        """..."""

        return self._cyclic

    @property
    def arrived_count(self, /) -> int:
        """
        The number of tasks that have arrived since the last release.
        """

        return self._arrived

    @property
    def broken(self, /) -> bool:
        """
        A boolean that is :data:`True` if the barrier is in the broken state.
        """

        return self._broken

    @property
    def waiting(self, /) -> int:
        """
        The current number of tasks waiting to pass.
        """

        return len(self._waiters)


class CountdownLatch:
    """
    A single-use counter that releases all waiters when it reaches zero.

    :meth:`count_down` decrements it; at zero, the optional *action* runs
    once and every task suspended in :meth:`wait` resumes. From then on the
    latch stays satisfied: :meth:`wait` returns immediately and a further
    :meth:`count_down` raises :exc:`LatchUnderflowError`.
    """

    __slots__ = (
        "__weakref__",
        "_action",
        "_count",
        "_hooks",
        "_initial_count",
        "_waiters",
    )

    def __new__(
        cls,
        /,
        count: int,
        *,
        action: Callable[[], object] | None = None,
        hooks: Hooks | None = None,
    ) -> Self:
        """..."""

        if count < 0:
            msg = "count must be >= 0"
            raise InvalidConfigurationError(msg)

        self = object.__new__(cls)

        self._action = action
        self._count = count
        self._hooks = NOOP_HOOKS if hooks is None else hooks
        self._initial_count = count
        self._waiters = []

        return self

    def __getnewargs_ex__(self, /) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """..."""

        return ((self._initial_count,), {"action": self._action})

    def __getstate__(self, /) -> None:
        """
        Disables the use of internal state for pickling and copying.
        """

        return None

    def __copy__(self, /) -> Self:
        """..."""

        return self.__class__(
            self._initial_count,
            action=self._action,
            hooks=self._hooks,
        )

    def __repr__(self, /) -> str:
        """..."""

        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = f"{cls_repr}({self._initial_count!r})"

        if self._count:
            extra = f"count={self._count}, waiting={len(self._waiters)}"
        else:
            extra = "complete"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    def __bool__(self, /) -> bool:
        """
        Returns :data:`True` if the latch has reached zero.
        """

        return not self._count

    def __await__(self, /) -> Generator[Any, Any, bool]:
        """..."""

        return (yield from self.wait().__await__())

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        """
        Decorate the coroutine function *wrapped* so that every completed
        call counts the latch down.
        """

        return wrap_with(self.execute, wrapped)

    def count_down(self, /) -> None:
        """
        Decrement the count. At zero, run the action and wake up all waiters.

        Raises:
          LatchUnderflowError:
            if the count is already zero.
        """

        if self._count <= 0:
            msg = "latch is already at zero"
            raise LatchUnderflowError(msg)

        self._count -= 1

        if self._count == 0:
            waiters, self._waiters = self._waiters, []

            try:
                if self._action is not None:
                    self._action()
            finally:
                for event in waiters:
                    event.set()

    async def wait(self, /, *, timeout: float | None = None) -> bool:
        """
        Wait until the count reaches zero.

        Returns :data:`False` if *timeout* seconds have elapsed first; the
        count is not affected.
        """

        if not self._count:
            await async_checkpoint()

            return True

        self._waiters.append(event := create_async_event())

        success = False

        try:
            success = await event.wait(timeout)
        finally:
            if not success:
                try:
                    self._waiters.remove(event)
                except ValueError:
                    pass

        if not success:
            fire(self._hooks, "on_timeout")

        return success

    def reset(self, /) -> None:
        """
        Restore the initial count. Tasks that are waiting keep waiting.
        """

        self._count = self._initial_count

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """
        Run ``await fn(*args, **kwargs)``, then count down. The latch is not
        touched if the call fails.
        """

        result = await fn(*args, **kwargs)

        self.count_down()

        return result

    @property
    def initial_count(self, /) -> int:
        """..."""

        return self._initial_count

    @property
    def count(self, /) -> int:
        """
        The remaining count.
        """

        return self._count

    @property
    def is_complete(self, /) -> bool:
        """..."""

        return self._count == 0

    @property
    def waiting(self, /) -> int:
        """
        The current number of tasks waiting for zero.
        """

        return len(self._waiters)
