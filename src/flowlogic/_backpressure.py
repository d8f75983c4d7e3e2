#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from functools import partial
from logging import Logger, getLogger
from random import Random
from typing import TYPE_CHECKING, Any, Final, TypeVar

from ._enums import BackpressureStrategy, QueueMode
from ._errors import (
    CapacityExceededError,
    EvictedError,
    InvalidConfigurationError,
)
from ._hooks import NOOP_HOOKS, fire
from ._semaphore import Semaphore
from ._wrappers import wrap_with
from .lowlevel import WaitQueue, async_checkpoint, create_async_event

if sys.version_info >= (3, 9):
    from collections.abc import Awaitable, Callable
else:
    from typing import Awaitable, Callable

if TYPE_CHECKING:
    if sys.version_info >= (3, 11):
        from typing import Self
    else:
        from typing_extensions import Self

    from ._hooks import Hooks

_T = TypeVar("_T")
_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])

LOGGER: Final[Logger] = getLogger(__name__)


class BackpressureController:
    """
    Runs at most *max_concurrent* calls at a time and applies *strategy* to
    the calls that arrive while all slots are busy.

    * :attr:`~flowlogic.BackpressureStrategy.DROP` and
      :attr:`~flowlogic.BackpressureStrategy.ERROR` reject them with
      :exc:`~flowlogic.CapacityExceededError`.
    * :attr:`~flowlogic.BackpressureStrategy.BUFFER` queues them, up to
      *buffer_size*, and rejects the rest.
    * :attr:`~flowlogic.BackpressureStrategy.DROP_OLDEST` queues them and, if
      the buffer is full, evicts the oldest queued call, which fails with
      :exc:`~flowlogic.EvictedError`.
    * :attr:`~flowlogic.BackpressureStrategy.SAMPLE` queues them with
      probability *sample_rate* and rejects the rest.
    * :attr:`~flowlogic.BackpressureStrategy.THROTTLE` queues them and, if the
      buffer is full, suspends the caller until there is space. Nothing is
      ever dropped.

    Queued calls run in arrival order; a finishing call hands its slot
    directly to the oldest queued one.

    Dropped and evicted calls are reported to the hooks as
    :class:`functools.partial` objects.
    """

    __slots__ = (
        "__weakref__",
        "_active",
        "_buffer",
        "_buffer_size",
        "_hooks",
        "_max_concurrent",
        "_rng",
        "_sample_rate",
        "_strategy",
        "_tickets",
    )

    def __new__(
        cls,
        /,
        strategy: BackpressureStrategy | str = BackpressureStrategy.BUFFER,
        *,
        max_concurrent: int = 10,
        buffer_size: int = 100,
        sample_rate: float = 0.1,
        rng: Random | None = None,
        hooks: Hooks | None = None,
    ) -> Self:
        """..."""

        if max_concurrent < 1:
            msg = "max_concurrent must be >= 1"
            raise InvalidConfigurationError(msg)

        if buffer_size < 1:
            msg = "buffer_size must be >= 1"
            raise InvalidConfigurationError(msg)

        if not 0 <= sample_rate <= 1:
            msg = "sample_rate must be between 0 and 1"
            raise InvalidConfigurationError(msg)

        self = object.__new__(cls)

        self._buffer_size = buffer_size
        self._hooks = NOOP_HOOKS if hooks is None else hooks
        self._max_concurrent = max_concurrent
        self._rng = Random() if rng is None else rng
        self._sample_rate = sample_rate
        self._strategy = BackpressureStrategy(strategy)

        self._active = 0
        self._buffer = WaitQueue(QueueMode.FIFO)

        # buffer places of the throttle strategy
        self._tickets = Semaphore(buffer_size)

        return self

    def __getnewargs_ex__(self, /) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """..."""

        return (
            (self._strategy,),
            {
                "max_concurrent": self._max_concurrent,
                "buffer_size": self._buffer_size,
                "sample_rate": self._sample_rate,
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

        return self.__class__(
            *args,
            rng=self._rng,
            hooks=self._hooks,
            **kwargs,
        )

    def __repr__(self, /) -> str:
        """..."""

        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = (
            f"{cls_repr}({self._strategy.value!r},"
            f" max_concurrent={self._max_concurrent!r},"
            f" buffer_size={self._buffer_size!r})"
        )

        extra = f"active={self._active}, buffered={len(self._buffer)}"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        """
        Decorate the coroutine function *wrapped* so that every call goes
        through the controller.
        """

        return wrap_with(self.execute, wrapped)

    def _reject(self, /, call: partial[Any], hook: str) -> None:
        LOGGER.debug("%r: rejected %r", self, call)

        fire(self._hooks, hook)

        if hook == "on_buffer_full":
            msg = "the backpressure buffer is full"
        else:
            msg = "all execution slots are busy"

        raise CapacityExceededError(msg)

    def _evict_oldest(self, /) -> None:
        buffer = self._buffer

        while buffer:
            entry = buffer.pop()

            if entry.event.cancel():
                LOGGER.debug("%r: evicted %r", self, entry.value)

                fire(self._hooks, "on_item_dropped", entry.value)
                fire(self._hooks, "on_overflow")

                return

    def _release_slot(self, /) -> None:
        buffer = self._buffer

        while buffer:
            if buffer.pop().event.set():
                return  # handed over

        self._active -= 1

    async def _acquire_slot(self, /, call: partial[Any]) -> None:
        if self._active < self._max_concurrent and not self._buffer:
            self._active += 1

            try:
                await async_checkpoint()
            except BaseException:
                self._release_slot()
                raise

            return

        buffer = self._buffer

        entry = buffer.push(event := create_async_event(), value=call)

        fire(self._hooks, "on_waiting", len(buffer))

        success = False

        try:
            success = await event.wait()
        finally:
            if not success:
                if event.cancelled():
                    buffer.discard(entry)
                else:
                    self._release_slot()

        if not success:
            msg = "the call was evicted from the backpressure buffer"
            raise EvictedError(msg)

    async def _admit(self, /, call: partial[Any]) -> None:
        if self._active < self._max_concurrent and not self._buffer:
            await self._acquire_slot(call)

            return

        strategy = self._strategy

        if strategy is BackpressureStrategy.THROTTLE:
            await self._tickets.acquire()

            try:
                await self._acquire_slot(call)
            finally:
                self._tickets.release()

            return

        if strategy in {BackpressureStrategy.DROP, BackpressureStrategy.ERROR}:
            self._reject(call, "on_overflow")

        if strategy is BackpressureStrategy.SAMPLE:
            if not self._rng.random() < self._sample_rate:
                fire(self._hooks, "on_item_dropped", call)

                self._reject(call, "on_overflow")

        if len(self._buffer) >= self._buffer_size:
            if strategy is BackpressureStrategy.DROP_OLDEST:
                self._evict_oldest()
            else:
                self._reject(call, "on_buffer_full")

        await self._acquire_slot(call)

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """
        Run ``await fn(*args, **kwargs)`` subject to the strategy.

        Raises:
          CapacityExceededError:
            if the call was rejected.
          EvictedError:
            if the call was queued and then evicted before it started.
        """

        call = partial(fn, *args, **kwargs)

        await self._admit(call)

        try:
            return await call()
        finally:
            self._release_slot()

    @property
    def strategy(self, /) -> BackpressureStrategy:
        """..."""

        return self._strategy

    @property
    def max_concurrent(self, /) -> int:
        """..."""

        return self._max_concurrent

    @property
    def buffer_capacity(self, /) -> int:
        """
        The maximum number of queued calls.
        """

        return self._buffer_size

    @property
    def sample_rate(self, /) -> float:
        """..."""

        return self._sample_rate

    @property
    def buffered(self, /) -> int:
        """
        The current number of queued calls.
        """

        return len(self._buffer)

    @property
    def active_executions(self, /) -> int:
        """
        The current number of running calls.
        """

        return self._active

    @property
    def is_under_pressure(self, /) -> bool:
        """
        Whether all execution slots are busy.
        """

        return self._active >= self._max_concurrent
