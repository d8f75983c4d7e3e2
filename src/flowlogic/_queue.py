#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Final, TypeVar

from ._enums import QueueMode
from ._errors import CapacityExceededError, InvalidConfigurationError
from ._hooks import NOOP_HOOKS, Hooks, fire
from ._semaphore import Semaphore
from ._wrappers import wrap_with

if sys.version_info >= (3, 9):
    from collections.abc import Awaitable, Callable
else:
    from typing import Awaitable, Callable

if TYPE_CHECKING:
    if sys.version_info >= (3, 11):
        from typing import Self
    else:
        from typing_extensions import Self

_T = TypeVar("_T")
_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])

LOGGER: Final[Logger] = getLogger(__name__)


class _BacklogHooks(Hooks):
    __slots__ = ("_owner",)

    def __init__(self, /, owner: FunctionQueue) -> None:
        super().__init__()

        self._owner = owner

    def on_waiting(self, /, position: int) -> None:
        owner = self._owner

        fire(owner._hooks, "on_waiting", position)
        fire(owner._hooks, "on_queue_change", owner.queue_length)

    def on_timeout(self, /) -> None:
        fire(self._owner._hooks, "on_timeout")


class FunctionQueue:
    """
    Runs calls through a queue with at most *concurrency* of them running
    at a time.

    Waiting calls are served in *mode* order; in
    :attr:`~flowlogic.QueueMode.PRIORITY` mode, by
    ``priority_fn(*args, **kwargs)``, highest first. With *max_queue_size*,
    a call that finds that many calls already waiting is rejected with
    :exc:`~flowlogic.CapacityExceededError`.

    The ``on_queue_change`` hook receives the new backlog size whenever a
    call joins or leaves the queue.
    """

    __slots__ = (
        "__weakref__",
        "_hooks",
        "_max_queue_size",
        "_priority_fn",
        "_semaphore",
    )

    def __new__(
        cls,
        /,
        concurrency: int = 1,
        mode: QueueMode | str = QueueMode.FIFO,
        *,
        priority_fn: Callable[..., float] | None = None,
        max_queue_size: int | None = None,
        hooks: Hooks | None = None,
    ) -> Self:
        """..."""

        if max_queue_size is not None and max_queue_size < 1:
            msg = "max_queue_size must be >= 1 or None"
            raise InvalidConfigurationError(msg)

        self = object.__new__(cls)

        self._hooks = NOOP_HOOKS if hooks is None else hooks
        self._max_queue_size = max_queue_size
        self._priority_fn = priority_fn

        self._semaphore = Semaphore(
            concurrency,
            mode,
            hooks=_BacklogHooks(self),
        )

        return self

    def __getnewargs_ex__(self, /) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """..."""

        return (
            (self._semaphore.capacity, self._semaphore.queue_mode),
            {
                "priority_fn": self._priority_fn,
                "max_queue_size": self._max_queue_size,
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

        semaphore = self._semaphore

        object_repr = (
            f"{cls_repr}({semaphore.capacity!r},"
            f" {semaphore.queue_mode.value!r})"
        )

        extra = f"running={semaphore.held}, queued={semaphore.queue_length}"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        """
        Decorate the coroutine function *wrapped* so that every call goes
        through the queue.
        """

        return wrap_with(self.execute, wrapped)

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """
        Wait for the turn of the call, then run ``await fn(*args,
        **kwargs)``.

        Raises:
          CapacityExceededError:
            if the queue is full.
        """

        semaphore = self._semaphore

        if not await semaphore.acquire(blocking=False):
            if (
                self._max_queue_size is not None
                and semaphore.queue_length >= self._max_queue_size
            ):
                LOGGER.debug("%r: queue is full", self)

                fire(self._hooks, "on_overflow")

                msg = "the queue is full"
                raise CapacityExceededError(msg)

            if self._priority_fn is not None:
                priority = self._priority_fn(*args, **kwargs)
            else:
                priority = None

            try:
                await semaphore.acquire(priority=priority)
            finally:
                fire(self._hooks, "on_queue_change", semaphore.queue_length)

        try:
            return await fn(*args, **kwargs)
        finally:
            semaphore.release()

    @property
    def concurrency(self, /) -> int:
        """..."""

        return self._semaphore.capacity

    @property
    def mode(self, /) -> QueueMode:
        """..."""

        return self._semaphore.queue_mode

    @property
    def max_queue_size(self, /) -> int | None:
        """..."""

        return self._max_queue_size

    @property
    def queue_length(self, /) -> int:
        """
        The current number of waiting calls.
        """

        return self._semaphore.queue_length

    @property
    def running(self, /) -> int:
        """
        The current number of running calls.
        """

        return self._semaphore.held
