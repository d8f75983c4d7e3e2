#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import os
import sys

from bisect import insort
from itertools import count
from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Final, TypeVar, final

from ._enums import QueueFullPolicy
from ._errors import (
    CapacityExceededError,
    EvictedError,
    InvalidConfigurationError,
)
from ._hooks import NOOP_HOOKS, fire
from ._wrappers import wrap_with
from .lowlevel import (
    async_checkpoint,
    async_clock,
    async_sleep,
    create_async_event,
)
from .meta import DEFAULT, DefaultType

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
    from .lowlevel import AsyncEvent

_T = TypeVar("_T")
_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])

LOGGER: Final[Logger] = getLogger(__name__)

_STARVATION_THRESHOLD: Final[float] = float(
    os.getenv(
        "FLOWLOGIC_STARVATION_THRESHOLD",
        "5",
    )
)
_POLL_INTERVAL: Final[float] = float(
    os.getenv(
        "FLOWLOGIC_POLL_INTERVAL",
        "0.01",
    )
)


@final
class PriorityItem:
    """
    A call waiting in a :class:`PriorityQueueExecutor`.

    Passed to the ``on_item_dropped`` and ``on_starvation_prevention``
    hooks.
    """

    __slots__ = (
        "args",
        "boosted",
        "enqueued_at",
        "event",
        "kwargs",
        "priority",
        "sequence",
    )

    args: tuple[Any, ...]
    boosted: bool
    enqueued_at: float
    event: AsyncEvent
    kwargs: dict[str, Any]
    priority: float
    sequence: int

    def __init__(
        self,
        /,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        priority: float,
        enqueued_at: float,
        sequence: int,
    ) -> None:
        self.args = args
        self.boosted = False
        self.enqueued_at = enqueued_at
        self.event = create_async_event()
        self.kwargs = kwargs
        self.priority = priority
        self.sequence = sequence

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        extra = f"priority={self.priority!r}"

        if self.boosted:
            extra = f"{extra}, boosted"

        return f"<{cls_repr} at {id(self):#x} [{extra}]>"

    def __lt__(self, other: PriorityItem, /) -> bool:
        return (-self.priority, self.sequence) < (
            -other.priority,
            other.sequence,
        )


class PriorityQueueExecutor:
    """
    Runs calls in priority order, at most *max_concurrent* at a time.

    The priority of a call is ``priority_fn(*args, **kwargs)``; higher runs
    first, and equal priorities run in arrival order. At most
    *max_queue_size* calls wait; what happens to one more is decided by
    *on_queue_full*.

    With *starvation_prevention*, before each dispatch every call that has
    waited longer than *starvation_threshold* seconds gets its priority
    raised by its waiting time, once. Without it, the priority order is
    strict.

    Example:
      .. code:: python

        executor = flowlogic.PriorityQueueExecutor(
            lambda job: job.urgency,
            max_concurrent=4,
        )

        @executor
        async def process(job):
            ...
    """

    __slots__ = (
        "__weakref__",
        "_active",
        "_hooks",
        "_max_concurrent",
        "_max_queue_size",
        "_on_queue_full",
        "_poll_interval",
        "_priority_fn",
        "_queue",
        "_sequence",
        "_starvation_prevention",
        "_starvation_threshold",
    )

    def __new__(
        cls,
        /,
        priority_fn: Callable[..., float],
        *,
        max_queue_size: int = 1000,
        max_concurrent: int = 1,
        starvation_prevention: bool = True,
        on_queue_full: QueueFullPolicy | str = QueueFullPolicy.ERROR,
        starvation_threshold: float | DefaultType = DEFAULT,
        poll_interval: float | DefaultType = DEFAULT,
        hooks: Hooks | None = None,
    ) -> Self:
        """..."""

        if max_queue_size < 1:
            msg = "max_queue_size must be >= 1"
            raise InvalidConfigurationError(msg)

        if max_concurrent < 1:
            msg = "max_concurrent must be >= 1"
            raise InvalidConfigurationError(msg)

        if starvation_threshold is DEFAULT:
            starvation_threshold = _STARVATION_THRESHOLD
        elif not starvation_threshold >= 0:
            msg = "starvation_threshold must be >= 0"
            raise InvalidConfigurationError(msg)

        if poll_interval is DEFAULT:
            poll_interval = _POLL_INTERVAL
        elif not poll_interval > 0:
            msg = "poll_interval must be > 0"
            raise InvalidConfigurationError(msg)

        self = object.__new__(cls)

        self._hooks = NOOP_HOOKS if hooks is None else hooks
        self._max_concurrent = max_concurrent
        self._max_queue_size = max_queue_size
        self._on_queue_full = QueueFullPolicy(on_queue_full)
        self._poll_interval = poll_interval
        self._priority_fn = priority_fn
        self._starvation_prevention = starvation_prevention
        self._starvation_threshold = starvation_threshold

        self._active = 0
        self._queue = []
        self._sequence = count()

        return self

    def __getnewargs_ex__(self, /) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """..."""

        return (
            (self._priority_fn,),
            {
                "max_queue_size": self._max_queue_size,
                "max_concurrent": self._max_concurrent,
                "starvation_prevention": self._starvation_prevention,
                "on_queue_full": self._on_queue_full,
                "starvation_threshold": self._starvation_threshold,
                "poll_interval": self._poll_interval,
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
            f"{cls_repr}({self._priority_fn!r},"
            f" max_queue_size={self._max_queue_size!r},"
            f" max_concurrent={self._max_concurrent!r})"
        )

        extra = f"active={self._active}, queued={len(self._queue)}"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        """
        Decorate the coroutine function *wrapped* so that every call goes
        through the executor.
        """

        return wrap_with(self.execute, wrapped)

    def _prevent_starvation(self, /) -> None:
        now = async_clock()
        threshold = self._starvation_threshold

        boosted = False

        for item in self._queue:
            if item.boosted:
                continue

            waited = now - item.enqueued_at

            if waited > threshold:
                item.priority += waited
                item.boosted = True

                LOGGER.debug("%r: boosted %r", self, item)

                fire(self._hooks, "on_starvation_prevention", item)

                boosted = True

        if boosted:
            self._queue.sort()

    def _release(self, /) -> None:
        queue = self._queue

        if self._starvation_prevention and queue:
            self._prevent_starvation()

        while queue:
            if queue.pop(0).event.set():
                return  # handed over

        self._active -= 1

    def _make_room(self, /, item: PriorityItem) -> None:
        policy = self._on_queue_full
        queue = self._queue

        if policy is QueueFullPolicy.DROP_LOWEST_PRIORITY:
            lowest = queue[-1]

            if item.priority > lowest.priority:
                queue.pop()
                lowest.event.cancel()

                LOGGER.debug("%r: dropped %r", self, lowest)

                fire(self._hooks, "on_item_dropped", lowest)

                return

            fire(self._hooks, "on_item_dropped", item)

            msg = "the queue is full of calls with a higher priority"
            raise CapacityExceededError(msg)

        if policy is QueueFullPolicy.DROP_NEW:
            fire(self._hooks, "on_item_dropped", item)
        else:
            fire(self._hooks, "on_overflow")

        LOGGER.debug("%r: rejected %r", self, item)

        msg = "the queue is full"
        raise CapacityExceededError(msg)

    async def _admit(
        self,
        /,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        item = PriorityItem(
            args,
            kwargs,
            self._priority_fn(*args, **kwargs),
            async_clock(),
            next(self._sequence),
        )

        queue = self._queue

        while True:
            if self._active < self._max_concurrent and not queue:
                self._active += 1

                try:
                    await async_checkpoint()
                except BaseException:
                    self._release()
                    raise

                return

            if len(queue) < self._max_queue_size:
                break

            if self._on_queue_full is not QueueFullPolicy.WAIT_FOR_SPACE:
                self._make_room(item)

                break

            await async_sleep(self._poll_interval)

        insort(queue, item)

        event = item.event

        success = False

        try:
            success = await event.wait()
        finally:
            if not success:
                if event.cancelled():
                    try:
                        queue.remove(item)
                    except ValueError:
                        pass
                else:
                    self._release()

        if not success:
            msg = "the call was dropped for a call with a higher priority"
            raise EvictedError(msg)

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
            if the queue was full and the call was rejected.
          EvictedError:
            if the call was queued and then dropped for a call with a higher
            priority.
        """

        await self._admit(args, kwargs)

        try:
            return await fn(*args, **kwargs)
        finally:
            self._release()

    @property
    def max_queue_size(self, /) -> int:
        """..."""

        return self._max_queue_size

    @property
    def max_concurrent(self, /) -> int:
        """..."""

        return self._max_concurrent

    @property
    def starvation_prevention(self, /) -> bool:
        """..."""

        return self._starvation_prevention

    @property
    def starvation_threshold(self, /) -> float:
        """..."""

        return self._starvation_threshold

    @property
    def on_queue_full(self, /) -> QueueFullPolicy:
        """..."""

        return self._on_queue_full

    @property
    def queue_length(self, /) -> int:
        """
        The current number of waiting calls.
        """

        return len(self._queue)

    @property
    def active_count(self, /) -> int:
        """
        The current number of running calls.
        """

        return self._active
