#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import os
import sys

from collections import deque
from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Final, TypeVar

from ._enums import QueueMode, RateLimitStrategy
from ._errors import InvalidConfigurationError, WaitTimeoutError
from ._hooks import NOOP_HOOKS, fire
from ._wrappers import wrap_with
from .lowlevel import (
    WaitQueue,
    async_checkpoint,
    async_clock,
    async_sleep_until,
    call_periodically,
    create_async_event,
)

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
    from .lowlevel import PeriodicTimer

_T = TypeVar("_T")
_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])

LOGGER: Final[Logger] = getLogger(__name__)

_SLIDING_WINDOW_GUARD: Final[float] = float(
    os.getenv(
        "FLOWLOGIC_SLIDING_WINDOW_GUARD",
        "0.001",
    )
)


class RateLimiter:
    """
    Admits at most *max_calls* calls per *window* seconds.

    The *strategy* selects the algorithm:

    * :attr:`~flowlogic.RateLimitStrategy.TOKEN_BUCKET` (default) allows
      bursts of up to *max_calls*; the bucket is refilled in whole windows,
      counted from the first call, so the schedule does not drift.
    * :attr:`~flowlogic.RateLimitStrategy.LEAKY_BUCKET` admits queued calls
      one by one, every ``window / max_calls`` seconds. No bursts.
    * :attr:`~flowlogic.RateLimitStrategy.FIXED_WINDOW` and
      :attr:`~flowlogic.RateLimitStrategy.SLIDING_WINDOW` keep the
      timestamps of the calls admitted within the last *window* seconds. The
      sliding variant waits a little longer than strictly necessary
      (``FLOWLOGIC_SLIDING_WINDOW_GUARD`` seconds) so that a retry never
      fires exactly at the expiry instant.

    Example:
      .. code:: python

        limiter = flowlogic.RateLimiter(5, 1.0)

        @limiter
        async def call_api(request):
            ...  # at most 5 calls per second
    """

    __slots__ = (
        "__weakref__",
        "_calls",
        "_hooks",
        "_last_refill",
        "_max_calls",
        "_strategy",
        "_timer",
        "_tokens",
        "_waiters",
        "_window",
    )

    def __new__(
        cls,
        /,
        max_calls: int,
        window: float,
        strategy: RateLimitStrategy | str = RateLimitStrategy.TOKEN_BUCKET,
        *,
        hooks: Hooks | None = None,
    ) -> Self:
        """..."""

        if max_calls < 1:
            msg = "max_calls must be >= 1"
            raise InvalidConfigurationError(msg)

        if not window > 0:
            msg = "window must be > 0"
            raise InvalidConfigurationError(msg)

        self = object.__new__(cls)

        self._hooks = NOOP_HOOKS if hooks is None else hooks
        self._max_calls = max_calls
        self._strategy = RateLimitStrategy(strategy)
        self._window = window

        self._tokens = max_calls
        self._last_refill = None

        self._calls = deque()

        self._timer = None
        self._waiters = WaitQueue(QueueMode.FIFO)

        return self

    def __getnewargs_ex__(self, /) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """..."""

        return ((self._max_calls, self._window, self._strategy), {})

    def __getstate__(self, /) -> None:
        """
        Disables the use of internal state for pickling and copying.
        """

        return None

    def __copy__(self, /) -> Self:
        """..."""

        return self.__class__(
            self._max_calls,
            self._window,
            self._strategy,
            hooks=self._hooks,
        )

    def __repr__(self, /) -> str:
        """..."""

        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = (
            f"{cls_repr}({self._max_calls!r}, {self._window!r},"
            f" {self._strategy.value!r})"
        )

        strategy = self._strategy

        if strategy is RateLimitStrategy.TOKEN_BUCKET:
            extra = f"tokens={self._tokens}"
        elif strategy is RateLimitStrategy.LEAKY_BUCKET:
            extra = f"waiting={len(self._waiters)}"
        else:
            extra = f"calls={len(self._calls)}"

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

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        """
        Decorate the coroutine function *wrapped* so that every call waits
        for admission first.
        """

        return wrap_with(self.execute, wrapped)

    def _timed_out(self, /, timeout: float | None) -> WaitTimeoutError:
        LOGGER.debug("%r: admission timed out after %r s", self, timeout)

        fire(self._hooks, "on_timeout")

        msg = f"the call was not admitted within {timeout!r} seconds"

        return WaitTimeoutError(msg)

    async def _sleep_until(
        self,
        /,
        target: float,
        deadline: float | None,
        timeout: float | None,
    ) -> None:
        if deadline is not None and target > deadline:
            # admission is impossible before the deadline
            raise self._timed_out(timeout)

        await async_sleep_until(target)

    async def _acquire_token(
        self,
        /,
        deadline: float | None,
        timeout: float | None,
    ) -> None:
        window = self._window

        while True:
            now = async_clock()

            if self._last_refill is None:
                self._last_refill = now

            elapsed = now - self._last_refill

            if elapsed >= window:
                self._tokens = self._max_calls
                self._last_refill += window * (elapsed // window)

            if self._tokens > 0:
                self._tokens -= 1

                return

            await self._sleep_until(
                self._last_refill + window,
                deadline,
                timeout,
            )

    async def _acquire_slot(
        self,
        /,
        deadline: float | None,
        timeout: float | None,
        guard: float,
    ) -> None:
        calls = self._calls
        window = self._window

        while True:
            now = async_clock()

            while calls and now - calls[0] >= window:
                calls.popleft()

            if len(calls) < self._max_calls:
                calls.append(now)

                return

            await self._sleep_until(
                calls[0] + window + guard,
                deadline,
                timeout,
            )

    def _leak(self, /) -> bool:
        waiters = self._waiters

        while waiters:
            if waiters.pop().event.set():
                return True

        # idle, stop ticking until the next waiting call
        self._timer = None

        return False

    async def _acquire_drip(self, /, timeout: float | None) -> None:
        waiters = self._waiters

        entry = waiters.push(event := create_async_event())

        fire(self._hooks, "on_waiting", len(waiters))

        if self._timer is None:
            self._timer = call_periodically(
                self._window / self._max_calls,
                self._leak,
            )

        success = False

        try:
            success = await event.wait(timeout)
        finally:
            if not success:
                waiters.discard(entry)

        if not success:
            raise self._timed_out(timeout)

    async def acquire(self, /, *, timeout: float | None = None) -> None:
        """
        Wait until the call is admitted.

        Raises:
          WaitTimeoutError:
            if the call cannot be admitted within *timeout* seconds. The
            window-based strategies raise as soon as that is known.
        """

        if timeout is not None and not timeout >= 0:
            msg = "timeout must be >= 0 or None"
            raise ValueError(msg)

        strategy = self._strategy

        if strategy is RateLimitStrategy.LEAKY_BUCKET:
            await self._acquire_drip(timeout)

            return

        if timeout is not None:
            deadline = async_clock() + timeout
        else:
            deadline = None

        if strategy is RateLimitStrategy.TOKEN_BUCKET:
            await self._acquire_token(deadline, timeout)
        elif strategy is RateLimitStrategy.FIXED_WINDOW:
            await self._acquire_slot(deadline, timeout, 0)
        else:
            await self._acquire_slot(deadline, timeout, _SLIDING_WINDOW_GUARD)

        await async_checkpoint()

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """
        Wait for admission, then run ``await fn(*args, **kwargs)``.
        """

        await self.acquire()

        return await fn(*args, **kwargs)

    def reset(self, /) -> None:
        """
        Forget all admitted calls: the bucket is full again, the refill clock
        restarts with the next call, and the window history is cleared.

        Calls waiting in the leaky bucket keep their places.
        """

        self._tokens = self._max_calls
        self._last_refill = None

        self._calls.clear()

    def dispose(self, /) -> None:
        """
        Stop the leaky bucket timer. It is started again by the next call
        that has to wait.
        """

        if (timer := self._timer) is not None:
            self._timer = None

            timer.cancel()

    @property
    def max_calls(self, /) -> int:
        """..."""

        return self._max_calls

    @property
    def window(self, /) -> float:
        """
        The window length, in seconds.
        """

        return self._window

    @property
    def strategy(self, /) -> RateLimitStrategy:
        """..."""

        return self._strategy

    @property
    def available_tokens(self, /) -> int:
        """
        The tokens left in the bucket as of the last admission check.
        """

        return self._tokens

    @property
    def calls_in_window(self, /) -> int:
        """
        The calls recorded in the current window as of the last admission
        check.
        """

        return len(self._calls)

    @property
    def queue_length(self, /) -> int:
        """
        The current number of calls waiting in the leaky bucket.
        """

        return len(self._waiters)

    @property
    def timer(self, /) -> PeriodicTimer | None:
        """
        The running leaky bucket timer, if any.
        """

        return self._timer
