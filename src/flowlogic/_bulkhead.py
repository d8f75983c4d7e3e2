#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from itertools import cycle
from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Final, TypeVar

from ._errors import InvalidConfigurationError
from ._hooks import NOOP_HOOKS, fire
from ._semaphore import Semaphore
from ._wrappers import wrap_with
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

_T = TypeVar("_T")
_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])

LOGGER: Final[Logger] = getLogger(__name__)


class Bulkhead:
    """
    Isolates calls into *pool_size* independent single-slot pools.

    Each call is assigned the next pool in round-robin order and waits only
    for that pool, so one saturated pool cannot starve the others.

    *queue_size* is the intended per-pool backlog. It is validated and
    exposed but not enforced here; put a
    :class:`~flowlogic.BackpressureController` in front of the bulkhead to
    bound the backlog.
    """

    __slots__ = (
        "__weakref__",
        "_hooks",
        "_next_pool",
        "_pools",
        "_queue_size",
        "_timeout",
    )

    def __new__(
        cls,
        /,
        pool_size: int,
        queue_size: int = 100,
        *,
        timeout: float | None = None,
        hooks: Hooks | None = None,
    ) -> Self:
        """..."""

        if pool_size < 1:
            msg = "pool_size must be >= 1"
            raise InvalidConfigurationError(msg)

        if queue_size < 1:
            msg = "queue_size must be >= 1"
            raise InvalidConfigurationError(msg)

        self = object.__new__(cls)

        self._hooks = NOOP_HOOKS if hooks is None else hooks
        self._queue_size = queue_size
        self._timeout = timeout

        self._pools = tuple(
            Semaphore(1, timeout=timeout, hooks=hooks)
            for _ in range(pool_size)
        )
        self._next_pool = cycle(self._pools).__next__

        return self

    def __getnewargs_ex__(self, /) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """..."""

        return (
            (len(self._pools), self._queue_size),
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

        object_repr = f"{cls_repr}({len(self._pools)!r}, {self._queue_size!r})"

        extra = f"active={self.active_count}, waiting={self.queue_length}"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        """
        Decorate the coroutine function *wrapped* so that every call runs
        isolated in the bulkhead with the configured timeout. A ``timeout``
        keyword argument is passed on to *wrapped*.
        """

        return wrap_with(self._execute_passthrough, wrapped)

    async def _execute_passthrough(
        self,
        fn: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        return await self._isolated(fn, args, kwargs, DEFAULT)

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        timeout: float | DefaultType | None = DEFAULT,
        **kwargs: Any,
    ) -> _T:
        """
        Run ``await fn(*args, **kwargs)`` in the next pool.

        *timeout* bounds the wait for the pool and defaults to the one the
        bulkhead was created with. It is not passed to *fn*; bind such an
        argument with :func:`functools.partial`.

        Any exception, including :exc:`~flowlogic.WaitTimeoutError` when the
        pool was not free in time, is reported to the
        ``on_isolation_failure`` hook and re-raised.
        """

        return await self._isolated(fn, args, kwargs, timeout)

    async def _isolated(self, fn, args, kwargs, timeout, /):
        pool = self._next_pool()

        try:
            await pool.acquire(timeout=timeout)

            try:
                return await fn(*args, **kwargs)
            finally:
                pool.release()
        except Exception as exc:
            LOGGER.debug("%r: isolated call failed: %r", self, exc)

            fire(self._hooks, "on_isolation_failure", exc)

            raise

    @property
    def pool_size(self, /) -> int:
        """..."""

        return len(self._pools)

    @property
    def queue_size(self, /) -> int:
        """
        The intended backlog per pool (advisory).
        """

        return self._queue_size

    @property
    def timeout(self, /) -> float | None:
        """..."""

        return self._timeout

    @property
    def pools(self, /) -> tuple[Semaphore, ...]:
        """
        The underlying single-slot semaphores, in round-robin order.
        """

        return self._pools

    @property
    def active_count(self, /) -> int:
        """
        The current number of running calls.
        """

        return sum(pool.held for pool in self._pools)

    @property
    def queue_length(self, /) -> int:
        """
        The current number of calls waiting for their pool.
        """

        return sum(pool.queue_length for pool in self._pools)
