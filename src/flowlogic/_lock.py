#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2024 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Final, TypeVar

from ._enums import QueueMode
from ._errors import WaitTimeoutError
from ._hooks import fire
from ._semaphore import Semaphore

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
    from .lowlevel import WaitEntry

_T = TypeVar("_T")

LOGGER: Final[Logger] = getLogger(__name__)


class Lock(Semaphore):
    """
    A mutex: a one-permit semaphore.

    :attr:`locked` is answered in constant time from the permit count, and
    the ``on_blocked`` hook fires whenever a caller has to wait.

    When a timed acquisition fails and *throw_on_timeout* is false,
    :meth:`synchronized` runs the body **without** the lock instead of
    raising. This is an explicit escape hatch: mutual exclusion is lost for
    that call, so use it only for work that tolerates it.
    """

    __slots__ = ("_throw_on_timeout",)

    def __new__(
        cls,
        /,
        *,
        timeout: float | None = None,
        throw_on_timeout: bool = True,
        hooks: Hooks | None = None,
    ) -> Self:
        """..."""

        self = super().__new__(
            cls,
            1,
            QueueMode.FIFO,
            timeout=timeout,
            hooks=hooks,
        )

        self._throw_on_timeout = throw_on_timeout

        return self

    def __getnewargs_ex__(self, /) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """..."""

        return (
            (),
            {
                "timeout": self._timeout,
                "throw_on_timeout": self._throw_on_timeout,
            },
        )

    def __repr__(self, /) -> str:
        """..."""

        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = f"{cls_repr}()"

        if self._held > 0:
            extra = f"locked, waiting={len(self._waiters)}"
        else:
            extra = "unlocked"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    def _on_wait(self, /, entry: WaitEntry) -> None:
        fire(self._hooks, "on_blocked")

        super()._on_wait(entry)

    async def synchronized(
        self,
        body: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """
        Run ``await body(*args, **kwargs)`` while holding the lock. The lock
        is released on every exit path.
        """

        try:
            await self.acquire()
        except WaitTimeoutError:
            if self._throw_on_timeout:
                raise

            LOGGER.warning(
                "%r: proceeding without the lock after a timeout",
                self,
            )

            return await body(*args, **kwargs)

        try:
            return await body(*args, **kwargs)
        finally:
            self.release()

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> _T:
        """Same as :meth:`synchronized`."""

        return await self.synchronized(fn, *args, **kwargs)

    @property
    def locked(self, /) -> bool:
        """
        Whether the lock is currently held.
        """

        return self._held > 0

    @property
    def throw_on_timeout(self, /) -> bool:
        """..."""

        return self._throw_on_timeout
