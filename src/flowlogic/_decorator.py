#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from inspect import iscoroutinefunction
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, Union

from wrapt import FunctionWrapper, decorator

from ._lock import Lock

if sys.version_info >= (3, 11):
    from typing import overload
else:
    from typing_extensions import overload

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

_CallableT = TypeVar("_CallableT", bound=Callable[..., Awaitable[Any]])


class _Acquirable(Protocol):
    async def acquire(self, /) -> object: ...
    def release(self, /) -> object: ...


class _Enterable(Protocol):
    async def __aenter__(self, /) -> object: ...
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
        /,
    ) -> object: ...


_Guard = Union[_Acquirable, _Enterable]


def _check_coroutine_function(wrapped: object, /) -> None:
    if not iscoroutinefunction(wrapped):
        msg = f"a coroutine function was expected, got {wrapped!r}"
        raise TypeError(msg)


class _Synchronizer:
    __slots__ = (
        "_enter",
        "_exit",
        "_guard",
        "_wrapper",
    )

    def __init__(self, /, guard: _Guard) -> None:
        self._guard = guard

        if hasattr(guard, "acquire") and hasattr(guard, "release"):
            acquire = guard.acquire
            release = guard.release

            async def acquire_guard():
                await acquire()

            async def release_guard(exc_type, exc_value, traceback):
                release()

        else:
            acquire_guard = guard.__aenter__
            release_guard = guard.__aexit__

        self._enter = acquire_guard
        self._exit = release_guard

        @decorator
        async def _wrapper(wrapped, instance, args, kwargs, /):
            await acquire_guard()

            try:
                result = await wrapped(*args, **kwargs)
            except BaseException as exc:
                await release_guard(type(exc), exc, exc.__traceback__)
                raise
            else:
                await release_guard(None, None, None)

            return result

        self._wrapper = _wrapper

    def __repr__(self, /) -> str:
        return f"flowlogic.synchronized({self._guard!r})"

    async def __aenter__(self, /) -> Self:
        await self._enter()

        return self

    async def __aexit__(
        self,
        /,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self._exit(exc_type, exc_value, traceback)

    def __call__(self, wrapped: _CallableT, /) -> _CallableT:
        _check_coroutine_function(wrapped)

        return self._wrapper(wrapped)


def _lock_of(owner: Any, /) -> Lock:
    try:
        return owner._synchronized_lock
    except AttributeError:
        pass

    # no checkpoint between the check and the assignment
    owner._synchronized_lock = lock = Lock()

    return lock


class _SynchronizedFunction(FunctionWrapper):
    __slots__ = ()

    async def __aenter__(self, /):
        await _lock_of(self.__wrapped__).acquire()

        return self

    async def __aexit__(self, /, exc_type, exc_value, traceback):
        _lock_of(self.__wrapped__).release()


async def _synchronized_call(wrapped, instance, args, kwargs, /):
    # one lock per instance for methods, one per function otherwise
    lock = _lock_of(wrapped if instance is None else instance)

    async with lock:
        return await wrapped(*args, **kwargs)


@overload
def synchronized(wrapped: _Guard, /) -> _Synchronizer: ...
@overload
def synchronized(  # type: ignore[overload-overlap]
    wrapped: _CallableT,
    /,
) -> _CallableT: ...
def synchronized(wrapped, /):
    """
    Serialize access through *wrapped*.

    * Given an object with an async ``acquire()`` and a plain ``release()``
      (a :class:`Lock` or a :class:`Semaphore`), return a decorator that is
      also an async context manager, both guarded by that object.
    * Given an async context manager (a :class:`Monitor`, an
      :class:`RWLock` view), do the same with ``async with``.
    * Given a coroutine function, guard it with a :class:`Lock` created on
      the first call: one per instance for methods, one per function
      otherwise. The lock is stored as ``_synchronized_lock``. It is not
      reentrant, so a synchronized method must not call another
      synchronized method of the same instance.

    Example:
      .. code:: python

        class Account:
            @flowlogic.synchronized
            async def withdraw(self, amount):
                ...
    """

    acquirable = hasattr(wrapped, "acquire") and hasattr(wrapped, "release")
    enterable = (
        hasattr(wrapped, "__aenter__") and hasattr(wrapped, "__aexit__")
    )

    if acquirable or enterable:
        return _Synchronizer(wrapped)

    _check_coroutine_function(wrapped)

    return _SynchronizedFunction(
        wrapped=wrapped,
        wrapper=_synchronized_call,
    )
