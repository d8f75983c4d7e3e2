#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import Callable
    else:
        from typing import Callable

LOGGER: Final[Logger] = getLogger(__name__)

_HOOK_NAMES: Final[frozenset[str]] = frozenset({
    "on_blocked",
    "on_buffer_full",
    "on_isolation_failure",
    "on_item_dropped",
    "on_overflow",
    "on_queue_change",
    "on_starvation_prevention",
    "on_timeout",
    "on_waiting",
})


class Hooks:
    """
    Observability callbacks of a controller.

    Every method does nothing by default. Either subclass and override the
    methods you need, or pass plain callables under the same names:

    .. code:: python

        hooks = flowlogic.Hooks(
            on_waiting=lambda position: print("queued at", position),
        )
        semaphore = flowlogic.Semaphore(2, hooks=hooks)

    Hooks run synchronously inside the controller. An exception raised by a
    hook is logged and otherwise ignored: it never fails the call that
    triggered it.
    """

    __slots__ = (
        "__weakref__",
        "_callbacks",
    )

    def __init__(self, /, **callbacks: Callable[..., object]) -> None:
        if unknown := callbacks.keys() - _HOOK_NAMES:
            msg = f"unknown hooks: {', '.join(sorted(unknown))}"
            raise TypeError(msg)

        self._callbacks = callbacks

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        names = ", ".join(sorted(self._callbacks))

        return f"<{cls_repr} at {id(self):#x} [{names}]>"

    def _dispatch(self, /, name: str, *args: Any) -> None:
        callback = self._callbacks.get(name)

        if callback is not None:
            callback(*args)

    def on_blocked(self, /) -> None:
        """A caller could not acquire a lock immediately and will wait."""

        self._dispatch("on_blocked")

    def on_waiting(self, /, position: int) -> None:
        """A caller was queued at the 1-based *position*."""

        self._dispatch("on_waiting", position)

    def on_timeout(self, /) -> None:
        """..."""

        self._dispatch("on_timeout")

    def on_overflow(self, /) -> None:
        """A call was rejected because all slots were busy."""

        self._dispatch("on_overflow")

    def on_buffer_full(self, /) -> None:
        """..."""

        self._dispatch("on_buffer_full")

    def on_item_dropped(self, /, item: object) -> None:
        """A queued or incoming item was dropped."""

        self._dispatch("on_item_dropped", item)

    def on_starvation_prevention(self, /, item: object) -> None:
        """The priority of a long-waiting item was boosted."""

        self._dispatch("on_starvation_prevention", item)

    def on_isolation_failure(self, /, exc: BaseException) -> None:
        """..."""

        self._dispatch("on_isolation_failure", exc)

    def on_queue_change(self, /, size: int) -> None:
        """..."""

        self._dispatch("on_queue_change", size)


NOOP_HOOKS: Final[Hooks] = Hooks()


def fire(hooks: Hooks, name: str, /, *args: Any) -> None:
    """Call the hook *name*, logging any exception it raises."""

    try:
        getattr(hooks, name)(*args)
    except Exception:
        LOGGER.exception("exception calling hook %s of %r", name, hooks)
