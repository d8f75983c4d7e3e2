#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from bisect import insort
from collections import deque
from itertools import count
from typing import TYPE_CHECKING, Any, final

from flowlogic._enums import QueueMode

from ._time import async_clock

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import Iterator
    else:
        from typing import Iterator

    from ._events import AsyncEvent


@final
class WaitEntry:
    """
    A registered waiter: the continuation handle of one suspended caller
    plus the data its queue orders it by.
    """

    __slots__ = (
        "enqueued_at",
        "event",
        "priority",
        "sequence",
        "value",
    )

    enqueued_at: float
    event: AsyncEvent
    priority: float
    sequence: int
    value: Any

    def __init__(
        self,
        /,
        event: AsyncEvent,
        priority: float,
        sequence: int,
        enqueued_at: float,
        value: Any = None,
    ) -> None:
        self.enqueued_at = enqueued_at
        self.event = event
        self.priority = priority
        self.sequence = sequence
        self.value = value

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        return (
            f"<{cls_repr} at {id(self):#x}"
            f" [priority={self.priority!r}, sequence={self.sequence!r}]>"
        )

    def __lt__(self, other: WaitEntry, /) -> bool:
        # highest priority first, then arrival order
        return (-self.priority, self.sequence) < (
            -other.priority,
            other.sequence,
        )


@final
class WaitQueue:
    """
    An ordered collection of waiters.

    In :attr:`~flowlogic.QueueMode.FIFO` mode the oldest waiter is served
    first, in :attr:`~flowlogic.QueueMode.LIFO` mode the newest one, and in
    :attr:`~flowlogic.QueueMode.PRIORITY` mode the one with the highest
    priority (ties are broken by arrival order). A waiter registered without
    a priority counts as priority ``0``, so a priority queue whose callers
    supply no priorities behaves exactly like a FIFO one.
    """

    __slots__ = (
        "__weakref__",
        "_entries",
        "_mode",
        "_sequence",
    )

    def __init__(self, /, mode: QueueMode | str = QueueMode.FIFO) -> None:
        self._mode = mode = QueueMode(mode)

        if mode is QueueMode.PRIORITY:
            self._entries = []
        else:
            self._entries = deque()

        self._sequence = count()

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = f"{cls_repr}({self._mode.value!r})"

        return f"<{object_repr} at {id(self):#x} [length={len(self)}]>"

    def __len__(self, /) -> int:
        return len(self._entries)

    def __bool__(self, /) -> bool:
        return bool(self._entries)

    def __iter__(self, /) -> Iterator[WaitEntry]:
        """Iterate over a snapshot of the entries, in service order."""

        if self._mode is QueueMode.LIFO:
            return iter(list(reversed(self._entries)))

        return iter(list(self._entries))

    def push(
        self,
        /,
        event: AsyncEvent,
        *,
        priority: float | None = None,
        enqueued_at: float | None = None,
        value: Any = None,
    ) -> WaitEntry:
        """
        Register *event* and return its entry.

        Must be called before the owner of *event* suspends.
        """

        if priority is None:
            priority = 0

        if enqueued_at is None:
            enqueued_at = async_clock()

        entry = WaitEntry(
            event,
            priority,
            next(self._sequence),
            enqueued_at,
            value,
        )

        if self._mode is QueueMode.PRIORITY:
            insort(self._entries, entry)
        else:
            self._entries.append(entry)

        return entry

    def first(self, /) -> WaitEntry:
        """
        Return the entry that would be served next.

        Raises:
          IndexError:
            if the queue is empty.
        """

        if self._mode is QueueMode.LIFO:
            return self._entries[-1]

        return self._entries[0]

    def pop(self, /) -> WaitEntry:
        """
        Remove and return the entry that is served next.

        Raises:
          IndexError:
            if the queue is empty.
        """

        if self._mode is QueueMode.FIFO:
            return self._entries.popleft()

        if self._mode is QueueMode.LIFO:
            return self._entries.pop()

        return self._entries.pop(0)

    def remove(self, /, entry: WaitEntry) -> None:
        """
        Remove *entry*.

        Raises:
          ValueError:
            if the queue does not contain *entry*.
        """

        self._entries.remove(entry)

    def discard(self, /, entry: WaitEntry) -> bool:
        """..."""

        try:
            self._entries.remove(entry)
        except ValueError:
            return False
        else:
            return True

    def position(self, /, entry: WaitEntry) -> int:
        """
        Return the 1-based position of *entry* in service order.

        Raises:
          ValueError:
            if the queue does not contain *entry*.
        """

        index = self._entries.index(entry)

        if self._mode is QueueMode.LIFO:
            return len(self._entries) - index

        return index + 1

    def clear(self, /) -> list[WaitEntry]:
        """Remove all entries and return them in service order."""

        entries = list(self)

        self._entries.clear()

        return entries

    @property
    def mode(self, /) -> QueueMode:
        """..."""

        return self._mode
