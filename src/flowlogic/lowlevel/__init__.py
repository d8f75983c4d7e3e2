#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2024 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

"""
Low-level building blocks shared by all controllers: async library
detection, checkpoints, the event loop clock, one-shot waiters and events,
ordered wait queues, periodic timers, and cancellation shielding.
"""

from ._checkpoints import (
    async_checkpoint as async_checkpoint,
    async_checkpoint_enabled as async_checkpoint_enabled,
)
from ._events import (
    AsyncEvent as AsyncEvent,
    create_async_event as create_async_event,
)
from ._libraries import (
    AsyncLibraryNotFoundError as AsyncLibraryNotFoundError,
    current_async_library as current_async_library,
    current_async_library_tlocal as current_async_library_tlocal,
)
from ._queues import (
    WaitEntry as WaitEntry,
    WaitQueue as WaitQueue,
)
from ._tasks import (
    shield as shield,
)
from ._time import (
    async_clock as async_clock,
    async_sleep as async_sleep,
    async_sleep_until as async_sleep_until,
)
from ._timers import (
    PeriodicTimer as PeriodicTimer,
    call_periodically as call_periodically,
)
from ._waiters import (
    AsyncWaiter as AsyncWaiter,
    create_async_waiter as create_async_waiter,
)
