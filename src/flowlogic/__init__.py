#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

"""
Flow-control primitives for async Python

This package provides primitives that bound how many calls run at once, in
what order waiting calls are served, and how fast calls are admitted:

* mutual exclusion and counting (Semaphore, Lock, RWLock, Monitor)
* rendezvous (Barrier, CountdownLatch)
* isolation and load shedding (Bulkhead, BackpressureController)
* admission rate (RateLimiter)
* ordered execution (PriorityQueueExecutor, FunctionQueue)

Every primitive is an async decorator as well, and runs on asyncio and on
Trio.
"""

from __future__ import annotations

__author__: str = "Ilya Egorov <0x42005e1f@gmail.com>"
__version__: str = "0.1.0"

from . import (  # noqa: F401
    lowlevel,
    meta,
)
from ._backpressure import (
    BackpressureController as BackpressureController,
)
from ._barrier import (
    Barrier as Barrier,
    CountdownLatch as CountdownLatch,
)
from ._bulkhead import (
    Bulkhead as Bulkhead,
)
from ._decorator import (
    synchronized as synchronized,
)
from ._enums import (
    BackpressureStrategy as BackpressureStrategy,
    QueueFullPolicy as QueueFullPolicy,
    QueueMode as QueueMode,
    RateLimitStrategy as RateLimitStrategy,
)
from ._errors import (
    BrokenBarrierError as BrokenBarrierError,
    CapacityExceededError as CapacityExceededError,
    EvictedError as EvictedError,
    FlowError as FlowError,
    InvalidConfigurationError as InvalidConfigurationError,
    LatchUnderflowError as LatchUnderflowError,
    WaitTimeoutError as WaitTimeoutError,
)
from ._hooks import (
    Hooks as Hooks,
)
from ._limiter import (
    RateLimiter as RateLimiter,
)
from ._lock import (
    Lock as Lock,
)
from ._monitor import (
    Monitor as Monitor,
)
from ._priority import (
    PriorityItem as PriorityItem,
    PriorityQueueExecutor as PriorityQueueExecutor,
)
from ._queue import (
    FunctionQueue as FunctionQueue,
)
from ._rwlock import (
    ReaderView as ReaderView,
    RWLock as RWLock,
    WriterView as WriterView,
)
from ._semaphore import (
    Semaphore as Semaphore,
)

# prepare for external use
meta.export(globals())
