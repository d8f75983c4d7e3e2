#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

from enum import Enum


class QueueMode(Enum):
    """
    The order in which suspended callers are served.

    Only :attr:`FIFO` guarantees arrival-order service.
    """

    FIFO = "fifo"
    LIFO = "lifo"
    PRIORITY = "priority"


class RateLimitStrategy(Enum):
    """..."""

    TOKEN_BUCKET = "token_bucket"
    LEAKY_BUCKET = "leaky_bucket"
    FIXED_WINDOW = "fixed_window"
    SLIDING_WINDOW = "sliding_window"


class BackpressureStrategy(Enum):
    """
    What a :class:`BackpressureController` does with a call that finds all
    of its execution slots busy.
    """

    DROP = "drop"
    DROP_OLDEST = "drop_oldest"
    BUFFER = "buffer"
    SAMPLE = "sample"
    THROTTLE = "throttle"
    ERROR = "error"


class QueueFullPolicy(Enum):
    """..."""

    DROP_LOWEST_PRIORITY = "drop_lowest_priority"
    DROP_NEW = "drop_new"
    ERROR = "error"
    WAIT_FOR_SPACE = "wait_for_space"
