#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations


class FlowError(Exception):
    """The base class of all errors raised by the controllers themselves."""


class CapacityExceededError(FlowError, RuntimeError):
    """
    Admission was denied synchronously: a buffer or queue is full, or the
    strategy rejects calls at capacity. The caller decides whether to retry.
    """


class WaitTimeoutError(FlowError, TimeoutError):
    """
    A bounded wait expired before admission or before the awaited condition.

    The wait entry has already been removed when this error is raised.
    """


class InvalidConfigurationError(FlowError, ValueError):
    """A constructor argument is out of range."""


class BrokenBarrierError(FlowError, RuntimeError):
    """..."""


class LatchUnderflowError(FlowError, RuntimeError):
    """..."""


class EvictedError(FlowError, RuntimeError):
    """
    An admitted call was evicted from a buffer or queue before it started,
    to make room for another one.
    """
