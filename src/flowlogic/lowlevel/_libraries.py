#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from typing import TYPE_CHECKING, Literal

from sniffio import (
    AsyncLibraryNotFoundError as AsyncLibraryNotFoundError,
    thread_local,
)
from wrapt import when_imported

if sys.version_info >= (3, 11):
    from typing import overload
else:
    from typing_extensions import overload

if TYPE_CHECKING:
    from sniffio._impl import _ThreadLocal

#: The thread-local state shared with :mod:`sniffio`. Trio stores its name
#: in ``name`` while it runs, and so can any other library.
current_async_library_tlocal: _ThreadLocal = thread_local


def _running_asyncio_loop() -> object | None:
    return None  # asyncio is not even imported


@when_imported("asyncio")
def _(asyncio):
    global _running_asyncio_loop

    # the private getter returns None where the public one raises
    _running_asyncio_loop = asyncio._get_running_loop


@overload
def current_async_library(*, failsafe: Literal[False] = False) -> str: ...
@overload
def current_async_library(*, failsafe: Literal[True]) -> str | None: ...
def current_async_library(*, failsafe=False):
    """
    Return the name of the async library running in the current thread.

    Flowlogic supports ``"asyncio"`` and ``"trio"``. Any other name found in
    :data:`current_async_library_tlocal` is returned as is, and the
    operations that need a backend reject it with a :exc:`RuntimeError`.

    Args:
      failsafe:
        Return :data:`None` instead of raising when nothing is running.

    Raises:
      AsyncLibraryNotFoundError:
        if no async library is running and *failsafe* is not set.
    """

    name = current_async_library_tlocal.name

    if name is not None:
        return name

    if _running_asyncio_loop() is not None:
        return "asyncio"

    if failsafe:
        return None

    msg = "unknown async library, or not in async context"
    raise AsyncLibraryNotFoundError(msg)
