#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from functools import update_wrapper
from typing import TYPE_CHECKING, Any, TypeVar

if sys.version_info >= (3, 9):
    from collections.abc import Callable
else:
    from typing import Callable

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import MutableMapping
    else:
        from typing import MutableMapping

_CallableT = TypeVar("_CallableT", bound=Callable[..., Any])


def replaces(
    namespace: MutableMapping[str, Any],
    /,
) -> Callable[[_CallableT], _CallableT]:
    """
    Return a decorator that rebinds the same-named function in *namespace*
    to the decorated one.

    Backend helpers use it to import their library lazily: the module-level
    function does the import on the first call, installs the fast version
    in its own module, and delegates to it.

    Example:
      .. code:: python

        def _trio_clock():
            from trio import current_time

            @replaces(globals())
            def _trio_clock():
                return current_time()

            return _trio_clock()

    Raises:
      LookupError:
        if *namespace* has no function to replace.
    """

    def decorator(replacer: _CallableT, /) -> _CallableT:
        name = replacer.__name__

        try:
            replacee = namespace[name]
        except KeyError:
            module_name = namespace.get("__name__", "<namespace>")

            msg = f"{module_name!r} has no function {name!r} to replace"
            raise LookupError(msg) from None

        # the replacer keeps the public face of the function it replaces
        update_wrapper(replacer, replacee)
        del replacer.__wrapped__

        namespace[name] = replacer

        return replacer

    return decorator
