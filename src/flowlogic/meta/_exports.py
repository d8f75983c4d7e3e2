#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from types import FunctionType, ModuleType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import MutableMapping
    else:
        from typing import MutableMapping


def _defined_privately(value: object, package_name: str, /) -> bool:
    module_name = getattr(value, "__module__", None)

    if module_name is None:
        return False

    head, _, tail = module_name.rpartition(".")

    # only direct private submodules, such as `flowlogic._lock`
    return head == package_name and tail.startswith("_")


def export(namespace: MutableMapping[str, object], /) -> None:
    """
    Present the public names of a package as its own.

    Classes and functions that are defined in private submodules of the
    package get the package as their ``__module__``, so that reprs,
    documentation and pickles show ``flowlogic.Lock`` rather than
    ``flowlogic._lock.Lock``. Public subpackages are processed first, and
    each package gets a sorted :keyword:`__all__ <import>` unless it
    defines one.

    Call it as ``export(globals())`` at the end of ``__init__.py``.
    """

    package_name = namespace["__name__"]
    public_names = []

    for name, value in list(namespace.items()):
        if name.startswith("_"):
            continue

        if isinstance(value, ModuleType):
            if value.__name__.rpartition(".")[0] == package_name:
                export(vars(value))

            continue

        public_names.append(name)

        if not isinstance(value, (type, FunctionType)):
            continue  # constants keep their identity

        if _defined_privately(value, package_name):
            value.__module__ = package_name

    # constants first, then everything else in alphabetical order
    public_names.sort()
    public_names.sort(key=str.isupper, reverse=True)

    namespace.setdefault("__all__", tuple(public_names))
