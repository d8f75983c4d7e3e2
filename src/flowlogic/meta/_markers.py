#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Final

    if sys.version_info >= (3, 11):
        from typing import Literal
    else:
        from typing_extensions import Literal

if sys.version_info >= (3, 11):
    from typing import final
else:
    from typing_extensions import final


@final
class DefaultType(Enum):
    """
    The type of :data:`DEFAULT`.

    A one-member enum, so that a parameter annotated as
    ``float | DefaultType | None`` narrows to ``float | None`` after an
    ``is DEFAULT`` check.
    """

    DEFAULT = "DEFAULT"

    def __repr__(self, /) -> str:
        return f"{self.__class__.__module__}.{self._name_}"

    __str__ = __repr__

    def __bool__(self, /) -> Literal[False]:
        return False


#: Use the value the controller was created with. Unlike :data:`None`, which
#: usually means "wait forever", it never overrides the configured setting.
DEFAULT: Final[Literal[DefaultType.DEFAULT]] = DefaultType.DEFAULT
