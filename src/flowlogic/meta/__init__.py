#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

"""
Internal helpers shared by the rest of the package: the :data:`DEFAULT`
argument marker, lazy rebinding of backend functions, and re-exporting of
public names.
"""

from ._exports import (
    export as export,
)
from ._functions import (
    replaces as replaces,
)
from ._markers import (
    DEFAULT as DEFAULT,
    DefaultType as DefaultType,
)
