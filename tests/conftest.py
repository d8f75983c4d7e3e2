#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2024 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import inspect

from functools import partial, wraps

import anyio
import pytest

BACKENDS = ("asyncio", "trio")


def _run_decorator(func, backend):
    @wraps(func)
    def wrapper(*args, **kwargs):
        return anyio.run(partial(func, *args, **kwargs), backend=backend)

    return wrapper


@pytest.fixture(autouse=True)
def backend(request):
    backend = getattr(request, "param", None)

    if backend is not None:
        pytest.importorskip(backend)

    return backend


def pytest_generate_tests(metafunc):
    if inspect.iscoroutinefunction(metafunc.function):
        metafunc.parametrize("backend", BACKENDS, indirect=True)


def pytest_collection_modifyitems(config, items):
    for item in items:
        if inspect.iscoroutinefunction(item.obj):
            backend = item.callspec.params["backend"]

            item.obj = _run_decorator(item.obj, backend)
