#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import pytest

import flowlogic


async def test_current_async_library(backend):
    lib1 = flowlogic.lowlevel.current_async_library()
    lib2 = flowlogic.lowlevel.current_async_library(failsafe=False)
    lib3 = flowlogic.lowlevel.current_async_library(failsafe=True)

    assert lib1 == lib2 == lib3 == backend


def test_current_async_library_failsafe():
    with pytest.raises(flowlogic.lowlevel.AsyncLibraryNotFoundError):
        flowlogic.lowlevel.current_async_library()

    with pytest.raises(flowlogic.lowlevel.AsyncLibraryNotFoundError):
        flowlogic.lowlevel.current_async_library(failsafe=False)

    assert flowlogic.lowlevel.current_async_library(failsafe=True) is None


def test_current_async_library_tlocal():
    assert flowlogic.lowlevel.current_async_library_tlocal.name is None
    flowlogic.lowlevel.current_async_library_tlocal.name = "someio"

    try:
        assert flowlogic.lowlevel.current_async_library() == "someio"
    finally:
        flowlogic.lowlevel.current_async_library_tlocal.name = None


async def test_unsupported_library():
    tlocal = flowlogic.lowlevel.current_async_library_tlocal
    name, tlocal.name = tlocal.name, "someio"

    try:
        with pytest.raises(RuntimeError, match="unsupported"):
            flowlogic.lowlevel.async_clock()

        with pytest.raises(RuntimeError, match="unsupported"):
            flowlogic.lowlevel.create_async_waiter()
    finally:
        tlocal.name = name


async def test_checkpoint(backend):
    await flowlogic.lowlevel.async_checkpoint()
    await flowlogic.lowlevel.async_checkpoint(force=True)

    if backend == "trio":
        assert flowlogic.lowlevel.async_checkpoint_enabled()
    else:
        assert not flowlogic.lowlevel.async_checkpoint_enabled()


async def test_clock_and_sleep():
    start = flowlogic.lowlevel.async_clock()

    await flowlogic.lowlevel.async_sleep(0.05)

    middle = flowlogic.lowlevel.async_clock()

    assert middle - start >= 0.04

    await flowlogic.lowlevel.async_sleep_until(middle + 0.05)

    assert flowlogic.lowlevel.async_clock() - middle >= 0.04

    # a deadline in the past does not block
    await flowlogic.lowlevel.async_sleep_until(start)


async def test_sleep_validation():
    with pytest.raises(ValueError):
        await flowlogic.lowlevel.async_sleep(-1)

    with pytest.raises(ValueError):
        await flowlogic.lowlevel.async_sleep(float("nan"))

    with pytest.raises(ValueError):
        await flowlogic.lowlevel.async_sleep_until(float("nan"))
