"""Tests for the cooperative cancel token."""

import asyncio

import pytest

from producthunt_exporter.core.cancellation import CancelToken
from producthunt_exporter.exceptions import ExportCancelled


@pytest.mark.asyncio
async def test_sleep_completes_when_not_cancelled():
    token = CancelToken()

    await token.sleep(0.01)

    assert token.cancelled is False


@pytest.mark.asyncio
async def test_cancel_wakes_sleep_early():
    token = CancelToken()
    loop = asyncio.get_running_loop()
    loop.call_later(0.01, token.cancel, "client disconnected")
    started = loop.time()

    with pytest.raises(ExportCancelled, match="client disconnected"):
        await token.sleep(30)

    assert loop.time() - started < 5
    assert token.reason == "client disconnected"


@pytest.mark.asyncio
async def test_guard_returns_result():
    token = CancelToken()

    async def work():
        return 42

    assert await token.guard(work()) == 42


@pytest.mark.asyncio
async def test_guard_abandons_work_on_cancel():
    token = CancelToken()
    finished = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(30)
        finally:
            finished.set()

    asyncio.get_running_loop().call_later(0.01, token.cancel, "timeout")

    with pytest.raises(ExportCancelled):
        await token.guard(slow())

    assert finished.is_set()


def test_first_reason_wins():
    token = CancelToken()
    token.cancel("timeout")
    token.cancel("client disconnected")

    assert token.reason == "timeout"
    with pytest.raises(ExportCancelled):
        token.raise_if_cancelled()
