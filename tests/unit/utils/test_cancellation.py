"""
Module: test_cancellation.py
Description: Unit tests for the cancellation token.
"""

import asyncio

import pytest

from clawtell.utils.cancellation import CancellationToken, OperationCancelled


class TestCancellationToken:
    """Test cases for CancellationToken."""

    @pytest.mark.asyncio
    async def test_sleep_completes(self):
        token = CancellationToken()
        assert await token.sleep(0.01) is False

    @pytest.mark.asyncio
    async def test_sleep_wakes_on_cancel(self):
        token = CancellationToken()
        task = asyncio.create_task(token.sleep(3600))
        await asyncio.sleep(0)

        token.cancel()

        assert await asyncio.wait_for(task, timeout=1) is True

    @pytest.mark.asyncio
    async def test_sleep_after_cancel_returns_immediately(self):
        token = CancellationToken()
        token.cancel()
        token.cancel()
        assert token.cancelled is True
        assert await token.sleep(3600) is True

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        async def work():
            return 42

        assert await CancellationToken().run(work()) == 42

    @pytest.mark.asyncio
    async def test_run_propagates_errors(self):
        async def work():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await CancellationToken().run(work())

    @pytest.mark.asyncio
    async def test_run_interrupted_by_cancel(self):
        token = CancellationToken()
        finished = []

        async def work():
            try:
                await asyncio.sleep(3600)
            finally:
                finished.append(True)

        task = asyncio.create_task(token.run(work()))
        await asyncio.sleep(0)
        token.cancel()

        with pytest.raises(OperationCancelled):
            await asyncio.wait_for(task, timeout=1)
        assert finished == [True]

    @pytest.mark.asyncio
    async def test_run_after_cancel(self):
        token = CancellationToken()
        token.cancel()

        async def work():
            return 1

        with pytest.raises(OperationCancelled):
            await token.run(work())

    @pytest.mark.asyncio
    async def test_run_timeout(self):
        with pytest.raises(asyncio.TimeoutError):
            await CancellationToken().run(asyncio.sleep(3600), timeout=0.01)
