"""
Unit tests for the simulated upstream.
"""

import asyncio

import pytest

from service_status.app.adapters.upstream import UpstreamSimulator
from shared.errors import UpstreamError, UpstreamTimeoutError


class TestUpstreamSimulator:
    """Test cases for UpstreamSimulator."""

    @pytest.mark.asyncio
    async def test_external_data_is_bad_gateway(self):
        """Test the external data call always fails with 502."""
        upstream = UpstreamSimulator()

        with pytest.raises(UpstreamError) as exc_info:
            await upstream.fetch_external_data()

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Upstream server returned an invalid response"

    @pytest.mark.asyncio
    async def test_slow_operation_times_out(self):
        """Test the timer wins the race with the default literals."""
        upstream = UpstreamSimulator(timeout_seconds=0.01, operation_seconds=5.0)
        loop = asyncio.get_running_loop()
        started = loop.time()

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await upstream.slow_operation()

        assert exc_info.value.status_code == 504
        assert loop.time() - started < 1.0

    @pytest.mark.asyncio
    async def test_slow_operation_cancels_loser(self):
        """Test no task from the race is left running."""
        upstream = UpstreamSimulator(timeout_seconds=0.01, operation_seconds=5.0)
        before = asyncio.all_tasks()

        with pytest.raises(UpstreamTimeoutError):
            await upstream.slow_operation()

        leftover = [task for task in asyncio.all_tasks() - before if not task.done()]
        assert leftover == []

    @pytest.mark.asyncio
    async def test_cancelled_caller_cancels_race(self):
        """Test cancelling the caller mid-race leaves no task behind."""
        upstream = UpstreamSimulator(timeout_seconds=1.0, operation_seconds=5.0)
        before = asyncio.all_tasks()

        call = asyncio.create_task(upstream.slow_operation())
        await asyncio.sleep(0.05)
        call.cancel()

        with pytest.raises(asyncio.CancelledError):
            await call

        leftover = [task for task in asyncio.all_tasks() - before if not task.done()]
        assert leftover == []

    @pytest.mark.asyncio
    async def test_fast_operation_wins(self):
        """Test the operation result is returned when it beats the timer."""
        upstream = UpstreamSimulator(timeout_seconds=5.0, operation_seconds=0.0)

        assert await upstream.slow_operation() == "data"
