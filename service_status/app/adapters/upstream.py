"""
Simulated upstream dependency used by the gateway-error demos.

Nothing here talks to the network: the "upstream" either answers with an
unusable payload (502) or takes longer than the gateway is willing to wait
(504).
"""

import asyncio
from typing import Any, Dict, Optional

from shared.errors import UpstreamError, UpstreamTimeoutError
from shared.logging import get_logger


class UpstreamSimulator:
    """Stand-in for a slow or broken downstream service."""

    def __init__(self, timeout_seconds: float = 0.1, operation_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds
        self.operation_seconds = operation_seconds
        self.logger = get_logger("status.upstream")

    async def fetch_external_data(self) -> Dict[str, Any]:
        """Call the external data source; its answer is never valid."""
        payload = await self._external_response()
        if not isinstance(payload, dict) or "data" not in payload:
            self.logger.error("Upstream returned an invalid response", service="external-data")
            raise UpstreamError("external-data")
        return payload

    async def slow_operation(self) -> str:
        """Race the slow operation against the gateway timeout.

        Whichever task finishes first wins and the other one is cancelled.
        Both tasks are also cancelled when the caller itself is cancelled.
        """
        operation = asyncio.create_task(self._run_operation())
        timer = asyncio.create_task(asyncio.sleep(self.timeout_seconds))
        tasks = (operation, timer)

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if operation in done:
            return operation.result()

        self.logger.warning(
            "Upstream operation timed out",
            service="slow-operation",
            timeout_seconds=self.timeout_seconds
        )
        raise UpstreamTimeoutError("slow-operation", self.timeout_seconds)

    async def _external_response(self) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        return None

    async def _run_operation(self) -> str:
        await asyncio.sleep(self.operation_seconds)
        return "data"
