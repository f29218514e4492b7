"""
Maintenance mode switch.
"""

import threading

from shared.errors import MaintenanceError
from shared.logging import get_logger


class MaintenanceState:
    """Process-wide maintenance flag."""

    def __init__(self, enabled: bool = False):
        self._flag = threading.Event()
        if enabled:
            self._flag.set()

    @property
    def enabled(self) -> bool:
        return self._flag.is_set()

    def set(self, enabled: bool) -> None:
        if enabled:
            self._flag.set()
        else:
            self._flag.clear()


class MaintenanceGate:
    """Rejects every request while maintenance mode is on."""

    def __init__(self, state: MaintenanceState, retry_after_seconds: int = 3600):
        self.state = state
        self.retry_after_seconds = retry_after_seconds
        self.logger = get_logger("status.maintenance")

    @property
    def enabled(self) -> bool:
        return self.state.enabled

    def check(self) -> None:
        if self.state.enabled:
            raise MaintenanceError(retry_after=self.retry_after_seconds)

    def set_maintenance(self, enabled: bool) -> None:
        previous = self.state.enabled
        self.state.set(enabled)
        if previous != enabled:
            self.logger.warning("Maintenance mode changed", enabled=enabled)
