"""Connectivity state consulted by the source clients before going live."""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class NetworkMonitor:
    """Holds the current online/offline flag.

    Whatever detects connectivity (a platform hook, a health probe) calls
    ``set_connected``; the clients only read ``is_connected``.
    """

    def __init__(self, connected: bool = True) -> None:
        self._connected = connected
        self.has_been_online = connected

    @property
    def is_connected(self) -> bool:
        return self._connected

    def set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        if connected:
            self.has_been_online = True
            logger.info("Network connection restored")
        else:
            logger.warning("Network connection lost; serving cached prices only")
