"""
Process-wide registry of claimed capture devices.

A physical device can be owned by at most one running source; a second
``start()`` against the same device fails with AcquisitionError.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional


class DeviceRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._owners: Dict[str, str] = {}

    def claim(self, device_key: str, owner: str) -> bool:
        """Claim a device for an owner. Returns False if someone else holds it."""
        with self._lock:
            current = self._owners.get(device_key)
            if current is not None and current != owner:
                return False
            self._owners[device_key] = owner
            return True

    def release(self, device_key: str, owner: str) -> None:
        with self._lock:
            if self._owners.get(device_key) == owner:
                del self._owners[device_key]
            else:
                logging.debug(f"Release of {device_key} by non-owner {owner} ignored")

    def owner_of(self, device_key: str) -> Optional[str]:
        with self._lock:
            return self._owners.get(device_key)

    def reset(self) -> None:
        with self._lock:
            self._owners.clear()


# Global instance
devices = DeviceRegistry()
