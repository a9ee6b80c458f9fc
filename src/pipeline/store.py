"""
Single-owner holder of the current detection result.

The scheduler publishes, any number of readers (overlay, web API) take
snapshots. Readers always see either the complete previous set or the
complete new set, never a partially built one.
"""

from __future__ import annotations

import threading
from typing import Tuple

from models.detection import EMPTY_DETECTION_SET, DetectionSet


class DetectionStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._current: DetectionSet = EMPTY_DETECTION_SET
        self._generation = 0

    def publish(self, detection_set: DetectionSet) -> int:
        """Replace the current set and return the new generation number."""
        if not isinstance(detection_set, DetectionSet):
            raise TypeError(f"Expected DetectionSet, got {type(detection_set).__name__}")
        with self._lock:
            self._current = detection_set
            self._generation += 1
            return self._generation

    def snapshot(self) -> DetectionSet:
        """Return the current set (the empty set before the first publish)."""
        with self._lock:
            return self._current

    def snapshot_with_generation(self) -> Tuple[DetectionSet, int]:
        """Return the current set and its generation, read together."""
        with self._lock:
            return self._current, self._generation

    @property
    def generation(self) -> int:
        """Number of publishes so far; readers compare it to skip unchanged sets."""
        with self._lock:
            return self._generation
