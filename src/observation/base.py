"""
FrameSource contract for pluggable camera providers.

Every provider (live device, hardware-research placeholder, synthetic feed)
implements the same small capability set:

    start()        Stopped -> Running, raises AcquisitionError
    stop()         Running -> Stopped, idempotent
    is_running()   current state
    latest_frame() most recent Frame, or None

Providers are selected by kind through the dispatch table in
``observation.factory``; they share buffer handling by composing a
``FrameSlot`` rather than by inheriting from a common base.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

import numpy as np

from models.frame import Frame


@dataclass
class SourceConfig:
    """
    Base configuration for frame sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "main-camera").
        resolution: Target resolution as (width, height). None = use source default.
        fps: Target frames per second. None = use source default.
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class FrameSource(Protocol):
    """Camera-source collaborator contract."""

    @property
    def source_id(self) -> str:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def is_running(self) -> bool:
        ...

    def latest_frame(self) -> Optional[Frame]:
        ...


class FrameSlot:
    """
    Double-buffered frame slot.

    The producer writes into the capture-side buffer; ``read()`` copies the
    newest capture into the consumer-side buffer and hands out a read-only
    view of it. The consumer buffer is only overwritten by the next ``read()``,
    so a returned Frame stays valid until the next acquisition call.
    Sequence ids keep increasing across ``clear()`` calls.
    """

    def __init__(self, source_id: str):
        self._source_id = source_id
        self._lock = threading.Lock()
        self._back: Optional[np.ndarray] = None
        self._back_ts = 0.0
        self._front: Optional[np.ndarray] = None
        self._front_frame: Optional[Frame] = None
        self._sequence = 0
        self._has_frame = False

    @property
    def sequence(self) -> int:
        """Sequence id of the newest produced frame (0 if none ever produced)."""
        return self._sequence

    def write(self, pixels: np.ndarray, timestamp: float) -> int:
        """Store a new RGB frame from the producer and return its sequence id."""
        with self._lock:
            if self._back is None or self._back.shape != pixels.shape:
                self._back = np.empty(pixels.shape, dtype=np.uint8)
            np.copyto(self._back, pixels, casting="unsafe")
            self._back_ts = timestamp
            self._sequence += 1
            self._has_frame = True
            return self._sequence

    def read(self) -> Optional[Frame]:
        """Return the newest frame, or None if nothing was produced since the last clear."""
        with self._lock:
            if not self._has_frame or self._back is None:
                return None
            if self._front_frame is not None and self._front_frame.sequence_id == self._sequence:
                return self._front_frame

            if self._front is None or self._front.shape != self._back.shape:
                self._front = np.empty_like(self._back)
            np.copyto(self._front, self._back)

            view = self._front.view()
            view.flags.writeable = False
            self._front_frame = Frame.from_numpy(
                view,
                sequence_id=self._sequence,
                timestamp=self._back_ts,
                source=self._source_id,
            )
            return self._front_frame

    def clear(self) -> None:
        """Drop both buffers."""
        with self._lock:
            self._back = None
            self._front = None
            self._front_frame = None
            self._has_frame = False
