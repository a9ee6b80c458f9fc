"""
Fixed-cadence tick loop around the InferenceScheduler.

Plays the role of the host's per-frame update: calls ``on_tick()`` at
``tick_hz``, optionally shows an annotated preview window, and logs
statistics periodically.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass
from typing import Callable, List, Optional

import cv2

from models.detection import DetectionSet
from visualization.overlay import draw_detections, draw_status, summarize
from .scheduler import InferenceScheduler, TickOutcome


@dataclass
class TickLoopConfig:
    """
    Attributes:
        tick_hz: Scheduling ticks per second.
        display: Show a cv2 preview window of the latest frame with detections.
        stats_log_interval: Seconds between status log messages.
    """
    tick_hz: float = 30.0
    display: bool = False
    stats_log_interval: float = 60.0


class TickLoop:
    """
    Example:
        loop = TickLoop(scheduler, TickLoopConfig(tick_hz=30.0, display=True))
        loop.run()
    """

    def __init__(self, scheduler: InferenceScheduler, config: TickLoopConfig):
        if config.tick_hz <= 0:
            raise ValueError(f"tick_hz must be positive, got {config.tick_hz}")
        self.scheduler = scheduler
        self.config = config
        self.outcomes: Counter = Counter()
        self._running = False
        self._last_stats_log_time = time.time()
        self._callbacks: List[Callable[[TickOutcome], None]] = []

    def add_callback(self, callback: Callable[[TickOutcome], None]) -> None:
        """Add a callback called with the outcome of every tick."""
        self._callbacks.append(callback)

    def run(self, max_ticks: Optional[int] = None, stop_event: Optional[threading.Event] = None) -> None:
        """
        Tick until stopped, ``max_ticks`` is reached or ``stop_event`` is set,
        then shut the scheduler down.
        """
        self._running = True
        period = 1.0 / self.config.tick_hz
        next_tick = time.monotonic()
        ticks = 0
        logging.info(f"Tick loop started: {self.config.tick_hz} Hz")

        try:
            while self._running:
                if stop_event is not None and stop_event.is_set():
                    break
                if max_ticks is not None and ticks >= max_ticks:
                    break

                outcome = self.scheduler.on_tick()
                ticks += 1
                self.outcomes[outcome] += 1

                for callback in self._callbacks:
                    try:
                        callback(outcome)
                    except Exception as e:
                        logging.warning(f"Callback error: {e}")

                if self.config.display and not self._handle_display():
                    break  # User pressed 'q'

                self._handle_periodic_tasks()

                next_tick += period
                delay = next_tick - time.monotonic()
                if delay > 0:
                    time.sleep(delay)
                else:
                    # Fell behind; don't try to catch up with a burst of ticks
                    next_tick = time.monotonic()
        except KeyboardInterrupt:
            logging.info("Tick loop interrupted by user")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the loop to stop after the current tick."""
        self._running = False

    def _handle_display(self) -> bool:
        """
        Draw the newest frame with the current snapshot.

        Returns False if user pressed 'q' to quit.
        """
        source = self.scheduler.source
        frame = source.latest_frame() if source.is_running() else None
        if frame is not None:
            snapshot = self.scheduler.store.snapshot()
            image = cv2.cvtColor(frame.pixels, cv2.COLOR_RGB2BGR)
            draw_detections(image, snapshot)
            draw_status(image, self._status_line(snapshot))
            cv2.imshow("holodetect", image)
        key = cv2.waitKey(1) & 0xFF
        return key != ord('q')

    def _status_line(self, snapshot: DetectionSet) -> str:
        if not self.scheduler.inference_enabled:
            return "inference disabled"
        counts = summarize(snapshot)
        if not counts:
            return "no detections"
        return ", ".join(f"{label} x{n}" for label, n in sorted(counts.items()))

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        if now - self._last_stats_log_time >= self.config.stats_log_interval:
            stats = self.scheduler.stats
            latency = stats.mean_latency_ms
            latency_str = f"{latency:.1f}ms" if latency is not None else "n/a"
            logging.info(
                f"Pipeline stats: ticks={stats.ticks}, published={stats.published}, "
                f"failures={stats.failures}, skipped_busy={stats.skipped_busy}, "
                f"no_frame={stats.skipped_no_frame}, mean_latency={latency_str}"
            )
            self._last_stats_log_time = now

    def _cleanup(self) -> None:
        self._running = False
        self.scheduler.shutdown()
        if self.config.display:
            cv2.destroyAllWindows()
        logging.info(f"Tick loop stopped: outcomes={dict((k.value, v) for k, v in self.outcomes.items())}")
