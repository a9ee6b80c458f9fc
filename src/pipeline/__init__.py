"""
Pipeline module for the detection system.

The pipeline orchestrates the full processing flow:
- Throttled frame acquisition from a frame source
- Preprocessing, inference, decoding and filtering
- Atomic publication to the DetectionStore
- The fixed-cadence tick loop that drives it all
"""

from .store import DetectionStore
from .scheduler import InferenceScheduler, SchedulerStats, TickOutcome
from .builder import create_pipeline_from_config
from .driver import TickLoop, TickLoopConfig

__all__ = [
    "DetectionStore",
    "InferenceScheduler",
    "SchedulerStats",
    "TickOutcome",
    "create_pipeline_from_config",
    "TickLoop",
    "TickLoopConfig",
]
