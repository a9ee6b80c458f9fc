"""
Inference scheduler: throttled acquisition → inference → publication.

``on_tick()`` is called once per scheduling tick by a single loop. Every
``inference_interval``-th tick it pulls the latest frame, runs
prepare → execute → decode → filter and publishes the result to the
DetectionStore. A failed attempt leaves the previously published set in
place; an output layout the decoder cannot interpret switches inference off
for the rest of the run.

With ``offload`` enabled the inference steps run on a single worker thread,
so the tick loop (and acquisition) never waits on the engine. The busy flag
keeps at most one inference in flight in both modes.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from inference.backend import InferenceEngine, describe_outputs
from models.config import PipelineConfig
from models.detection import Detection, DetectionSet
from models.errors import (
    EngineExecutionError,
    InvalidFrameError,
    UnsupportedOutputShapeError,
)
from models.frame import Frame
from models.tensor import Tensor
from observation.base import FrameSource
from processing.decoders import Decoder
from processing.filtering import DetectionFilter
from processing.preprocess import Preprocessor
from spatial.projection import WorldPositionResolver
from .store import DetectionStore


class TickOutcome(str, Enum):
    """What a single ``on_tick()`` call did."""
    SKIPPED_INTERVAL = "skipped_interval"
    BUSY = "busy"
    DISABLED = "disabled"
    NO_FRAME = "no_frame"
    SUBMITTED = "submitted"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclass
class SchedulerStats:
    """Runtime statistics for the scheduler."""
    ticks: int = 0
    attempts: int = 0
    published: int = 0
    failures: int = 0
    skipped_busy: int = 0
    skipped_no_frame: int = 0
    last_latency_ms: Optional[float] = None
    total_latency_ms: float = 0.0
    last_error: Optional[str] = None
    last_publish_time: Optional[float] = None

    @property
    def mean_latency_ms(self) -> Optional[float]:
        completed = self.published + self.failures
        if completed == 0:
            return None
        return self.total_latency_ms / completed

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["mean_latency_ms"] = self.mean_latency_ms
        return d


class InferenceScheduler:
    """
    Drives the detection pipeline at a throttled cadence.

    Example:
        scheduler = InferenceScheduler(source, Preprocessor(), engine, decoder,
                                       DetectionFilter(True), store, config, labels)
        scheduler.start()
        while running:
            scheduler.on_tick()
        scheduler.shutdown()

    Passing ``engine=None`` runs the pipeline in inference-disabled mode: the
    source still runs and the store keeps serving the empty set.
    """

    def __init__(
        self,
        source: FrameSource,
        preprocessor: Preprocessor,
        engine: Optional[InferenceEngine],
        decoder: Optional[Decoder],
        detection_filter: DetectionFilter,
        store: DetectionStore,
        config: PipelineConfig,
        labels: Sequence[str] = (),
        world_resolver: Optional[WorldPositionResolver] = None,
        disabled_reason: Optional[str] = None,
    ):
        config.validate()
        self.source = source
        self.preprocessor = preprocessor
        self.engine = engine
        self.decoder = decoder
        self.detection_filter = detection_filter
        self.store = store
        self.config = config
        self.labels: List[str] = list(labels)
        self.world_resolver = world_resolver
        self.stats = SchedulerStats()

        self._tick = 0
        self._busy = threading.Event()
        self._inference_enabled = engine is not None and decoder is not None
        self._disabled_reason = disabled_reason
        if not self._inference_enabled and self._disabled_reason is None:
            self._disabled_reason = "no inference engine configured"
        self._executor: Optional[ThreadPoolExecutor] = None
        if config.offload:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="inference")
        self._outputs_validated = False
        self._shut_down = False

    @property
    def tick_count(self) -> int:
        return self._tick

    @property
    def is_busy(self) -> bool:
        return self._busy.is_set()

    @property
    def inference_enabled(self) -> bool:
        return self._inference_enabled

    @property
    def disabled_reason(self) -> Optional[str]:
        return self._disabled_reason

    def start(self) -> None:
        """
        Start the frame source and check the model's output layout once.

        Raises:
            AcquisitionError: If the source cannot be started.
        """
        self.source.start()
        if self._inference_enabled:
            self._validate_outputs()
        else:
            logging.warning(f"Inference disabled: {self._disabled_reason}")

    def _validate_outputs(self) -> None:
        """Run one blank input through the engine and let the decoder check the output shapes."""
        shape = self.preprocessor.input_shape(self.config.model_input_width, self.config.model_input_height)
        blank = Tensor.from_array(np.zeros(shape, dtype=np.float32))
        try:
            outputs = self.engine.execute(blank)
        except Exception as e:
            logging.warning(f"Startup output check failed, shapes will be checked on first inference: {e}")
            return

        try:
            self._check_output_shapes(outputs)
        except UnsupportedOutputShapeError as e:
            self._disable(str(e))

    def _check_output_shapes(self, outputs: List[Tensor]) -> None:
        """Validate the output layout against the decoder and label table, once per run."""
        shapes = describe_outputs(outputs)
        self.decoder.validate(shapes, num_classes=len(self.labels) or None)
        self._outputs_validated = True
        logging.info(f"Model outputs validated: family={self.decoder.family.value}, shapes={shapes}")

    def _disable(self, reason: str) -> None:
        if not self._inference_enabled:
            return
        self._inference_enabled = False
        self._disabled_reason = reason
        logging.error(f"Inference disabled: {reason}")

    def on_tick(self) -> TickOutcome:
        """Advance one scheduling tick."""
        self._tick += 1
        self.stats.ticks = self._tick
        if self._tick % self.config.inference_interval != 0:
            return TickOutcome.SKIPPED_INTERVAL

        if self._busy.is_set():
            self.stats.skipped_busy += 1
            return TickOutcome.BUSY

        if not self._inference_enabled:
            return TickOutcome.DISABLED

        frame = self.source.latest_frame() if self.source.is_running() else None
        if frame is None:
            self.stats.skipped_no_frame += 1
            return TickOutcome.NO_FRAME

        self._busy.set()
        if self._executor is not None:
            # The worker may still be using the frame after the next latest_frame() call
            future = self._executor.submit(self._run_inference, frame.copy())
            future.add_done_callback(self._on_worker_done)
            return TickOutcome.SUBMITTED
        return self._run_inference(frame)

    def _run_inference(self, frame: Frame) -> TickOutcome:
        start = time.perf_counter()
        self.stats.attempts += 1
        try:
            tensor = self.preprocessor.prepare(
                frame, self.config.model_input_width, self.config.model_input_height
            )
            outputs = self.engine.execute(tensor)
            if not self._outputs_validated:
                self._check_output_shapes(outputs)
            candidates = self.decoder.decode(outputs, frame.width, frame.height, self.labels)
            detections = self.detection_filter.filter(candidates, self.config.confidence_threshold)
            if self.world_resolver is not None:
                detections = self._resolve_world_positions(detections, frame)

            self.store.publish(DetectionSet.build(detections, frame.sequence_id))
            self.stats.published += 1
            self.stats.last_publish_time = time.time()
            return TickOutcome.PUBLISHED
        except UnsupportedOutputShapeError as e:
            self._record_failure(str(e))
            self._disable(str(e))
            return TickOutcome.FAILED
        except (InvalidFrameError, EngineExecutionError, ValueError) as e:
            self._record_failure(str(e))
            logging.warning(
                f"Inference failed on frame {frame.sequence_id}, keeping previous detections: {e}"
            )
            return TickOutcome.FAILED
        except Exception as e:
            # Engines and decoders may raise outside the error taxonomy
            self._record_failure(f"{type(e).__name__}: {e}")
            logging.exception(
                f"Unexpected inference error on frame {frame.sequence_id}, keeping previous detections: {e!r}"
            )
            return TickOutcome.FAILED
        finally:
            latency_ms = (time.perf_counter() - start) * 1000.0
            self.stats.last_latency_ms = latency_ms
            self.stats.total_latency_ms += latency_ms
            self._busy.clear()

    def _record_failure(self, message: str) -> None:
        self.stats.failures += 1
        self.stats.last_error = message

    def _resolve_world_positions(self, detections: List[Detection], frame: Frame) -> List[Detection]:
        resolved = []
        for det in detections:
            try:
                position = self.world_resolver.resolve(det, frame.width, frame.height)
            except Exception as e:
                logging.warning(f"World position resolution failed for {det.label!r}: {e}")
                position = None
            resolved.append(det.with_world_position(position) if position is not None else det)
        return resolved

    def _on_worker_done(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            self._record_failure(str(exc))
            logging.error(f"Inference worker crashed: {exc!r}")

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no inference is in flight. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._busy.is_set():
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(0.001)
        return True

    def status(self) -> Dict[str, Any]:
        """Snapshot of scheduler state for logging and the status API."""
        return {
            "source_id": self.source.source_id,
            "source_running": self.source.is_running(),
            "inference_enabled": self._inference_enabled,
            "disabled_reason": self._disabled_reason,
            "busy": self._busy.is_set(),
            "inference_interval": self.config.inference_interval,
            "offload": self._executor is not None,
            "stats": self.stats.to_dict(),
        }

    def shutdown(self) -> None:
        """Stop the source and release the engine. Safe to call more than once."""
        if self._shut_down:
            return
        self._shut_down = True

        if self._executor is not None:
            self._executor.shutdown(wait=True)

        try:
            self.source.stop()
        except Exception as e:
            logging.warning(f"Error stopping source: {e}")

        if self.engine is not None:
            try:
                self.engine.close()
            except Exception as e:
                logging.warning(f"Error closing inference engine: {e}")

        logging.info(
            f"Scheduler stopped: ticks={self.stats.ticks}, published={self.stats.published}, "
            f"failures={self.stats.failures}"
        )
