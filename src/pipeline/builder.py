"""
Wire a complete detection pipeline from typed configuration.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from inference.backend import InferenceEngine
from inference.labels import load_labels
from inference.opencv_dnn_backend import DnnEngineConfig, OpenCVDnnEngine
from models.config import AppConfig
from models.errors import LabelLoadError, ModelLoadError
from observation.factory import create_source_from_config
from processing.decoders import create_decoder_from_config
from processing.filtering import DetectionFilter
from processing.preprocess import Preprocessor
from spatial.projection import create_world_resolver
from .scheduler import InferenceScheduler
from .store import DetectionStore


def create_pipeline_from_config(
    config: AppConfig,
    store: Optional[DetectionStore] = None,
    engine: Optional[InferenceEngine] = None,
) -> InferenceScheduler:
    """
    Factory: build source, engine, decoder, filter, store and scheduler.

    A missing or unreadable model or label file does not abort startup: the
    error is logged once and the scheduler runs with inference disabled.

    Args:
        config: Complete application config.
        store: Store to publish into. A new one is created when omitted.
        engine: Pre-built engine to use instead of loading ``config.model.path``.

    Raises:
        ConfigError: On an unknown provider, output family or coordinate space.
    """
    source = create_source_from_config(config.camera, source_id="main-camera")
    decoder = create_decoder_from_config(
        config.model,
        config.pipeline.model_input_width,
        config.pipeline.model_input_height,
        score_floor=config.pipeline.confidence_threshold,
    )
    preprocessor = Preprocessor(layout=config.model.layout, channel_order=config.model.channel_order)
    detection_filter = DetectionFilter(
        suppress_duplicates=decoder.emits_duplicates,
        iou_threshold=config.model.nms_iou_threshold,
    )

    disabled_reason: Optional[str] = None
    labels: List[str] = []
    try:
        labels = load_labels(config.model.labels_path)
        if engine is None:
            engine = OpenCVDnnEngine(
                DnnEngineConfig(
                    model_path=config.model.path,
                    backend=config.model.backend,
                    target=config.model.target,
                )
            )
    except (LabelLoadError, ModelLoadError) as e:
        logging.error(f"Failed to load model assets: {e}")
        disabled_reason = str(e)
        if engine is not None:
            engine.close()
        engine = None

    return InferenceScheduler(
        source=source,
        preprocessor=preprocessor,
        engine=engine,
        decoder=decoder,
        detection_filter=detection_filter,
        store=store if store is not None else DetectionStore(),
        config=config.pipeline,
        labels=labels,
        world_resolver=create_world_resolver(config.spatial),
        disabled_reason=disabled_reason,
    )
