"""
Pre- and post-processing stages around the inference engine.

Preprocessor: Frame → normalized input Tensor.
Decoders:     raw output Tensor(s) → candidate Detections.
Filter:       threshold + non-max suppression → final Detections.
"""

from .preprocess import Preprocessor, prepare, validate_frame
from .decoders import (
    Decoder,
    DecoderConfig,
    FlatRowDecoder,
    GridDecoder,
    MultiTensorDecoder,
    OutputFamily,
    create_decoder,
    create_decoder_from_config,
    resolve_label,
)
from .filtering import DEFAULT_NMS_IOU_THRESHOLD, DetectionFilter, filter_detections, non_max_suppression

__all__ = [
    "Preprocessor",
    "prepare",
    "validate_frame",
    "Decoder",
    "DecoderConfig",
    "FlatRowDecoder",
    "GridDecoder",
    "MultiTensorDecoder",
    "OutputFamily",
    "create_decoder",
    "create_decoder_from_config",
    "resolve_label",
    "DEFAULT_NMS_IOU_THRESHOLD",
    "DetectionFilter",
    "filter_detections",
    "non_max_suppression",
]
