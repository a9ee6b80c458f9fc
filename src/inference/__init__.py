"""
Inference engine boundary: engine contract, OpenCV DNN backend, label loading.
"""

from .backend import InferenceEngine, describe_outputs
from .labels import load_labels, parse_labels
from .opencv_dnn_backend import DnnEngineConfig, OpenCVDnnEngine, load_dnn_model

__all__ = [
    "InferenceEngine",
    "describe_outputs",
    "load_labels",
    "parse_labels",
    "DnnEngineConfig",
    "OpenCVDnnEngine",
    "load_dnn_model",
]
