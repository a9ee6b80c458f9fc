"""
OpenCV DNN inference backend.

Loads any model format cv2.dnn.readNet understands (ONNX, Caffe, TensorFlow,
Darknet, OpenVINO IR) and runs it synchronously on the configured
backend/target. This keeps the project runnable on dev machines without a
dedicated accelerator runtime.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

import cv2
import numpy as np

from models.errors import EngineExecutionError, ModelLoadError
from models.tensor import Tensor
from .backend import InferenceEngine

DNN_BACKENDS = {
    "default": cv2.dnn.DNN_BACKEND_DEFAULT,
    "opencv": cv2.dnn.DNN_BACKEND_OPENCV,
    "cuda": cv2.dnn.DNN_BACKEND_CUDA,
}

DNN_TARGETS = {
    "cpu": cv2.dnn.DNN_TARGET_CPU,
    "opencl": cv2.dnn.DNN_TARGET_OPENCL,
    "cuda": cv2.dnn.DNN_TARGET_CUDA,
}


@dataclass(frozen=True)
class DnnEngineConfig:
    model_path: str
    config_path: Optional[str] = None
    backend: str = "default"
    target: str = "cpu"


class OpenCVDnnEngine(InferenceEngine):
    def __init__(self, cfg: DnnEngineConfig):
        self.cfg = cfg
        self._net = load_dnn_model(cfg)
        self._output_names: List[str] = list(self._net.getUnconnectedOutLayersNames())
        logging.info(
            f"Model loaded successfully: {os.path.basename(cfg.model_path)} "
            f"(outputs: {', '.join(self._output_names)})"
        )

    @property
    def output_names(self) -> List[str]:
        return list(self._output_names)

    def execute(self, input_tensor: Tensor) -> List[Tensor]:
        if self._net is None:
            raise EngineExecutionError("Engine is closed")
        blob = np.ascontiguousarray(input_tensor.as_array(), dtype=np.float32)
        try:
            self._net.setInput(blob)
            outs = self._net.forward(self._output_names)
        except cv2.error as e:
            raise EngineExecutionError(f"cv2.dnn forward failed: {e}") from e

        if isinstance(outs, np.ndarray):
            outs = [outs]
        return [Tensor.from_array(np.asarray(o, dtype=np.float32)) for o in outs]

    def close(self) -> None:
        if self._net is not None:
            self._net = None
            logging.info("Inference engine released")


def load_dnn_model(cfg: DnnEngineConfig):
    """
    Load a model with cv2.dnn.

    Raises:
        ModelLoadError: If the file is missing or OpenCV cannot parse it.
    """
    if not cfg.model_path:
        raise ModelLoadError("No model path configured")
    if not os.path.exists(cfg.model_path):
        raise ModelLoadError(f"Model file not found: {cfg.model_path}")
    if cfg.backend not in DNN_BACKENDS:
        raise ModelLoadError(f"Unknown dnn backend {cfg.backend!r}, expected one of {sorted(DNN_BACKENDS)}")
    if cfg.target not in DNN_TARGETS:
        raise ModelLoadError(f"Unknown dnn target {cfg.target!r}, expected one of {sorted(DNN_TARGETS)}")

    try:
        net = cv2.dnn.readNet(cfg.model_path, cfg.config_path or "")
    except cv2.error as e:
        raise ModelLoadError(f"Failed to load model {cfg.model_path}: {e}") from e
    if net is None or net.empty():
        raise ModelLoadError(f"Model {cfg.model_path} loaded as an empty network")

    net.setPreferableBackend(DNN_BACKENDS[cfg.backend])
    net.setPreferableTarget(DNN_TARGETS[cfg.target])
    return net
