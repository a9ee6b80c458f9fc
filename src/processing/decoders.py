"""
Raw model output → candidate detections.

Decoders are polymorphic over the output layout. Each one declares the single
family it supports and rejects anything else with UnsupportedOutputShapeError
instead of guessing at the bytes:

- grid:  dense per-cell predictions, one tensor [1, N, 5 + C] (or [N, 5 + C])
         with rows ``cx, cy, w, h, objectness, class scores...``
         (``has_objectness=False`` drops the objectness column).
- flat:  one row per detection, [1, 1, N, 7], [1, N, 7] or [N, 7] with rows
         ``image_id, class_id, confidence, x1, y1, x2, y2``; rows with a
         negative image id are padding.
- multi: separate tensors: boxes [1, N, 4], scores [1, N], classes [1, N]
         and an optional count [1].

Boxes are converted from the family's native format (centre + extent or
corner pairs) and from their coordinate space into normalized [0, 1]
fractions of the original frame. The preprocessor stretches frames without
letterboxing, so an input-pixel fraction equals a source-frame fraction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from models.config import BOX_ORDERS, COORD_SPACES, ModelConfig
from models.detection import BoundingBox, Detection
from models.errors import ConfigError, UnsupportedOutputShapeError
from models.tensor import RawOutput, as_output_list

Shape = Tuple[int, ...]


class OutputFamily(str, Enum):
    GRID = "grid"
    FLAT = "flat"
    MULTI = "multi"


@dataclass(frozen=True)
class DecoderConfig:
    """
    Attributes:
        input_width: Model input width (for "input_pixels" coordinates).
        input_height: Model input height.
        coords: Coordinate space of raw boxes: normalized, input_pixels or source_pixels.
        has_objectness: Grid rows carry objectness at index 4.
        apply_sigmoid: Grid scores are logits.
        class_offset: Subtracted from raw class ids before label lookup.
        box_order: Component order of multi-family boxes: xyxy or yxyx.
        score_floor: Candidates scoring below this are not materialized.
    """
    input_width: int
    input_height: int
    coords: str = "input_pixels"
    has_objectness: bool = True
    apply_sigmoid: bool = False
    class_offset: int = 0
    box_order: str = "yxyx"
    score_floor: float = 0.0

    def __post_init__(self) -> None:
        if self.coords not in COORD_SPACES:
            raise ConfigError(f"Unknown coordinate space {self.coords!r}, expected one of {COORD_SPACES}")
        if self.box_order not in BOX_ORDERS:
            raise ConfigError(f"Unknown box order {self.box_order!r}, expected one of {BOX_ORDERS}")


class Decoder(Protocol):
    family: OutputFamily
    emits_duplicates: bool

    def validate(self, output_shapes: Sequence[Shape], num_classes: Optional[int] = None) -> None:
        """
        Raise UnsupportedOutputShapeError unless the shapes match this family.

        ``num_classes`` is the label table size; families that encode one
        score column per class also check their width against it.
        """
        ...

    def decode(
        self,
        output: RawOutput,
        source_width: int,
        source_height: int,
        labels: Sequence[str],
    ) -> List[Detection]:
        ...


def resolve_label(labels: Sequence[str], class_id: int) -> str:
    """Label for a class index, or "" when the index is outside the table."""
    if 0 <= class_id < len(labels):
        return labels[class_id]
    return ""


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


def _scale_factors(cfg: DecoderConfig, source_width: int, source_height: int) -> Tuple[float, float]:
    if cfg.coords == "normalized":
        return 1.0, 1.0
    if cfg.coords == "input_pixels":
        return 1.0 / cfg.input_width, 1.0 / cfg.input_height
    if source_width <= 0 or source_height <= 0:
        raise ValueError(f"Source frame size must be positive, got {source_width}x{source_height}")
    return 1.0 / source_width, 1.0 / source_height


def _shape_str(shapes: Sequence[Shape]) -> str:
    return ", ".join(str(list(s)) for s in shapes) or "<none>"


class GridDecoder:
    """Dense grid predictions (YOLO-style)."""

    family = OutputFamily.GRID
    emits_duplicates = True

    def __init__(self, cfg: DecoderConfig):
        self.cfg = cfg
        self._min_width = 6 if cfg.has_objectness else 5

    def validate(self, output_shapes: Sequence[Shape], num_classes: Optional[int] = None) -> None:
        if len(output_shapes) != 1:
            raise UnsupportedOutputShapeError(
                f"grid decoder expects exactly one output tensor, got {_shape_str(output_shapes)}"
            )
        shape = tuple(output_shapes[0])
        ok = (
            (len(shape) == 3 and shape[0] == 1) or len(shape) == 2
        ) and shape[-1] >= self._min_width
        if not ok:
            raise UnsupportedOutputShapeError(
                f"grid decoder expects [1, N, >={self._min_width}] or [N, >={self._min_width}], "
                f"got {list(shape)}"
            )
        if num_classes:
            expected = self._min_width - 1 + num_classes + self.cfg.class_offset
            if shape[-1] != expected:
                # [1, 84, 8400] style outputs put the boxes along the last axis
                hint = " (transposed layout?)" if shape[-2] < shape[-1] else ""
                raise UnsupportedOutputShapeError(
                    f"grid decoder expects {expected} columns per row for {num_classes} labels, "
                    f"got {list(shape)}{hint}"
                )

    def decode(
        self,
        output: RawOutput,
        source_width: int,
        source_height: int,
        labels: Sequence[str],
    ) -> List[Detection]:
        outputs = as_output_list(output)
        self.validate([t.shape for t in outputs])
        rows = outputs[0].as_array().reshape(-1, outputs[0].shape[-1]).astype(np.float32, copy=False)
        if rows.shape[0] == 0:
            return []

        if self.cfg.has_objectness:
            objectness = rows[:, 4]
            class_scores = rows[:, 5:]
        else:
            objectness = np.ones(rows.shape[0], dtype=np.float32)
            class_scores = rows[:, 4:]
        if self.cfg.apply_sigmoid:
            objectness = _sigmoid(objectness) if self.cfg.has_objectness else objectness
            class_scores = _sigmoid(class_scores)

        class_ids = np.argmax(class_scores, axis=1)
        best = class_scores[np.arange(rows.shape[0]), class_ids]
        confidence = np.clip(objectness * best, 0.0, 1.0)

        keep = np.nonzero((confidence >= self.cfg.score_floor) & (confidence > 0.0))[0]
        sx, sy = _scale_factors(self.cfg, source_width, source_height)

        detections: List[Detection] = []
        for i in keep:
            cx, cy, w, h = rows[i, :4]
            bbox = BoundingBox.from_center(float(cx) * sx, float(cy) * sy, float(w) * sx, float(h) * sy)
            if bbox.area <= 0.0:
                continue
            class_id = int(class_ids[i]) - self.cfg.class_offset
            detections.append(
                Detection(
                    label=resolve_label(labels, class_id),
                    confidence=float(confidence[i]),
                    bbox=bbox,
                    class_id=class_id,
                )
            )
        return detections


class FlatRowDecoder:
    """One row per detection: image_id, class_id, confidence, x1, y1, x2, y2 (SSD-style)."""

    family = OutputFamily.FLAT
    emits_duplicates = False

    def __init__(self, cfg: DecoderConfig):
        self.cfg = cfg

    def validate(self, output_shapes: Sequence[Shape], num_classes: Optional[int] = None) -> None:
        if len(output_shapes) != 1:
            raise UnsupportedOutputShapeError(
                f"flat decoder expects exactly one output tensor, got {_shape_str(output_shapes)}"
            )
        shape = tuple(output_shapes[0])
        leading_ones = all(d == 1 for d in shape[:-2])
        if len(shape) < 2 or len(shape) > 4 or shape[-1] != 7 or not leading_ones:
            raise UnsupportedOutputShapeError(
                f"flat decoder expects [1, 1, N, 7], [1, N, 7] or [N, 7], got {list(shape)}"
            )

    def decode(
        self,
        output: RawOutput,
        source_width: int,
        source_height: int,
        labels: Sequence[str],
    ) -> List[Detection]:
        outputs = as_output_list(output)
        self.validate([t.shape for t in outputs])
        rows = outputs[0].as_array().reshape(-1, 7)
        sx, sy = _scale_factors(self.cfg, source_width, source_height)

        detections: List[Detection] = []
        for image_id, raw_class, conf, x1, y1, x2, y2 in rows:
            if image_id < 0:
                continue
            confidence = float(min(max(conf, 0.0), 1.0))
            if confidence <= 0.0 or confidence < self.cfg.score_floor:
                continue
            bbox = BoundingBox.from_corners(float(x1) * sx, float(y1) * sy, float(x2) * sx, float(y2) * sy)
            if bbox.area <= 0.0:
                continue
            class_id = int(raw_class) - self.cfg.class_offset
            detections.append(
                Detection(
                    label=resolve_label(labels, class_id),
                    confidence=confidence,
                    bbox=bbox,
                    class_id=class_id,
                )
            )
        return detections


class MultiTensorDecoder:
    """Separate boxes / scores / classes (/ count) outputs, in that order."""

    family = OutputFamily.MULTI
    emits_duplicates = False

    def __init__(self, cfg: DecoderConfig):
        self.cfg = cfg

    @staticmethod
    def _count(shape: Shape) -> int:
        if len(shape) == 2 and shape[0] == 1:
            return shape[1]
        if len(shape) == 1:
            return shape[0]
        return -1

    def validate(self, output_shapes: Sequence[Shape], num_classes: Optional[int] = None) -> None:
        shapes = [tuple(s) for s in output_shapes]
        if len(shapes) not in (3, 4):
            raise UnsupportedOutputShapeError(
                f"multi decoder expects boxes, scores, classes[, count] tensors, got {_shape_str(shapes)}"
            )
        boxes = shapes[0]
        if not ((len(boxes) == 3 and boxes[0] == 1) or len(boxes) == 2) or boxes[-1] != 4:
            raise UnsupportedOutputShapeError(
                f"multi decoder expects boxes [1, N, 4] or [N, 4], got {list(boxes)}"
            )
        n = boxes[-2]
        for name, shape in (("scores", shapes[1]), ("classes", shapes[2])):
            if self._count(shape) != n:
                raise UnsupportedOutputShapeError(
                    f"multi decoder expects {name} [1, {n}] or [{n}], got {list(shape)}"
                )
        if len(shapes) == 4 and int(np.prod(shapes[3])) != 1:
            raise UnsupportedOutputShapeError(
                f"multi decoder expects a scalar count tensor, got {list(shapes[3])}"
            )

    def decode(
        self,
        output: RawOutput,
        source_width: int,
        source_height: int,
        labels: Sequence[str],
    ) -> List[Detection]:
        outputs = as_output_list(output)
        self.validate([t.shape for t in outputs])
        boxes = outputs[0].as_array().reshape(-1, 4)
        scores = outputs[1].as_array().reshape(-1)
        classes = outputs[2].as_array().reshape(-1)
        n = boxes.shape[0]
        if len(outputs) == 4:
            n = max(0, min(n, int(outputs[3].data[0])))

        sx, sy = _scale_factors(self.cfg, source_width, source_height)
        detections: List[Detection] = []
        for i in range(n):
            confidence = float(min(max(scores[i], 0.0), 1.0))
            if confidence <= 0.0 or confidence < self.cfg.score_floor:
                continue
            if self.cfg.box_order == "yxyx":
                y1, x1, y2, x2 = boxes[i]
            else:
                x1, y1, x2, y2 = boxes[i]
            bbox = BoundingBox.from_corners(float(x1) * sx, float(y1) * sy, float(x2) * sx, float(y2) * sy)
            if bbox.area <= 0.0:
                continue
            class_id = int(classes[i]) - self.cfg.class_offset
            detections.append(
                Detection(
                    label=resolve_label(labels, class_id),
                    confidence=confidence,
                    bbox=bbox,
                    class_id=class_id,
                )
            )
        return detections


DECODERS: Dict[OutputFamily, Callable[[DecoderConfig], Decoder]] = {
    OutputFamily.GRID: GridDecoder,
    OutputFamily.FLAT: FlatRowDecoder,
    OutputFamily.MULTI: MultiTensorDecoder,
}


def create_decoder(family: str, cfg: DecoderConfig) -> Decoder:
    """Factory: decoder for an output family tag."""
    try:
        tag = OutputFamily(family)
    except ValueError:
        raise ConfigError(
            f"Unknown output family {family!r}, expected one of {[f.value for f in OutputFamily]}"
        ) from None
    return DECODERS[tag](cfg)


def create_decoder_from_config(
    model_cfg: ModelConfig,
    input_width: int,
    input_height: int,
    score_floor: float = 0.0,
) -> Decoder:
    """Adapter: build a decoder from the typed model config."""
    cfg = DecoderConfig(
        input_width=input_width,
        input_height=input_height,
        coords=model_cfg.coords,
        has_objectness=model_cfg.has_objectness,
        apply_sigmoid=model_cfg.apply_sigmoid,
        class_offset=model_cfg.class_offset,
        box_order=model_cfg.box_order,
        score_floor=score_floor,
    )
    decoder = create_decoder(model_cfg.family, cfg)
    logging.info(f"Decoder created: family={decoder.family.value}, coords={cfg.coords}")
    return decoder
