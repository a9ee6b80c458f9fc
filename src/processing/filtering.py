"""
Confidence thresholding and non-max suppression of candidate detections.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Dict, List, Sequence

import numpy as np

from models.detection import Detection

DEFAULT_NMS_IOU_THRESHOLD = 0.45


def non_max_suppression(detections: Sequence[Detection], iou_threshold: float) -> List[Detection]:
    """
    Greedy same-label suppression, highest confidence first.

    ``detections`` must already be sorted confidence-descending; the output
    keeps that order. A box is suppressed when its IoU with a kept box of the
    same label exceeds ``iou_threshold``.
    """
    groups: Dict[str, List[int]] = OrderedDict()
    for idx, det in enumerate(detections):
        groups.setdefault(det.label, []).append(idx)

    kept: List[int] = []
    for indices in groups.values():
        if len(indices) == 1:
            kept.extend(indices)
            continue

        boxes = np.array([detections[i].bbox.as_corners() for i in indices], dtype=np.float64)
        areas = np.maximum(boxes[:, 2] - boxes[:, 0], 0.0) * np.maximum(boxes[:, 3] - boxes[:, 1], 0.0)
        order = np.arange(len(indices))
        while order.size > 0:
            i = order[0]
            kept.append(indices[i])
            if order.size == 1:
                break
            rest = order[1:]
            xx1 = np.maximum(boxes[i, 0], boxes[rest, 0])
            yy1 = np.maximum(boxes[i, 1], boxes[rest, 1])
            xx2 = np.minimum(boxes[i, 2], boxes[rest, 2])
            yy2 = np.minimum(boxes[i, 3], boxes[rest, 3])
            inter = np.maximum(0.0, xx2 - xx1) * np.maximum(0.0, yy2 - yy1)
            union = areas[i] + areas[rest] - inter
            iou = np.where(union > 0, inter / np.where(union > 0, union, 1.0), 0.0)
            order = rest[iou <= iou_threshold]

    kept.sort()
    return [detections[i] for i in kept]


class DetectionFilter:
    """
    Drops low-confidence candidates and, for decoders that emit overlapping
    duplicates, suppresses them. Output is confidence-descending, and
    filtering an already-filtered list with the same threshold is a no-op.
    """

    def __init__(self, suppress_duplicates: bool = False, iou_threshold: float = DEFAULT_NMS_IOU_THRESHOLD):
        if not 0.0 <= iou_threshold <= 1.0:
            raise ValueError(f"iou_threshold must be in [0, 1], got {iou_threshold}")
        self.suppress_duplicates = suppress_duplicates
        self.iou_threshold = iou_threshold

    def filter(self, detections: Sequence[Detection], confidence_threshold: float) -> List[Detection]:
        kept = [d for d in detections if d.confidence >= confidence_threshold]
        kept.sort(key=lambda d: d.confidence, reverse=True)
        if self.suppress_duplicates and len(kept) > 1:
            kept = non_max_suppression(kept, self.iou_threshold)
        return kept


def filter_detections(
    detections: Sequence[Detection],
    confidence_threshold: float,
    suppress_duplicates: bool = False,
    iou_threshold: float = DEFAULT_NMS_IOU_THRESHOLD,
) -> List[Detection]:
    return DetectionFilter(suppress_duplicates, iou_threshold).filter(detections, confidence_threshold)
