"""
Tests for confidence filtering and non-max suppression.
"""

import pytest

from models.detection import BoundingBox, Detection
from processing.filtering import DetectionFilter, filter_detections, non_max_suppression


def det(label, confidence, x=0.1, y=0.1, w=0.2, h=0.2):
    return Detection(label=label, confidence=confidence, bbox=BoundingBox(x, y, w, h))


class TestThreshold:
    def test_drops_below_threshold_keeps_equal(self):
        dets = [det("a", 0.49), det("b", 0.5, x=0.5), det("c", 0.9, x=0.7)]

        kept = DetectionFilter().filter(dets, 0.5)

        assert [d.label for d in kept] == ["c", "b"]
        assert all(d.confidence >= 0.5 for d in kept)

    def test_confidence_descending(self):
        dets = [det("a", 0.6), det("b", 0.95, x=0.5), det("c", 0.7, x=0.7)]

        kept = filter_detections(dets, 0.0)

        assert [d.confidence for d in kept] == [0.95, 0.7, 0.6]

    def test_empty_input(self):
        assert DetectionFilter(suppress_duplicates=True).filter([], 0.5) == []

    def test_threshold_zero_keeps_everything(self):
        dets = [det("a", 0.0), det("b", 0.1, x=0.5)]
        assert len(filter_detections(dets, 0.0)) == 2

    @pytest.mark.parametrize("suppress", [False, True])
    def test_idempotent(self, suppress):
        dets = [
            det("a", 0.9),
            det("a", 0.8, x=0.12),
            det("b", 0.7, x=0.12),
            det("a", 0.3, x=0.6),
            det("c", 0.55, x=0.4, y=0.6),
        ]
        f = DetectionFilter(suppress_duplicates=suppress)

        once = f.filter(dets, 0.5)
        twice = f.filter(once, 0.5)

        assert twice == once


class TestNonMaxSuppression:
    def test_suppresses_overlapping_same_label(self):
        dets = [det("person", 0.9), det("person", 0.8, x=0.11)]

        kept = DetectionFilter(suppress_duplicates=True).filter(dets, 0.5)

        assert len(kept) == 1
        assert kept[0].confidence == 0.9

    def test_keeps_overlapping_different_labels(self):
        dets = [det("person", 0.9), det("dog", 0.8, x=0.11)]

        kept = DetectionFilter(suppress_duplicates=True).filter(dets, 0.5)

        assert [d.label for d in kept] == ["person", "dog"]

    def test_keeps_disjoint_same_label(self):
        dets = [det("person", 0.9), det("person", 0.8, x=0.6)]

        kept = DetectionFilter(suppress_duplicates=True).filter(dets, 0.5)

        assert len(kept) == 2

    def test_disabled_for_non_duplicate_families(self):
        dets = [det("person", 0.9), det("person", 0.8, x=0.11)]

        kept = DetectionFilter(suppress_duplicates=False).filter(dets, 0.5)

        assert len(kept) == 2

    def test_iou_threshold_respected(self):
        # Same size boxes shifted by half a width: IoU = 1/3
        a = det("a", 0.9, x=0.0, w=0.2)
        b = det("a", 0.8, x=0.1, w=0.2)

        assert len(non_max_suppression([a, b], 0.45)) == 2
        assert len(non_max_suppression([a, b], 0.3)) == 1

    def test_chain_suppression_is_greedy(self):
        """A box suppressed by the leader does not suppress others."""
        a = det("a", 0.9, x=0.0, w=0.2)
        b = det("a", 0.8, x=0.05, w=0.2)
        c = det("a", 0.7, x=0.15, w=0.2)

        kept = non_max_suppression([a, b, c], 0.45)

        # a suppresses b (IoU 0.6); a and c overlap only 0.05/0.35
        assert [d.confidence for d in kept] == [0.9, 0.7]

    def test_invalid_iou_threshold(self):
        with pytest.raises(ValueError):
            DetectionFilter(suppress_duplicates=True, iou_threshold=1.5)
