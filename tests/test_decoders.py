"""
Tests for raw output decoding.
"""

import numpy as np
import pytest

from models.config import ModelConfig
from models.errors import ConfigError, UnsupportedOutputShapeError
from models.tensor import Tensor
from processing.decoders import (
    DecoderConfig,
    FlatRowDecoder,
    GridDecoder,
    MultiTensorDecoder,
    OutputFamily,
    create_decoder,
    create_decoder_from_config,
    resolve_label,
)
from processing.filtering import DetectionFilter


def _grid_output(rows, n=25200, classes=80):
    """[1, n, 5 + classes] tensor, zero except for the given (index, values) rows."""
    arr = np.zeros((1, n, 5 + classes), dtype=np.float32)
    for idx, (cx, cy, w, h, obj, cls, score) in rows.items():
        arr[0, idx, :5] = (cx, cy, w, h, obj)
        arr[0, idx, 5 + cls] = score
    return Tensor.from_array(arr)


class TestResolveLabel:
    def test_in_range(self):
        assert resolve_label(["a", "b"], 1) == "b"

    def test_out_of_range_is_empty(self):
        assert resolve_label(["a", "b"], 2) == ""
        assert resolve_label(["a", "b"], -1) == ""


class TestGridDecoder:
    def test_yolo_scenario(self, coco_labels):
        """[1, 25200, 85] output with 80 labels decodes to labeled normalized boxes."""
        output = _grid_output({
            0: (208, 208, 104, 104, 0.9, 0, 0.9),     # person, 0.81
            1: (210, 209, 104, 104, 0.8, 0, 0.8),     # overlapping person, 0.64
            500: (100, 100, 50, 50, 0.95, 2, 0.7),    # car, 0.665
            9000: (300, 300, 40, 40, 0.5, 79, 0.8),   # toothbrush, 0.4
        })
        decoder = GridDecoder(DecoderConfig(input_width=416, input_height=416))

        candidates = decoder.decode(output, 1280, 720, coco_labels)
        final = DetectionFilter(suppress_duplicates=True).filter(candidates, 0.5)

        assert len(candidates) == 4
        for det in candidates:
            assert 0.0 <= det.confidence <= 1.0
            for v in det.bbox.as_corners():
                assert 0.0 <= v <= 1.0
            assert det.label in coco_labels

        assert [d.label for d in final] == ["person", "car"]
        assert final[0].confidence == pytest.approx(0.81)
        assert final[0].bbox.x == pytest.approx(0.375)
        assert final[0].bbox.width == pytest.approx(0.25)
        assert final[1].class_id == 2

    def test_score_floor_skips_low_rows(self, coco_labels):
        output = _grid_output({
            0: (208, 208, 104, 104, 0.9, 0, 0.9),
            1: (100, 100, 50, 50, 0.5, 1, 0.5),
        })
        decoder = GridDecoder(DecoderConfig(input_width=416, input_height=416, score_floor=0.5))

        dets = decoder.decode(output, 416, 416, coco_labels)

        assert [d.label for d in dets] == ["person"]

    def test_unmapped_class_gets_empty_label(self):
        output = _grid_output({0: (8, 8, 4, 4, 1.0, 3, 0.9)}, n=4, classes=5)
        decoder = GridDecoder(DecoderConfig(input_width=16, input_height=16))

        dets = decoder.decode(output, 16, 16, ["a", "b"])

        assert len(dets) == 1
        assert dets[0].label == ""
        assert dets[0].class_id == 3

    def test_boxes_clipped_to_frame(self):
        output = _grid_output({0: (0, 0, 10, 10, 1.0, 0, 1.0)}, n=1, classes=1)
        decoder = GridDecoder(DecoderConfig(input_width=10, input_height=10))

        det = decoder.decode(output, 10, 10, ["a"])[0]

        assert det.bbox.as_corners() == pytest.approx((0.0, 0.0, 0.5, 0.5))

    def test_normalized_coordinates(self):
        output = _grid_output({0: (0.5, 0.5, 0.2, 0.2, 1.0, 0, 1.0)}, n=1, classes=1)
        decoder = GridDecoder(DecoderConfig(input_width=416, input_height=416, coords="normalized"))

        det = decoder.decode(output, 1280, 720, ["a"])[0]

        assert det.bbox.as_corners() == pytest.approx((0.4, 0.4, 0.6, 0.6))

    def test_without_objectness(self):
        arr = np.array([[[5, 5, 2, 2, 0.1, 0.7]]], dtype=np.float32)
        decoder = GridDecoder(DecoderConfig(input_width=10, input_height=10, has_objectness=False))

        det = decoder.decode(Tensor.from_array(arr), 10, 10, ["a", "b"])

        assert det[0].label == "b"
        assert det[0].confidence == pytest.approx(0.7)

    def test_sigmoid_scores(self):
        arr = np.array([[[5, 5, 2, 2, 20.0, 0.0]]], dtype=np.float32)
        decoder = GridDecoder(DecoderConfig(input_width=10, input_height=10, apply_sigmoid=True))

        det = decoder.decode(Tensor.from_array(arr), 10, 10, ["a"])

        assert det[0].confidence == pytest.approx(0.5, abs=1e-4)

    def test_validate_accepts_grid_shapes(self):
        decoder = GridDecoder(DecoderConfig(input_width=416, input_height=416))
        decoder.validate([(1, 25200, 85)])
        decoder.validate([(25200, 85)])

    @pytest.mark.parametrize("shapes", [
        [(1, 100, 5)],
        [(2, 100, 85)],
        [(1, 1, 100, 85)],
        [(1, 100, 85), (1, 100)],
        [],
    ])
    def test_validate_rejects_other_layouts(self, shapes):
        decoder = GridDecoder(DecoderConfig(input_width=416, input_height=416))
        with pytest.raises(UnsupportedOutputShapeError):
            decoder.validate(shapes)

    def test_validate_with_label_count(self):
        decoder = GridDecoder(DecoderConfig(input_width=640, input_height=640))
        decoder.validate([(1, 25200, 85)], num_classes=80)
        with pytest.raises(UnsupportedOutputShapeError, match="85 columns"):
            decoder.validate([(1, 25200, 86)], num_classes=80)

    def test_validate_rejects_transposed_output(self):
        """[1, 84, 8400] puts boxes on the last axis and must not be read as 84 rows."""
        decoder = GridDecoder(DecoderConfig(input_width=640, input_height=640, has_objectness=False))
        decoder.validate([(1, 8400, 84)], num_classes=80)
        with pytest.raises(UnsupportedOutputShapeError, match="transposed"):
            decoder.validate([(1, 84, 8400)], num_classes=80)

    def test_validate_label_count_counts_class_offset(self):
        decoder = GridDecoder(DecoderConfig(input_width=640, input_height=640, class_offset=1))
        decoder.validate([(1, 100, 86)], num_classes=80)
        with pytest.raises(UnsupportedOutputShapeError):
            decoder.validate([(1, 100, 85)], num_classes=80)

    def test_decode_rejects_wrong_layout(self):
        decoder = GridDecoder(DecoderConfig(input_width=416, input_height=416))
        with pytest.raises(UnsupportedOutputShapeError):
            decoder.decode(Tensor.from_array(np.zeros((1, 10, 4), dtype=np.float32)), 416, 416, [])


class TestFlatRowDecoder:
    def test_decodes_rows_and_skips_padding(self):
        arr = np.array([[[
            [0, 2, 0.9, 0.1, 0.2, 0.3, 0.4],
            [0, 1, 0.0, 0.1, 0.1, 0.2, 0.2],
            [-1, 0, 0.0, 0.0, 0.0, 0.0, 0.0],
        ]]], dtype=np.float32)
        decoder = FlatRowDecoder(DecoderConfig(input_width=300, input_height=300, coords="normalized"))

        dets = decoder.decode(Tensor.from_array(arr), 640, 480, ["a", "b", "c"])

        assert len(dets) == 1
        assert dets[0].label == "c"
        assert dets[0].confidence == pytest.approx(0.9)
        assert dets[0].bbox.as_corners() == pytest.approx((0.1, 0.2, 0.3, 0.4))

    def test_class_offset(self):
        arr = np.array([[[[0, 1, 0.8, 0.0, 0.0, 0.5, 0.5]]]], dtype=np.float32)
        decoder = FlatRowDecoder(
            DecoderConfig(input_width=300, input_height=300, coords="normalized", class_offset=1)
        )

        dets = decoder.decode(Tensor.from_array(arr), 640, 480, ["background-free first"])

        assert dets[0].class_id == 0
        assert dets[0].label == "background-free first"

    def test_source_pixel_coordinates(self):
        arr = np.array([[0, 0, 0.7, 64, 48, 320, 240]], dtype=np.float32)
        decoder = FlatRowDecoder(DecoderConfig(input_width=300, input_height=300, coords="source_pixels"))

        det = decoder.decode(Tensor.from_array(arr), 640, 480, ["a"])[0]

        assert det.bbox.as_corners() == pytest.approx((0.1, 0.1, 0.5, 0.5))

    @pytest.mark.parametrize("shape", [(1, 1, 10, 7), (1, 10, 7), (10, 7)])
    def test_validate_accepts(self, shape):
        FlatRowDecoder(DecoderConfig(input_width=300, input_height=300)).validate([shape])

    @pytest.mark.parametrize("shape", [(1, 1, 10, 6), (2, 1, 10, 7), (7,)])
    def test_validate_rejects(self, shape):
        with pytest.raises(UnsupportedOutputShapeError):
            FlatRowDecoder(DecoderConfig(input_width=300, input_height=300)).validate([shape])


class TestMultiTensorDecoder:
    def _outputs(self, count=None):
        boxes = np.array([[[0.1, 0.2, 0.5, 0.6], [0.0, 0.0, 0.2, 0.2]]], dtype=np.float32)
        scores = np.array([[0.9, 0.8]], dtype=np.float32)
        classes = np.array([[1, 0]], dtype=np.float32)
        tensors = [Tensor.from_array(boxes), Tensor.from_array(scores), Tensor.from_array(classes)]
        if count is not None:
            tensors.append(Tensor.from_array(np.array([count], dtype=np.float32)))
        return tensors

    def test_yxyx_boxes(self):
        decoder = MultiTensorDecoder(DecoderConfig(input_width=300, input_height=300, coords="normalized"))

        dets = decoder.decode(self._outputs(), 640, 480, ["a", "b"])

        assert [d.label for d in dets] == ["b", "a"]
        # yxyx: y1=0.1, x1=0.2, y2=0.5, x2=0.6
        assert dets[0].bbox.as_corners() == pytest.approx((0.2, 0.1, 0.6, 0.5))

    def test_xyxy_boxes(self):
        decoder = MultiTensorDecoder(
            DecoderConfig(input_width=300, input_height=300, coords="normalized", box_order="xyxy")
        )

        dets = decoder.decode(self._outputs(), 640, 480, ["a", "b"])

        assert dets[0].bbox.as_corners() == pytest.approx((0.1, 0.2, 0.5, 0.6))

    def test_count_limits_rows(self):
        decoder = MultiTensorDecoder(DecoderConfig(input_width=300, input_height=300, coords="normalized"))

        dets = decoder.decode(self._outputs(count=1), 640, 480, ["a", "b"])

        assert len(dets) == 1

    def test_validate_rejects_mismatched_counts(self):
        decoder = MultiTensorDecoder(DecoderConfig(input_width=300, input_height=300))
        with pytest.raises(UnsupportedOutputShapeError):
            decoder.validate([(1, 10, 4), (1, 9), (1, 10)])

    def test_validate_rejects_single_tensor(self):
        decoder = MultiTensorDecoder(DecoderConfig(input_width=300, input_height=300))
        with pytest.raises(UnsupportedOutputShapeError):
            decoder.validate([(1, 25200, 85)])


class TestDecoderFactory:
    def test_family_tags(self):
        cfg = DecoderConfig(input_width=416, input_height=416)
        assert isinstance(create_decoder("grid", cfg), GridDecoder)
        assert isinstance(create_decoder("flat", cfg), FlatRowDecoder)
        assert isinstance(create_decoder("multi", cfg), MultiTensorDecoder)

    def test_only_grid_emits_duplicates(self):
        cfg = DecoderConfig(input_width=416, input_height=416)
        assert create_decoder("grid", cfg).emits_duplicates
        assert not create_decoder("flat", cfg).emits_duplicates
        assert not create_decoder("multi", cfg).emits_duplicates

    def test_unknown_family(self):
        with pytest.raises(ConfigError):
            create_decoder("heatmap", DecoderConfig(input_width=416, input_height=416))

    def test_unknown_coords(self):
        with pytest.raises(ConfigError):
            DecoderConfig(input_width=416, input_height=416, coords="inches")

    def test_from_model_config(self):
        decoder = create_decoder_from_config(ModelConfig(family="flat", coords="normalized"), 300, 300, 0.4)
        assert decoder.family == OutputFamily.FLAT
        assert decoder.cfg.score_floor == 0.4
        assert decoder.cfg.input_width == 300
