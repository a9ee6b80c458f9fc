"""
Tests for the read-only detections API (/api/detections, /api/status).
"""

import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from models.config import PipelineConfig
from models.detection import BoundingBox, Detection, DetectionSet
from pipeline import InferenceScheduler
from pipeline.store import DetectionStore
from processing import DetectionFilter, Preprocessor
from web.app import create_app
from web.routes.api import STALE_AFTER_S, _derive_status
from web.state import state


@pytest.fixture
def client():
    state.clear()
    yield TestClient(create_app())
    state.clear()


def _scheduler_status(**overrides):
    info = {
        "source_id": "main-camera",
        "source_running": True,
        "inference_enabled": True,
        "disabled_reason": None,
        "busy": False,
        "inference_interval": 5,
        "offload": False,
        "stats": {
            "ticks": 10,
            "attempts": 2,
            "published": 2,
            "failures": 0,
            "skipped_busy": 0,
            "skipped_no_frame": 0,
            "last_latency_ms": 12.5,
            "total_latency_ms": 25.0,
            "mean_latency_ms": 12.5,
            "last_error": None,
            "last_publish_time": time.time(),
        },
    }
    info.update(overrides)
    scheduler = MagicMock()
    scheduler.status.return_value = info
    return scheduler


class TestDeriveStatus:
    def test_running(self):
        assert _derive_status(True, True, 0.2) == ("running", [])

    def test_running_before_first_publish(self):
        assert _derive_status(True, True, None) == ("running", [])

    def test_source_stopped_is_offline(self):
        assert _derive_status(False, True, 0.2) == ("offline", ["source_stopped"])

    def test_inference_disabled_is_degraded(self):
        assert _derive_status(True, False, None) == ("degraded", ["inference_disabled"])

    def test_stale_detections(self):
        level, alerts = _derive_status(True, True, STALE_AFTER_S + 1)
        assert level == "degraded"
        assert alerts == ["detections_stale"]


class TestDetectionsEndpoint:
    def test_not_started(self, client):
        resp = client.get("/api/detections")
        assert resp.status_code == 503

    def test_initial_snapshot_is_empty(self, client):
        state.set_pipeline(DetectionStore())

        data = client.get("/api/detections").json()

        assert data["generation"] == 0
        assert data["changed"] is True
        assert data["frame_sequence_id"] is None
        assert data["detections"] == []

    def test_returns_published_set(self, client):
        store = DetectionStore()
        state.set_pipeline(store)
        store.publish(DetectionSet.build(
            [
                Detection("person", 0.9, BoundingBox(0.1, 0.2, 0.3, 0.4), class_id=0,
                          world_position=(0.5, -0.25, 2.0)),
                Detection("", 0.6, BoundingBox(0.5, 0.5, 0.1, 0.1), class_id=99),
            ],
            frame_sequence_id=42,
        ))

        data = client.get("/api/detections").json()

        assert data["generation"] == 1
        assert data["frame_sequence_id"] == 42
        first, second = data["detections"]
        assert first["label"] == "person"
        assert first["bbox"] == {"x": 0.1, "y": 0.2, "width": 0.3, "height": 0.4}
        assert first["world_position"] == [0.5, -0.25, 2.0]
        assert second["label"] == ""
        assert second["world_position"] is None

    def test_since_current_generation_is_unchanged(self, client):
        store = DetectionStore()
        state.set_pipeline(store)
        store.publish(DetectionSet.build(
            [Detection("cup", 0.8, BoundingBox(0.0, 0.0, 0.2, 0.2))], frame_sequence_id=3
        ))

        unchanged = client.get("/api/detections", params={"since": 1}).json()
        assert unchanged["changed"] is False
        assert unchanged["detections"] == []

        changed = client.get("/api/detections", params={"since": 0}).json()
        assert changed["changed"] is True
        assert len(changed["detections"]) == 1

    def test_negative_since_rejected(self, client):
        state.set_pipeline(DetectionStore())
        assert client.get("/api/detections", params={"since": -1}).status_code == 422


class TestStatusEndpoint:
    def test_not_started(self, client):
        data = client.get("/api/status").json()
        assert data["status"] == "offline"
        assert data["alerts"] == ["pipeline_not_started"]

    def test_running(self, client):
        state.set_pipeline(DetectionStore(), _scheduler_status())

        data = client.get("/api/status").json()

        assert data["status"] == "running"
        assert data["alerts"] == []
        assert data["source_id"] == "main-camera"
        assert data["inference_interval"] == 5
        assert data["stats"]["published"] == 2
        assert data["stats"]["mean_latency_ms"] == 12.5
        assert data["last_publish_age_s"] < STALE_AFTER_S
        assert data["uptime_seconds"] >= 0

    def test_inference_disabled(self, client):
        scheduler = _scheduler_status(inference_enabled=False, disabled_reason="Model file not found: x.onnx")
        state.set_pipeline(DetectionStore(), scheduler)

        data = client.get("/api/status").json()

        assert data["status"] == "degraded"
        assert data["alerts"] == ["inference_disabled"]
        assert data["disabled_reason"] == "Model file not found: x.onnx"

    def test_source_stopped(self, client):
        state.set_pipeline(DetectionStore(), _scheduler_status(source_running=False))
        assert client.get("/api/status").json()["status"] == "offline"

    def test_live_scheduler(self, client, fake_source_cls, make_frame):
        store = DetectionStore()
        scheduler = InferenceScheduler(
            source=fake_source_cls([make_frame()]),
            preprocessor=Preprocessor(),
            engine=None,
            decoder=None,
            detection_filter=DetectionFilter(),
            store=store,
            config=PipelineConfig(),
        )
        scheduler.start()
        state.set_pipeline(store, scheduler)

        data = client.get("/api/status").json()

        assert data["status"] == "degraded"
        assert data["disabled_reason"] == "no inference engine configured"
        assert data["stats"]["ticks"] == 0
        scheduler.shutdown()
