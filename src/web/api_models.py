from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class BoundingBoxModel(BaseModel):
    x: float = Field(..., description="Left edge, fraction of frame width")
    y: float = Field(..., description="Top edge, fraction of frame height")
    width: float
    height: float


class DetectionModel(BaseModel):
    label: str = Field(..., description="Class label, empty if the class index is unmapped")
    confidence: float
    bbox: BoundingBoxModel
    class_id: Optional[int] = None
    world_position: Optional[List[float]] = Field(None, description="(x, y, z) in metres, if resolved")


class DetectionSetResponse(BaseModel):
    """
    Current published detections.

    Clients polling with ``since`` get ``changed=false`` and an empty list
    while the generation has not moved, so they can skip redrawing.
    """
    generation: int = Field(..., description="Publish counter, increases on every publish")
    changed: bool = True
    frame_sequence_id: Optional[int] = None
    timestamp: float
    detections: List[DetectionModel] = Field(default_factory=list)


class SchedulerStatsModel(BaseModel):
    ticks: int
    attempts: int
    published: int
    failures: int
    skipped_busy: int
    skipped_no_frame: int
    last_latency_ms: Optional[float] = None
    mean_latency_ms: Optional[float] = None
    last_error: Optional[str] = None
    last_publish_time: Optional[float] = None


class PipelineStatusResponse(BaseModel):
    status: str = Field(..., description="running|degraded|offline")
    alerts: List[str]
    source_id: Optional[str] = None
    source_running: bool = False
    inference_enabled: bool = False
    disabled_reason: Optional[str] = None
    busy: bool = False
    inference_interval: Optional[int] = None
    offload: bool = False
    last_publish_age_s: Optional[float] = None
    uptime_seconds: Optional[int] = None
    stats: Optional[SchedulerStatsModel] = None
    timestamp: float
