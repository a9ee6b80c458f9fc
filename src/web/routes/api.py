from __future__ import annotations

import time
from typing import List, Optional, Tuple

from fastapi import APIRouter, HTTPException, Query

from ..api_models import DetectionSetResponse, PipelineStatusResponse
from ..state import state

router = APIRouter()

# Seconds without a new publish before detections count as stale
STALE_AFTER_S = 10.0


def _derive_status(
    source_running: bool,
    inference_enabled: bool,
    last_publish_age: Optional[float],
) -> Tuple[str, List[str]]:
    """
    Lightweight status classifier used by /api/status.
    Source stopped => offline; inference disabled or no publish for STALE_AFTER_S => degraded.
    """
    if not source_running:
        return "offline", ["source_stopped"]

    level = "running"
    alerts: List[str] = []
    if not inference_enabled:
        level = "degraded"
        alerts.append("inference_disabled")
    elif last_publish_age is not None and last_publish_age > STALE_AFTER_S:
        level = "degraded"
        alerts.append("detections_stale")
    return level, alerts


@router.get("/detections", response_model=DetectionSetResponse)
def detections(since: Optional[int] = Query(None, ge=0, description="Last generation the client has seen")):
    """
    Current detection snapshot.
    - generation: publish counter; pass it back as ``since`` to poll for changes
    - changed: false when ``since`` equals the current generation (detections omitted)
    - detections: normalized boxes, confidence-descending
    """
    store, _ = state.get_pipeline()
    if store is None:
        raise HTTPException(status_code=503, detail="Pipeline not started")

    snapshot, generation = store.snapshot_with_generation()
    if since is not None and since == generation:
        return DetectionSetResponse(
            generation=generation,
            changed=False,
            frame_sequence_id=snapshot.frame_sequence_id,
            timestamp=snapshot.timestamp,
        )
    return DetectionSetResponse(generation=generation, changed=True, **snapshot.to_dict())


@router.get("/status", response_model=PipelineStatusResponse)
def status():
    """
    Aggregate pipeline status for a remote visualization client.
    Fields:
    - status: running|degraded|offline
    - alerts: source_stopped, inference_disabled, detections_stale
    - inference_enabled / disabled_reason: whether the model is in use and why not
    - stats: scheduler counters and latency
    """
    now = time.time()
    _, scheduler = state.get_pipeline()
    if scheduler is None:
        return PipelineStatusResponse(status="offline", alerts=["pipeline_not_started"], timestamp=now)

    info = scheduler.status()
    last_publish = info["stats"].get("last_publish_time")
    last_publish_age = now - last_publish if last_publish else None
    level, alerts = _derive_status(info["source_running"], info["inference_enabled"], last_publish_age)
    uptime = now - state.start_time if state.start_time else None

    return PipelineStatusResponse(
        status=level,
        alerts=alerts,
        last_publish_age_s=last_publish_age,
        uptime_seconds=int(uptime) if uptime is not None else None,
        timestamp=now,
        **info,
    )
