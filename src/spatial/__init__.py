"""
Spatial layer: map 2D detections to 3D world positions.
"""

from .projection import (
    IDENTITY_POSE,
    CameraIntrinsics,
    DepthProvider,
    PinholeProjector,
    Pose,
    WorldPositionResolver,
    create_world_resolver,
)

__all__ = [
    "IDENTITY_POSE",
    "CameraIntrinsics",
    "DepthProvider",
    "PinholeProjector",
    "Pose",
    "WorldPositionResolver",
    "create_world_resolver",
]
