"""
World-position resolution for detections.

A detection's box centre is back-projected through a pinhole camera model at
an estimated depth, then moved into world space with the camera pose at
capture time. Camera space is x right, y up, z forward; image rows grow
downward, so the vertical image offset is flipped.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Protocol, Tuple

import numpy as np

from models.config import SpatialConfig
from models.detection import Detection, WorldPosition

DepthProvider = Callable[[Detection], Optional[float]]


@dataclass(frozen=True)
class CameraIntrinsics:
    """
    Pinhole intrinsics in pixels of the source frame.

    Attributes:
        fx: Horizontal focal length.
        fy: Vertical focal length.
        cx: Principal point x.
        cy: Principal point y.
    """
    fx: float
    fy: float
    cx: float
    cy: float

    @classmethod
    def from_fov(cls, width: int, height: int, horizontal_fov_deg: float) -> "CameraIntrinsics":
        """Square-pixel intrinsics with the principal point at the frame centre."""
        if not 0.0 < horizontal_fov_deg < 180.0:
            raise ValueError(f"horizontal_fov_deg must be in (0, 180), got {horizontal_fov_deg}")
        fx = (width / 2.0) / math.tan(math.radians(horizontal_fov_deg) / 2.0)
        return cls(fx=fx, fy=fx, cx=width / 2.0, cy=height / 2.0)


@dataclass(frozen=True, eq=False)
class Pose:
    """Camera-to-world rigid transform."""
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3), repr=False)

    def transform(self, point: np.ndarray) -> np.ndarray:
        return np.asarray(self.rotation, dtype=np.float64) @ point + np.asarray(self.position, dtype=np.float64)


IDENTITY_POSE = Pose()


class WorldPositionResolver(Protocol):
    def resolve(self, detection: Detection, frame_width: int, frame_height: int) -> Optional[WorldPosition]:
        ...


class PinholeProjector:
    """
    Resolve detections to world positions with a pinhole model.

    Focal lengths not given explicitly are derived from the horizontal field
    of view and the frame size; a missing principal point defaults to the
    frame centre. Depth comes from ``depth_provider`` when one is set and
    falls back to ``default_depth``. A depth that is missing or not positive
    yields no position.
    """

    def __init__(
        self,
        horizontal_fov_deg: float = 64.7,
        fx: Optional[float] = None,
        fy: Optional[float] = None,
        cx: Optional[float] = None,
        cy: Optional[float] = None,
        default_depth: Optional[float] = 2.0,
        pose: Pose = IDENTITY_POSE,
        depth_provider: Optional[DepthProvider] = None,
    ):
        self.horizontal_fov_deg = horizontal_fov_deg
        self.fx = fx
        self.fy = fy
        self.cx = cx
        self.cy = cy
        self.default_depth = default_depth
        self.depth_provider = depth_provider
        self._pose = pose
        self._pose_lock = threading.Lock()
        self._cache: Dict[Tuple[int, int], CameraIntrinsics] = {}

    @property
    def pose(self) -> Pose:
        with self._pose_lock:
            return self._pose

    def set_pose(self, pose: Pose) -> None:
        """Update the camera pose, e.g. from a head-tracking callback."""
        with self._pose_lock:
            self._pose = pose

    def intrinsics_for(self, frame_width: int, frame_height: int) -> CameraIntrinsics:
        key = (frame_width, frame_height)
        intr = self._cache.get(key)
        if intr is None:
            base = CameraIntrinsics.from_fov(frame_width, frame_height, self.horizontal_fov_deg)
            fx = self.fx if self.fx is not None else base.fx
            intr = CameraIntrinsics(
                fx=fx,
                fy=self.fy if self.fy is not None else fx,
                cx=self.cx if self.cx is not None else base.cx,
                cy=self.cy if self.cy is not None else base.cy,
            )
            self._cache[key] = intr
        return intr

    def camera_point(self, u: float, v: float, depth: float, intr: CameraIntrinsics) -> np.ndarray:
        """Back-project pixel (u, v) at ``depth`` into camera space."""
        x = (u - intr.cx) * depth / intr.fx
        y = -(v - intr.cy) * depth / intr.fy
        return np.array([x, y, depth], dtype=np.float64)

    def resolve(self, detection: Detection, frame_width: int, frame_height: int) -> Optional[WorldPosition]:
        depth = self.depth_provider(detection) if self.depth_provider is not None else self.default_depth
        if depth is None or depth <= 0:
            return None

        intr = self.intrinsics_for(frame_width, frame_height)
        cx_norm, cy_norm = detection.bbox.center
        point = self.camera_point(cx_norm * frame_width, cy_norm * frame_height, float(depth), intr)
        world = self.pose.transform(point)
        return (float(world[0]), float(world[1]), float(world[2]))


def create_world_resolver(cfg: SpatialConfig) -> Optional[PinholeProjector]:
    """Factory: a projector when spatial resolution is enabled, else None."""
    if not cfg.enabled:
        return None
    projector = PinholeProjector(
        horizontal_fov_deg=cfg.horizontal_fov_deg,
        fx=cfg.fx,
        fy=cfg.fy,
        cx=cfg.cx,
        cy=cfg.cy,
        default_depth=cfg.default_depth_m,
    )
    logging.info(
        f"World position resolver enabled: fov={cfg.horizontal_fov_deg}deg, "
        f"default_depth={cfg.default_depth_m}m"
    )
    return projector
