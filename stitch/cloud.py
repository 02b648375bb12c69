"""Point containers: read-only frames and the weighted accumulation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import open3d as o3d

from utils.helpers import transform_points
from utils.logger import Logger

LOG = Logger.get_logger("cloud")


def colors_to_u8(colors: np.ndarray) -> np.ndarray:
    """Open3D float colors [0, 1] -> uint8 channels."""
    c = np.asarray(colors, dtype=float)
    return np.clip(np.rint(c * 255.0), 0, 255).astype(np.uint8)


def colors_to_float(colors: np.ndarray) -> np.ndarray:
    return np.asarray(colors, dtype=np.uint8).astype(float) / 255.0


def make_o3d(points: np.ndarray, colors: np.ndarray) -> o3d.geometry.PointCloud:
    """Build an Open3D cloud from (N,3) points and uint8 colors."""
    pc = o3d.geometry.PointCloud()
    pc.points = o3d.utility.Vector3dVector(np.asarray(points, dtype=float))
    pc.colors = o3d.utility.Vector3dVector(colors_to_float(colors))
    return pc


# ============================== FRAME ========================================


@dataclass(frozen=True)
class FrameCloud:
    """One filtered input frame in its local pose frame. Read-only."""

    points: np.ndarray  # (M,3) float64
    colors: np.ndarray  # (M,3) uint8

    def __post_init__(self) -> None:
        P = np.array(self.points, dtype=float).reshape(-1, 3)
        C = np.array(self.colors, dtype=np.uint8).reshape(-1, 3)
        if len(P) != len(C):
            raise ValueError(f"points/colors mismatch: {len(P)} vs {len(C)}")
        P.flags.writeable = False
        C.flags.writeable = False
        object.__setattr__(self, "points", P)
        object.__setattr__(self, "colors", C)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def xy(self) -> np.ndarray:
        return self.points[:, :2]

    @classmethod
    def from_o3d(cls, pcd: o3d.geometry.PointCloud) -> "FrameCloud":
        P = np.asarray(pcd.points)
        if pcd.has_colors():
            C = colors_to_u8(np.asarray(pcd.colors))
        else:
            LOG.warning(f"cloud without colors ({len(P)} pts), using black")
            C = np.zeros((len(P), 3), np.uint8)
        return cls(P, C)

    def transformed(self, T: np.ndarray) -> "FrameCloud":
        return FrameCloud(transform_points(self.points, T), self.colors)


# ============================== ACCUMULATION =================================


class AccumulatedCloud:
    """
    Growing fused cloud stored as columns.

    Rows are never removed. ``weights`` is a per-round marker: 0.0 means
    stale (not yet touched by the current frame), 1.0 means blended.
    """

    def __init__(
        self,
        points: Optional[np.ndarray] = None,
        colors: Optional[np.ndarray] = None,
        weights: Optional[np.ndarray] = None,
    ) -> None:
        self.points = (
            np.empty((0, 3), float)
            if points is None
            else np.array(points, dtype=float).reshape(-1, 3)
        )
        n = len(self.points)
        self.colors = (
            np.zeros((n, 3), np.uint8)
            if colors is None
            else np.array(colors, dtype=np.uint8).reshape(-1, 3)
        )
        self.weights = (
            np.zeros(n, np.float32)
            if weights is None
            else np.array(weights, dtype=np.float32).reshape(-1)
        )
        if not (len(self.colors) == n and len(self.weights) == n):
            raise ValueError("points, colors and weights must have equal length")

    def __len__(self) -> int:
        return len(self.points)

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    @property
    def xy(self) -> np.ndarray:
        return self.points[:, :2]

    def reset_weights(self) -> None:
        self.weights[:] = 0.0

    def append(
        self, points: np.ndarray, colors: np.ndarray, weights: np.ndarray
    ) -> None:
        if len(points) == 0:
            return
        self.points = np.vstack([self.points, np.asarray(points, float)])
        self.colors = np.vstack([self.colors, np.asarray(colors, np.uint8)])
        self.weights = np.concatenate(
            [self.weights, np.asarray(weights, np.float32)]
        )

    def transform(self, T: np.ndarray) -> None:
        """Move every point by a 4x4 rigid transform, in place."""
        self.points = transform_points(self.points, T)

    def to_o3d(self) -> o3d.geometry.PointCloud:
        """Plain colored cloud; the weight column is dropped."""
        return make_o3d(self.points, self.colors)
