"""
Accumulation engine: merges one filtered frame at a time into the fused cloud.

Every round works in the current frame's coordinates. The accumulation is
moved there, each frame point is classified against the x-y projection of the
accumulation, and the accumulation is moved back to the reference frame of
the first pose.

Frame point classes:
  * disjoint - no accumulated point within the search radius; appended as is.
  * border   - every neighbor is outside the voxel tolerance; appended with
               blended height and color (edges are never merged into a slot).
  * interior - the nearest neighbor is overwritten in place.

Colors are blended with a weight that grows with the distance to the
accumulation contour, so seams fade from old to new data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Optional

import numpy as np

from utils.helpers import invert_T
from utils.logger import Logger

from .blend import BlendContext, blend_rgb, fold_z
from .cloud import AccumulatedCloud, FrameCloud
from .config import ContourCfg, MergeCfg
from .contour import extract_contour
from .spatial import SpatialIndex

LOG = Logger.get_logger("engine")

ContourFn = Callable[[np.ndarray], np.ndarray]


@dataclass
class MergeStats:
    """Counters of one accumulation round."""

    frame_points: int = 0
    disjoint: int = 0
    border: int = 0
    interior: int = 0
    stale_filled: int = 0
    no_contour: int = 0
    max_contour_dist: float = 0.0
    bootstrap: bool = False

    @property
    def added(self) -> int:
        return self.disjoint + self.border


@dataclass
class _Appends:
    """Points created during a round, applied once all queries are done."""

    points: List[np.ndarray] = field(default_factory=list)
    colors: List[np.ndarray] = field(default_factory=list)

    def add(self, xyz: np.ndarray, rgb: np.ndarray) -> None:
        self.points.append(np.asarray(xyz, float))
        self.colors.append(np.asarray(rgb, np.uint8))

    def flush(self, acc: AccumulatedCloud) -> None:
        if not self.points:
            return
        acc.append(
            np.vstack(self.points),
            np.vstack(self.colors),
            np.ones(len(self.points), np.float32),
        )


class AccumulationEngine:
    """Owns the accumulated cloud and runs one merge round per frame."""

    def __init__(
        self,
        cfg: MergeCfg = MergeCfg(),
        contour_cfg: ContourCfg = ContourCfg(),
        acc: Optional[AccumulatedCloud] = None,
        contour_fn: Optional[ContourFn] = None,
    ) -> None:
        self.cfg = cfg
        self.acc = acc if acc is not None else AccumulatedCloud()
        self._contour_fn: ContourFn = contour_fn or partial(
            extract_contour, cfg=contour_cfg, voxel=cfg.voxel_size
        )

    @property
    def max_dist(self) -> float:
        return self.cfg.max_dist

    @property
    def search_radius(self) -> float:
        return self.cfg.search_radius

    # --------------------------------------------------------------------- #

    def merge_frame(
        self, frame: FrameCloud, relative_transform: Optional[np.ndarray] = None
    ) -> MergeStats:
        """
        Merge ``frame`` into the accumulation.

        ``relative_transform`` maps the accumulation (reference frame) into the
        frame's local coordinates: ``inv(pose_i) @ pose_0``.
        """
        stats = MergeStats(frame_points=len(frame))
        if self.acc.is_empty:
            self.acc.append(
                frame.points, frame.colors, np.zeros(len(frame), np.float32)
            )
            stats.bootstrap = True
            LOG.debug(f"bootstrap with {len(frame)} pts")
            return stats
        if len(frame) == 0:
            return stats

        T = np.eye(4)
        if relative_transform is not None:
            T = np.asarray(relative_transform, dtype=float)
        self.acc.transform(T)
        self._merge_round(frame, stats)
        self.acc.transform(invert_T(T))
        return stats

    # --------------------------------------------------------------------- #

    def _blend_context(
        self, frame: FrameCloud, idx_acc: SpatialIndex, idx_contour: SpatialIndex
    ) -> BlendContext:
        """Largest contour distance over frame points that overlap the accumulation."""
        overlap = idx_acc.has_neighbors(frame.xy, self.search_radius, self.cfg.probe_k)
        if not overlap.any() or len(idx_contour) == 0:
            return BlendContext(0.0)
        d = idx_contour.nearest_dist(frame.xy[overlap])
        return BlendContext(float(d.max()))

    def _seam_color(
        self,
        xy: np.ndarray,
        acc_rgb: np.ndarray,
        frame_rgb: np.ndarray,
        idx_contour: SpatialIndex,
        ctx: BlendContext,
        stats: MergeStats,
    ) -> Optional[np.ndarray]:
        """Blended color, or None when no contour point is available."""
        c_idx, c_d2 = idx_contour.query_nearest(xy, 1)
        if c_idx.size == 0:
            stats.no_contour += 1
            LOG.warning("no contour neighbor, color left un-blended")
            return None
        alpha = ctx.alpha(float(np.sqrt(c_d2[0])))
        if alpha is None:
            return np.asarray(frame_rgb, np.uint8)
        return blend_rgb(acc_rgb, frame_rgb, alpha)

    def _merge_round(self, frame: FrameCloud, stats: MergeStats) -> None:
        acc = self.acc
        idx_acc = SpatialIndex(acc.xy)
        idx_frame = SpatialIndex(frame.xy)
        idx_contour = SpatialIndex(self._contour_fn(acc.points))

        ctx = self._blend_context(frame, idx_acc, idx_contour)
        stats.max_contour_dist = ctx.max_contour_dist
        if ctx.degenerate:
            LOG.warning("max contour distance is 0, colors are not blended this round")

        acc.reset_weights()
        P, C, W = acc.points, acc.colors, acc.weights
        FP, FC = frame.points, frame.colors
        max_d2 = self.max_dist * self.max_dist
        pending = _Appends()

        for n in range(len(frame)):
            xy = FP[n, :2]
            nb, nb_d2 = idx_acc.query_radius(xy, self.search_radius, self.cfg.overlap_k)
            if nb.size == 0:
                pending.add(FP[n], FC[n])
                stats.disjoint += 1
                continue

            z = fold_z(FP[n, 2], P[nb, 2], self.cfg.z_blend)
            primary = nb[int(np.argmin(nb_d2))]
            rgb = self._seam_color(xy, C[primary], FC[n], idx_contour, ctx, stats)
            if rgb is None:
                rgb = FC[n]

            if bool(np.all(nb_d2 >= max_d2)):
                pending.add((FP[n, 0], FP[n, 1], z), rgb)
                stats.border += 1
            else:
                P[primary, 2] = z
                C[primary] = rgb
                W[primary] = 1.0
                stats.interior += 1

            for j in nb:
                if W[j] == 0.0:
                    self._fill_stale(j, frame, idx_frame, idx_contour, ctx, stats)

        pending.flush(acc)
        LOG.debug(
            f"round: interior={stats.interior} border={stats.border} "
            f"disjoint={stats.disjoint} stale={stats.stale_filled} "
            f"max_contour={stats.max_contour_dist:.4f}"
        )

    def _fill_stale(
        self,
        j: int,
        frame: FrameCloud,
        idx_frame: SpatialIndex,
        idx_contour: SpatialIndex,
        ctx: BlendContext,
        stats: MergeStats,
    ) -> None:
        """Blend a secondary neighbor with the nearest frame point."""
        acc = self.acc
        xy = acc.points[j, :2]
        f_idx, _ = idx_frame.query_nearest(xy, 1)
        if f_idx.size == 0:
            return
        c_idx, c_d2 = idx_contour.query_nearest(xy, 1)
        if c_idx.size == 0:
            stats.no_contour += 1
            LOG.warning("no contour neighbor for stale point, left as is")
            return
        alpha = ctx.alpha(float(np.sqrt(c_d2[0])))
        if alpha is not None:
            acc.colors[j] = blend_rgb(acc.colors[j], frame.colors[f_idx[0]], alpha)
        acc.weights[j] = 1.0
        stats.stale_filled += 1


def merge_frame(
    acc: AccumulatedCloud,
    frame: FrameCloud,
    relative_transform: Optional[np.ndarray] = None,
    cfg: MergeCfg = MergeCfg(),
    contour_cfg: ContourCfg = ContourCfg(),
) -> AccumulatedCloud:
    """Functional form of one round; mutates and returns ``acc``."""
    AccumulationEngine(cfg, contour_cfg, acc=acc).merge_frame(frame, relative_transform)
    return acc
