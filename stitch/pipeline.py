from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

import open3d as o3d

from utils.helpers import fmt_array, invert_T, is_identity
from utils.logger import Logger

from .cloud import AccumulatedCloud, FrameCloud
from .config import PipelineCfg
from .engine import AccumulationEngine
from .errors import MissingInputFileError
from .export import write_reconstruction
from .filters import filter_cloud
from .io import load_cloud
from .poses import (
    Pose,
    load_pose_sequence,
    relative_transform,
    wait_for_unlock,
)
from .workspace import Workspace

LOG = Logger.get_logger("pipeline")


@dataclass
class RunStats:
    """Bookkeeping of a whole run; ``point_counts`` is the running log."""

    frames_total: int = 0
    frames_merged: int = 0
    frames_skipped: int = 0
    points_processed: int = 0
    point_counts: List[Tuple[str, int]] = field(default_factory=list)


# ============================== HELPERS ======================================


def _load_frame(
    ws: Workspace, pose: Pose, cfg: PipelineCfg
) -> Tuple[FrameCloud, int]:
    """Load + clean one frame. Raises MissingInputFileError."""
    raw = load_cloud(ws.cloud_path(pose.cloud_name))
    clean = filter_cloud(raw, cfg.filter)
    return FrameCloud.from_o3d(clean), len(raw.points)


# ============================== PIPELINE =====================================


def merge_sequence(
    poses: List[Pose], ws: Workspace, cfg: PipelineCfg
) -> Tuple[AccumulatedCloud, RunStats]:
    """Load, filter and merge every frame in pose order."""
    stats = RunStats(frames_total=len(poses))
    engine = AccumulationEngine(cfg.merge, cfg.contour)
    if not poses:
        LOG.warning("No poses to merge")
        return engine.acc, stats

    ref = poses[0]
    frames = Logger.progress(
        enumerate(poses),
        desc="merge",
        total=len(poses),
        disable=not cfg.show_progress,
    )
    for i, pose in frames:
        LOG.info(
            f"[MERGE] Processing cloud {pose.cloud_name} ({i}/{len(poses) - 1})"
        )
        try:
            frame, n_raw = _load_frame(ws, pose, cfg)
        except MissingInputFileError as e:
            LOG.warning(f"[MERGE] Couldn't read the file: {e}")
            stats.frames_skipped += 1
            continue
        stats.points_processed += n_raw
        if len(frame) == 0:
            LOG.warning(f"[MERGE] {pose.cloud_name} empty after filtering")
            stats.frames_skipped += 1
            continue

        T = relative_transform(ref, pose)
        if engine.acc.is_empty and not is_identity(T):
            # first usable frame is not the reference one
            frame = frame.transformed(invert_T(T))
            LOG.info(
                f"[MERGE] bootstrap moved to reference, "
                f"t={fmt_array(invert_T(T)[:3, 3])}"
            )

        rs = engine.merge_frame(frame, T)
        stats.frames_merged += 1
        stats.point_counts.append((pose.cloud_name, len(engine.acc)))
        LOG.info(
            f"[MERGE {pose.cloud_name}] acc={len(engine.acc)} (+{rs.added}) "
            f"interior={rs.interior} border={rs.border} disjoint={rs.disjoint} "
            f"stale={rs.stale_filled}"
        )

    return engine.acc, stats


def reconstruct(cfg: PipelineCfg) -> Tuple[o3d.geometry.PointCloud, RunStats]:
    """Workspace -> lock handshake -> poses -> merge -> final filter + save."""
    ws = Workspace.from_cfg(cfg)
    ws.prepare()
    wait_for_unlock(
        ws.lock_file,
        poll_s=cfg.lock.poll_s,
        poll_max_s=cfg.lock.poll_max_s,
        timeout_s=cfg.lock.timeout_s,
    )
    poses = load_pose_sequence(ws.graph_file, ws.cloud_suffix)

    acc, stats = merge_sequence(poses, ws, cfg)

    LOG.info("[FINAL] Filtering output cloud")
    cloud = write_reconstruction(acc, ws.output_file, cfg.final)
    LOG.info(f"[FINAL] Points processed: {stats.points_processed}")
    LOG.info(
        f"[FINAL] frames merged={stats.frames_merged} "
        f"skipped={stats.frames_skipped} final={len(cloud.points)}"
    )
    return cloud, stats

