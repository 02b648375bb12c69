from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

from utils import config as ucfg

# ============================== CONSTANTS ====================================

OVERLAP_K = 10  # accumulated neighbors considered per frame point
PROBE_K = 1  # neighbors needed to take part in the max contour distance

ZBlendMode = Literal["sequential", "mean"]

# ============================== CONFIG TYPES =================================


@dataclass(frozen=True)
class FilterCfg:
    """Per-frame cleanup: NaN removal, x-y voxel grid, outlier rejection."""

    voxel: float = ucfg.VOXEL_SIZE  # x-y leaf; <= 0 disables the grid
    voxel_z: float = ucfg.VOXEL_Z  # z leaf (large: keeps one z per x-y cell)
    remove_outliers: bool = True
    radius: float = 0.04
    radius_min_nn: int = 50
    stat_mean_k: int = 40
    stat_std: float = 2.0


@dataclass(frozen=True)
class ContourCfg:
    """Concave footprint of the accumulation."""

    alpha: float = 0.1  # max circumradius of kept Delaunay triangles
    voxel_factor: float = 10.0  # pre-pass leaf = factor * voxel; <= 0 disables


@dataclass(frozen=True)
class MergeCfg:
    """Knobs of one accumulation round."""

    voxel_size: float = ucfg.VOXEL_SIZE
    overlap_k: int = OVERLAP_K
    probe_k: int = PROBE_K
    z_blend: ZBlendMode = "sequential"

    @property
    def max_dist(self) -> float:
        """Half-diagonal of a voxel cell."""
        return (self.voxel_size * self.voxel_size / 2.0) ** 0.5

    @property
    def search_radius(self) -> float:
        return 2.0 * self.max_dist


@dataclass(frozen=True)
class FinalCfg:
    """Output pass: isotropic voxel grid and outlier rejection."""

    voxel: float = ucfg.VOXEL_SIZE
    remove_outliers: bool = True
    radius: float = 0.04
    radius_min_nn: int = 50
    stat_mean_k: int = 40
    stat_std: float = 2.0


@dataclass(frozen=True)
class LockCfg:
    """Polling handshake on the pose list lock file."""

    poll_s: float = ucfg.LOCK_POLL_S
    poll_max_s: float = ucfg.LOCK_POLL_MAX_S
    timeout_s: Optional[float] = ucfg.LOCK_TIMEOUT_S  # None waits forever


@dataclass(frozen=True)
class PipelineCfg:
    """Top-level knobs for the reconstruction run."""

    # I/O and paths (root from utils.config by default)
    work_dir: Path = ucfg.WORK_DIR
    clouds_dir: str = ucfg.CLOUDS_DIR_NAME
    output_dir: str = ucfg.OUTPUT_DIR_NAME
    graph_file: str = ucfg.GRAPH_FILE
    graph_lock: str = ucfg.GRAPH_LOCK
    cloud_suffix: str = ucfg.CLOUD_SUFFIX
    output_name: str = ucfg.OUTPUT_NAME

    # Stages
    filter: FilterCfg = field(default_factory=FilterCfg)
    contour: ContourCfg = field(default_factory=ContourCfg)
    merge: MergeCfg = field(default_factory=MergeCfg)
    final: FinalCfg = field(default_factory=FinalCfg)
    lock: LockCfg = field(default_factory=LockCfg)

    # Logging
    show_progress: bool = True
    log_level: str = "INFO"
