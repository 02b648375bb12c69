# stitch/export.py
from __future__ import annotations

from pathlib import Path

import open3d as o3d

from utils.logger import Logger

from .cloud import AccumulatedCloud
from .config import FinalCfg
from .filters import finalize_cloud
from .io import save_cloud

LOG = Logger.get_logger("export")


def finalize(acc: AccumulatedCloud, cfg: FinalCfg) -> o3d.geometry.PointCloud:
    """Drop weights and run the output filters."""
    if acc.is_empty:
        LOG.warning("[FINAL] Empty cloud.")
        return o3d.geometry.PointCloud()
    return finalize_cloud(acc.to_o3d(), cfg)


def write_reconstruction(
    acc: AccumulatedCloud, out_path: Path, cfg: FinalCfg
) -> o3d.geometry.PointCloud:
    """Final filtering + persistence of the accumulated cloud."""
    cloud = finalize(acc, cfg)
    LOG.info("[FINAL] Saving pointcloud...")
    save_cloud(cloud, out_path)
    return cloud
