from __future__ import annotations

from typing import Tuple

import numpy as np
import open3d as o3d

from utils.logger import Logger

from .config import FilterCfg, FinalCfg

LOG = Logger.get_logger("filters")


def remove_nans(pcd: o3d.geometry.PointCloud) -> o3d.geometry.PointCloud:
    """Copy without non-finite points."""
    pc = o3d.geometry.PointCloud(pcd)
    pc.remove_non_finite_points(remove_nan=True, remove_infinite=True)
    return pc


def voxel_down_xy(
    pcd: o3d.geometry.PointCloud, leaf_xy: float, leaf_z: float
) -> o3d.geometry.PointCloud:
    """
    Voxel grid with an x-y leaf and a separate z leaf (colors averaged).
    The z axis is rescaled so a cubic grid of ``leaf_xy`` covers ``leaf_z``.
    """
    if leaf_xy <= 0 or len(pcd.points) == 0:
        return pcd
    if leaf_z <= 0 or np.isclose(leaf_z, leaf_xy):
        return pcd.voxel_down_sample(leaf_xy)
    s = leaf_xy / leaf_z
    pc = o3d.geometry.PointCloud(pcd)
    P = np.asarray(pc.points).copy()
    P[:, 2] *= s
    pc.points = o3d.utility.Vector3dVector(P)
    pc = pc.voxel_down_sample(leaf_xy)
    P = np.asarray(pc.points).copy()
    P[:, 2] /= s
    pc.points = o3d.utility.Vector3dVector(P)
    return pc


def remove_outliers(
    pcd: o3d.geometry.PointCloud,
    radius: float,
    radius_min_nn: int,
    stat_mean_k: int,
    stat_std: float,
) -> Tuple[o3d.geometry.PointCloud, int]:
    """Radius outlier removal, then statistical outlier removal."""
    n0 = len(pcd.points)
    pc = pcd
    if n0 == 0:
        return pc, 0
    _, idx = pc.remove_radius_outlier(nb_points=radius_min_nn, radius=radius)
    pc = pc.select_by_index(idx)
    if len(pc.points) > stat_mean_k:
        _, idx = pc.remove_statistical_outlier(
            nb_neighbors=stat_mean_k, std_ratio=stat_std
        )
        pc = pc.select_by_index(idx)
    return pc, n0 - len(pc.points)


def filter_cloud(
    raw: o3d.geometry.PointCloud, cfg: FilterCfg
) -> o3d.geometry.PointCloud:
    """Per-frame cleanup: NaNs -> x-y voxel grid -> outliers."""
    n0 = len(raw.points)
    pc = remove_nans(raw)
    n1 = len(pc.points)
    pc = voxel_down_xy(pc, cfg.voxel, cfg.voxel_z)
    n2 = len(pc.points)
    removed = 0
    if cfg.remove_outliers:
        pc, removed = remove_outliers(
            pc, cfg.radius, cfg.radius_min_nn, cfg.stat_mean_k, cfg.stat_std
        )
    LOG.info(
        f"[FILTER] {n0} -> nan {n1} -> grid {n2} -> {len(pc.points)} "
        f"(outliers {removed})"
    )
    return pc


def finalize_cloud(
    pcd: o3d.geometry.PointCloud, cfg: FinalCfg
) -> o3d.geometry.PointCloud:
    """Output pass: isotropic voxel grid and outlier rejection."""
    n0 = len(pcd.points)
    pc = pcd.voxel_down_sample(cfg.voxel) if cfg.voxel > 0 and n0 else pcd
    LOG.info(f"[FINAL] Downsample {n0} -> {len(pc.points)} @ {cfg.voxel:.4f}")
    if cfg.remove_outliers:
        pc, removed = remove_outliers(
            pc, cfg.radius, cfg.radius_min_nn, cfg.stat_mean_k, cfg.stat_std
        )
        LOG.info(f"[FINAL] Outliers removed: {removed}")
    return pc
