"""Footprint contour of the accumulated cloud (2D concave hull)."""

from __future__ import annotations

import numpy as np
import open3d as o3d
from scipy.spatial import ConvexHull, Delaunay, QhullError

from utils.logger import Logger

from .config import ContourCfg

LOG = Logger.get_logger("contour")


def coarse_grid(points: np.ndarray, leaf: float) -> np.ndarray:
    """Voxel-grid centroids of (N,3) points; ``leaf <= 0`` returns input."""
    P = np.asarray(points, dtype=float)
    if leaf <= 0 or len(P) == 0:
        return P
    pc = o3d.geometry.PointCloud()
    pc.points = o3d.utility.Vector3dVector(P)
    return np.asarray(pc.voxel_down_sample(float(leaf)).points)


def _circumradius(xy: np.ndarray, simplices: np.ndarray) -> np.ndarray:
    """Circumradius per triangle; degenerate triangles get +inf."""
    a = xy[simplices[:, 0]]
    b = xy[simplices[:, 1]]
    c = xy[simplices[:, 2]]
    la = np.linalg.norm(b - c, axis=1)
    lb = np.linalg.norm(a - c, axis=1)
    lc = np.linalg.norm(a - b, axis=1)
    ab = b - a
    ac = c - a
    area2 = np.abs(ab[:, 0] * ac[:, 1] - ab[:, 1] * ac[:, 0])
    with np.errstate(divide="ignore", invalid="ignore"):
        r = la * lb * lc / (2.0 * area2)
    r[~np.isfinite(r)] = np.inf
    return r


def _hull_vertices(xy: np.ndarray) -> np.ndarray:
    try:
        return xy[ConvexHull(xy).vertices]
    except QhullError:
        # collinear or coincident points: every point is on the boundary
        return xy


def alpha_shape_boundary(xy: np.ndarray, alpha: float) -> np.ndarray:
    """
    Boundary vertices of the 2D alpha shape of ``xy``.

    Delaunay triangles with circumradius <= ``alpha`` are kept; vertices of
    edges that belong to exactly one kept triangle form the contour. When no
    triangle survives the convex hull is used instead.
    """
    xy = np.asarray(xy, dtype=float)[:, :2]
    if len(xy) < 4:
        return _hull_vertices(xy) if len(xy) == 3 else xy
    try:
        tri = Delaunay(xy)
    except QhullError:
        return xy

    keep = tri.simplices[_circumradius(xy, tri.simplices) <= alpha]
    if len(keep) == 0:
        LOG.debug(f"alpha={alpha} keeps no triangle, using convex hull")
        return _hull_vertices(xy)

    edges = np.concatenate([keep[:, [0, 1]], keep[:, [1, 2]], keep[:, [2, 0]]])
    edges.sort(axis=1)
    uniq, counts = np.unique(edges, axis=0, return_counts=True)
    border = np.unique(uniq[counts == 1].ravel())
    return xy[border]


def extract_contour(points: np.ndarray, cfg: ContourCfg, voxel: float) -> np.ndarray:
    """(N,3) accumulation -> (P,2) contour points of its x-y footprint."""
    P = np.asarray(points, dtype=float)
    if len(P) == 0:
        return np.empty((0, 2), float)
    coarse = coarse_grid(P, cfg.voxel_factor * voxel)
    contour = alpha_shape_boundary(coarse[:, :2], cfg.alpha)
    LOG.debug(f"contour {len(contour)} pts from {len(coarse)} cells")
    return contour
