"""2D (x-y) neighbor search over projected clouds."""

from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy.spatial import cKDTree

_EMPTY = (np.empty(0, dtype=int), np.empty(0, dtype=float))


def _as_xy(points: np.ndarray) -> np.ndarray:
    """(N,2+) or (2+,) -> (N,2) float copy."""
    P = np.asarray(points, dtype=float)
    if P.size == 0:
        return np.empty((0, 2), float)
    if P.ndim == 1:
        P = P.reshape(1, -1)
    return P[:, :2].copy()


class SpatialIndex:
    """
    Read-only kd-tree snapshot over the x-y projection of a point set.

    Results are ``(indices, squared_distances)`` sorted by distance.
    Radius queries are inclusive.
    """

    def __init__(self, points: np.ndarray) -> None:
        self._xy = _as_xy(points)
        self._tree = cKDTree(self._xy) if len(self._xy) else None

    def __len__(self) -> int:
        return len(self._xy)

    @property
    def xy(self) -> np.ndarray:
        return self._xy

    def query_radius(
        self, q: np.ndarray, radius: float, max_count: int
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Up to ``max_count`` nearest neighbors within ``radius``."""
        if self._tree is None or max_count <= 0:
            return _EMPTY
        k = min(int(max_count), len(self._xy))
        ub = np.nextafter(float(radius), np.inf)
        d, j = self._tree.query(_as_xy(q)[0], k=k, distance_upper_bound=ub)
        d = np.atleast_1d(d)
        j = np.atleast_1d(j)
        m = np.isfinite(d)
        return j[m].astype(int), d[m] ** 2

    def query_nearest(
        self, q: np.ndarray, k: int = 1
    ) -> Tuple[np.ndarray, np.ndarray]:
        """k nearest neighbors, no distance bound."""
        if self._tree is None or k <= 0:
            return _EMPTY
        k = min(int(k), len(self._xy))
        d, j = self._tree.query(_as_xy(q)[0], k=k)
        return np.atleast_1d(j).astype(int), np.atleast_1d(d) ** 2

    def nearest_dist(self, Q: np.ndarray) -> np.ndarray:
        """Distance from each row of Q to its nearest indexed point."""
        Q = _as_xy(Q)
        if self._tree is None:
            return np.full(len(Q), np.inf)
        if len(Q) == 0:
            return np.empty(0, float)
        d, _ = self._tree.query(Q, k=1)
        return np.asarray(d, float).reshape(-1)

    def has_neighbors(
        self, Q: np.ndarray, radius: float, k: int = 1
    ) -> np.ndarray:
        """Mask of rows of Q with at least one indexed point within ``radius``."""
        Q = _as_xy(Q)
        if self._tree is None or len(Q) == 0:
            return np.zeros(len(Q), bool)
        k = max(1, min(int(k), len(self._xy)))
        ub = np.nextafter(float(radius), np.inf)
        d, _ = self._tree.query(Q, k=k, distance_upper_bound=ub)
        d = np.asarray(d, float).reshape(len(Q), -1)
        return np.isfinite(d).any(axis=1)
