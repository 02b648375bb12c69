# utils/helpers.py
from __future__ import annotations

from typing import Sequence

import numpy as np
from scipy.spatial.transform import Rotation

# ============================================================================ #
# numpy
# ============================================================================ #
np.set_printoptions(suppress=True, precision=6, linewidth=180)


# ============================================================================ #
# Math: rotations, transforms, formatting
# ============================================================================ #
def quat_to_R(q: Sequence[float]) -> np.ndarray:
    """Quaternion (qx, qy, qz, qw) -> 3x3 rotation matrix."""
    return Rotation.from_quat(np.asarray(q, dtype=float)).as_matrix()


def make_T(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Assemble 4x4 transform from R (3x3) and t (3,)."""
    T = np.eye(4, dtype=float)
    T[:3, :3] = R
    T[:3, 3] = np.asarray(t, dtype=float).reshape(3)
    return T


def invert_T(T: np.ndarray) -> np.ndarray:
    """Closed-form inverse of a rigid 4x4 transform."""
    R = T[:3, :3]
    t = T[:3, 3]
    return make_T(R.T, -R.T @ t)


def is_identity(T: np.ndarray, atol: float = 1e-12) -> bool:
    return bool(np.allclose(T, np.eye(4), atol=atol))


def transform_points(P: np.ndarray, T: np.ndarray) -> np.ndarray:
    """Apply a 4x4 rigid transform to (N,3) points."""
    P = np.asarray(P, dtype=float)
    if len(P) == 0:
        return P.reshape(0, 3)
    return P @ T[:3, :3].T + T[:3, 3]


def fmt_array(v) -> str:
    """Pretty numpy one-liner for logs."""
    return np.array2string(np.asarray(v), separator=", ")
