"""
Pose list: lock handshake, CSV parsing and frame-to-frame transforms.

The pose-graph writer keeps a lock file next to the vertices file while it is
rewriting it. Readers poll for its removal with exponential backoff.
"""

from __future__ import annotations

import csv
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import numpy as np

from utils import config as ucfg
from utils.helpers import invert_T, make_T, quat_to_R
from utils.logger import Logger

from .errors import PoseFileError, PoseListLockedError

LOG = Logger.get_logger("poses")


@dataclass(frozen=True)
class Pose:
    """Sensor pose of one frame in the map (translation + quaternion)."""

    cloud_name: str
    t: Tuple[float, float, float]
    q: Tuple[float, float, float, float]  # qx, qy, qz, qw

    @property
    def matrix(self) -> np.ndarray:
        """MAP <- FRAME 4x4."""
        return make_T(quat_to_R(self.q), np.asarray(self.t, dtype=float))


def relative_transform(ref: Pose, pose: Pose) -> np.ndarray:
    """FRAME <- REF, i.e. ``inv(pose) @ ref``."""
    return invert_T(pose.matrix) @ ref.matrix


# ============================== LOCK =========================================


def wait_for_unlock(
    lock_path: Path,
    poll_s: float = ucfg.LOCK_POLL_S,
    poll_max_s: float = ucfg.LOCK_POLL_MAX_S,
    timeout_s: Optional[float] = ucfg.LOCK_TIMEOUT_S,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> float:
    """
    Block until ``lock_path`` disappears. Returns seconds waited.
    Raises PoseListLockedError after ``timeout_s`` (None waits forever).
    """
    lock_path = Path(lock_path)
    t0 = clock()
    delay = max(poll_s, 1e-3)
    announced = False
    while lock_path.exists():
        waited = clock() - t0
        if timeout_s is not None and waited >= timeout_s:
            raise PoseListLockedError(
                f"{lock_path} still present after {waited:.1f}s"
            )
        if not announced:
            LOG.info(f"[POSES] waiting for {lock_path.name} to be released")
            announced = True
        sleep(delay)
        delay = min(delay * 2.0, poll_max_s)
    return clock() - t0


# ============================== PARSING ======================================


def parse_pose_row(row: List[str], suffix: str = ucfg.CLOUD_SUFFIX) -> Pose:
    """One graph vertex row -> Pose."""
    need = max(ucfg.POSE_Q_COLS) + 1
    if len(row) < need:
        raise PoseFileError(f"expected >= {need} columns, got {len(row)}")
    name = row[ucfg.POSE_NAME_COL].strip()
    if not name:
        raise PoseFileError("empty cloud name")
    try:
        t = tuple(float(row[i]) for i in ucfg.POSE_T_COLS)
        q = tuple(float(row[i]) for i in ucfg.POSE_Q_COLS)
    except ValueError as e:
        raise PoseFileError(f"bad number in row for {name}: {e}") from e
    if not np.all(np.isfinite(t + q)) or np.linalg.norm(q) == 0:
        raise PoseFileError(f"invalid transform for {name}")
    return Pose(name + suffix, t, q)


def load_pose_sequence(
    path: Path, suffix: str = ucfg.CLOUD_SUFFIX
) -> List[Pose]:
    """Read the graph vertices file in capture order."""
    path = Path(path)
    if not path.is_file():
        raise PoseFileError(f"pose file not found: {path}")
    poses: List[Pose] = []
    with path.open(newline="") as fh:
        for lineno, row in enumerate(csv.reader(fh), start=1):
            if not row or not "".join(row).strip() or row[0].startswith("#"):
                continue
            try:
                poses.append(parse_pose_row(row, suffix))
            except PoseFileError as e:
                raise PoseFileError(f"{path.name}:{lineno}: {e}") from e
    LOG.info(f"[POSES] loaded {len(poses)} entries from {path.name}")
    return poses
