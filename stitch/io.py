"""Point-cloud file I/O."""
from __future__ import annotations

from pathlib import Path

import open3d as o3d

from utils.logger import Logger

from .errors import MissingInputFileError

LOG = Logger.get_logger("io")


def load_cloud(path: Path | str) -> o3d.geometry.PointCloud:
    """Load a colored point cloud (PCD/PLY)."""
    p = Path(path)
    if not p.is_file():
        raise MissingInputFileError(p)
    pc = o3d.io.read_point_cloud(str(p))
    if len(pc.points) == 0:
        raise MissingInputFileError(p, "empty or unreadable")
    LOG.debug(f"loaded {len(pc.points)} pts from {p.name}")
    return pc


def save_cloud(cloud: o3d.geometry.PointCloud, out_path: Path | str) -> Path:
    """Write ``cloud``; failures are logged, not raised."""
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    ok = o3d.io.write_point_cloud(str(out_path), cloud)
    if ok:
        LOG.info(f"Save wrote {len(cloud.points)} points to {out_path}")
    else:
        LOG.warning(f"Save failed: {out_path}")
    return out_path
