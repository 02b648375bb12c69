# utils/config.py
from __future__ import annotations

from pathlib import Path


# ============================== PROJECT DEFAULTS =============================

# Where a reconstruction session lives (code can override this)
WORK_DIR: Path = Path(".data_stitch/session")

# Subpaths & filenames inside a session
CLOUDS_DIR_NAME: str = "clouds"  # e.g. clouds/000123.pcd
OUTPUT_DIR_NAME: str = "output"  # under clouds/, wiped on every run
GRAPH_FILE: str = "graph_vertices.txt"  # one CSV row per pose-graph vertex
GRAPH_LOCK: str = ".graph.block"  # present while the graph file is written
CLOUD_SUFFIX: str = ".pcd"
OUTPUT_NAME: str = "reconstruction.pcd"

# Graph vertices CSV columns
POSE_NAME_COL: int = 1
POSE_T_COLS: tuple = (5, 6, 7)  # x, y, z
POSE_Q_COLS: tuple = (8, 9, 10, 11)  # qx, qy, qz, qw

# Surface grid defaults (meters)
VOXEL_SIZE: float = 0.005
VOXEL_Z: float = 0.5  # frame grid is a thin x-y surface extractor

# Lock handshake (seconds)
LOCK_POLL_S: float = 0.05
LOCK_POLL_MAX_S: float = 1.0
LOCK_TIMEOUT_S: float = 600.0
