from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from utils.logger import Logger

from .config import PipelineCfg
from .errors import OutputDirectoryError

LOG = Logger.get_logger("work")


@dataclass(frozen=True)
class Workspace:
    """Resolved on-disk layout of one reconstruction session."""

    root: Path
    clouds_dir: Path
    output_dir: Path
    graph_file: Path
    lock_file: Path
    output_file: Path
    cloud_suffix: str

    @classmethod
    def from_cfg(cls, cfg: PipelineCfg) -> "Workspace":
        root = Path(cfg.work_dir)
        clouds = root / cfg.clouds_dir
        return cls(
            root=root,
            clouds_dir=clouds,
            output_dir=clouds / cfg.output_dir,
            graph_file=root / cfg.graph_file,
            lock_file=root / cfg.graph_lock,
            output_file=root / cfg.output_name,
            cloud_suffix=cfg.cloud_suffix,
        )

    def cloud_path(self, name: str) -> Path:
        return self.clouds_dir / name

    def prepare(self) -> None:
        """Recreate an empty output directory. Fatal on failure."""
        try:
            if self.output_dir.is_dir():
                shutil.rmtree(self.output_dir)
            self.output_dir.mkdir(parents=True)
        except OSError as e:
            raise OutputDirectoryError(
                f"cannot create output directory {self.output_dir}: {e}"
            ) from e
        LOG.info(f"[WORK] root={self.root} output={self.output_dir}")
