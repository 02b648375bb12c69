from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from utils.error_tracker import ErrorTracker
from utils.logger import Logger

from .config import PipelineCfg
from .pipeline import reconstruct

LOG = Logger.get_logger("main")


def run(cfg: PipelineCfg | None = None) -> Optional[Path]:
    """
    Entry point: configure logging, install ErrorTracker, run pipeline.
    Returns the saved path if the final cloud has points, else None.
    """
    cfg = cfg or PipelineCfg()
    Logger.configure(level=cfg.log_level)
    ErrorTracker.install_excepthook()
    ErrorTracker.install_signal_handlers()
    ErrorTracker.register_cleanup(
        lambda: LOG.warning(f"[STOP] Run aborted, log at {Logger.log_file()}")
    )

    LOG.info(f"[START] Root={cfg.work_dir}")
    cloud, _ = reconstruct(cfg)
    if len(cloud.points) == 0:
        LOG.warning("Empty cloud - nothing saved worth using.")
        return None
    return Path(cfg.work_dir) / cfg.output_name


def _main() -> None:
    """Module runner for `python -m stitch.main [work_dir]`."""
    cfg = PipelineCfg()
    if len(sys.argv) > 1:
        cfg = replace(cfg, work_dir=Path(sys.argv[1]))
    run(cfg)


if __name__ == "__main__":
    _main()
