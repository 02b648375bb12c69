# utils/logger.py
"""Logging helpers built on top of loguru."""

from __future__ import annotations

import os
import sys
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, TypeVar, cast

from loguru import logger as _logger
from loguru._logger import Logger as LoguruLogger
from tqdm.auto import tqdm

T = TypeVar("T")


# ============================== CONFIG =======================================

MODULE_W = 8
LINE_W = 3


@dataclass(frozen=True)
class LoggingCfg:
    """Project-wide logging configuration."""

    level: str = "INFO"
    json: bool = True
    log_dir: Path = Path(".logs")
    log_format: str = (
        "<green>{time:MM-DD HH:mm:ss}</green>"
        "[<level>{level:.3}</level>]"
        f"[<cyan>{{extra[module]:<{MODULE_W}.{MODULE_W}}}</cyan>:"
        f"<cyan>{{line:>{LINE_W}}}</cyan>] "
        "<level>{message}</level>"
    )
    # file sink serializes to JSON, the format only applies with json=False
    log_file_format: str = (
        f"{{time:YYYY-MM-DD HH:mm:ss}}[{{level:.3}}]"
        f"[{{extra[module]:<{MODULE_W}.{MODULE_W}}}:{{line:>{LINE_W}}}] "
        "{message}"
    )
    progress_bar_format: str = (
        "{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]"
    )


LOGCFG = LoggingCfg()


# ============================== LOGGER =======================================


class Logger:
    """Thin wrapper around loguru with unified configuration."""

    _configured: bool = False
    _log_dir: Path = LOGCFG.log_dir
    _log_file: Optional[Path] = None
    _lock = threading.Lock()

    @staticmethod
    def _add_sinks(level: str, json_format: bool) -> None:
        """Attach console and file sinks."""
        os.makedirs(Logger._log_dir, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        suffix = ".log.json" if json_format else ".log"
        Logger._log_file = Logger._log_dir / f"{ts}{suffix}"

        _logger.add(
            sys.stdout,
            level=level,
            serialize=False,
            format=LOGCFG.log_format,
        )
        _logger.add(
            Logger._log_file,
            level=level,
            serialize=json_format,
            format=LOGCFG.log_file_format,
        )

    @staticmethod
    def _configure(level: str, json_format: bool) -> None:
        """Configure sinks once (thread-safe)."""
        with Logger._lock:
            if Logger._configured:
                return
            _logger.remove()
            Logger._add_sinks(level, json_format)
            Logger._configured = True

    @staticmethod
    def configure(
        level: Optional[str] = None,
        log_dir: Optional[Path | str] = None,
        json_format: Optional[bool] = None,
        force: bool = False,
    ) -> None:
        """
        Configure the sinks explicitly.
        Without ``force`` this is a no-op once any logger was handed out.
        """
        if force:
            with Logger._lock:
                Logger._configured = False
        if log_dir is not None:
            Logger._log_dir = Path(log_dir)
        lvl = level or LOGCFG.level
        jsn = LOGCFG.json if json_format is None else bool(json_format)
        Logger._configure(lvl, jsn)

    @staticmethod
    def log_file() -> Optional[Path]:
        """Path of the active file sink, if any."""
        return Logger._log_file

    @staticmethod
    def get_logger(
        name: str,
        level: Optional[str] = None,
        json_format: Optional[bool] = None,
    ) -> LoguruLogger:
        """
        Return a configured loguru logger bound to ``name`` (in extra[module]).
        """
        Logger._configure(
            level or LOGCFG.level,
            LOGCFG.json if json_format is None else bool(json_format),
        )
        return _logger.bind(module=name)

    @staticmethod
    def progress(
        iterable: Iterable[T],
        desc: Optional[str] = None,
        total: Optional[int] = None,
        disable: bool = False,
    ) -> Iterable[T]:
        """Unified tqdm wrapper with project bar style."""
        return cast(
            Iterable[T],
            tqdm(
                iterable,
                desc=desc,
                total=total,
                leave=False,
                disable=disable,
                bar_format=LOGCFG.progress_bar_format,
            ),
        )
