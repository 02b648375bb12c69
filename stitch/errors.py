"""Error types raised by the stitching pipeline."""

from __future__ import annotations

from pathlib import Path


class StitchError(Exception):
    """Base class for stitching errors."""


# ----------------------------- recoverable -----------------------------------


class MissingInputFileError(StitchError):
    """Raised when a listed cloud file cannot be loaded; the frame is skipped."""

    def __init__(self, path: Path | str, reason: str = "not found") -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"cannot load {self.path}: {reason}")


# ----------------------------- fatal (setup) ---------------------------------


class PoseFileError(StitchError):
    """Raised when the pose list is missing or malformed."""


class PoseListLockedError(StitchError):
    """Raised when the pose list stays locked past the handshake timeout."""


class OutputDirectoryError(StitchError):
    """Raised when the output location cannot be prepared."""
