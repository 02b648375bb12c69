"""Height and color blending across an overlap seam."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import ZBlendMode


def fold_z(z: float, neighbor_z: np.ndarray, mode: ZBlendMode = "sequential") -> float:
    """
    Blend a frame height with its accumulated neighbors.

    ``sequential`` folds left, halving towards each neighbor in order, so
    later neighbors weigh more. ``mean`` is the plain average of all values.
    """
    nz = np.asarray(neighbor_z, dtype=float).reshape(-1)
    if mode == "mean":
        return float((z + nz.sum()) / (len(nz) + 1))
    if mode != "sequential":
        raise ValueError(f"unknown z blend mode: {mode}")
    out = float(z)
    for v in nz:
        out = (out + float(v)) / 2.0
    return out


@dataclass(frozen=True)
class BlendContext:
    """Per-round calibration of the seam blend."""

    max_contour_dist: float

    @property
    def degenerate(self) -> bool:
        return not (np.isfinite(self.max_contour_dist) and self.max_contour_dist > 0)

    def alpha(self, contour_dist: float) -> Optional[float]:
        """Frame weight in [0, 1]; None when the round cannot blend."""
        if self.degenerate:
            return None
        a = (self.max_contour_dist - float(contour_dist)) / self.max_contour_dist
        return float(np.clip(a, 0.0, 1.0))


def blend_rgb(acc_rgb: np.ndarray, frame_rgb: np.ndarray, alpha: float) -> np.ndarray:
    """(1 - alpha) * acc + alpha * frame per channel, truncated to uint8."""
    a = np.asarray(acc_rgb, dtype=float)
    f = np.asarray(frame_rgb, dtype=float)
    out = np.trunc((1.0 - alpha) * a + alpha * f)
    # rounding noise must not leave the [acc, frame] interval
    out = np.clip(out, np.minimum(a, f), np.maximum(a, f))
    return out.astype(np.uint8)
