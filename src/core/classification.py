"""Vegetation segmentation and per-pixel color indices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np

from src.core.geometry import Shape, bbox_window, bounding_box, shape_mask

DEFAULT_THRESHOLD = 20.0


@dataclass
class PixelIndices:
    """Per-pixel index rasters, each ``H x W`` float64."""

    ngrdi: np.ndarray
    maci: np.ndarray
    gi: np.ndarray


def excess_green(rgb: np.ndarray) -> np.ndarray:
    """Excess Green Index ``2G - R - B``.

    Examples
    --------
    >>> float(excess_green(np.array([[50.0, 200.0, 50.0]]))[0])
    300.0
    """
    rgb = np.asarray(rgb, dtype=np.float64)
    return 2.0 * rgb[..., 1] - rgb[..., 0] - rgb[..., 2]


def vegetation_mask(rgb: np.ndarray, threshold: float = DEFAULT_THRESHOLD) -> np.ndarray:
    """Classify pixels as vegetation when ExG is strictly above ``threshold``."""
    return excess_green(rgb) > threshold


def _safe_ratio(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    """Elementwise division yielding 0 where the denominator is 0."""
    out = np.zeros(np.broadcast_shapes(numerator.shape, denominator.shape))
    np.divide(numerator, denominator, out=out, where=denominator != 0)
    return out


def compute_indices(rgb: np.ndarray) -> PixelIndices:
    """Compute NGRDI, mACI and GI for every pixel.

    Parameters
    ----------
    rgb : numpy.ndarray
        Calibrated ``(..., 3)`` channel values.

    Returns
    -------
    PixelIndices
        ``ngrdi = (G-R)/(G+R)``, ``maci = R/G``, ``gi = G/(R+G+B)``; each is 0
        where its denominator is 0.
    """
    rgb = np.asarray(rgb, dtype=np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    return PixelIndices(
        ngrdi=_safe_ratio(g - r, g + r),
        maci=_safe_ratio(r, g),
        gi=_safe_ratio(g, r + g + b),
    )


def apply_exclusions(mask: np.ndarray, zones: Iterable[Shape]) -> np.ndarray:
    """Reclassify vegetation pixels inside any exclusion zone as background.

    Each zone is tested only against the vegetation pixels of its bounding
    box window.

    Parameters
    ----------
    mask : numpy.ndarray
        ``H x W`` boolean vegetation mask.
    zones : Iterable[Shape]
        Exclusion zones.

    Returns
    -------
    numpy.ndarray
        New mask with excluded pixels cleared.
    """
    result = np.array(mask, dtype=bool, copy=True)
    height, width = result.shape
    for zone in zones:
        window = bbox_window(bounding_box(zone), height, width)
        if window is None:
            continue
        row0, row1, col0, col1 = window
        sub = result[row0:row1, col0:col1]
        if not sub.any():
            continue
        ys = np.arange(row0, row1, dtype=np.float64)[:, None]
        xs = np.arange(col0, col1, dtype=np.float64)[None, :]
        sub &= ~shape_mask(zone, xs, ys)
    return result
