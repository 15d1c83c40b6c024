"""Render classified pixels into a display buffer per tab and mode."""

from __future__ import annotations

from enum import Enum

import numpy as np

from src.core.classification import PixelIndices

VEGETATION_GREEN = (0.0, 255.0, 0.0)


class ViewTab(str, Enum):
    """Workflow tabs; each owns a different shape collection."""

    SEGMENTATION = "segmentation"
    CALIBRATION = "calibration"
    ANALYSIS = "analysis"
    REPORT = "report"


class VisualizationMode(str, Enum):
    """Display submodes of the analysis and report tabs."""

    RGB = "rgb"
    NGRDI = "ngrdi"
    MACI = "maci"
    GI = "gi"


def luma(rgb: np.ndarray) -> np.ndarray:
    """Rec. 601 luma ``0.299R + 0.587G + 0.114B``."""
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


def _gray(rgb: np.ndarray, factor: float) -> np.ndarray:
    value = luma(rgb) * factor
    return np.repeat(value[..., None], 3, axis=-1)


def ngrdi_ramp(ngrdi: np.ndarray) -> np.ndarray:
    """Map NGRDI over ``[0, 0.5]`` from straw yellow to green."""
    t = np.clip(ngrdi / 0.5, 0.0, 1.0)
    return np.stack([220.0 * (1 - t), 220.0 * (1 - t) + 100.0 * t, 50.0 * (1 - t)], axis=-1)


def maci_ramp(maci: np.ndarray) -> np.ndarray:
    """Map mACI over ``[0.5, 1.5]`` from green to magenta."""
    t = np.clip((maci - 0.5) / 1.0, 0.0, 1.0)
    return np.stack([220.0 * t, 200.0 * (1 - t), 50.0 * t], axis=-1)


def gi_ramp(gi: np.ndarray) -> np.ndarray:
    """Map GI over ``[0.33, 0.5]`` from neutral gray-blue to green."""
    t = np.clip((gi - 0.33) / 0.17, 0.0, 1.0)
    return np.stack([180.0 * (1 - t), 180.0 * (1 - t) + 75.0 * t, 200.0 * (1 - t)], axis=-1)


_RAMPS = {
    VisualizationMode.NGRDI: lambda idx: ngrdi_ramp(idx.ngrdi),
    VisualizationMode.MACI: lambda idx: maci_ramp(idx.maci),
    VisualizationMode.GI: lambda idx: gi_ramp(idx.gi),
}


def render(
    rgb: np.ndarray,
    vegetation: np.ndarray,
    indices: PixelIndices,
    in_group: np.ndarray,
    has_groups: bool,
    tab: ViewTab,
    mode: VisualizationMode = VisualizationMode.RGB,
    alpha: np.ndarray | None = None,
) -> np.ndarray:
    """Recolor calibrated pixels for display.

    Parameters
    ----------
    rgb : numpy.ndarray
        Calibrated ``H x W x 3`` values.
    vegetation : numpy.ndarray
        Final ``H x W`` vegetation mask (after exclusions).
    indices : PixelIndices
        Per-pixel indices.
    in_group : numpy.ndarray
        ``H x W`` mask of pixels inside at least one ROI group.
    has_groups : bool
        Whether any ROI group exists.
    tab : ViewTab
        Active tab.
    mode : VisualizationMode
        Submode for the analysis and report tabs.
    alpha : numpy.ndarray, optional
        Source alpha channel copied to the output; opaque when omitted.

    Returns
    -------
    numpy.ndarray
        ``H x W x 4`` uint8 RGBA buffer.
    """
    rgb = np.asarray(rgb, dtype=np.float64)
    if tab == ViewTab.CALIBRATION:
        color = rgb
    elif tab == ViewTab.SEGMENTATION:
        color = np.where(vegetation[..., None], np.asarray(VEGETATION_GREEN), _gray(rgb, 0.3))
    else:
        if mode == VisualizationMode.RGB:
            keep = in_group if has_groups else np.ones_like(vegetation)
            plant = np.where(keep[..., None], rgb, _gray(rgb, 0.5))
        else:
            plant = _RAMPS[VisualizationMode(mode)](indices)
        color = np.where(vegetation[..., None], plant, _gray(rgb, 0.2))

    height, width = vegetation.shape
    out = np.empty((height, width, 4), dtype=np.uint8)
    out[..., :3] = np.rint(np.clip(color, 0.0, 255.0)).astype(np.uint8)
    out[..., 3] = 255 if alpha is None else alpha
    return out
