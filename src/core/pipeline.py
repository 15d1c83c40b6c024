"""Full-raster analysis pass.

One call rotates the source image, applies reference calibration, classifies
vegetation, removes exclusion zones, aggregates ROI group statistics and
renders the display buffer. The pass is pure: identical inputs give
identical outputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from loguru import logger
import numpy as np
from scipy import ndimage

from src.core.aggregation import GroupStats, RegressionParams, aggregate_groups
from src.core.calibration import Correction, apply_calibration
from src.core.classification import (
    DEFAULT_THRESHOLD,
    apply_exclusions,
    compute_indices,
    vegetation_mask,
)
from src.core.geometry import Shape
from src.core.visualization import ViewTab, VisualizationMode, render


@dataclass
class PipelineInputs:
    """Everything the analysis pass depends on besides the raster."""

    threshold: float = DEFAULT_THRESHOLD
    tab: ViewTab = ViewTab.SEGMENTATION
    mode: VisualizationMode = VisualizationMode.RGB
    correction: Correction = field(default_factory=Correction)
    exclusion_zones: Sequence[Shape] = ()
    group_shapes: Mapping[str, Sequence[Shape]] = field(default_factory=dict)
    regression: RegressionParams = field(default_factory=RegressionParams)
    pixels_per_unit: float | None = None
    rotation_angle: float = 0.0


@dataclass
class PipelineResult:
    """Outputs of one analysis pass.

    Parameters
    ----------
    rendered : numpy.ndarray
        ``H x W x 4`` uint8 display buffer.
    vegetation : numpy.ndarray
        ``H x W`` final vegetation mask.
    stats : dict[str, GroupStats]
        Finalized statistics per group id.
    """

    rendered: np.ndarray
    vegetation: np.ndarray
    stats: dict[str, GroupStats]


def rotate_raster(raster: np.ndarray, angle: float) -> np.ndarray:
    """Rotate an ``H x W x C`` raster about its center, keeping its size.

    Parameters
    ----------
    raster : numpy.ndarray
        Source image.
    angle : float
        Clockwise on-screen rotation in degrees.

    Returns
    -------
    numpy.ndarray
        Rotated image of the same shape and dtype; uncovered corners are 0.
        The input is returned as-is when ``angle`` is 0.
    """
    if angle == 0:
        return raster
    rotated = ndimage.rotate(
        raster,
        -angle,
        axes=(1, 0),
        reshape=False,
        order=1,
        mode="constant",
        cval=0.0,
    )
    return rotated.astype(raster.dtype, copy=False)


def run_pipeline(raster: np.ndarray, inputs: PipelineInputs) -> PipelineResult:
    """Run the complete classification, aggregation and render pass.

    Parameters
    ----------
    raster : numpy.ndarray
        ``H x W x 4`` (or ``x 3``) uint8 source image.
    inputs : PipelineInputs
        Current analysis settings and shapes.

    Returns
    -------
    PipelineResult
        Rendered buffer, vegetation mask and per-group stats.
    """
    source = rotate_raster(raster, inputs.rotation_angle)
    alpha = source[..., 3] if source.shape[-1] > 3 else None
    rgb = apply_calibration(source[..., :3], inputs.correction)

    vegetation = vegetation_mask(rgb, inputs.threshold)
    vegetation = apply_exclusions(vegetation, inputs.exclusion_zones)
    indices = compute_indices(rgb)

    stats, in_group = aggregate_groups(
        inputs.group_shapes,
        vegetation,
        rgb,
        indices,
        inputs.regression,
        inputs.pixels_per_unit,
    )
    rendered = render(
        rgb,
        vegetation,
        indices,
        in_group,
        has_groups=bool(inputs.group_shapes),
        tab=inputs.tab,
        mode=inputs.mode,
        alpha=alpha,
    )
    logger.debug(
        f"Pipeline pass: {int(vegetation.sum())} vegetation px, {len(stats)} groups"
    )
    return PipelineResult(rendered=rendered, vegetation=vegetation, stats=stats)
