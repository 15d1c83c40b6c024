"""Per-group pixel statistics and the pigment regression.

A vegetation pixel is counted in *every* group whose shapes contain it, so
overlapping groups share pixels. Within one group a pixel is counted once,
however many of that group's shapes cover it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Mapping, Sequence

from loguru import logger
import numpy as np
import pandas as pd

from src.core.classification import PixelIndices
from src.core.geometry import Shape, raster_mask

TUNE_NOISE_FLOOR = 0.05
TUNE_TARGET_RANGE = (1.0, 40.0)


class TargetIndex(str, Enum):
    """Index used as the regression predictor."""

    MACI = "mACI"
    NGRDI = "NGRDI"


# Literature defaults used when auto-tune cannot separate the groups.
DEFAULT_REGRESSION = {
    TargetIndex.MACI: (30.5, -10.5),
    TargetIndex.NGRDI: (150.2, 5.2),
}


@dataclass(frozen=True)
class RegressionParams:
    """Linear model ``anthocyanin = slope * index + intercept``."""

    slope: float = 1.5
    intercept: float = 0.2
    target_index: TargetIndex = TargetIndex.MACI

    def predict(self, mean_maci: float, mean_ngrdi: float) -> float:
        value = mean_maci if self.target_index == TargetIndex.MACI else mean_ngrdi
        return self.slope * value + self.intercept


@dataclass(frozen=True)
class GroupStats:
    """Accumulated sums and finalized means for one ROI group.

    Parameters
    ----------
    pixel_count : int
        Number of vegetation pixels inside the group.
    sum_r, sum_g, sum_b : float
        Summed calibrated channel values.
    sum_ngrdi, sum_maci, sum_gi : float
        Summed per-pixel index values.
    mean_r, mean_g, mean_b, mean_ngrdi, mean_maci, mean_gi : float
        ``sum / max(pixel_count, 1)``.
    anthocyanin : float
        Regression estimate from the configured target index.
    area : float, optional
        ``pixel_count / pixels_per_unit**2`` when a scale is known.
    """

    pixel_count: int = 0
    sum_r: float = 0.0
    sum_g: float = 0.0
    sum_b: float = 0.0
    sum_ngrdi: float = 0.0
    sum_maci: float = 0.0
    sum_gi: float = 0.0
    mean_r: float = 0.0
    mean_g: float = 0.0
    mean_b: float = 0.0
    mean_ngrdi: float = 0.0
    mean_maci: float = 0.0
    mean_gi: float = 0.0
    anthocyanin: float = 0.0
    area: float | None = None


def group_membership(
    shapes: Iterable[Shape], height: int, width: int
) -> np.ndarray:
    """Union of all shape masks belonging to one group."""
    member = np.zeros((height, width), dtype=bool)
    for shape in shapes:
        member |= raster_mask(shape, height, width)
    return member


def accumulate_group(
    member: np.ndarray,
    vegetation: np.ndarray,
    rgb: np.ndarray,
    indices: PixelIndices,
) -> GroupStats:
    """Sum counts, channels and indices over vegetation pixels of a group."""
    selected = member & vegetation
    count = int(selected.sum())
    if count == 0:
        return GroupStats()
    pixels = rgb[selected]
    return GroupStats(
        pixel_count=count,
        sum_r=float(pixels[:, 0].sum()),
        sum_g=float(pixels[:, 1].sum()),
        sum_b=float(pixels[:, 2].sum()),
        sum_ngrdi=float(indices.ngrdi[selected].sum()),
        sum_maci=float(indices.maci[selected].sum()),
        sum_gi=float(indices.gi[selected].sum()),
    )


def finalize_stats(
    stats: GroupStats,
    regression: RegressionParams,
    pixels_per_unit: float | None = None,
) -> GroupStats:
    """Derive means, the regression estimate and physical area.

    Examples
    --------
    >>> s = finalize_stats(GroupStats(pixel_count=2, sum_maci=1.0), RegressionParams())
    >>> s.mean_maci, s.anthocyanin
    (0.5, 0.95)
    """
    divisor = max(stats.pixel_count, 1)
    mean_maci = stats.sum_maci / divisor
    mean_ngrdi = stats.sum_ngrdi / divisor
    area = None
    if pixels_per_unit is not None and pixels_per_unit > 0:
        area = stats.pixel_count / (pixels_per_unit**2)
    return replace(
        stats,
        mean_r=stats.sum_r / divisor,
        mean_g=stats.sum_g / divisor,
        mean_b=stats.sum_b / divisor,
        mean_ngrdi=mean_ngrdi,
        mean_maci=mean_maci,
        mean_gi=stats.sum_gi / divisor,
        anthocyanin=regression.predict(mean_maci, mean_ngrdi),
        area=area,
    )


def aggregate_groups(
    group_shapes: Mapping[str, Sequence[Shape]],
    vegetation: np.ndarray,
    rgb: np.ndarray,
    indices: PixelIndices,
    regression: RegressionParams,
    pixels_per_unit: float | None = None,
) -> tuple[dict[str, GroupStats], np.ndarray]:
    """Aggregate and finalize statistics for every group.

    Parameters
    ----------
    group_shapes : Mapping[str, Sequence[Shape]]
        Shapes per group id, in group order.
    vegetation : numpy.ndarray
        ``H x W`` vegetation mask after exclusions.
    rgb : numpy.ndarray
        Calibrated ``H x W x 3`` values.
    indices : PixelIndices
        Per-pixel indices.
    regression : RegressionParams
        Current regression model.
    pixels_per_unit : float, optional
        Raster scale for area conversion.

    Returns
    -------
    tuple[dict[str, GroupStats], numpy.ndarray]
        Finalized stats per group id and the ``H x W`` mask of pixels that
        belong to at least one group.
    """
    height, width = vegetation.shape
    any_group = np.zeros((height, width), dtype=bool)
    results: dict[str, GroupStats] = {}
    for group_id, shapes in group_shapes.items():
        member = group_membership(shapes, height, width)
        any_group |= member
        raw = accumulate_group(member, vegetation, rgb, indices)
        results[group_id] = finalize_stats(raw, regression, pixels_per_unit)
    return results, any_group


def auto_tune(
    stats: Iterable[GroupStats], current: RegressionParams
) -> RegressionParams:
    """Fit slope/intercept so group means span the target range ``[1, 40]``.

    Parameters
    ----------
    stats : Iterable[GroupStats]
        Finalized group statistics.
    current : RegressionParams
        Current parameters; its target index selects the predictor.

    Returns
    -------
    RegressionParams
        ``current`` unchanged when fewer than two groups have pixels, the
        literature defaults when the observed span is below the noise floor,
        otherwise the fitted parameters rounded to 2 decimals.
    """
    populated = [s for s in stats if s.pixel_count > 0]
    if len(populated) < 2:
        logger.warning("Auto-tune needs at least 2 groups with vegetation pixels")
        return current
    target = current.target_index
    values = [s.mean_maci if target == TargetIndex.MACI else s.mean_ngrdi for s in populated]
    low, high = min(values), max(values)
    if high - low < TUNE_NOISE_FLOOR:
        slope, intercept = DEFAULT_REGRESSION[target]
        logger.warning(
            f"Index span {high - low:.4f} below noise floor, using {target.value} defaults"
        )
        return replace(current, slope=slope, intercept=intercept)
    out_low, out_high = TUNE_TARGET_RANGE
    slope = (out_high - out_low) / (high - low)
    intercept = out_low - slope * low
    logger.info(f"Auto-tuned regression: y = {slope:.2f}x + {intercept:.2f}")
    return replace(current, slope=round(slope, 2), intercept=round(intercept, 2))


def stats_to_dataframe(rows: Iterable[tuple[str, GroupStats]]) -> pd.DataFrame:
    """Tabulate named group statistics.

    Parameters
    ----------
    rows : Iterable[tuple[str, GroupStats]]
        ``(group name, stats)`` pairs in display order.

    Returns
    -------
    pandas.DataFrame
        Columns ``group, pixel_count, mean_ngrdi, mean_maci, mean_gi,
        anthocyanin, area``.
    """
    columns = ["group", "pixel_count", "mean_ngrdi", "mean_maci", "mean_gi", "anthocyanin", "area"]
    records = [
        {
            "group": name,
            "pixel_count": s.pixel_count,
            "mean_ngrdi": s.mean_ngrdi,
            "mean_maci": s.mean_maci,
            "mean_gi": s.mean_gi,
            "anthocyanin": s.anthocyanin,
            "area": s.area,
        }
        for name, s in rows
    ]
    if not records:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(records)[columns]
