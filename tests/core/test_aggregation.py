"""Tests for ROI group aggregation and regression tuning."""

from __future__ import annotations

import numpy as np
import pytest

from src.core.aggregation import (
    DEFAULT_REGRESSION,
    GroupStats,
    RegressionParams,
    TargetIndex,
    aggregate_groups,
    auto_tune,
    finalize_stats,
    stats_to_dataframe,
)
from src.core.classification import compute_indices
from src.core.geometry import Point, RectShape


def _rect(shape_id: str, x0: float, y0: float, x1: float, y1: float) -> RectShape:
    return RectShape(shape_id, (Point(x0, y0), Point(x1, y1)))


def _scene() -> tuple[np.ndarray, np.ndarray]:
    rgb = np.zeros((10, 10, 3), dtype=np.float64)
    rgb[...] = [40.0, 160.0, 40.0]
    vegetation = np.ones((10, 10), dtype=bool)
    return rgb, vegetation


def test_default_regression_params() -> None:
    """Defaults should be slope 1.5, intercept 0.2 on mACI."""
    params = RegressionParams()
    assert (params.slope, params.intercept, params.target_index) == (1.5, 0.2, TargetIndex.MACI)
    assert params.predict(mean_maci=2.0, mean_ngrdi=9.0) == pytest.approx(3.2)
    ngrdi = RegressionParams(slope=2.0, intercept=1.0, target_index=TargetIndex.NGRDI)
    assert ngrdi.predict(mean_maci=9.0, mean_ngrdi=0.5) == pytest.approx(2.0)


def test_finalize_empty_group_has_zero_means() -> None:
    """An empty group should finalize with zero means and no area."""
    stats = finalize_stats(GroupStats(), RegressionParams(), pixels_per_unit=None)
    assert stats.pixel_count == 0
    assert stats.mean_maci == 0.0
    assert stats.anthocyanin == pytest.approx(0.2)
    assert stats.area is None


def test_aggregate_single_group_means() -> None:
    """Means should be computed over vegetation pixels inside the group."""
    rgb, vegetation = _scene()
    indices = compute_indices(rgb)
    stats, in_group = aggregate_groups(
        {"g1": [_rect("a", 0, 0, 1, 1)]}, vegetation, rgb, indices, RegressionParams()
    )
    g1 = stats["g1"]
    assert g1.pixel_count == 4
    assert g1.mean_g == pytest.approx(160.0)
    assert g1.mean_maci == pytest.approx(0.25)
    assert g1.mean_ngrdi == pytest.approx(0.6)
    assert g1.anthocyanin == pytest.approx(1.5 * 0.25 + 0.2)
    assert in_group.sum() == 4


def test_overlapping_shapes_in_one_group_count_once() -> None:
    """A pixel covered by two shapes of the same group counts once."""
    rgb, vegetation = _scene()
    stats, _ = aggregate_groups(
        {"g1": [_rect("a", 0, 0, 2, 2), _rect("b", 1, 1, 3, 3)]},
        vegetation,
        rgb,
        compute_indices(rgb),
        RegressionParams(),
    )
    assert stats["g1"].pixel_count == 9 + 9 - 4


def test_overlapping_groups_share_pixels() -> None:
    """A pixel inside two groups contributes to both."""
    rgb, vegetation = _scene()
    stats, in_group = aggregate_groups(
        {"g1": [_rect("a", 0, 0, 2, 2)], "g2": [_rect("b", 2, 2, 4, 4)]},
        vegetation,
        rgb,
        compute_indices(rgb),
        RegressionParams(),
    )
    assert stats["g1"].pixel_count == 9
    assert stats["g2"].pixel_count == 9
    assert in_group.sum() == 17


def test_background_pixels_are_not_counted() -> None:
    """Only vegetation pixels count toward group statistics."""
    rgb, vegetation = _scene()
    vegetation[0, :] = False
    stats, _ = aggregate_groups(
        {"g1": [_rect("a", 0, 0, 1, 1)]}, vegetation, rgb, compute_indices(rgb), RegressionParams()
    )
    assert stats["g1"].pixel_count == 2


def test_area_uses_pixels_per_unit() -> None:
    """Area should be pixel_count / ppu**2 when a scale is known."""
    rgb, vegetation = _scene()
    stats, _ = aggregate_groups(
        {"g1": [_rect("a", 0, 0, 3, 3)]},
        vegetation,
        rgb,
        compute_indices(rgb),
        RegressionParams(),
        pixels_per_unit=2.0,
    )
    assert stats["g1"].area == pytest.approx(16 / 4.0)


def _populated(maci: float, ngrdi: float = 0.0) -> GroupStats:
    return GroupStats(pixel_count=10, mean_maci=maci, mean_ngrdi=ngrdi)


def test_auto_tune_needs_two_populated_groups() -> None:
    """Auto-tune should keep the current params with fewer than two groups."""
    current = RegressionParams(slope=3.0, intercept=1.0)
    assert auto_tune([_populated(0.5), GroupStats()], current) == current


def test_auto_tune_falls_back_to_defaults_below_noise_floor() -> None:
    """A span below 0.05 should select the literature defaults."""
    current = RegressionParams()
    tuned = auto_tune([_populated(0.50), _populated(0.54)], current)
    assert (tuned.slope, tuned.intercept) == DEFAULT_REGRESSION[TargetIndex.MACI]
    ngrdi = RegressionParams(target_index=TargetIndex.NGRDI)
    tuned = auto_tune([_populated(0.5, 0.1), _populated(0.9, 0.11)], ngrdi)
    assert (tuned.slope, tuned.intercept) == (150.2, 5.2)
    assert tuned.target_index == TargetIndex.NGRDI


def test_auto_tune_maps_span_to_target_range() -> None:
    """Min and max group means should map to 1 and 40."""
    tuned = auto_tune([_populated(0.5), _populated(1.5), _populated(1.0)], RegressionParams())
    assert tuned.slope == 39.0
    assert tuned.intercept == -18.5
    assert tuned.predict(0.5, 0.0) == pytest.approx(1.0)
    assert tuned.predict(1.5, 0.0) == pytest.approx(40.0)


def test_auto_tune_rounds_to_two_decimals() -> None:
    """Fitted parameters should be rounded to 2 decimals."""
    tuned = auto_tune([_populated(0.3), _populated(0.6)], RegressionParams())
    assert tuned.slope == 130.0
    assert tuned.intercept == -38.0
    tuned = auto_tune([_populated(0.0), _populated(0.7)], RegressionParams())
    assert tuned.slope == round(39 / 0.7, 2)
    assert tuned.intercept == 1.0


def test_stats_to_dataframe_columns() -> None:
    """Table export should keep group order and fixed columns."""
    df = stats_to_dataframe([("Group 1", _populated(0.5)), ("Group 2", GroupStats())])
    assert list(df.columns) == [
        "group", "pixel_count", "mean_ngrdi", "mean_maci", "mean_gi", "anthocyanin", "area"
    ]
    assert df["group"].tolist() == ["Group 1", "Group 2"]
    empty = stats_to_dataframe([])
    assert empty.empty
    assert "anthocyanin" in empty.columns
