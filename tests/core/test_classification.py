"""Tests for vegetation classification and color indices."""

from __future__ import annotations

import numpy as np

from src.core.classification import (
    DEFAULT_THRESHOLD,
    apply_exclusions,
    compute_indices,
    excess_green,
    vegetation_mask,
)
from src.core.geometry import LassoShape, Point, RectShape


def test_excess_green_formula() -> None:
    """ExG should equal 2G - R - B."""
    rgb = np.array([[50.0, 200.0, 50.0], [100.0, 100.0, 100.0]])
    np.testing.assert_allclose(excess_green(rgb), [300.0, 0.0])


def test_vegetation_threshold_is_strict() -> None:
    """A pixel with ExG exactly at the threshold is background."""
    rgb = np.array([[[100.0, 110.0, 100.0], [100.0, 111.0, 100.0]]])
    assert DEFAULT_THRESHOLD == 20.0
    np.testing.assert_array_equal(vegetation_mask(rgb, 20.0), [[False, True]])


def test_indices_formulas() -> None:
    """NGRDI, mACI and GI should follow their ratio definitions."""
    indices = compute_indices(np.array([[[50.0, 150.0, 50.0]]]))
    assert indices.ngrdi[0, 0] == 0.5
    assert abs(indices.maci[0, 0] - 1.0 / 3.0) < 1e-12
    assert abs(indices.gi[0, 0] - 0.6) < 1e-12


def test_indices_zero_denominator_is_zero() -> None:
    """Black pixels should produce zero indices instead of NaN."""
    indices = compute_indices(np.zeros((2, 2, 3)))
    for values in (indices.ngrdi, indices.maci, indices.gi):
        np.testing.assert_array_equal(values, np.zeros((2, 2)))
    red = compute_indices(np.array([[[80.0, 0.0, 0.0]]]))
    assert red.maci[0, 0] == 0.0
    assert red.ngrdi[0, 0] == -1.0


def test_apply_exclusions_clears_zone_pixels() -> None:
    """Vegetation inside an exclusion zone should become background."""
    mask = np.ones((6, 6), dtype=bool)
    out = apply_exclusions(mask, [RectShape("z", (Point(1, 1), Point(2, 3)))])
    assert out.sum() == 36 - 6
    assert not out[1:4, 1:3].any()
    assert mask.all()


def test_apply_exclusions_ignores_degenerate_and_outside_zones() -> None:
    """Degenerate or off-raster zones should not change the mask."""
    mask = np.ones((4, 4), dtype=bool)
    zones = [
        RectShape("a", (Point(1, 1), Point(1, 1))),
        RectShape("b", (Point(10, 10), Point(20, 20))),
        LassoShape("c", (Point(0, 0), Point(3, 3))),
    ]
    np.testing.assert_array_equal(apply_exclusions(mask, zones), mask)


def test_apply_exclusions_multiple_zones() -> None:
    """Each zone removes its own pixels."""
    mask = np.ones((5, 5), dtype=bool)
    zones = [
        RectShape("a", (Point(0, 0), Point(0.5, 4))),
        RectShape("b", (Point(3.5, 0), Point(4, 4))),
    ]
    out = apply_exclusions(mask, zones)
    assert not out[:, 0].any() and not out[:, 4].any()
    assert out[:, 1:4].all()
