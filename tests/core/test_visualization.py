"""Tests for display buffer rendering."""

from __future__ import annotations

import numpy as np
import pytest

from src.core.classification import compute_indices
from src.core.visualization import (
    ViewTab,
    VisualizationMode,
    gi_ramp,
    luma,
    maci_ramp,
    ngrdi_ramp,
    render,
)


def _two_pixels() -> tuple[np.ndarray, np.ndarray]:
    rgb = np.array([[[100.0, 100.0, 100.0], [60.0, 180.0, 60.0]]])
    vegetation = np.array([[False, True]])
    return rgb, vegetation


def _render(tab, mode=VisualizationMode.RGB, in_group=None, has_groups=False, alpha=None):
    rgb, vegetation = _two_pixels()
    if in_group is None:
        in_group = np.zeros_like(vegetation)
    return render(
        rgb, vegetation, compute_indices(rgb), in_group, has_groups, tab, mode, alpha=alpha
    )


def test_luma_weights() -> None:
    """Luma should use the Rec. 601 weights."""
    assert luma(np.array([100.0, 100.0, 100.0])) == pytest.approx(100.0)
    assert luma(np.array([255.0, 0.0, 0.0])) == pytest.approx(0.299 * 255.0)


def test_segmentation_tab_paints_vegetation_green() -> None:
    """Segmentation view: vegetation pure green, background dimmed gray."""
    out = _render(ViewTab.SEGMENTATION)
    assert out.dtype == np.uint8 and out.shape == (1, 2, 4)
    np.testing.assert_array_equal(out[0, 1], [0, 255, 0, 255])
    np.testing.assert_array_equal(out[0, 0], [30, 30, 30, 255])


def test_calibration_tab_shows_calibrated_rgb() -> None:
    """Calibration view should show the calibrated colors unchanged."""
    out = _render(ViewTab.CALIBRATION)
    np.testing.assert_array_equal(out[0, :, :3], [[100, 100, 100], [60, 180, 60]])


def test_analysis_rgb_without_groups_keeps_vegetation() -> None:
    """With no groups every vegetation pixel keeps its color."""
    out = _render(ViewTab.ANALYSIS)
    np.testing.assert_array_equal(out[0, 1, :3], [60, 180, 60])
    np.testing.assert_array_equal(out[0, 0, :3], [20, 20, 20])


def test_analysis_rgb_dims_vegetation_outside_groups() -> None:
    """With groups, vegetation outside all groups is half-luma gray."""
    out = _render(ViewTab.ANALYSIS, in_group=np.array([[False, False]]), has_groups=True)
    gray = int(np.rint((0.299 * 60 + 0.587 * 180 + 0.114 * 60) * 0.5))
    np.testing.assert_array_equal(out[0, 1, :3], [gray, gray, gray])
    out = _render(ViewTab.ANALYSIS, in_group=np.array([[False, True]]), has_groups=True)
    np.testing.assert_array_equal(out[0, 1, :3], [60, 180, 60])


def test_index_modes_use_ramps_on_vegetation() -> None:
    """Index submodes recolor only vegetation pixels."""
    rgb, _ = _two_pixels()
    indices = compute_indices(rgb)
    for mode, expected in (
        (VisualizationMode.NGRDI, ngrdi_ramp(indices.ngrdi)),
        (VisualizationMode.MACI, maci_ramp(indices.maci)),
        (VisualizationMode.GI, gi_ramp(indices.gi)),
    ):
        out = _render(ViewTab.REPORT, mode=mode)
        np.testing.assert_array_equal(out[0, 1, :3], np.rint(expected[0, 1]).astype(np.uint8))
        np.testing.assert_array_equal(out[0, 0, :3], [20, 20, 20])


def test_ramp_endpoints() -> None:
    """Ramps should clamp their parameter to [0, 1]."""
    np.testing.assert_allclose(ngrdi_ramp(np.array([-1.0, 0.5, 2.0])), [
        [220.0, 220.0, 50.0], [0.0, 100.0, 0.0], [0.0, 100.0, 0.0],
    ])
    np.testing.assert_allclose(maci_ramp(np.array([0.0, 1.5])), [
        [0.0, 200.0, 0.0], [220.0, 0.0, 50.0],
    ])
    np.testing.assert_allclose(gi_ramp(np.array([0.33, 0.5])), [
        [180.0, 180.0, 200.0], [0.0, 75.0, 0.0],
    ], atol=1e-9)


def test_alpha_is_copied_from_source() -> None:
    """The output alpha channel should come from the source raster."""
    out = _render(ViewTab.CALIBRATION, alpha=np.array([[0, 128]], dtype=np.uint8))
    np.testing.assert_array_equal(out[0, :, 3], [0, 128])
