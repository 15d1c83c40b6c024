"""Tests for reference-color calibration."""

from __future__ import annotations

import numpy as np
import pytest

from src.core.calibration import (
    RGB,
    CorrectionMode,
    apply_calibration,
    derive_correction,
    sample_reference_color,
)
from src.core.geometry import CircleShape, Point, RectShape


def test_no_references_is_identity() -> None:
    """Without references the correction should leave values unchanged."""
    correction = derive_correction()
    assert correction.mode == CorrectionMode.IDENTITY
    rgb = np.array([[[10, 20, 30]]], dtype=np.uint8)
    out = apply_calibration(rgb, correction)
    assert out.dtype == np.float64
    np.testing.assert_array_equal(out, [[[10.0, 20.0, 30.0]]])


def test_white_and_black_select_stretch() -> None:
    """Both white and black present should stretch to the full range."""
    correction = derive_correction(
        white=RGB(200, 220, 240), gray=RGB(100, 100, 100), black=RGB(20, 20, 40)
    )
    assert correction.mode == CorrectionMode.STRETCH
    out = apply_calibration(np.array([[20.0, 20.0, 40.0], [200.0, 220.0, 240.0]]), correction)
    np.testing.assert_allclose(out, [[0.0, 0.0, 0.0], [255.0, 255.0, 255.0]])


def test_stretch_clamps_to_byte_range() -> None:
    """Values outside the reference span should clamp to [0, 255]."""
    correction = derive_correction(white=RGB(100, 100, 100), black=RGB(50, 50, 50))
    out = apply_calibration(np.array([10.0, 75.0, 200.0]), correction)
    np.testing.assert_allclose(out, [0.0, 127.5, 255.0])


def test_stretch_zero_span_channel_uses_unit_span() -> None:
    """A channel where white equals black should not divide by zero."""
    correction = derive_correction(white=RGB(100, 100, 80), black=RGB(0, 0, 80))
    assert correction.scale[2] == pytest.approx(255.0)
    assert np.all(np.isfinite(correction.scale))


def test_white_alone_balances_to_255() -> None:
    """White without black should balance each channel to 255."""
    correction = derive_correction(white=RGB(250, 200, 255), gray=RGB(10, 10, 10))
    assert correction.mode == CorrectionMode.BALANCE
    out = apply_calibration(np.array([250.0, 200.0, 255.0]), correction)
    np.testing.assert_allclose(out, [255.0, 255.0, 255.0])


def test_gray_alone_balances_to_128() -> None:
    """Gray as the only reference should balance to mid-gray."""
    correction = derive_correction(gray=RGB(100, 128, 160))
    out = apply_calibration(np.array([100.0, 128.0, 160.0]), correction)
    np.testing.assert_allclose(out, [128.0, 128.0, 128.0])


def test_black_alone_is_identity() -> None:
    """Black without white cannot define a correction on its own."""
    assert derive_correction(black=RGB(10, 10, 10)).mode == CorrectionMode.IDENTITY


def test_balance_uses_unit_floor_for_dark_reference() -> None:
    """A zero reference channel should be divided by 1, then capped at 255."""
    correction = derive_correction(gray=RGB(0, 64, 128))
    np.testing.assert_allclose(correction.scale, [128.0, 2.0, 1.0])
    out = apply_calibration(np.array([3.0, 10.0, 10.0]), correction)
    np.testing.assert_allclose(out, [255.0, 20.0, 10.0])


def test_sample_reference_color_averages_inside_pixels() -> None:
    """Sampling should average only pixels inside the shape."""
    raster = np.zeros((10, 10, 4), dtype=np.uint8)
    raster[2:4, 2:4, :3] = [100, 150, 200]
    raster[..., 3] = 255
    color = sample_reference_color(raster, RectShape("r", (Point(2, 2), Point(3, 3))))
    assert color == RGB(100.0, 150.0, 200.0)


def test_sample_reference_color_circle() -> None:
    """Circle samples should exclude bbox corners outside the radius."""
    raster = np.zeros((11, 11, 3), dtype=np.uint8)
    raster[5, 5] = [90, 90, 90]
    color = sample_reference_color(raster, CircleShape("c", (Point(5, 5), Point(5.5, 5))))
    assert color == RGB(90.0, 90.0, 90.0)


def test_sample_reference_color_outside_raster_is_none() -> None:
    """A shape covering no pixel should yield no color."""
    raster = np.zeros((5, 5, 3), dtype=np.uint8)
    assert sample_reference_color(raster, RectShape("r", (Point(20, 20), Point(30, 30)))) is None
    assert sample_reference_color(raster, RectShape("r", (Point(1, 1), Point(1, 1)))) is None
