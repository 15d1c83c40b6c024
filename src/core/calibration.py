"""Reference-color calibration.

Up to three reference colors can be sampled from the photograph (a white
card, a black card and a mid-gray card). Exactly one correction mode is
derived from whichever references are present, in priority order:

1. dual-point contrast stretch when both white and black are sampled;
2. single-point balance from white (target 255) or else gray (target 128);
3. identity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from src.core.geometry import Shape, bbox_window, bounding_box, shape_mask

WHITE_TARGET = 255.0
GRAY_TARGET = 128.0


class ReferenceSlot(str, Enum):
    """Named calibration reference slots."""

    GRAY = "gray"
    WHITE = "white"
    BLACK = "black"


# Hit-testing priority among the calibration slots.
SLOT_PRIORITY = (ReferenceSlot.BLACK, ReferenceSlot.WHITE, ReferenceSlot.GRAY)


class CorrectionMode(str, Enum):
    """Calibration mode selected from the available references."""

    STRETCH = "stretch"
    BALANCE = "balance"
    IDENTITY = "identity"


@dataclass(frozen=True)
class RGB:
    """Floating-point RGB triple."""

    r: float
    g: float
    b: float

    def as_array(self) -> np.ndarray:
        return np.asarray([self.r, self.g, self.b], dtype=np.float64)


@dataclass
class CalibrationReference:
    """One reference slot: the ROI drawn for it and its sampled color."""

    slot: ReferenceSlot
    roi: Shape | None = None
    color: RGB | None = None

    def clear(self) -> None:
        self.roi = None
        self.color = None


@dataclass(frozen=True)
class Correction:
    """Per-channel correction parameters.

    Parameters
    ----------
    mode : CorrectionMode
        Selected correction mode.
    offset : numpy.ndarray
        Black level per channel (stretch only).
    scale : numpy.ndarray
        Multiplier per channel.
    """

    mode: CorrectionMode = CorrectionMode.IDENTITY
    offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))


def derive_correction(
    white: RGB | None = None,
    gray: RGB | None = None,
    black: RGB | None = None,
) -> Correction:
    """Select the correction mode and its per-channel parameters.

    Parameters
    ----------
    white, gray, black : RGB, optional
        Sampled reference colors; ``None`` when the slot is empty.

    Returns
    -------
    Correction
        Stretch when white and black exist, balance from white (else gray)
        when one single-point reference exists, identity otherwise.

    Examples
    --------
    >>> derive_correction(gray=RGB(64, 128, 0)).scale
    array([  2.,   1., 128.])
    """
    if white is not None and black is not None:
        black_arr = black.as_array()
        span = white.as_array() - black_arr
        span[span == 0] = 1.0
        return Correction(
            mode=CorrectionMode.STRETCH,
            offset=black_arr,
            scale=255.0 / span,
        )
    if white is not None or gray is not None:
        reference, target = (white, WHITE_TARGET) if white is not None else (gray, GRAY_TARGET)
        divisor = np.maximum(reference.as_array(), 1.0)
        return Correction(mode=CorrectionMode.BALANCE, scale=target / divisor)
    return Correction()


def apply_calibration(rgb: np.ndarray, correction: Correction) -> np.ndarray:
    """Apply a correction to an ``(..., 3)`` RGB array.

    Parameters
    ----------
    rgb : numpy.ndarray
        Raw channel values in ``[0, 255]``.
    correction : Correction
        Output of :func:`derive_correction`.

    Returns
    -------
    numpy.ndarray
        Corrected ``float64`` values clamped to ``[0, 255]``; identity returns
        the input values unchanged as ``float64``.
    """
    values = np.asarray(rgb, dtype=np.float64)
    if correction.mode == CorrectionMode.STRETCH:
        return np.clip((values - correction.offset) * correction.scale, 0.0, 255.0)
    if correction.mode == CorrectionMode.BALANCE:
        return np.minimum(values * correction.scale, 255.0)
    return values


def sample_reference_color(raster: np.ndarray, shape: Shape) -> RGB | None:
    """Average the RGB values of all raster pixels inside a shape.

    Parameters
    ----------
    raster : numpy.ndarray
        ``H x W x C`` image with at least 3 channels.
    shape : Shape
        Reference ROI; only its bounding box is scanned.

    Returns
    -------
    RGB | None
        Mean color, or ``None`` when the shape covers no pixel.
    """
    height, width = raster.shape[:2]
    window = bbox_window(bounding_box(shape), height, width)
    if window is None:
        return None
    row0, row1, col0, col1 = window
    ys = np.arange(row0, row1, dtype=np.float64)[:, None]
    xs = np.arange(col0, col1, dtype=np.float64)[None, :]
    inside = shape_mask(shape, xs, ys)
    if not inside.any():
        return None
    pixels = raster[row0:row1, col0:col1, :3][inside].astype(np.float64)
    mean = pixels.mean(axis=0)
    return RGB(float(mean[0]), float(mean[1]), float(mean[2]))
