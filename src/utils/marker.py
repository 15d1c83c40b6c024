"""Tray leveling from a fiducial marker.

The vision service returns the four marker corners (top-left, top-right,
bottom-right, bottom-left). The top edge gives the rotation that levels the
tray; its length against the printed marker size gives the raster scale.
"""

from __future__ import annotations

import json
import math
from typing import Sequence

from loguru import logger

from src.core.geometry import Point
from src.utils.gemini import GeminiClient, GeminiError, image_part, text_part

DEFAULT_MARKER_MODEL = "gemini-2.5-flash-image"
CORNER_NORMALIZATION = 1000.0

MARKER_PROMPT = (
    "Analyze this image and find the single largest ArUco marker. Return the "
    "coordinates for its four corners: top-left, top-right, bottom-right, "
    "bottom-left. Return the coordinates as a JSON array of objects with 'x' "
    "and 'y' properties. Coordinates should be normalized from 0 to 1000 "
    "relative to image width/height."
)

_CORNER_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {"x": {"type": "NUMBER"}, "y": {"type": "NUMBER"}},
        "required": ["x", "y"],
    },
}


def marker_angle(corners: Sequence[Point]) -> float:
    """Rotation in degrees that levels the marker's top edge.

    Examples
    --------
    >>> marker_angle([Point(0, 0), Point(10, 10), Point(0, 10), Point(0, 0)])
    -45.0
    """
    top_left, top_right = corners[0], corners[1]
    dx = top_right.x - top_left.x
    dy = top_right.y - top_left.y
    return -math.degrees(math.atan2(dy, dx))


def marker_scale(corners: Sequence[Point], marker_size: float) -> float | None:
    """Pixels per physical unit from the top edge length.

    Returns ``None`` when ``marker_size`` is not positive.
    """
    if marker_size <= 0:
        return None
    top_left, top_right = corners[0], corners[1]
    edge = math.hypot(top_right.x - top_left.x, top_right.y - top_left.y)
    return edge / marker_size


def parse_corners(text: str, width: int, height: int) -> list[Point] | None:
    """Parse normalized corner JSON into raster-space points.

    Parameters
    ----------
    text : str
        JSON array of ``{"x", "y"}`` objects normalized to ``0..1000``.
    width, height : int
        Raster size used to denormalize.

    Returns
    -------
    list[Point] | None
        Four corner points, or ``None`` when the payload is not exactly four
        well-formed corners.
    """
    try:
        items = json.loads(text)
        corners = [
            Point(
                float(item["x"]) / CORNER_NORMALIZATION * width,
                float(item["y"]) / CORNER_NORMALIZATION * height,
            )
            for item in items
        ]
    except (ValueError, TypeError, KeyError):
        return None
    if len(corners) != 4:
        return None
    return corners


class MarkerDetector:
    """Find marker corners through the Gemini vision API.

    Parameters
    ----------
    client : GeminiClient
        Configured API client.
    model : str
        Vision model name.
    """

    def __init__(self, client: GeminiClient, model: str = DEFAULT_MARKER_MODEL) -> None:
        self.client = client
        self.model = model

    def detect(self, jpeg: bytes, width: int, height: int) -> list[Point] | None:
        """Return the four marker corners in pixel space, or ``None``."""
        try:
            text = self.client.generate(
                self.model,
                [image_part(jpeg), text_part(MARKER_PROMPT)],
                generation_config={
                    "responseMimeType": "application/json",
                    "responseSchema": _CORNER_SCHEMA,
                },
            )
        except GeminiError as exc:
            logger.error(f"Marker detection failed: {exc}")
            return None
        corners = parse_corners(text, width, height)
        if corners is None:
            logger.warning("No marker found in vision response")
        return corners
