"""Shape value objects and raster-space hit-testing.

Shapes are immutable tagged variants (rectangle, circle, freehand lasso) whose
points live in raster pixel coordinates. Every function here is total: a
degenerate shape (zero-area box, single-vertex lasso) simply matches nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math
from typing import ClassVar, Iterable, Union
import uuid

import numpy as np

HANDLE_SIZE = 8.0


class ShapeKind(str, Enum):
    """Supported shape variants."""

    RECT = "rect"
    CIRCLE = "circle"
    LASSO = "lasso"


class Handle(str, Enum):
    """Bounding-box corner handles used for resizing."""

    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"
    NONE = "none"


@dataclass(frozen=True)
class Point:
    """Point in raster pixel coordinates."""

    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned extent of a shape.

    Parameters
    ----------
    min_x, max_x, min_y, max_y : float
        Inclusive extent in raster coordinates.
    """

    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def is_degenerate(self) -> bool:
        """Whether the box has zero area."""
        return self.width <= 0.0 or self.height <= 0.0

    def contains(self, p: Point) -> bool:
        return self.min_x <= p.x <= self.max_x and self.min_y <= p.y <= self.max_y

    def corner(self, handle: Handle) -> Point:
        """Return the corner point for one handle."""
        if handle == Handle.NW:
            return Point(self.min_x, self.min_y)
        if handle == Handle.NE:
            return Point(self.max_x, self.min_y)
        if handle == Handle.SW:
            return Point(self.min_x, self.max_y)
        if handle == Handle.SE:
            return Point(self.max_x, self.max_y)
        raise ValueError("Handle.NONE has no corner")


def new_shape_id() -> str:
    """Generate a short unique shape/group id."""
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class _ShapeBase:
    id: str
    points: tuple[Point, ...]

    kind: ClassVar[ShapeKind]

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(self.points))
        self._validate()

    def _validate(self) -> None:
        if len(self.points) != 2:
            raise ValueError(
                f"{self.kind.value} shape requires exactly 2 points, "
                f"got {len(self.points)}"
            )

    def with_points(self, points: Iterable[Point]):
        """Return a copy of this shape with new points and the same id."""
        return type(self)(id=self.id, points=tuple(points))


@dataclass(frozen=True)
class RectShape(_ShapeBase):
    """Axis-aligned rectangle spanned by ``[anchor, far]``."""

    kind: ClassVar[ShapeKind] = ShapeKind.RECT


@dataclass(frozen=True)
class CircleShape(_ShapeBase):
    """Circle centred on ``anchor`` passing through ``far``."""

    kind: ClassVar[ShapeKind] = ShapeKind.CIRCLE

    @property
    def center(self) -> Point:
        return self.points[0]

    @property
    def radius(self) -> float:
        anchor, far = self.points
        return math.hypot(far.x - anchor.x, far.y - anchor.y)


@dataclass(frozen=True)
class LassoShape(_ShapeBase):
    """Freehand polygon, implicitly closed."""

    kind: ClassVar[ShapeKind] = ShapeKind.LASSO

    def _validate(self) -> None:
        if len(self.points) < 1:
            raise ValueError("lasso shape requires at least 1 point")

    def appended(self, p: Point) -> LassoShape:
        """Return a copy with one more vertex."""
        return LassoShape(id=self.id, points=self.points + (p,))


Shape = Union[RectShape, CircleShape, LassoShape]

_SHAPE_TYPES: dict[ShapeKind, type] = {
    ShapeKind.RECT: RectShape,
    ShapeKind.CIRCLE: CircleShape,
    ShapeKind.LASSO: LassoShape,
}


def create_shape(kind: ShapeKind, start: Point, shape_id: str | None = None) -> Shape:
    """Spawn a new shape at ``start``.

    Rectangles and circles start with two identical points, lassos with one.

    Examples
    --------
    >>> create_shape(ShapeKind.RECT, Point(1, 2), "a").points
    (Point(x=1, y=2), Point(x=1, y=2))
    """
    shape_id = shape_id or new_shape_id()
    shape_cls = _SHAPE_TYPES[ShapeKind(kind)]
    if shape_cls is LassoShape:
        return LassoShape(id=shape_id, points=(start,))
    return shape_cls(id=shape_id, points=(start, start))


def bounding_box(shape: Shape) -> BoundingBox:
    """Compute the axis-aligned bounding box of a shape.

    Circles use ``center ± radius``; rectangles and lassos use the extent of
    their vertices.

    Parameters
    ----------
    shape : Shape
        Shape to measure.

    Returns
    -------
    BoundingBox
        Extent in raster coordinates; zero-area for degenerate shapes.

    Examples
    --------
    >>> box = bounding_box(CircleShape("c", (Point(0, 0), Point(3, 4))))
    >>> (box.min_x, box.max_x, box.width)
    (-5.0, 5.0, 10.0)
    """
    if isinstance(shape, CircleShape):
        c = shape.center
        r = shape.radius
        return BoundingBox(c.x - r, c.x + r, c.y - r, c.y + r)
    xs = [p.x for p in shape.points]
    ys = [p.y for p in shape.points]
    return BoundingBox(float(min(xs)), float(max(xs)), float(min(ys)), float(max(ys)))


def _point_in_polygon(x: float, y: float, vertices: tuple[Point, ...]) -> bool:
    """Even-odd ray casting against a closed vertex list."""
    inside = False
    count = len(vertices)
    j = count - 1
    for i in range(count):
        xi, yi = vertices[i].x, vertices[i].y
        xj, yj = vertices[j].x, vertices[j].y
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def point_in_shape(p: Point, shape: Shape) -> bool:
    """Test whether a raster point lies inside a shape.

    Parameters
    ----------
    p : Point
        Query point in raster coordinates.
    shape : Shape
        Rectangle (inclusive bounds), circle (distance to centre ``<=``
        radius) or lasso (even-odd rule, implicitly closed).

    Returns
    -------
    bool
        ``True`` when the point is inside; always ``False`` for degenerate
        shapes.

    Examples
    --------
    >>> rect = RectShape("r", (Point(10, 10), Point(50, 50)))
    >>> point_in_shape(Point(10, 10), rect), point_in_shape(Point(60, 60), rect)
    (True, False)
    """
    box = bounding_box(shape)
    if box.is_degenerate:
        return False
    if isinstance(shape, RectShape):
        return box.contains(p)
    if isinstance(shape, CircleShape):
        c = shape.center
        return math.hypot(p.x - c.x, p.y - c.y) <= shape.radius
    if len(shape.points) < 3:
        return False
    return _point_in_polygon(p.x, p.y, shape.points)


def shape_mask(shape: Shape, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Vectorized :func:`point_in_shape` over coordinate arrays.

    Parameters
    ----------
    shape : Shape
        Shape to test against.
    xs, ys : numpy.ndarray
        Broadcast-compatible x/y coordinate arrays.

    Returns
    -------
    numpy.ndarray
        Boolean array with the broadcast shape of ``xs`` and ``ys``.
    """
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    out_shape = np.broadcast_shapes(xs.shape, ys.shape)
    box = bounding_box(shape)
    if box.is_degenerate:
        return np.zeros(out_shape, dtype=bool)
    if isinstance(shape, RectShape):
        return np.broadcast_to(
            (xs >= box.min_x) & (xs <= box.max_x) & (ys >= box.min_y) & (ys <= box.max_y),
            out_shape,
        )
    if isinstance(shape, CircleShape):
        c = shape.center
        return np.broadcast_to(np.hypot(xs - c.x, ys - c.y) <= shape.radius, out_shape)
    if len(shape.points) < 3:
        return np.zeros(out_shape, dtype=bool)

    inside = np.zeros(out_shape, dtype=bool)
    vertices = shape.points
    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i].x, vertices[i].y
        xj, yj = vertices[j].x, vertices[j].y
        j = i
        if yi == yj:
            continue
        straddles = (yi > ys) != (yj > ys)
        x_cross = (xj - xi) * (ys - yi) / (yj - yi) + xi
        inside ^= straddles & (xs < x_cross)
    return inside


def raster_mask(shape: Shape, height: int, width: int) -> np.ndarray:
    """Rasterize a shape into a full-size boolean mask.

    Only pixels inside the shape's bounding box are tested; pixel ``(row,
    col)`` is tested at point ``(col, row)``.

    Parameters
    ----------
    shape : Shape
        Shape to rasterize.
    height, width : int
        Raster dimensions.

    Returns
    -------
    numpy.ndarray
        Boolean mask with shape ``(height, width)``.
    """
    mask = np.zeros((height, width), dtype=bool)
    window = bbox_window(bounding_box(shape), height, width)
    if window is None:
        return mask
    row0, row1, col0, col1 = window
    ys = np.arange(row0, row1, dtype=np.float64)[:, None]
    xs = np.arange(col0, col1, dtype=np.float64)[None, :]
    mask[row0:row1, col0:col1] = shape_mask(shape, xs, ys)
    return mask


def bbox_window(
    box: BoundingBox, height: int, width: int
) -> tuple[int, int, int, int] | None:
    """Clip a bounding box to integer raster slices.

    Returns
    -------
    tuple[int, int, int, int] | None
        ``(row0, row1, col0, col1)`` half-open slice bounds, or ``None`` when
        the box is degenerate or lies outside the raster.
    """
    if box.is_degenerate:
        return None
    col0 = max(0, int(math.ceil(box.min_x)))
    col1 = min(width, int(math.floor(box.max_x)) + 1)
    row0 = max(0, int(math.ceil(box.min_y)))
    row1 = min(height, int(math.floor(box.max_y)) + 1)
    if col0 >= col1 or row0 >= row1:
        return None
    return row0, row1, col0, col1


def handle_tolerance(zoom: float, handle_size: float = HANDLE_SIZE) -> float:
    """Convert the on-screen handle size into a raster-space tolerance."""
    return handle_size / max(zoom, 1e-9)


def handle_at(p: Point, shape: Shape, tolerance: float) -> Handle:
    """Find the bounding-box corner handle under a point.

    Corners are tested in ``nw, ne, sw, se`` order; a corner matches when
    both axis distances are strictly below ``tolerance``.

    Parameters
    ----------
    p : Point
        Query point in raster coordinates.
    shape : Shape
        Currently selected shape.
    tolerance : float
        Raster-space tolerance, see :func:`handle_tolerance`.

    Returns
    -------
    Handle
        Matching corner or ``Handle.NONE``.
    """
    box = bounding_box(shape)
    for handle in (Handle.NW, Handle.NE, Handle.SW, Handle.SE):
        corner = box.corner(handle)
        if abs(p.x - corner.x) < tolerance and abs(p.y - corner.y) < tolerance:
            return handle
    return Handle.NONE


def translate_points(points: Iterable[Point], dx: float, dy: float) -> tuple[Point, ...]:
    """Shift every point by ``(dx, dy)``."""
    return tuple(Point(p.x + dx, p.y + dy) for p in points)


def resize_points(
    points: Iterable[Point],
    box: BoundingBox,
    handle: Handle,
    dx: float,
    dy: float,
) -> tuple[Point, ...]:
    """Affinely rescale points by dragging one bounding-box corner.

    Only the dragged corner moves; the opposite corner stays fixed. Every
    point is mapped with ``new = new_min + (old - old_min) * scale`` where a
    zero old extent is replaced by 1.

    Parameters
    ----------
    points : Iterable[Point]
        Points captured when the drag started.
    box : BoundingBox
        Bounding box captured when the drag started.
    handle : Handle
        Dragged corner.
    dx, dy : float
        Cumulative pointer offset since the drag started.

    Returns
    -------
    tuple[Point, ...]
        Resized points.

    Examples
    --------
    >>> pts = (Point(0, 0), Point(10, 10))
    >>> resize_points(pts, bounding_box(RectShape("r", pts)), Handle.SE, 5, 5)
    (Point(x=0.0, y=0.0), Point(x=15.0, y=15.0))
    """
    min_x, max_x, min_y, max_y = box.min_x, box.max_x, box.min_y, box.max_y
    if handle == Handle.NW:
        min_x += dx
        min_y += dy
    elif handle == Handle.NE:
        max_x += dx
        min_y += dy
    elif handle == Handle.SW:
        min_x += dx
        max_y += dy
    elif handle == Handle.SE:
        max_x += dx
        max_y += dy
    scale_x = (max_x - min_x) / (box.width or 1.0)
    scale_y = (max_y - min_y) / (box.height or 1.0)
    return tuple(
        Point(min_x + (p.x - box.min_x) * scale_x, min_y + (p.y - box.min_y) * scale_y)
        for p in points
    )
