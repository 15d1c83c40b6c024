"""Pointer-driven shape editor.

The editor is a small state machine (idle, creating, moving, resizing,
panning) fed with pointer events in raster coordinates. It never touches Qt;
the image canvas forwards mouse events to it.

Every drag frame is computed from the snapshot taken at pointer-down plus the
total pointer offset, so a long drag cannot accumulate rounding drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from src.core.calibration import ReferenceSlot
from src.core.geometry import (
    HANDLE_SIZE,
    BoundingBox,
    Handle,
    LassoShape,
    Point,
    ShapeKind,
    bounding_box,
    create_shape,
    handle_at,
    handle_tolerance,
    resize_points,
    translate_points,
)
from src.core.session import AnalysisSession, ShapeOwner


class Tool(str, Enum):
    """Active editing tool."""

    SELECT = "select"
    RECT = "rect"
    CIRCLE = "circle"
    LASSO = "lasso"
    PAN = "pan"


_SHAPE_TOOLS = {
    Tool.RECT: ShapeKind.RECT,
    Tool.CIRCLE: ShapeKind.CIRCLE,
    Tool.LASSO: ShapeKind.LASSO,
}


class DragMode(str, Enum):
    """Kinds of drag tracked between pointer-down and pointer-up."""

    CREATE = "create"
    MOVE = "move"
    RESIZE = "resize"
    PAN = "pan"


@dataclass(frozen=True)
class DragState:
    """Snapshot captured at pointer-down.

    Parameters
    ----------
    mode : DragMode
        Drag kind.
    start_point : Point
        Pointer position at pointer-down (screen space for panning, raster
        space otherwise).
    shape_id : str, optional
        Edited shape.
    handle : Handle
        Dragged corner when resizing.
    initial_points : tuple[Point, ...]
        Shape points at pointer-down.
    initial_box : BoundingBox, optional
        Shape bounding box at pointer-down (resize only).
    initial_pan : tuple[float, float]
        Viewport pan at pointer-down (pan only).
    """

    mode: DragMode
    start_point: Point
    shape_id: str | None = None
    handle: Handle = Handle.NONE
    initial_points: tuple[Point, ...] = ()
    initial_box: BoundingBox | None = None
    initial_pan: tuple[float, float] = (0.0, 0.0)


@dataclass
class Viewport:
    """Screen/raster transform: ``screen = raster * zoom + pan``."""

    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def to_raster(self, sx: float, sy: float) -> Point:
        return Point((sx - self.pan_x) / self.zoom, (sy - self.pan_y) / self.zoom)

    def to_screen(self, p: Point) -> tuple[float, float]:
        return p.x * self.zoom + self.pan_x, p.y * self.zoom + self.pan_y

    def fit(self, image_width: int, image_height: int, avail_width: float, avail_height: float) -> None:
        """Scale the image to fit the available area and center it."""
        if image_width <= 0 or image_height <= 0:
            return
        self.zoom = min(avail_width / image_width, avail_height / image_height)
        self.pan_x = (avail_width - image_width * self.zoom) / 2.0
        self.pan_y = (avail_height - image_height * self.zoom) / 2.0

    def zoom_at(self, factor: float, sx: float, sy: float) -> None:
        """Zoom by ``factor`` keeping the screen point ``(sx, sy)`` fixed."""
        anchor = self.to_raster(sx, sy)
        self.zoom *= factor
        self.pan_x = sx - anchor.x * self.zoom
        self.pan_y = sy - anchor.y * self.zoom


class ShapeEditor:
    """State machine turning pointer events into shape edits.

    Parameters
    ----------
    session : AnalysisSession
        Session whose collections are edited.
    viewport : Viewport, optional
        Current view transform; only its zoom affects hit-testing.
    handle_size : float
        On-screen handle size in pixels.

    Examples
    --------
    >>> session = AnalysisSession()
    >>> session.set_tab("analysis")
    >>> editor = ShapeEditor(session)
    >>> editor.set_tool(Tool.RECT)
    >>> editor.pointer_down(Point(0, 0))
    <DragMode.CREATE: 'create'>
    >>> editor.pointer_move(Point(10, 10))
    >>> editor.pointer_up()
    >>> editor.tool
    <Tool.SELECT: 'select'>
    """

    def __init__(
        self,
        session: AnalysisSession,
        viewport: Viewport | None = None,
        handle_size: float = HANDLE_SIZE,
    ) -> None:
        self.session = session
        self.viewport = viewport or Viewport()
        self.handle_size = handle_size
        self.tool: Tool = Tool.SELECT
        self.drag: DragState | None = None

    @property
    def state(self) -> str:
        """``idle`` or the active drag mode value."""
        return "idle" if self.drag is None else self.drag.mode.value

    def set_tool(self, tool: Tool) -> None:
        self.tool = Tool(tool)
        logger.debug(f"Editor tool: {self.tool.value}")

    def pointer_down(
        self,
        p: Point,
        screen: tuple[float, float] | None = None,
        middle_button: bool = False,
    ) -> DragMode | None:
        """Start a drag according to the active tool.

        Parameters
        ----------
        p : Point
            Pointer position in raster coordinates.
        screen : tuple[float, float], optional
            Pointer position in screen coordinates, used for panning.
        middle_button : bool
            Middle-button presses always pan.

        Returns
        -------
        DragMode | None
            Started drag mode, or ``None`` when the press did nothing.
        """
        if self.tool == Tool.PAN or middle_button:
            sx, sy = screen if screen is not None else self.viewport.to_screen(p)
            self.drag = DragState(
                mode=DragMode.PAN,
                start_point=Point(sx, sy),
                initial_pan=(self.viewport.pan_x, self.viewport.pan_y),
            )
            return self.drag.mode

        if self.tool == Tool.SELECT:
            return self._begin_select(p)
        return self._begin_create(p)

    def _begin_select(self, p: Point) -> DragMode | None:
        session = self.session
        selected = session.selected_shape
        if selected is not None:
            tolerance = handle_tolerance(self.viewport.zoom, self.handle_size)
            handle = handle_at(p, selected, tolerance)
            if handle != Handle.NONE:
                self._start_shape_drag(
                    DragState(
                        mode=DragMode.RESIZE,
                        start_point=p,
                        shape_id=selected.id,
                        handle=handle,
                        initial_points=selected.points,
                        initial_box=bounding_box(selected),
                    )
                )
                return DragMode.RESIZE

        hit = session.hit_test(p)
        if hit is None:
            session.selected_shape_id = None
            return None
        session.select_hit(hit)
        self._start_shape_drag(
            DragState(
                mode=DragMode.MOVE,
                start_point=p,
                shape_id=hit.shape.id,
                initial_points=hit.shape.points,
            )
        )
        return DragMode.MOVE

    def _begin_create(self, p: Point) -> DragMode | None:
        shape = create_shape(_SHAPE_TOOLS[self.tool], p)
        if not self.session.register_new_shape(shape):
            return None
        self._start_shape_drag(
            DragState(mode=DragMode.CREATE, start_point=p, shape_id=shape.id)
        )
        return DragMode.CREATE

    def _start_shape_drag(self, drag: DragState) -> None:
        self.drag = drag
        self.session.begin_drag()

    def pointer_move(self, p: Point, screen: tuple[float, float] | None = None) -> None:
        """Update the dragged shape or viewport from the cumulative offset."""
        drag = self.drag
        if drag is None:
            return
        if drag.mode == DragMode.PAN:
            sx, sy = screen if screen is not None else self.viewport.to_screen(p)
            self.viewport.pan_x = drag.initial_pan[0] + (sx - drag.start_point.x)
            self.viewport.pan_y = drag.initial_pan[1] + (sy - drag.start_point.y)
            return

        shape = self.session.find_shape(drag.shape_id)
        if shape is None:
            return
        dx = p.x - drag.start_point.x
        dy = p.y - drag.start_point.y
        if drag.mode == DragMode.CREATE:
            if isinstance(shape, LassoShape):
                updated = shape.appended(p)
            else:
                updated = shape.with_points((shape.points[0], p))
        elif drag.mode == DragMode.MOVE:
            updated = shape.with_points(translate_points(drag.initial_points, dx, dy))
        else:
            updated = shape.with_points(
                resize_points(drag.initial_points, drag.initial_box, drag.handle, dx, dy)
            )
        self.session.update_shape(updated)

    def pointer_up(self) -> None:
        """Finish the drag; one-shot shape tools fall back to select."""
        drag = self.drag
        self.drag = None
        if drag is not None and drag.mode != DragMode.PAN:
            hit = self.session.owner_of(drag.shape_id) if drag.shape_id else None
            if hit is not None and hit.owner == ShapeOwner.CALIBRATION:
                self.session.resample_calibration(ReferenceSlot(hit.key))
            self.session.end_drag()
        if self.tool not in (Tool.SELECT, Tool.PAN):
            self.set_tool(Tool.SELECT)

    def delete_selected(self) -> bool:
        """Delete the selected shape, cancelling any drag on it."""
        if self.drag is not None and self.drag.shape_id == self.session.selected_shape_id:
            self.drag = None
            self.session.drag_active = False
        return self.session.delete_selected()
