"""
Image Canvas component for the BioPheno GUI.

This module provides a PyQtGraph photo viewer with:
- RGBA display buffer rendering
- Pan and zoom
- Pointer forwarding to the Qt-free shape editor
- Shape outline and resize handle overlays

Overlay outlines use cosmetic pens and handles are sized by the inverse view
zoom, so both keep a constant on-screen size while hit-testing stays in
raster coordinates.
"""

from typing import Optional, List

import numpy as np
import pyqtgraph as pg

from PySide6.QtWidgets import QWidget, QVBoxLayout, QGraphicsPathItem, QGraphicsRectItem
from PySide6.QtCore import Qt, Signal, QRectF, QPointF
from PySide6.QtGui import QPainterPath, QPen, QBrush, QColor
from loguru import logger

from src.core.editor import ShapeEditor, Tool
from src.core.geometry import (
    HANDLE_SIZE,
    CircleShape,
    Handle,
    LassoShape,
    Point,
    Shape,
    bounding_box,
)
from src.core.session import ShapeOwner
from src.core.visualization import ViewTab

EXCLUSION_COLOR = "#f43f5e"
CALIBRATION_COLORS = {"gray": "#9ca3af", "white": "#f8fafc", "black": "#0f172a"}
SELECTED_COLOR = "#facc15"


class CustomViewBox(pg.ViewBox):
    """
    Custom ViewBox with editor-aware mouse handling.

    In pan mode the left button pans the view. In edit mode left-button
    presses, drags and releases are forwarded as view coordinates; other
    buttons keep the default pan/zoom behaviour.

    Signals
    -------
    sigPointerDown : Signal(float, float)
        Left press at view coordinates.
    sigPointerMove : Signal(float, float)
        Left drag at view coordinates.
    sigPointerUp : Signal()
        Left release.
    """

    sigPointerDown = Signal(float, float)
    sigPointerMove = Signal(float, float)
    sigPointerUp = Signal()

    # Mode constants
    MODE_PAN = 0
    MODE_EDIT = 1

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.setMouseMode(pg.ViewBox.PanMode)
        self._current_mode = self.MODE_EDIT

    def set_mode(self, mode: int) -> None:
        """
        Set the interaction mode.

        Parameters
        ----------
        mode : int
            One of MODE_PAN, MODE_EDIT.
        """
        self._current_mode = mode

    def mouseDragEvent(self, ev, axis=None) -> None:
        """Forward left drags to the editor in edit mode."""
        if self._current_mode == self.MODE_EDIT and ev.button() == Qt.MouseButton.LeftButton:
            ev.accept()
            if ev.isStart():
                start = self.mapToView(ev.buttonDownPos())
                self.sigPointerDown.emit(start.x(), start.y())
            pos = self.mapToView(ev.pos())
            self.sigPointerMove.emit(pos.x(), pos.y())
            if ev.isFinish():
                self.sigPointerUp.emit()
            return
        super().mouseDragEvent(ev, axis)

    def mouseClickEvent(self, ev) -> None:
        """Treat a left click as an instant press/release."""
        if self._current_mode == self.MODE_EDIT and ev.button() == Qt.MouseButton.LeftButton:
            ev.accept()
            pos = self.mapToView(ev.pos())
            self.sigPointerDown.emit(pos.x(), pos.y())
            self.sigPointerUp.emit()
        else:
            super().mouseClickEvent(ev)


class ImageCanvas(QWidget):
    """
    Photo viewer widget with shape overlays.

    Signals
    -------
    sigCoordinateChanged : Signal(float, float)
        Emitted when cursor moves, providing raster coordinates.
    sigZoomChanged : Signal(float)
        Emitted when zoom level changes (percent).
    sigShapesEdited : Signal()
        Emitted whenever the editor changed shape geometry.
    sigEditFinished : Signal()
        Emitted on pointer release.

    Examples
    --------
    >>> canvas = ImageCanvas(editor)
    >>> canvas.set_image(rendered_rgba)
    """

    sigCoordinateChanged = Signal(float, float)
    sigZoomChanged = Signal(float)
    sigShapesEdited = Signal()
    sigEditFinished = Signal()

    def __init__(self, editor: ShapeEditor, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.editor = editor
        self._overlay_items: List[object] = []
        self._image_shape: Optional[tuple] = None
        self._init_ui()
        logger.debug("ImageCanvas initialized")

    def _init_ui(self) -> None:
        """Initialize the UI components."""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self._view_box = CustomViewBox()
        self._view_box.invertY(True)
        self._view_box.setAspectLocked(True)
        self._view_box.sigPointerDown.connect(self._on_pointer_down)
        self._view_box.sigPointerMove.connect(self._on_pointer_move)
        self._view_box.sigPointerUp.connect(self._on_pointer_up)

        self._plot_widget = pg.PlotWidget(viewBox=self._view_box)
        self._plot_widget.setBackground("k")
        plot_item = self._plot_widget.getPlotItem()
        plot_item.hideAxis("left")
        plot_item.hideAxis("bottom")
        plot_item.hideButtons()
        self._plot_widget.sigRangeChanged.connect(self._on_view_changed)
        self._plot_widget.scene().sigMouseMoved.connect(self._on_mouse_moved)
        layout.addWidget(self._plot_widget)

        self._image_item = pg.ImageItem(axisOrder="row-major")
        self._view_box.addItem(self._image_item)

    # ------------------------------------------------------------------
    # image
    # ------------------------------------------------------------------
    def set_image(self, rendered: Optional[np.ndarray]) -> None:
        """Show a rendered ``H x W x 4`` buffer, fitting the view on size change."""
        if rendered is None:
            self._image_item.clear()
            self._image_shape = None
            self.refresh_overlay()
            return
        self._image_item.setImage(rendered, autoLevels=False, levels=(0, 255))
        if self._image_shape != rendered.shape[:2]:
            self._image_shape = rendered.shape[:2]
            self.fit_view()
        self.refresh_overlay()

    def fit_view(self) -> None:
        """Zoom to show the whole image."""
        if self._image_shape is None:
            return
        height, width = self._image_shape
        self._view_box.setRange(QRectF(0, 0, width, height), padding=0.02)

    def set_zoom(self, percent: float) -> None:
        """Scale the view about its center to ``percent`` screen pixels per 100 image pixels."""
        target = percent / 100.0
        current = self.editor.viewport.zoom
        if target <= 0 or current <= 0 or abs(target - current) < 1e-9:
            return
        ratio = current / target
        self._view_box.scaleBy((ratio, ratio))

    def set_tool(self, tool: Tool) -> None:
        """Switch editor tool and view interaction mode."""
        self.editor.set_tool(tool)
        self._sync_mode()

    def _sync_mode(self) -> None:
        mode = CustomViewBox.MODE_PAN if self.editor.tool == Tool.PAN else CustomViewBox.MODE_EDIT
        self._view_box.set_mode(mode)

    # ------------------------------------------------------------------
    # pointer forwarding
    # ------------------------------------------------------------------
    def _on_pointer_down(self, x: float, y: float) -> None:
        if self.editor.pointer_down(Point(x, y)) is not None:
            self.sigShapesEdited.emit()
        self.refresh_overlay()

    def _on_pointer_move(self, x: float, y: float) -> None:
        if self.editor.drag is None:
            return
        self.editor.pointer_move(Point(x, y))
        self.sigShapesEdited.emit()
        self.refresh_overlay()

    def _on_pointer_up(self) -> None:
        self.editor.pointer_up()
        self._sync_mode()
        self.sigEditFinished.emit()
        self.refresh_overlay()

    def _on_mouse_moved(self, scene_pos) -> None:
        """Report the raster coordinate under the cursor."""
        if not self._view_box.sceneBoundingRect().contains(scene_pos):
            return
        pos = self._view_box.mapSceneToView(scene_pos)
        self.sigCoordinateChanged.emit(pos.x(), pos.y())

    def _on_view_changed(self) -> None:
        """Keep the editor zoom in sync with the view for handle hit-tests."""
        pixel_size = self._view_box.viewPixelSize()
        if pixel_size[0] > 0:
            zoom = 1.0 / pixel_size[0]
            self.editor.viewport.zoom = zoom
            self.sigZoomChanged.emit(zoom * 100.0)
        self.refresh_overlay()

    # ------------------------------------------------------------------
    # overlay
    # ------------------------------------------------------------------
    def refresh_overlay(self) -> None:
        """Redraw outlines of the active tab's shapes and selected handles."""
        for item in self._overlay_items:
            self._view_box.removeItem(item)
        self._overlay_items = []
        session = self.editor.session
        if session.active_tab == ViewTab.REPORT:
            return

        for hit in session.iter_tab_shapes():
            color = self._shape_color(hit)
            selected = hit.shape.id == session.selected_shape_id
            self._add_shape_item(hit.shape, SELECTED_COLOR if selected else color, fill=not selected and hit.owner == ShapeOwner.EXCLUSION)

        selected_shape = session.selected_shape
        if selected_shape is not None:
            self._add_handles(selected_shape)

    def _shape_color(self, hit) -> str:
        session = self.editor.session
        if hit.owner == ShapeOwner.EXCLUSION:
            return EXCLUSION_COLOR
        if hit.owner == ShapeOwner.CALIBRATION:
            return CALIBRATION_COLORS.get(hit.key, "#ffffff")
        return session.groups[hit.key].color

    def _add_shape_item(self, shape: Shape, color: str, fill: bool = False) -> None:
        path = QPainterPath()
        if isinstance(shape, CircleShape):
            c = shape.center
            r = shape.radius
            path.addEllipse(QPointF(c.x, c.y), r, r)
        elif isinstance(shape, LassoShape):
            first = shape.points[0]
            path.moveTo(first.x, first.y)
            for p in shape.points[1:]:
                path.lineTo(p.x, p.y)
            path.closeSubpath()
        else:
            box = bounding_box(shape)
            path.addRect(QRectF(box.min_x, box.min_y, box.width, box.height))
        item = QGraphicsPathItem(path)
        pen = QPen(QColor(color))
        pen.setCosmetic(True)
        pen.setWidthF(2.0)
        item.setPen(pen)
        if fill:
            fill_color = QColor(color)
            fill_color.setAlpha(60)
            item.setBrush(QBrush(fill_color))
        self._view_box.addItem(item)
        self._overlay_items.append(item)

    def _add_handles(self, shape: Shape) -> None:
        size = HANDLE_SIZE / max(self.editor.viewport.zoom, 1e-9)
        box = bounding_box(shape)
        pen = QPen(QColor(SELECTED_COLOR))
        pen.setCosmetic(True)
        for handle in (Handle.NW, Handle.NE, Handle.SW, Handle.SE):
            corner = box.corner(handle)
            item = QGraphicsRectItem(corner.x - size / 2, corner.y - size / 2, size, size)
            item.setPen(pen)
            item.setBrush(QBrush(QColor("#ffffff")))
            self._view_box.addItem(item)
            self._overlay_items.append(item)
