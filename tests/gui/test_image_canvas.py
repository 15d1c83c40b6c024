"""Tests for the photo canvas and its status bar."""

from __future__ import annotations

import numpy as np

from src.core.editor import ShapeEditor, Tool
from src.core.session import AnalysisSession
from src.core.visualization import ViewTab
from src.gui.components.image_canvas import CustomViewBox, ImageCanvas
from src.gui.components.status_bar import StatusBar


def _canvas(qtbot, tab: ViewTab = ViewTab.ANALYSIS) -> ImageCanvas:
    session = AnalysisSession()
    session.load_image(np.zeros((20, 30, 4), dtype=np.uint8), "tray.png")
    session.set_tab(tab)
    canvas = ImageCanvas(ShapeEditor(session))
    qtbot.addWidget(canvas)
    session.recompute()
    canvas.set_image(session.last_result.rendered)
    return canvas


def test_set_tool_switches_view_mode(qtbot) -> None:
    """Pan tool hands left drags back to pyqtgraph panning."""
    canvas = _canvas(qtbot)
    canvas.set_tool(Tool.PAN)
    assert canvas._view_box._current_mode == CustomViewBox.MODE_PAN
    canvas.set_tool(Tool.RECT)
    assert canvas._view_box._current_mode == CustomViewBox.MODE_EDIT


def test_drawing_rect_adds_group_overlay(qtbot) -> None:
    """A drawn rect becomes a group shape with outline and handles."""
    canvas = _canvas(qtbot)
    session = canvas.editor.session
    canvas.set_tool(Tool.RECT)

    with qtbot.waitSignal(canvas.sigEditFinished, timeout=1000):
        canvas._on_pointer_down(2.0, 2.0)
        canvas._on_pointer_move(10.0, 8.0)
        canvas._on_pointer_up()

    assert canvas.editor.tool == Tool.SELECT
    assert len(session.groups) == 1
    assert session.selected_shape_id is not None
    # outline plus four resize handles
    assert len(canvas._overlay_items) == 5


def test_report_tab_has_no_overlay(qtbot) -> None:
    """Shapes are hidden on the report tab."""
    canvas = _canvas(qtbot)
    canvas.set_tool(Tool.RECT)
    canvas._on_pointer_down(2.0, 2.0)
    canvas._on_pointer_move(10.0, 8.0)
    canvas._on_pointer_up()

    canvas.editor.session.set_tab(ViewTab.REPORT)
    canvas.refresh_overlay()
    assert canvas._overlay_items == []


def test_clearing_image_resets_shape(qtbot) -> None:
    """Passing None clears the image item."""
    canvas = _canvas(qtbot)
    assert canvas._image_shape == (20, 30)
    canvas.set_image(None)
    assert canvas._image_shape is None


def test_status_bar_zoom_does_not_echo(qtbot) -> None:
    """Programmatic zoom updates do not re-emit the zoom signal."""
    bar = StatusBar()
    qtbot.addWidget(bar)
    emitted: list[float] = []
    bar.sigZoomChanged.connect(emitted.append)

    bar.update_zoom(250.0)
    assert bar.zoom_sb.value() == 250.0
    assert emitted == []

    bar.zoom_sb.setValue(400.0)
    assert emitted == [400.0]


def test_status_bar_coordinates_are_pixels(qtbot) -> None:
    """Cursor coordinates are shown as integer pixel indices."""
    bar = StatusBar()
    qtbot.addWidget(bar)
    bar.update_coordinates(12.7, 3.2)
    assert "12" in bar.coord_label.text()
    assert "12.7" not in bar.coord_label.text()
