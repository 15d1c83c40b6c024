"""
Base classes for tool pages.

A page is a toolbar of :class:`PageGroup` boxes above a content area.
:class:`CanvasInterface` fills the content area with the image canvas, a side
panel and the status bar.
"""

from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QSplitter,
    QGroupBox,
)

from src.core.editor import ShapeEditor
from src.gui.components.image_canvas import ImageCanvas
from src.gui.components.status_bar import StatusBar
from src.gui.config import apply_qss, cfg


class PageGroup(QGroupBox):
    """
    Titled row of toolbar controls.

    Parameters
    ----------
    title : str
        Group caption.
    parent : QWidget, optional
        Parent widget.
    """

    def __init__(self, title: str, parent: Optional[QWidget] = None) -> None:
        super().__init__(title, parent)
        self.setObjectName("PageGroup")

        self._layout = QHBoxLayout(self)
        self._layout.setContentsMargins(8, 16, 8, 8)
        self._layout.setSpacing(8)

    def add_widget(self, widget: QWidget) -> None:
        self._layout.addWidget(widget)

    def add_widgets(self, *widgets: QWidget) -> None:
        for widget in widgets:
            self._layout.addWidget(widget)

    def add_stretch(self) -> None:
        self._layout.addStretch()


class BaseInterface(QWidget):
    """
    Toolbar over a stretching content area, restyled on theme change.
    """

    QSS_FILE = "base_interface.qss"

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)

        self._main_layout = QVBoxLayout(self)
        self._main_layout.setContentsMargins(0, 0, 0, 0)
        self._main_layout.setSpacing(0)

        self.tool_bar = QWidget()
        self.tool_bar.setObjectName("ToolBar")
        self.tool_bar.setMinimumHeight(80)
        self.tool_bar.setMaximumHeight(120)
        self._tool_layout = QHBoxLayout(self.tool_bar)
        self._tool_layout.setContentsMargins(4, 4, 4, 4)
        self._tool_layout.setSpacing(8)
        self._main_layout.addWidget(self.tool_bar)

        self.content_area = QWidget()
        self.content_area.setObjectName("ContentArea")
        self._content_layout = QVBoxLayout(self.content_area)
        self._content_layout.setContentsMargins(0, 0, 0, 0)
        self._content_layout.setSpacing(0)
        self._main_layout.addWidget(self.content_area, 1)

        self.setQss()
        cfg.themeChanged.connect(self.setQss)

    def add_group(self, group: PageGroup) -> None:
        self._tool_layout.addWidget(group)

    def add_stretch(self) -> None:
        """Push remaining toolbar groups to the left."""
        self._tool_layout.addStretch()

    def setQss(self):
        apply_qss(self, self.QSS_FILE)


class CanvasInterface(BaseInterface):
    """
    Base Interface for image editing pages.

    Layout::

        [ Toolbar                ]
        [ ImageCanvas | side panel ]
        [ StatusBar              ]

    Signals
    -------
    sigCoordinateChanged : Signal(float, float)
        Cursor position in raster coordinates.
    sigZoomChanged : Signal(float)
        View zoom in percent.
    """

    sigCoordinateChanged = Signal(float, float)
    sigZoomChanged = Signal(float)

    def __init__(self, editor: ShapeEditor, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.editor = editor
        self._init_layout()

    def _init_layout(self):
        self.splitter = QSplitter(Qt.Orientation.Horizontal)

        self.canvas = ImageCanvas(self.editor)
        self.splitter.addWidget(self.canvas)

        # filled by subclasses
        self.side_panel = QWidget()
        self.side_panel.setObjectName("SidePanel")
        self.side_layout = QVBoxLayout(self.side_panel)
        self.side_layout.setContentsMargins(8, 8, 8, 8)
        self.side_layout.setSpacing(8)
        self.splitter.addWidget(self.side_panel)

        self.splitter.setStretchFactor(0, 1)
        self.splitter.setSizes([800, 280])
        self._content_layout.addWidget(self.splitter, 1)

        self.status_bar = StatusBar()
        self._content_layout.addWidget(self.status_bar)

        self.canvas.sigCoordinateChanged.connect(self.status_bar.update_coordinates)
        self.canvas.sigZoomChanged.connect(self.status_bar.update_zoom)
        self.status_bar.sigZoomChanged.connect(self.canvas.set_zoom)
        self.canvas.sigCoordinateChanged.connect(self.sigCoordinateChanged.emit)
        self.canvas.sigZoomChanged.connect(self.sigZoomChanged.emit)
