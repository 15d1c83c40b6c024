from PySide6.QtWidgets import QFrame, QHBoxLayout, QWidget
from PySide6.QtCore import Signal, Qt
from qfluentwidgets import DoubleSpinBox, BodyLabel

from src.gui.config import tr


class StatusBar(QFrame):
    """
    Status bar with cursor pixel coordinates and an editable zoom level.
    """

    sigZoomChanged = Signal(float)

    def __init__(self, parent: QWidget = None):
        super().__init__(parent)
        self._init_ui()
        self.zoom_sb.valueChanged.connect(self.sigZoomChanged.emit)

    def _init_ui(self):
        self.setObjectName('statusBar')
        self.setFixedHeight(40)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        # --- Coordinates ---
        self.coord_label = BodyLabel(tr("status.coord").format(x=0, y=0))
        layout.addWidget(self.coord_label, 1, alignment=Qt.AlignmentFlag.AlignCenter)

        layout.addWidget(self._create_separator())

        # --- Zoom ---
        zoom_container = QWidget()
        zoom_layout = QHBoxLayout(zoom_container)
        zoom_layout.setContentsMargins(16, 0, 16, 0)
        zoom_layout.setSpacing(10)

        self.zoom_label = BodyLabel(tr("status.zoom_prefix").strip())
        self.zoom_sb = DoubleSpinBox()
        self.zoom_sb.setRange(1, 50000)
        self.zoom_sb.setSuffix("%")
        self.zoom_sb.setValue(100)
        self.zoom_sb.setSingleStep(10)
        self.zoom_sb.setDecimals(0)

        zoom_layout.addWidget(self.zoom_label)
        zoom_layout.addWidget(self.zoom_sb, 1)
        layout.addWidget(zoom_container, 1)

    def _create_separator(self) -> QFrame:
        line = QFrame()
        line.setFrameShape(QFrame.Shape.VLine)
        line.setFrameShadow(QFrame.Shadow.Sunken)
        line.setStyleSheet("QFrame { border: none; background-color: #E5E5E5; max-width: 1px; }")
        line.setFixedHeight(24)
        return line

    def update_coordinates(self, x: float, y: float) -> None:
        # pixel indices, not sub-pixel view positions
        self.coord_label.setText(tr("status.coord").format(x=int(x), y=int(y)))

    def update_zoom(self, zoom_level: float) -> None:
        # Block signals to prevent loop: Canvas -> StatusBar -> Canvas
        if abs(self.zoom_sb.value() - zoom_level) > 0.5:
            self.zoom_sb.blockSignals(True)
            self.zoom_sb.setValue(zoom_level)
            self.zoom_sb.blockSignals(False)
