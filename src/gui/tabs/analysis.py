"""Analysis tab: gallery, workflow tabs, shape tools and report actions."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from PySide6.QtCore import Qt, QThread, QTimer, Slot
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QFileDialog,
    QSizePolicy,
    QStackedWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)
from qfluentwidgets import (
    BodyLabel,
    ComboBox,
    DoubleSpinBox,
    InfoBar,
    PlainTextEdit,
    PrimaryPushButton,
    PushButton,
    SegmentedWidget,
    Slider,
    StrongBodyLabel,
    TableWidget,
    ToggleButton,
)
from loguru import logger

from src.core.aggregation import RegressionParams, TargetIndex
from src.core.calibration import ReferenceSlot
from src.core.editor import ShapeEditor, Tool
from src.core.session import AnalysisSession, ImageAsset, StatsSnapshot
from src.core.visualization import ViewTab, VisualizationMode
from src.gui.components.base_interface import CanvasInterface, PageGroup
from src.gui.config import cfg, github_target_from_config, regression_from_config, tr
from src.utils.export import (
    ExportError,
    GitHubUploader,
    build_export_artifacts,
    write_artifacts,
)
from src.utils.gemini import GeminiClient
from src.utils.image_io import DEMO_IMAGE_NAME, DEMO_IMAGE_URL, collect_images
from src.utils.marker import MarkerDetector
from src.utils.report import NarrativeClient, build_methods_text
from src.utils.workers import (
    ImageFetchWorker,
    MarkerDetectWorker,
    MarkerResult,
    ReportSummaryWorker,
    RequestTracker,
    UploadWorker,
)

STATS_COLUMNS = ["group", "pixel_count", "mean_ngrdi", "mean_maci", "mean_gi", "anthocyanin", "area"]


class AnalysisTab(CanvasInterface):
    """
    Interface content for tray analysis.
    """

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        session = AnalysisSession(
            threshold=float(cfg.get(cfg.threshold)),
            regression=regression_from_config(cfg),
        )
        super().__init__(ShapeEditor(session), parent)
        self.session = session
        self.tracker = RequestTracker()
        self._threads: dict[str, tuple[QThread, object]] = {}
        self._retired: list[tuple[QThread, object]] = []
        self._recompute_pending = False
        self._init_ui()
        self._connect_canvas()
        self._refresh_all()

    # ------------------------------------------------------------------
    # layout
    # ------------------------------------------------------------------
    def _init_ui(self) -> None:
        """Initialize toolbar groups and side panel pages."""
        file_group = PageGroup(tr("page.analysis.group.image"))
        self.btn_open = PrimaryPushButton(tr("page.analysis.btn.open"))
        self.btn_open.clicked.connect(self._on_open_images)
        self.btn_demo = PushButton(tr("page.analysis.btn.demo"))
        self.btn_demo.clicked.connect(self._on_load_demo)
        self.btn_prev = PushButton("<")
        self.btn_prev.clicked.connect(lambda: self._navigate(self.session.previous_image))
        self.btn_next = PushButton(">")
        self.btn_next.clicked.connect(lambda: self._navigate(self.session.next_image))
        self.label_image = BodyLabel("")
        file_group.add_widgets(self.btn_open, self.btn_demo, self.btn_prev, self.btn_next, self.label_image)
        self.add_group(file_group)

        workflow_group = PageGroup(tr("page.analysis.group.workflow"))
        self.nav = SegmentedWidget(self)
        for tab in ViewTab:
            self.nav.addItem(
                routeKey=tab.value,
                text=tr(f"page.analysis.tab.{tab.value}"),
                onClick=lambda t=tab: self._on_tab_selected(t),
            )
        self.nav.setCurrentItem(self.session.active_tab.value)
        workflow_group.add_widget(self.nav)
        self.add_group(workflow_group)

        tool_group = PageGroup(tr("page.analysis.group.tools"))
        self.tool_buttons: dict[Tool, ToggleButton] = {}
        for tool in Tool:
            button = ToggleButton(tr(f"page.analysis.tool.{tool.value}"))
            button.clicked.connect(lambda _=False, t=tool: self._on_tool_selected(t))
            tool_group.add_widget(button)
            self.tool_buttons[tool] = button
        self.btn_delete = PushButton(tr("page.analysis.btn.delete"))
        self.btn_delete.clicked.connect(self._on_delete)
        tool_group.add_widget(self.btn_delete)
        self.add_group(tool_group)
        self.add_stretch()

        self.stacked_pages = QStackedWidget(self)
        self.pages = {
            ViewTab.SEGMENTATION: self._build_segmentation_page(),
            ViewTab.CALIBRATION: self._build_calibration_page(),
            ViewTab.ANALYSIS: self._build_analysis_page(),
            ViewTab.REPORT: self._build_report_page(),
        }
        for page in self.pages.values():
            self.stacked_pages.addWidget(page)
        self.side_layout.addWidget(self.stacked_pages)

        for sequence in (QKeySequence.StandardKey.Delete, QKeySequence(Qt.Key.Key_Backspace)):
            shortcut = QShortcut(sequence, self)
            shortcut.activated.connect(self._on_delete)

    def _page(self) -> tuple[QWidget, QVBoxLayout]:
        page = QWidget()
        layout = QVBoxLayout(page)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)
        return page, layout

    def _build_segmentation_page(self) -> QWidget:
        page, layout = self._page()
        layout.addWidget(StrongBodyLabel(tr("page.analysis.label.threshold")))
        self.slider_threshold = Slider(Qt.Orientation.Horizontal)
        self.slider_threshold.setRange(0, 100)
        self.slider_threshold.setValue(int(self.session.threshold))
        self.slider_threshold.valueChanged.connect(self._on_threshold_changed)
        layout.addWidget(self.slider_threshold)
        self.label_threshold = BodyLabel(str(int(self.session.threshold)))
        layout.addWidget(self.label_threshold)
        layout.addWidget(BodyLabel(tr("page.analysis.hint.exclusion")))
        layout.addStretch()
        return page

    def _build_calibration_page(self) -> QWidget:
        page, layout = self._page()
        layout.addWidget(StrongBodyLabel(tr("page.analysis.label.reference")))
        self.combo_slot = ComboBox()
        for slot in ReferenceSlot:
            self.combo_slot.addItem(tr(f"page.analysis.slot.{slot.value}"), userData=slot)
        self.combo_slot.currentIndexChanged.connect(self._on_slot_changed)
        layout.addWidget(self.combo_slot)
        self.slot_labels: dict[ReferenceSlot, BodyLabel] = {}
        for slot in ReferenceSlot:
            label = BodyLabel("")
            self.slot_labels[slot] = label
            layout.addWidget(label)

        layout.addWidget(StrongBodyLabel(tr("page.analysis.label.rotation")))
        self.spin_rotation = DoubleSpinBox()
        self.spin_rotation.setRange(-180.0, 180.0)
        self.spin_rotation.setSingleStep(0.5)
        self.spin_rotation.valueChanged.connect(self._on_rotation_changed)
        layout.addWidget(self.spin_rotation)
        self.btn_level = PushButton(tr("page.analysis.btn.auto_level"))
        self.btn_level.clicked.connect(self._on_auto_level)
        layout.addWidget(self.btn_level)
        self.label_scale = BodyLabel("")
        layout.addWidget(self.label_scale)
        layout.addStretch()
        return page

    def _build_analysis_page(self) -> QWidget:
        page, layout = self._page()
        layout.addWidget(StrongBodyLabel(tr("page.analysis.label.mode")))
        self.combo_mode = ComboBox()
        for mode in VisualizationMode:
            self.combo_mode.addItem(tr(f"page.analysis.mode.{mode.value}"), userData=mode)
        self.combo_mode.currentIndexChanged.connect(self._on_mode_changed)
        layout.addWidget(self.combo_mode)

        layout.addWidget(StrongBodyLabel(tr("page.analysis.label.groups")))
        self.combo_group = ComboBox()
        self.combo_group.currentIndexChanged.connect(self._on_group_selected)
        layout.addWidget(self.combo_group)
        self.btn_new_group = PushButton(tr("page.analysis.btn.new_group"))
        self.btn_new_group.clicked.connect(self._on_new_group)
        layout.addWidget(self.btn_new_group)
        self.btn_remove_group = PushButton(tr("page.analysis.btn.remove_group"))
        self.btn_remove_group.clicked.connect(self._on_remove_group)
        layout.addWidget(self.btn_remove_group)

        layout.addWidget(StrongBodyLabel(tr("page.analysis.label.regression")))
        self.combo_target = ComboBox()
        for target in TargetIndex:
            self.combo_target.addItem(target.value, userData=target)
        self.spin_slope = DoubleSpinBox()
        self.spin_slope.setRange(-10000.0, 10000.0)
        self.spin_slope.setDecimals(2)
        self.spin_intercept = DoubleSpinBox()
        self.spin_intercept.setRange(-10000.0, 10000.0)
        self.spin_intercept.setDecimals(2)
        for widget in (self.combo_target, self.spin_slope, self.spin_intercept):
            layout.addWidget(widget)
        self.combo_target.currentIndexChanged.connect(self._on_regression_edited)
        self.spin_slope.valueChanged.connect(self._on_regression_edited)
        self.spin_intercept.valueChanged.connect(self._on_regression_edited)
        self.btn_tune = PushButton(tr("page.analysis.btn.auto_tune"))
        self.btn_tune.clicked.connect(self._on_auto_tune)
        layout.addWidget(self.btn_tune)

        self.table_stats = TableWidget()
        self.table_stats.setColumnCount(len(STATS_COLUMNS))
        self.table_stats.setHorizontalHeaderLabels(
            [tr(f"page.analysis.col.{name}") for name in STATS_COLUMNS]
        )
        self.table_stats.verticalHeader().hide()
        self.table_stats.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        layout.addWidget(self.table_stats, 1)
        return page

    def _build_report_page(self) -> QWidget:
        page, layout = self._page()
        self.btn_generate = PrimaryPushButton(tr("page.analysis.btn.generate_report"))
        self.btn_generate.clicked.connect(self._on_generate_report)
        layout.addWidget(self.btn_generate)
        self.text_summary = PlainTextEdit()
        self.text_summary.setReadOnly(True)
        layout.addWidget(self.text_summary, 1)
        self.btn_export = PushButton(tr("page.analysis.btn.export"))
        self.btn_export.clicked.connect(self._on_export_folder)
        layout.addWidget(self.btn_export)
        self.btn_upload = PushButton(tr("page.analysis.btn.upload"))
        self.btn_upload.clicked.connect(self._on_upload)
        layout.addWidget(self.btn_upload)
        return page

    def _connect_canvas(self) -> None:
        self.canvas.sigShapesEdited.connect(self._schedule_recompute)
        self.canvas.sigEditFinished.connect(self._on_edit_finished)
        cfg.threshold.valueChanged.connect(self._on_config_threshold_changed)

    # ------------------------------------------------------------------
    # recompute scheduling
    # ------------------------------------------------------------------
    def _schedule_recompute(self) -> None:
        """Coalesce pipeline runs into one per event-loop tick."""
        if self._recompute_pending:
            return
        self._recompute_pending = True
        QTimer.singleShot(0, self._run_recompute)

    @Slot()
    def _run_recompute(self) -> None:
        self._recompute_pending = False
        snapshot = self.session.recompute()
        if snapshot is None:
            return
        self.canvas.set_image(self.session.last_result.rendered)
        QTimer.singleShot(0, lambda: self._commit_stats(snapshot))

    def _commit_stats(self, snapshot: StatsSnapshot) -> None:
        if self.session.commit_stats(snapshot):
            self._refresh_stats()

    # ------------------------------------------------------------------
    # refresh helpers
    # ------------------------------------------------------------------
    def _refresh_all(self) -> None:
        self._refresh_image_label()
        self._refresh_tool_buttons()
        self._refresh_calibration()
        self._refresh_groups()
        self._refresh_regression()
        self._refresh_stats()
        self._refresh_report()
        self.stacked_pages.setCurrentWidget(self.pages[self.session.active_tab])
        self.canvas.refresh_overlay()

    def _refresh_image_label(self) -> None:
        session = self.session
        if not session.gallery:
            self.label_image.setText(tr("page.analysis.label.no_image"))
            return
        self.label_image.setText(
            f"{session.image_name} ({session.active_image_index + 1}/{len(session.gallery)})"
        )

    def _refresh_tool_buttons(self) -> None:
        for tool, button in self.tool_buttons.items():
            button.setChecked(tool == self.editor.tool)

    def _refresh_calibration(self) -> None:
        for slot, label in self.slot_labels.items():
            color = self.session.calibration[slot].color
            text = "-" if color is None else f"{color.r:.0f}, {color.g:.0f}, {color.b:.0f}"
            label.setText(f"{tr(f'page.analysis.slot.{slot.value}')}: {text}")
        self.combo_slot.blockSignals(True)
        self.combo_slot.setCurrentIndex(list(ReferenceSlot).index(self.session.calibration_target))
        self.combo_slot.blockSignals(False)
        self.spin_rotation.blockSignals(True)
        self.spin_rotation.setValue(self.session.rotation_angle)
        self.spin_rotation.blockSignals(False)
        ppu = self.session.pixels_per_unit
        self.label_scale.setText("" if ppu is None else f"{ppu:.2f} px/unit")

    def _refresh_groups(self) -> None:
        self.combo_group.blockSignals(True)
        self.combo_group.clear()
        for group in self.session.groups.values():
            self.combo_group.addItem(group.name, userData=group.id)
        group_ids = list(self.session.groups)
        if self.session.active_group_id in group_ids:
            self.combo_group.setCurrentIndex(group_ids.index(self.session.active_group_id))
        self.combo_group.blockSignals(False)

    def _refresh_regression(self) -> None:
        regression = self.session.regression
        for widget in (self.combo_target, self.spin_slope, self.spin_intercept):
            widget.blockSignals(True)
        self.combo_target.setCurrentIndex(list(TargetIndex).index(regression.target_index))
        self.spin_slope.setValue(regression.slope)
        self.spin_intercept.setValue(regression.intercept)
        for widget in (self.combo_target, self.spin_slope, self.spin_intercept):
            widget.blockSignals(False)

    def _refresh_stats(self) -> None:
        table = self.session.stats_table()
        self.table_stats.setRowCount(len(table))
        for row, record in enumerate(table.itertuples(index=False)):
            for col, value in enumerate(record):
                if isinstance(value, float):
                    text = "" if value != value else f"{value:.3f}"
                else:
                    text = "" if value is None else str(value)
                self.table_stats.setItem(row, col, QTableWidgetItem(text))

    def _refresh_report(self) -> None:
        methods = build_methods_text(self.session.threshold, self.session.rotation_angle)
        summary = self.session.report_summary
        self.text_summary.setPlainText(f"{methods}\n\n{summary}" if summary else methods)

    # ------------------------------------------------------------------
    # image and gallery
    # ------------------------------------------------------------------
    @Slot()
    def _on_open_images(self) -> None:
        """Load images and zip archives into the gallery."""
        file_paths, _ = QFileDialog.getOpenFileNames(
            self,
            tr("page.analysis.dialog.open"),
            "",
            "Images (*.jpg *.jpeg *.png *.zip);;All Files (*)",
        )
        if not file_paths:
            return
        assets = collect_images(file_paths)
        if not assets:
            InfoBar.error(
                title=tr("error"),
                content=tr("page.analysis.msg.no_images"),
                parent=self,
                duration=3000,
            )
            return
        had_image = self.session.has_image
        self.session.add_images(assets)
        if not had_image:
            self._on_image_changed()
        else:
            self._refresh_image_label()
        InfoBar.success(
            title=tr("success"),
            content=f"{len(assets)} {tr('page.analysis.msg.images_loaded')}",
            parent=self,
            duration=2000,
        )

    @Slot()
    def _on_load_demo(self) -> None:
        """Download the demo tray image into the gallery."""
        generation = self.tracker.next("image")
        worker = ImageFetchWorker(generation, DEMO_IMAGE_URL, DEMO_IMAGE_NAME)
        self._start_worker("image", worker, self._on_image_fetched, self._on_image_failed)

    @Slot(int, object)
    def _on_image_fetched(self, generation: int, asset: ImageAsset) -> None:
        if not self._accept_result("image", generation):
            return
        self.session.add_images([asset])
        self.session.select_image(len(self.session.gallery) - 1)
        self._on_image_changed()
        InfoBar.success(
            title=tr("success"),
            content=f"1 {tr('page.analysis.msg.images_loaded')}",
            parent=self,
            duration=2000,
        )

    @Slot(int, str)
    def _on_image_failed(self, generation: int, message: str) -> None:
        self._show_failure("image", generation, message)

    def _navigate(self, step: Callable[[], bool]) -> None:
        if step():
            self._on_image_changed()

    def _on_image_changed(self) -> None:
        self.tracker.invalidate()
        self._refresh_all()
        self._schedule_recompute()

    # ------------------------------------------------------------------
    # editing
    # ------------------------------------------------------------------
    def _on_tab_selected(self, tab: ViewTab) -> None:
        self.session.set_tab(tab)
        self.stacked_pages.setCurrentWidget(self.pages[tab])
        self.canvas.refresh_overlay()
        self._schedule_recompute()

    def _on_tool_selected(self, tool: Tool) -> None:
        self.canvas.set_tool(tool)
        self._refresh_tool_buttons()

    @Slot()
    def _on_edit_finished(self) -> None:
        self._refresh_tool_buttons()
        self._refresh_calibration()
        self._refresh_groups()
        self._schedule_recompute()

    @Slot()
    def _on_delete(self) -> None:
        if self.editor.delete_selected():
            self.canvas.refresh_overlay()
            self._refresh_calibration()
            self._schedule_recompute()

    def _on_threshold_changed(self, value: int) -> None:
        self.label_threshold.setText(str(value))
        self.session.set_threshold(value)
        cfg.set(cfg.threshold, value)
        self._refresh_report()
        self._schedule_recompute()

    @Slot(object)
    def _on_config_threshold_changed(self, value) -> None:
        """Follow threshold edits made outside this tab, e.g. on the settings page."""
        if float(value) == self.session.threshold:
            return
        self.slider_threshold.blockSignals(True)
        self.slider_threshold.setValue(int(value))
        self.slider_threshold.blockSignals(False)
        self.label_threshold.setText(str(int(value)))
        self.session.set_threshold(value)
        self._refresh_report()
        self._schedule_recompute()

    def _on_slot_changed(self, index: int) -> None:
        self.session.set_calibration_target(list(ReferenceSlot)[index])

    def _on_rotation_changed(self, value: float) -> None:
        self.session.set_rotation(value)
        self._refresh_report()
        self._schedule_recompute()

    def _on_mode_changed(self, index: int) -> None:
        self.session.set_mode(list(VisualizationMode)[index])
        self._schedule_recompute()

    def _on_group_selected(self, index: int) -> None:
        group_ids = list(self.session.groups)
        if 0 <= index < len(group_ids):
            self.session.set_active_group(group_ids[index])

    def _on_new_group(self) -> None:
        self.session.add_group()
        self._refresh_groups()
        self._schedule_recompute()

    def _on_remove_group(self) -> None:
        if self.session.active_group_id is None:
            return
        self.session.remove_group(self.session.active_group_id)
        self._refresh_groups()
        self._refresh_stats()
        self.canvas.refresh_overlay()
        self._schedule_recompute()

    def _on_regression_edited(self, *_args) -> None:
        regression = RegressionParams(
            slope=float(self.spin_slope.value()),
            intercept=float(self.spin_intercept.value()),
            target_index=list(TargetIndex)[self.combo_target.currentIndex()],
        )
        self._apply_regression(regression)

    def _apply_regression(self, regression: RegressionParams) -> None:
        cfg.set(cfg.regressionSlope, regression.slope)
        cfg.set(cfg.regressionIntercept, regression.intercept)
        cfg.set(cfg.regressionTarget, regression.target_index)
        self.session.set_regression(regression)
        self._schedule_recompute()

    def _on_auto_tune(self) -> None:
        before = self.session.regression
        tuned = self.session.auto_tune_regression()
        if tuned == before:
            InfoBar.warning(
                title=tr("warning"),
                content=tr("page.analysis.msg.tune_needs_groups"),
                parent=self,
                duration=2500,
            )
            return
        self._apply_regression(tuned)
        self._refresh_regression()

    # ------------------------------------------------------------------
    # external collaborators
    # ------------------------------------------------------------------
    def _gemini_client(self) -> GeminiClient:
        return GeminiClient(api_key=cfg.get(cfg.geminiApiKey))

    def _start_worker(self, channel: str, worker, on_finished, on_failed) -> None:
        """Run one collaborator worker in its own thread.

        A worker already running on ``channel`` is asked to cancel and left to
        wind down; its thread is released once it has finished.
        """
        self._retire_thread(channel)
        thread = QThread(self)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.sigFinished.connect(on_finished)
        worker.sigFailed.connect(on_failed)
        worker.sigCancelled.connect(self._on_worker_cancelled)
        for signal in (worker.sigFinished, worker.sigFailed, worker.sigCancelled):
            signal.connect(thread.quit, Qt.ConnectionType.DirectConnection)
        thread.finished.connect(self._release_finished_threads)
        self._threads[channel] = (thread, worker)
        thread.start()

    def _accept_result(self, channel: str, generation: int) -> bool:
        """Retire the channel thread and tell whether the response is current."""
        entry = self._threads.get(channel)
        if entry is not None and entry[1].generation == generation:
            self._retire_thread(channel)
        if not self.tracker.is_current(channel, generation):
            logger.debug(f"Ignoring stale {channel} response (generation {generation})")
            return False
        return True

    def _show_failure(self, channel: str, generation: int, message: str) -> None:
        if not self._accept_result(channel, generation):
            return
        InfoBar.error(
            title=tr("error"),
            content=message.splitlines()[0],
            parent=self,
            duration=4000,
        )

    @Slot(int)
    def _on_worker_cancelled(self, generation: int) -> None:
        logger.debug(f"Collaborator request {generation} cancelled")

    def _retire_thread(self, channel: str) -> None:
        entry = self._threads.pop(channel, None)
        if entry is None:
            return
        entry[1].request_cancel()
        self._retired.append(entry)
        self._release_finished_threads()

    @Slot()
    def _release_finished_threads(self) -> None:
        """Delete retired threads whose worker has returned."""
        for entry in list(self._retired):
            thread, worker = entry
            if not worker.done:
                continue
            # quit already ran in the worker thread; only run() is unwinding
            thread.wait()
            self._retired.remove(entry)
            thread.deleteLater()

    @property
    def busy_channels(self) -> list[str]:
        """Channels with a request still in flight."""
        return list(self._threads)

    def _on_auto_level(self) -> None:
        if self.session.source is None:
            return
        generation = self.tracker.next("marker")
        detector = MarkerDetector(self._gemini_client(), model=cfg.get(cfg.markerModel))
        worker = MarkerDetectWorker(
            generation,
            detector,
            self.session.source,
            marker_size=float(cfg.get(cfg.markerSize)),
        )
        self._start_worker("marker", worker, self._on_marker_finished, self._on_marker_failed)

    @Slot(int, object)
    def _on_marker_finished(self, generation: int, result: Optional[MarkerResult]) -> None:
        if not self._accept_result("marker", generation):
            return
        if result is None:
            InfoBar.warning(
                title=tr("warning"),
                content=tr("page.analysis.msg.marker_not_found"),
                parent=self,
                duration=3000,
            )
            return
        self.session.set_rotation(result.angle)
        if result.pixels_per_unit is not None:
            self.session.set_pixels_per_unit(result.pixels_per_unit)
        self._refresh_calibration()
        self._refresh_report()
        self._schedule_recompute()

    def _on_generate_report(self) -> None:
        self._on_tab_selected(ViewTab.REPORT)
        self.nav.setCurrentItem(ViewTab.REPORT.value)
        generation = self.tracker.next("report")
        client = NarrativeClient(self._gemini_client(), model=cfg.get(cfg.reportModel))
        worker = ReportSummaryWorker(
            generation, client, self.session.named_stats(), self.session.regression
        )
        self._start_worker("report", worker, self._on_report_finished, self._on_report_failed)

    @Slot(int, object)
    def _on_report_finished(self, generation: int, summary: str) -> None:
        if not self._accept_result("report", generation):
            return
        self.session.report_summary = summary
        self._refresh_report()

    def _current_artifacts(self):
        rendered = self.session.last_result.rendered if self.session.last_result else None
        return build_export_artifacts(self.session.report_summary, rendered)

    def _on_export_folder(self) -> None:
        folder = QFileDialog.getExistingDirectory(
            self, tr("page.analysis.dialog.export"), cfg.get(cfg.exportDir)
        )
        if not folder:
            return
        try:
            write_artifacts(Path(folder), self._current_artifacts())
        except ExportError as exc:
            InfoBar.error(title=tr("error"), content=str(exc), parent=self, duration=4000)
            return
        cfg.set(cfg.exportDir, folder)
        InfoBar.success(
            title=tr("success"),
            content=tr("page.analysis.msg.exported"),
            parent=self,
            duration=2000,
        )

    def _on_upload(self) -> None:
        target = github_target_from_config(cfg)
        if not target.is_complete:
            InfoBar.warning(
                title=tr("warning"),
                content=tr("page.analysis.msg.github_incomplete"),
                parent=self,
                duration=3000,
            )
            return
        generation = self.tracker.next("upload")
        worker = UploadWorker(generation, GitHubUploader(target), self._current_artifacts())
        self._start_worker("upload", worker, self._on_upload_finished, self._on_upload_failed)

    @Slot(int, object)
    def _on_upload_finished(self, generation: int, remote_path: str) -> None:
        if not self._accept_result("upload", generation):
            return
        InfoBar.success(
            title=tr("success"),
            content=f"{tr('page.analysis.msg.uploaded')} {remote_path}",
            parent=self,
            duration=3000,
        )

    def cleanup(self) -> None:
        """Cancel collaborator requests and wait for their threads to exit."""
        for channel in list(self._threads):
            self._retire_thread(channel)
        if self._retired:
            logger.info(f"Waiting for {len(self._retired)} collaborator thread(s)")
        for thread, _worker in self._retired:
            thread.wait()
        self._release_finished_threads()

    @Slot(int, str)
    def _on_marker_failed(self, generation: int, message: str) -> None:
        self._show_failure("marker", generation, message)

    @Slot(int, str)
    def _on_report_failed(self, generation: int, message: str) -> None:
        self._show_failure("report", generation, message)

    @Slot(int, str)
    def _on_upload_failed(self, generation: int, message: str) -> None:
        self._show_failure("upload", generation, message)
