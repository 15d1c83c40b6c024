"""Tests for collaborator workers and request generations."""

from __future__ import annotations

import numpy as np

from src.core.aggregation import GroupStats, RegressionParams
from src.core.geometry import Point
from src.core.session import ImageAsset
from src.utils.export import ExportArtifacts
from src.utils import workers
from src.utils.image_io import ImageLoadError
from src.utils.workers import (
    ImageFetchWorker,
    MarkerDetectWorker,
    MarkerResult,
    ReportSummaryWorker,
    RequestTracker,
    UploadWorker,
    format_worker_exception,
)


class _Recorder:
    def __init__(self, worker) -> None:
        self.finished: list[tuple] = []
        self.failed: list[tuple] = []
        self.cancelled: list[int] = []
        worker.sigFinished.connect(lambda gen, result: self.finished.append((gen, result)))
        worker.sigFailed.connect(lambda gen, msg: self.failed.append((gen, msg)))
        worker.sigCancelled.connect(self.cancelled.append)


class _FakeDetector:
    def __init__(self, corners) -> None:
        self.corners = corners
        self.sizes: list[tuple[int, int]] = []

    def detect(self, jpeg, width, height):
        assert jpeg
        self.sizes.append((width, height))
        return self.corners


def test_request_tracker_keeps_latest_generation() -> None:
    """Only the newest generation of a channel is current."""
    tracker = RequestTracker()
    first = tracker.next("marker")
    second = tracker.next("marker")
    report = tracker.next("report")
    assert not tracker.is_current("marker", first)
    assert tracker.is_current("marker", second)
    assert tracker.is_current("report", report)


def test_request_tracker_invalidate() -> None:
    """Invalidation makes pending generations stale."""
    tracker = RequestTracker()
    marker = tracker.next("marker")
    report = tracker.next("report")
    tracker.invalidate("marker")
    assert not tracker.is_current("marker", marker)
    assert tracker.is_current("report", report)
    tracker.invalidate()
    assert not tracker.is_current("report", report)


def test_format_worker_exception_includes_traceback_lines() -> None:
    """Worker exception formatter should include type and traceback."""
    try:
        raise RuntimeError("marker boom")
    except RuntimeError as exc:
        message = format_worker_exception(exc)
    assert "RuntimeError" in message
    assert "marker boom" in message
    assert "Traceback" in message


def test_marker_worker_emits_leveling_result() -> None:
    """Detected corners become a rotation and scale."""
    raster = np.zeros((20, 40, 4), dtype=np.uint8)
    detector = _FakeDetector([Point(0, 10), Point(10, 0), Point(20, 10), Point(10, 20)])
    worker = MarkerDetectWorker(7, detector, raster, marker_size=2.0)
    recorder = _Recorder(worker)

    worker.run()

    assert detector.sizes == [(40, 20)]
    generation, result = recorder.finished[0]
    assert generation == 7
    assert isinstance(result, MarkerResult)
    assert round(result.angle, 6) == 45.0
    assert round(result.pixels_per_unit, 6) == round((200 ** 0.5) / 2.0, 6)


def test_marker_worker_emits_none_without_marker() -> None:
    """No marker yields a finished signal carrying None."""
    worker = MarkerDetectWorker(1, _FakeDetector(None), np.zeros((4, 4, 4), dtype=np.uint8))
    recorder = _Recorder(worker)
    worker.run()
    assert recorder.finished == [(1, None)]


def test_report_worker_emits_summary() -> None:
    """Report worker forwards groups and regression to the client."""

    class _Client:
        def summarize(self, groups, regression):
            return f"{len(groups)} groups, slope {regression.slope}"

    worker = ReportSummaryWorker(
        3, _Client(), [("A", GroupStats())], RegressionParams(slope=2.0)
    )
    recorder = _Recorder(worker)
    worker.run()
    assert recorder.finished == [(3, "1 groups, slope 2.0")]


def test_upload_worker_reports_failure() -> None:
    """Exceptions inside the worker are emitted with their generation."""

    class _Uploader:
        def upload(self, artifacts):
            raise ValueError("no network")

    worker = UploadWorker(5, _Uploader(), ExportArtifacts(report_md=b"r", image_png=None))
    recorder = _Recorder(worker)
    worker.run()
    assert recorder.finished == []
    generation, message = recorder.failed[0]
    assert generation == 5
    assert "ValueError: no network" in message


def test_cancelled_worker_does_not_execute() -> None:
    """A worker cancelled before start emits only the cancel signal."""
    detector = _FakeDetector(None)
    worker = MarkerDetectWorker(2, detector, np.zeros((4, 4, 4), dtype=np.uint8))
    recorder = _Recorder(worker)
    worker.request_cancel()
    worker.run()
    assert recorder.cancelled == [2]
    assert detector.sizes == []
    assert recorder.finished == []


def test_image_fetch_worker_renames_asset(monkeypatch) -> None:
    """Fetched images take the display name given to the worker."""
    urls: list[str] = []

    def fake_load(url):
        urls.append(url)
        return ImageAsset(name="remote.jpg", raster=np.zeros((2, 3, 4), dtype=np.uint8))

    monkeypatch.setattr(workers, "load_image_url", fake_load)
    worker = ImageFetchWorker(4, "https://example.org/remote.jpg", "demo.JPG")
    recorder = _Recorder(worker)
    worker.run()

    assert urls == ["https://example.org/remote.jpg"]
    generation, asset = recorder.finished[0]
    assert generation == 4
    assert asset.name == "demo.JPG"
    assert worker.done


def test_image_fetch_worker_reports_download_error(monkeypatch) -> None:
    """Download errors are emitted as failures."""

    def fake_load(url):
        raise ImageLoadError(f"cannot fetch {url}: HTTP 503")

    monkeypatch.setattr(workers, "load_image_url", fake_load)
    worker = ImageFetchWorker(9, "https://example.org/x.jpg")
    recorder = _Recorder(worker)
    worker.run()

    assert recorder.finished == []
    assert "HTTP 503" in recorder.failed[0][1]
    assert worker.done
