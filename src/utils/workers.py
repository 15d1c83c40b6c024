"""QThread workers for the external collaborators.

Every request carries a generation number handed out by
:class:`RequestTracker`. Completions whose generation is no longer the latest
for their channel are ignored, so a slow response can never overwrite the
result of a newer request.
"""

from __future__ import annotations

from dataclasses import dataclass
import traceback
from typing import Sequence

import numpy as np
from PySide6.QtCore import QObject, Signal, Slot
from loguru import logger

from src.core.aggregation import GroupStats, RegressionParams
from src.core.session import ImageAsset
from src.utils.export import ExportArtifacts, GitHubUploader
from src.utils.image_io import encode_jpeg, load_image_url
from src.utils.marker import MarkerDetector, marker_angle, marker_scale
from src.utils.report import NarrativeClient


class RequestTracker:
    """Latest-generation bookkeeping per request channel.

    Examples
    --------
    >>> tracker = RequestTracker()
    >>> first = tracker.next("marker")
    >>> second = tracker.next("marker")
    >>> tracker.is_current("marker", first), tracker.is_current("marker", second)
    (False, True)
    """

    def __init__(self) -> None:
        self._latest: dict[str, int] = {}

    def next(self, channel: str) -> int:
        """Issue a new generation, invalidating older ones."""
        generation = self._latest.get(channel, 0) + 1
        self._latest[channel] = generation
        return generation

    def is_current(self, channel: str, generation: int) -> bool:
        return self._latest.get(channel) == generation

    def invalidate(self, channel: str | None = None) -> None:
        """Drop pending requests of one channel, or of all channels."""
        channels = [channel] if channel is not None else list(self._latest)
        for name in channels:
            self._latest[name] = self._latest.get(name, 0) + 1


@dataclass
class MarkerResult:
    """Leveling parameters derived from a detected marker."""

    angle: float
    pixels_per_unit: float | None


class _CollaboratorWorker(QObject):
    """Shared run/cancel plumbing; subclasses implement ``_execute``."""

    sigFinished = Signal(int, object)
    sigFailed = Signal(int, str)
    sigCancelled = Signal(int)

    def __init__(self, generation: int) -> None:
        super().__init__()
        self.generation = generation
        self.done = False
        self._cancelled = False

    def request_cancel(self) -> None:
        """Request best-effort cancellation."""
        self._cancelled = True

    @Slot()
    def run(self) -> None:
        """Execute the request and emit the tagged result."""
        try:
            self._run()
        finally:
            self.done = True

    def _run(self) -> None:
        if self._cancelled:
            self.sigCancelled.emit(self.generation)
            return
        try:
            result = self._execute()
        except Exception as exc:
            message = format_worker_exception(exc)
            logger.error(message)
            self.sigFailed.emit(self.generation, message)
            return
        if self._cancelled:
            self.sigCancelled.emit(self.generation)
            return
        self.sigFinished.emit(self.generation, result)

    def _execute(self) -> object:
        raise NotImplementedError


class ImageFetchWorker(_CollaboratorWorker):
    """Download one remote image and emit it as an :class:`ImageAsset`."""

    def __init__(self, generation: int, url: str, name: str | None = None) -> None:
        super().__init__(generation)
        self.url = url
        self.name = name

    def _execute(self) -> ImageAsset:
        asset = load_image_url(self.url)
        if self.name:
            asset.name = self.name
        return asset


class MarkerDetectWorker(_CollaboratorWorker):
    """Detect the tray marker and emit a :class:`MarkerResult` or ``None``."""

    def __init__(
        self,
        generation: int,
        detector: MarkerDetector,
        raster: np.ndarray,
        marker_size: float = 0.0,
    ) -> None:
        super().__init__(generation)
        self.detector = detector
        self.raster = raster
        self.marker_size = marker_size

    def _execute(self) -> MarkerResult | None:
        height, width = self.raster.shape[:2]
        corners = self.detector.detect(encode_jpeg(self.raster), width, height)
        if corners is None:
            return None
        return MarkerResult(
            angle=marker_angle(corners),
            pixels_per_unit=marker_scale(corners, self.marker_size),
        )


class ReportSummaryWorker(_CollaboratorWorker):
    """Generate the narrative summary text."""

    def __init__(
        self,
        generation: int,
        client: NarrativeClient,
        groups: Sequence[tuple[str, GroupStats]],
        regression: RegressionParams,
    ) -> None:
        super().__init__(generation)
        self.client = client
        self.groups = list(groups)
        self.regression = regression

    def _execute(self) -> str:
        return self.client.summarize(self.groups, self.regression)


class UploadWorker(_CollaboratorWorker):
    """Upload export artifacts and emit the remote folder."""

    def __init__(
        self,
        generation: int,
        uploader: GitHubUploader,
        artifacts: ExportArtifacts,
    ) -> None:
        super().__init__(generation)
        self.uploader = uploader
        self.artifacts = artifacts

    def _execute(self) -> str:
        return self.uploader.upload(self.artifacts)


def format_worker_exception(exc: Exception) -> str:
    """Format exception into message with traceback details.

    Parameters
    ----------
    exc : Exception
        The exception to format.

    Returns
    -------
    str
        Formatted message with traceback text.
    """
    trace_text = traceback.format_exc()
    if not trace_text or trace_text == "NoneType: None\n":
        trace_text = "\n".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return f"{type(exc).__name__}: {exc}\n{trace_text.strip()}"
