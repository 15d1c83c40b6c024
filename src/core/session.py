"""Analysis session state and recompute scheduling.

The session owns every user-created object of one photograph: exclusion
zones, the three calibration reference slots and the ROI groups, plus the
analysis settings. Shapes live in id-indexed maps and an owner index gives
O(1) lookup of which collection holds a shape.

Any observable change bumps :attr:`AnalysisSession.version` and marks the
session dirty. :meth:`AnalysisSession.recompute` is the single entry point
that runs the pipeline; it returns a stats snapshot tagged with the version
it was computed from, and :meth:`AnalysisSession.commit_stats` writes the
snapshot back only while that version is still current and no drag is in
progress.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator

from loguru import logger
import numpy as np
import pandas as pd

from src.core.aggregation import (
    GroupStats,
    RegressionParams,
    auto_tune,
    stats_to_dataframe,
)
from src.core.calibration import (
    RGB,
    SLOT_PRIORITY,
    CalibrationReference,
    Correction,
    ReferenceSlot,
    derive_correction,
    sample_reference_color,
)
from src.core.classification import DEFAULT_THRESHOLD
from src.core.geometry import Point, Shape, new_shape_id, point_in_shape
from src.core.pipeline import PipelineInputs, PipelineResult, rotate_raster, run_pipeline
from src.core.visualization import ViewTab, VisualizationMode

GROUP_PALETTE = (
    "#ef4444",
    "#3b82f6",
    "#10b981",
    "#f59e0b",
    "#8b5cf6",
    "#ec4899",
)


class ShapeOwner(str, Enum):
    """Collection kinds that can hold a shape."""

    EXCLUSION = "exclusion"
    CALIBRATION = "calibration"
    GROUP = "group"


@dataclass
class ROIGroup:
    """Named set of shapes aggregated together.

    Parameters
    ----------
    id : str
        Stable group id.
    name : str
        Display name, ``Group N`` by default.
    color : str
        Hex color from :data:`GROUP_PALETTE`.
    shapes : dict[str, Shape]
        Shapes by id, in insertion order.
    stats : GroupStats
        Last committed statistics.
    """

    id: str
    name: str
    color: str
    shapes: dict[str, Shape] = field(default_factory=dict)
    stats: GroupStats = field(default_factory=GroupStats)


@dataclass
class ImageAsset:
    """One decoded gallery image."""

    name: str
    raster: np.ndarray


@dataclass(frozen=True)
class HitResult:
    """Shape found under the pointer and where it lives."""

    shape: Shape
    owner: ShapeOwner
    key: str = ""


@dataclass(frozen=True)
class StatsSnapshot:
    """Group statistics computed for one input version."""

    version: int
    stats: dict[str, GroupStats]


class AnalysisSession:
    """Mutable state of one analysis session.

    Examples
    --------
    >>> session = AnalysisSession()
    >>> session.load_image(np.zeros((4, 4, 4), dtype=np.uint8), "tray.png")
    >>> snapshot = session.recompute()
    >>> session.commit_stats(snapshot)
    False
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        regression: RegressionParams | None = None,
    ) -> None:
        self.gallery: list[ImageAsset] = []
        self.active_image_index: int = -1
        self.source: np.ndarray | None = None
        self.image_name: str = ""

        self.exclusion_zones: dict[str, Shape] = {}
        self.calibration: dict[ReferenceSlot, CalibrationReference] = {
            slot: CalibrationReference(slot) for slot in ReferenceSlot
        }
        self.groups: dict[str, ROIGroup] = {}
        self._owners: dict[str, HitResult] = {}

        self.active_group_id: str | None = None
        self.calibration_target: ReferenceSlot = ReferenceSlot.GRAY
        self.selected_shape_id: str | None = None

        self.active_tab: ViewTab = ViewTab.SEGMENTATION
        self.mode: VisualizationMode = VisualizationMode.RGB
        self.threshold: float = float(threshold)
        self.regression: RegressionParams = regression or RegressionParams()
        self.rotation_angle: float = 0.0
        self.pixels_per_unit: float | None = None
        self.report_summary: str = ""

        self.version: int = 0
        self.dirty: bool = True
        self.drag_active: bool = False
        self.last_result: PipelineResult | None = None
        self._rotated_cache: tuple[float, np.ndarray] | None = None

    # ------------------------------------------------------------------
    # scheduler
    # ------------------------------------------------------------------
    def _touch(self) -> None:
        self.version += 1
        self.dirty = True

    @property
    def has_image(self) -> bool:
        return self.source is not None

    def pipeline_inputs(self) -> PipelineInputs:
        """Collect the current pipeline inputs."""
        return PipelineInputs(
            threshold=self.threshold,
            tab=self.active_tab,
            mode=self.mode,
            correction=self.correction(),
            exclusion_zones=tuple(self.exclusion_zones.values()),
            group_shapes={gid: tuple(g.shapes.values()) for gid, g in self.groups.items()},
            regression=self.regression,
            pixels_per_unit=self.pixels_per_unit,
            rotation_angle=self.rotation_angle,
        )

    def recompute(self) -> StatsSnapshot | None:
        """Run the pipeline when dirty.

        Returns
        -------
        StatsSnapshot | None
            Stats tagged with the version they were computed for, or ``None``
            when nothing ran (clean session or no image).
        """
        if not self.dirty or self.source is None:
            return None
        version = self.version
        result = run_pipeline(self.source, self.pipeline_inputs())
        self.last_result = result
        self.dirty = False
        return StatsSnapshot(version=version, stats=result.stats)

    def commit_stats(self, snapshot: StatsSnapshot | None) -> bool:
        """Write finalized stats back into the groups.

        Parameters
        ----------
        snapshot : StatsSnapshot | None
            Output of :meth:`recompute`.

        Returns
        -------
        bool
            ``True`` when at least one group's stats changed. Stale
            snapshots and snapshots taken during a drag are rejected.
        """
        if snapshot is None or snapshot.version != self.version or self.drag_active:
            return False
        changed = False
        for group_id, stats in snapshot.stats.items():
            group = self.groups.get(group_id)
            if group is None or group.stats == stats:
                continue
            group.stats = stats
            changed = True
        return changed

    def begin_drag(self) -> None:
        self.drag_active = True

    def end_drag(self) -> None:
        """Leave drag mode and schedule a fresh pass for the final geometry."""
        self.drag_active = False
        self._touch()

    # ------------------------------------------------------------------
    # image and gallery
    # ------------------------------------------------------------------
    def load_image(self, raster: np.ndarray, name: str = "") -> None:
        """Start a new session boundary with a decoded raster.

        Parameters
        ----------
        raster : numpy.ndarray
            ``H x W x 3`` or ``H x W x 4`` uint8 image.
        name : str
            Display name.

        Raises
        ------
        ValueError
            Raised before any state changes when the raster is malformed.
        """
        raster = np.asarray(raster)
        if raster.ndim != 3 or raster.shape[2] not in (3, 4) or raster.dtype != np.uint8:
            raise ValueError("raster must be an H x W x 3|4 uint8 array")
        if raster.shape[2] == 3:
            alpha = np.full(raster.shape[:2] + (1,), 255, dtype=np.uint8)
            raster = np.concatenate([raster, alpha], axis=2)

        self.source = raster
        self.image_name = name
        self.exclusion_zones.clear()
        for reference in self.calibration.values():
            reference.clear()
        self.groups.clear()
        self._owners.clear()
        self.active_group_id = None
        self.selected_shape_id = None
        self.rotation_angle = 0.0
        self.pixels_per_unit = None
        self.report_summary = ""
        self.last_result = None
        self._rotated_cache = None
        self.drag_active = False
        self._touch()
        logger.info(f"Loaded image {name or '<unnamed>'} ({raster.shape[1]}x{raster.shape[0]})")

    def add_images(self, assets: Iterable[ImageAsset]) -> int:
        """Append images to the gallery; loads the first one if none is active."""
        assets = list(assets)
        self.gallery.extend(assets)
        if self.active_image_index < 0 and self.gallery:
            self.select_image(0)
        return len(assets)

    def select_image(self, index: int) -> bool:
        """Activate one gallery image by index."""
        if not 0 <= index < len(self.gallery):
            return False
        asset = self.gallery[index]
        self.load_image(asset.raster, asset.name)
        self.active_image_index = index
        return True

    def next_image(self) -> bool:
        return self.select_image(self.active_image_index + 1)

    def previous_image(self) -> bool:
        return self.select_image(self.active_image_index - 1)

    def working_raster(self) -> np.ndarray | None:
        """Source raster after tray rotation, cached per angle."""
        if self.source is None:
            return None
        if self._rotated_cache is None or self._rotated_cache[0] != self.rotation_angle:
            self._rotated_cache = (
                self.rotation_angle,
                rotate_raster(self.source, self.rotation_angle),
            )
        return self._rotated_cache[1]

    # ------------------------------------------------------------------
    # settings
    # ------------------------------------------------------------------
    def set_threshold(self, value: float) -> None:
        self.threshold = float(value)
        self._touch()

    def set_tab(self, tab: ViewTab) -> None:
        self.active_tab = ViewTab(tab)
        self.selected_shape_id = None
        self._touch()

    def set_mode(self, mode: VisualizationMode) -> None:
        self.mode = VisualizationMode(mode)
        self._touch()

    def set_regression(self, regression: RegressionParams) -> None:
        self.regression = regression
        self._touch()

    def auto_tune_regression(self) -> RegressionParams:
        """Fit the regression to the committed group statistics."""
        tuned = auto_tune((g.stats for g in self.groups.values()), self.regression)
        if tuned != self.regression:
            self.set_regression(tuned)
        return tuned

    def set_rotation(self, angle: float) -> None:
        self.rotation_angle = float(angle)
        self._touch()

    def set_pixels_per_unit(self, value: float | None) -> None:
        self.pixels_per_unit = value
        self._touch()

    def set_calibration_target(self, slot: ReferenceSlot) -> None:
        self.calibration_target = ReferenceSlot(slot)

    def correction(self) -> Correction:
        """Correction derived from the currently sampled reference colors."""
        return derive_correction(
            white=self.calibration[ReferenceSlot.WHITE].color,
            gray=self.calibration[ReferenceSlot.GRAY].color,
            black=self.calibration[ReferenceSlot.BLACK].color,
        )

    # ------------------------------------------------------------------
    # shapes
    # ------------------------------------------------------------------
    def find_shape(self, shape_id: str | None) -> Shape | None:
        hit = self._owners.get(shape_id) if shape_id else None
        return hit.shape if hit else None

    def owner_of(self, shape_id: str) -> HitResult | None:
        return self._owners.get(shape_id)

    @property
    def selected_shape(self) -> Shape | None:
        return self.find_shape(self.selected_shape_id)

    def add_exclusion_zone(self, shape: Shape) -> None:
        self.exclusion_zones[shape.id] = shape
        self._owners[shape.id] = HitResult(shape, ShapeOwner.EXCLUSION)
        self._touch()

    def set_calibration_roi(self, slot: ReferenceSlot, shape: Shape) -> None:
        """Replace one reference slot's ROI; its stale color is discarded."""
        reference = self.calibration[ReferenceSlot(slot)]
        if reference.roi is not None:
            self._owners.pop(reference.roi.id, None)
        reference.roi = shape
        reference.color = None
        self._owners[shape.id] = HitResult(shape, ShapeOwner.CALIBRATION, reference.slot.value)
        self._touch()

    def add_group_shape(self, shape: Shape) -> ROIGroup:
        """Append a shape to the active group, creating one if needed."""
        group = self.groups.get(self.active_group_id) if self.active_group_id else None
        if group is None:
            group = self.add_group()
        group.shapes[shape.id] = shape
        self._owners[shape.id] = HitResult(shape, ShapeOwner.GROUP, group.id)
        self._touch()
        return group

    def register_new_shape(self, shape: Shape) -> bool:
        """Place a freshly drawn shape in the active tab's collection."""
        if self.active_tab == ViewTab.SEGMENTATION:
            self.add_exclusion_zone(shape)
        elif self.active_tab == ViewTab.CALIBRATION:
            self.set_calibration_roi(self.calibration_target, shape)
        elif self.active_tab == ViewTab.ANALYSIS:
            self.add_group_shape(shape)
        else:
            return False
        self.selected_shape_id = shape.id
        return True

    def update_shape(self, shape: Shape) -> bool:
        """Swap in new geometry for an existing shape id."""
        hit = self._owners.get(shape.id)
        if hit is None:
            return False
        if hit.owner == ShapeOwner.EXCLUSION:
            self.exclusion_zones[shape.id] = shape
        elif hit.owner == ShapeOwner.CALIBRATION:
            self.calibration[ReferenceSlot(hit.key)].roi = shape
        else:
            self.groups[hit.key].shapes[shape.id] = shape
        self._owners[shape.id] = HitResult(shape, hit.owner, hit.key)
        self._touch()
        return True

    def delete_shape(self, shape_id: str | None) -> bool:
        """Remove a shape from whichever collection holds it.

        Deleting a calibration ROI also clears that slot's sampled color.
        """
        hit = self._owners.pop(shape_id, None) if shape_id else None
        if hit is None:
            return False
        if hit.owner == ShapeOwner.EXCLUSION:
            self.exclusion_zones.pop(shape_id, None)
        elif hit.owner == ShapeOwner.CALIBRATION:
            self.calibration[ReferenceSlot(hit.key)].clear()
        else:
            self.groups[hit.key].shapes.pop(shape_id, None)
        if self.selected_shape_id == shape_id:
            self.selected_shape_id = None
        self._touch()
        logger.debug(f"Deleted {hit.owner.value} shape {shape_id}")
        return True

    def delete_selected(self) -> bool:
        return self.delete_shape(self.selected_shape_id)

    def iter_tab_shapes(self, tab: ViewTab | None = None) -> Iterator[HitResult]:
        """Yield the tab's shapes in hit-testing priority order.

        Exclusion zones first, then calibration slots black, white, gray,
        then group shapes in group order.
        """
        tab = self.active_tab if tab is None else ViewTab(tab)
        if tab == ViewTab.SEGMENTATION:
            for shape in self.exclusion_zones.values():
                yield self._owners[shape.id]
        elif tab == ViewTab.CALIBRATION:
            for slot in SLOT_PRIORITY:
                roi = self.calibration[slot].roi
                if roi is not None:
                    yield self._owners[roi.id]
        elif tab == ViewTab.ANALYSIS:
            for group in self.groups.values():
                for shape in group.shapes.values():
                    yield self._owners[shape.id]

    def hit_test(self, p: Point) -> HitResult | None:
        """First shape of the active tab containing ``p``."""
        for hit in self.iter_tab_shapes():
            if point_in_shape(p, hit.shape):
                return hit
        return None

    def select_hit(self, hit: HitResult) -> None:
        """Select a hit shape and focus its group or calibration slot."""
        self.selected_shape_id = hit.shape.id
        if hit.owner == ShapeOwner.GROUP:
            self.active_group_id = hit.key
        elif hit.owner == ShapeOwner.CALIBRATION:
            self.calibration_target = ReferenceSlot(hit.key)

    def resample_calibration(self, slot: ReferenceSlot) -> RGB | None:
        """Recompute one slot's reference color from its ROI."""
        reference = self.calibration[ReferenceSlot(slot)]
        raster = self.working_raster()
        if reference.roi is None or raster is None:
            reference.color = None
        else:
            reference.color = sample_reference_color(raster, reference.roi)
        logger.debug(f"Sampled {reference.slot.value} reference: {reference.color}")
        self._touch()
        return reference.color

    # ------------------------------------------------------------------
    # groups
    # ------------------------------------------------------------------
    def add_group(self) -> ROIGroup:
        """Create a new group with the next palette color and activate it."""
        index = len(self.groups)
        group = ROIGroup(
            id=new_shape_id(),
            name=f"Group {index + 1}",
            color=GROUP_PALETTE[index % len(GROUP_PALETTE)],
        )
        self.groups[group.id] = group
        self.active_group_id = group.id
        self._touch()
        return group

    def set_active_group(self, group_id: str | None) -> None:
        if group_id is not None and group_id not in self.groups:
            raise KeyError(f"unknown group: {group_id}")
        self.active_group_id = group_id

    def rename_group(self, group_id: str, name: str) -> None:
        self.groups[group_id].name = name

    def remove_group(self, group_id: str) -> bool:
        group = self.groups.pop(group_id, None)
        if group is None:
            return False
        for shape_id in group.shapes:
            self._owners.pop(shape_id, None)
            if self.selected_shape_id == shape_id:
                self.selected_shape_id = None
        if self.active_group_id == group_id:
            self.active_group_id = None
        self._touch()
        return True

    def named_stats(self) -> list[tuple[str, GroupStats]]:
        return [(g.name, g.stats) for g in self.groups.values()]

    def stats_table(self) -> pd.DataFrame:
        """Committed group statistics as a table."""
        return stats_to_dataframe(self.named_stats())
