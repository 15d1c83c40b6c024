"""Utility package exports for BioPheno."""

from src.utils.export import (
    ExportArtifacts,
    ExportError,
    GitHubTarget,
    GitHubUploader,
    build_export_artifacts,
    write_artifacts,
)
from src.utils.gemini import GeminiClient, GeminiError
from src.utils.image_io import ImageLoadError, collect_images, load_image, load_image_url
from src.utils.marker import MarkerDetector, marker_angle, marker_scale
from src.utils.report import NarrativeClient, build_report_markdown

__all__ = [
    "ExportArtifacts",
    "ExportError",
    "GeminiClient",
    "GeminiError",
    "GitHubTarget",
    "GitHubUploader",
    "ImageLoadError",
    "MarkerDetector",
    "NarrativeClient",
    "build_export_artifacts",
    "build_report_markdown",
    "collect_images",
    "load_image",
    "load_image_url",
    "marker_angle",
    "marker_scale",
    "write_artifacts",
]
