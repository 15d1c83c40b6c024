"""Narrative summary and report document helpers."""

from __future__ import annotations

from typing import Sequence

from loguru import logger

from src.core.aggregation import GroupStats, RegressionParams
from src.utils.gemini import GeminiClient, GeminiError, text_part

DEFAULT_REPORT_MODEL = "gemini-3-flash-preview"
SUMMARY_FALLBACK = "Error generating summary."
REPORT_TITLE = "# BioPheno Report"


def format_group_line(name: str, stats: GroupStats) -> str:
    return (
        f"Group: {name}, mACI: {stats.mean_maci:.3f}, "
        f"NGRDI: {stats.mean_ngrdi:.3f}, Anthocyanin: {stats.anthocyanin:.2f}"
    )


def build_summary_prompt(
    groups: Sequence[tuple[str, GroupStats]], regression: RegressionParams
) -> str:
    """Compose the results-and-discussion prompt.

    Parameters
    ----------
    groups : Sequence[tuple[str, GroupStats]]
        ``(group name, stats)`` pairs.
    regression : RegressionParams
        Regression used for the anthocyanin estimate.

    Returns
    -------
    str
        Prompt text.
    """
    data_summary = "; ".join(format_group_line(name, stats) for name, stats in groups)
    return (
        "You are a Bioinformatics Scientist writing 'Results and Discussion'. "
        f"Data: {data_summary}. Discuss biological implications of mACI and "
        "NGRDI in lettuce phenotyping. "
        f"y = {regression.slope}x + {regression.intercept}. "
        "Approx 150 words. Plain text."
    )


class NarrativeClient:
    """Generate the report narrative; failures degrade to a fixed text."""

    def __init__(self, client: GeminiClient, model: str = DEFAULT_REPORT_MODEL) -> None:
        self.client = client
        self.model = model

    def summarize(
        self,
        groups: Sequence[tuple[str, GroupStats]],
        regression: RegressionParams,
    ) -> str:
        """Return the summary text or :data:`SUMMARY_FALLBACK`."""
        prompt = build_summary_prompt(groups, regression)
        try:
            text = self.client.generate(self.model, [text_part(prompt)])
        except GeminiError as exc:
            logger.error(f"Report summary failed: {exc}")
            return SUMMARY_FALLBACK
        logger.info("Report summary generated")
        return text.strip() or SUMMARY_FALLBACK


def build_report_markdown(summary: str) -> str:
    """Markdown document archived next to the analyzed image."""
    return f"{REPORT_TITLE}\n{summary}"


def build_methods_text(threshold: float, rotation_angle: float) -> str:
    """Methods paragraph shown in the report view."""
    return (
        "Image analysis was performed using the BioPheno suite. Vegetation "
        f"segmentation utilized ExG with a threshold of {threshold:g}. "
        f"Alignment was normalized at {rotation_angle:.2f}° rotation."
    )
