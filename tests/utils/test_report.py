"""Tests for report narrative and document helpers."""

from __future__ import annotations

from src.core.aggregation import GroupStats, RegressionParams
from src.utils.gemini import GeminiError
from src.utils.report import (
    SUMMARY_FALLBACK,
    NarrativeClient,
    build_methods_text,
    build_report_markdown,
    build_summary_prompt,
)


class _FakeClient:
    def __init__(self, text: str = "", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    def generate(self, model, parts, generation_config=None):
        self.prompts.append(parts[0]["text"])
        if self.error is not None:
            raise self.error
        return self.text


def _groups() -> list[tuple[str, GroupStats]]:
    return [
        ("Control", GroupStats(pixel_count=10, mean_maci=0.25, mean_ngrdi=0.1, anthocyanin=0.6)),
        ("Stress", GroupStats(pixel_count=4, mean_maci=0.5, mean_ngrdi=-0.05, anthocyanin=0.95)),
    ]


def test_summary_prompt_lists_groups_and_regression() -> None:
    """Prompt should carry per-group means and the regression line."""
    prompt = build_summary_prompt(_groups(), RegressionParams(slope=2.0, intercept=0.1))
    assert "Group: Control, mACI: 0.250, NGRDI: 0.100, Anthocyanin: 0.60" in prompt
    assert "Group: Stress, mACI: 0.500, NGRDI: -0.050, Anthocyanin: 0.95" in prompt
    assert "y = 2.0x + 0.1" in prompt


def test_narrative_returns_stripped_text() -> None:
    """A successful call returns the generated text."""
    client = _FakeClient("  Lettuce under stress accumulated anthocyanin.\n")
    summary = NarrativeClient(client).summarize(_groups(), RegressionParams())
    assert summary == "Lettuce under stress accumulated anthocyanin."
    assert "Control" in client.prompts[0]


def test_narrative_falls_back_on_failure_or_empty_text() -> None:
    """Service errors and blank replies degrade to the fallback text."""
    failing = NarrativeClient(_FakeClient(error=GeminiError("quota")))
    assert failing.summarize(_groups(), RegressionParams()) == SUMMARY_FALLBACK
    blank = NarrativeClient(_FakeClient("   "))
    assert blank.summarize(_groups(), RegressionParams()) == SUMMARY_FALLBACK


def test_report_markdown_has_title() -> None:
    """Report document starts with the title line."""
    assert build_report_markdown("Body text") == "# BioPheno Report\nBody text"


def test_methods_text_mentions_threshold_and_rotation() -> None:
    """Methods paragraph reports threshold and rotation."""
    text = build_methods_text(20.0, -3.14159)
    assert "threshold of 20" in text
    assert "-3.14° rotation" in text
