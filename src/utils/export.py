"""Archival export of report artifacts.

An export consists of ``report.md`` and ``analyzed.png``. They can be written
to a local folder or pushed to a GitHub repository through the contents API.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
import numpy as np
import requests

from src.utils.image_io import encode_png
from src.utils.report import build_report_markdown

REPORT_FILENAME = "report.md"
IMAGE_FILENAME = "analyzed.png"
DEFAULT_REMOTE_PATH = "biopheno-results"
GITHUB_API_URL = "https://api.github.com"


class ExportError(Exception):
    """Raised when artifacts cannot be written or uploaded."""


@dataclass(frozen=True)
class ExportArtifacts:
    """Encoded report document and rendered image."""

    report_md: bytes
    image_png: bytes | None


def build_export_artifacts(summary: str, rendered: np.ndarray | None) -> ExportArtifacts:
    """Encode the report text and the rendered buffer."""
    image_png = encode_png(rendered) if rendered is not None else None
    return ExportArtifacts(
        report_md=build_report_markdown(summary).encode("utf-8"),
        image_png=image_png,
    )


def export_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp safe for use as a path segment.

    Examples
    --------
    >>> export_timestamp(datetime(2024, 5, 1, 12, 30, 15, 250000, tzinfo=timezone.utc))
    '2024-05-01T12-30-15-250Z'
    """
    now = now or datetime.now(timezone.utc)
    text = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    text = text.replace("+00:00", "Z")
    return text.replace(":", "-").replace(".", "-")


def write_artifacts(directory: str | Path, artifacts: ExportArtifacts) -> list[Path]:
    """Write artifacts into ``directory``; returns the written paths."""
    directory = Path(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        written = [directory / REPORT_FILENAME]
        written[0].write_bytes(artifacts.report_md)
        if artifacts.image_png is not None:
            image_path = directory / IMAGE_FILENAME
            image_path.write_bytes(artifacts.image_png)
            written.append(image_path)
    except OSError as exc:
        raise ExportError(f"cannot write export to {directory}: {exc}") from exc
    logger.info(f"Exported report to {directory}")
    return written


@dataclass
class GitHubTarget:
    """Destination repository for uploads."""

    owner: str
    repo: str
    token: str
    path: str = DEFAULT_REMOTE_PATH

    @property
    def is_complete(self) -> bool:
        return bool(self.owner and self.repo and self.token)


class GitHubUploader:
    """Upload export artifacts with the GitHub contents API.

    Parameters
    ----------
    target : GitHubTarget
        Repository coordinates and token.
    timeout : float
        Request timeout in seconds.
    session : requests.Session, optional
        Injected HTTP session.
    """

    def __init__(
        self,
        target: GitHubTarget,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.target = target
        self.timeout = timeout
        self._session = session or requests.Session()

    def _put(self, remote_path: str, content: bytes, message: str) -> None:
        url = (
            f"{GITHUB_API_URL}/repos/{self.target.owner}/{self.target.repo}"
            f"/contents/{remote_path}"
        )
        try:
            response = self._session.put(
                url,
                json={
                    "message": message,
                    "content": base64.b64encode(content).decode("ascii"),
                },
                headers={"Authorization": f"token {self.target.token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ExportError(f"upload of {remote_path} failed: {exc}") from exc
        if not response.ok:
            raise ExportError(
                f"upload of {remote_path} failed: HTTP {response.status_code} {response.text}"
            )

    def upload(self, artifacts: ExportArtifacts, timestamp: str | None = None) -> str:
        """Upload the report and image under ``{path}/{timestamp}/``.

        Returns
        -------
        str
            Remote folder the artifacts were written to.

        Raises
        ------
        ExportError
            Raised when the target is incomplete or a request fails.
        """
        if not self.target.is_complete:
            raise ExportError("GitHub owner, repo and token are required")
        base_path = f"{self.target.path.strip('/')}/{timestamp or export_timestamp()}"
        self._put(f"{base_path}/{REPORT_FILENAME}", artifacts.report_md, "Add Report")
        if artifacts.image_png is not None:
            self._put(f"{base_path}/{IMAGE_FILENAME}", artifacts.image_png, "Add Image")
        logger.info(f"Uploaded report to {self.target.owner}/{self.target.repo}:{base_path}")
        return base_path
