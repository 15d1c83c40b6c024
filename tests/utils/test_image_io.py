"""Tests for rasterio-backed image decode/encode helpers."""

from __future__ import annotations

import zipfile

import numpy as np
import pytest
import requests

from src.utils.image_io import (
    DEMO_IMAGE_NAME,
    DEMO_IMAGE_URL,
    ImageLoadError,
    _to_rgba,
    collect_images,
    encode_jpeg,
    encode_png,
    is_image_name,
    load_archive,
    load_image,
    image_name_from_url,
    load_image_bytes,
    load_image_url,
)


def _sample() -> np.ndarray:
    raster = np.zeros((6, 8, 3), dtype=np.uint8)
    raster[..., 1] = np.arange(8, dtype=np.uint8) * 20
    raster[2:4, 2:4] = [200, 10, 30]
    return raster


def test_png_bytes_decode_to_rgba() -> None:
    """PNG encoding is lossless and decoding yields opaque RGBA."""
    raster = _sample()
    decoded = load_image_bytes(encode_png(raster), "sample.png")
    assert decoded.shape == (6, 8, 4)
    assert decoded.dtype == np.uint8
    np.testing.assert_array_equal(decoded[..., :3], raster)
    assert (decoded[..., 3] == 255).all()


def test_jpeg_encode_keeps_size() -> None:
    """JPEG bytes should decode back to the same dimensions."""
    decoded = load_image_bytes(encode_jpeg(_sample()), "sample.jpg")
    assert decoded.shape == (6, 8, 4)


def test_load_image_from_path(tmp_path) -> None:
    """Images on disk should decode through the same path."""
    path = tmp_path / "tray.png"
    path.write_bytes(encode_png(_sample()))
    assert load_image(path).shape == (6, 8, 4)
    with pytest.raises(ImageLoadError):
        load_image(tmp_path / "missing.png")


def test_invalid_bytes_raise_image_load_error() -> None:
    """Undecodable data should raise ImageLoadError."""
    with pytest.raises(ImageLoadError):
        load_image_bytes(b"", "empty.png")
    with pytest.raises(ImageLoadError):
        load_image_bytes(b"not an image at all", "broken.png")


def test_to_rgba_expands_gray_and_keeps_alpha() -> None:
    """Single-band and RGBA band stacks should map to RGBA."""
    gray = _to_rgba(np.full((1, 2, 2), 7, dtype=np.uint8))
    np.testing.assert_array_equal(gray[0, 0], [7, 7, 7, 255])
    bands = np.zeros((4, 2, 2), dtype=np.uint8)
    bands[3] = 128
    assert (_to_rgba(bands)[..., 3] == 128).all()


def test_is_image_name_case_insensitive() -> None:
    """Image detection should ignore extension case."""
    assert is_image_name("A.JPG")
    assert is_image_name("b.jpeg")
    assert is_image_name("c.Png")
    assert not is_image_name("notes.txt")


def test_load_archive_filters_entries(tmp_path) -> None:
    """Only decodable image entries of a zip should be loaded."""
    archive_path = tmp_path / "batch.zip"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr("plates/", "")
        archive.writestr("plates/a.png", encode_png(_sample()))
        archive.writestr("plates/readme.txt", "ignore me")
        archive.writestr("plates/broken.jpg", b"garbage")
        archive.writestr("b.PNG", encode_png(_sample()))

    assets = load_archive(archive_path)
    assert [asset.name for asset in assets] == ["plates/a.png", "b.PNG"]
    assert assets[0].raster.shape == (6, 8, 4)


def test_load_archive_rejects_non_zip(tmp_path) -> None:
    """A file that is not a zip should raise ImageLoadError."""
    path = tmp_path / "fake.zip"
    path.write_bytes(b"nope")
    with pytest.raises(ImageLoadError):
        load_archive(path)


def test_collect_images_mixes_files_and_archives(tmp_path) -> None:
    """Batches may combine images and zips; bad files are skipped."""
    image_path = tmp_path / "single.png"
    image_path.write_bytes(encode_png(_sample()))
    archive_path = tmp_path / "more.zip"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr("inner.png", encode_png(_sample()))
    broken = tmp_path / "broken.jpg"
    broken.write_bytes(b"garbage")
    other = tmp_path / "table.csv"
    other.write_text("a,b\n")

    assets = collect_images([image_path, broken, archive_path, other])
    assert [asset.name for asset in assets] == ["single.png", "inner.png"]


class _FakeResponse:
    def __init__(self, content: bytes = b"", status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class _FakeSession:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    def get(self, url, timeout=None):
        self.calls.append({"url": url, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def test_image_name_from_url_is_percent_decoded() -> None:
    """Remote images are named by their decoded last path segment."""
    assert image_name_from_url(DEMO_IMAGE_URL) == "2018-05-27 10-00-01.jpg"
    assert image_name_from_url("https://example.org/a/tray.png?raw=1") == "tray.png"
    assert image_name_from_url("https://example.org/") == "image"


def test_load_image_url_decodes_download() -> None:
    """Downloaded PNG bytes become a named RGBA asset."""
    session = _FakeSession(_FakeResponse(encode_png(_sample())))

    asset = load_image_url("https://example.org/trays/tray%201.png", session=session, timeout=5.0)

    assert asset.name == "tray 1.png"
    assert asset.raster.shape == (6, 8, 4)
    np.testing.assert_array_equal(asset.raster[..., :3], _sample())
    assert session.calls == [{"url": "https://example.org/trays/tray%201.png", "timeout": 5.0}]


def test_load_image_url_http_error() -> None:
    """HTTP errors surface as ImageLoadError."""
    session = _FakeSession(_FakeResponse(status_code=404))
    with pytest.raises(ImageLoadError, match="cannot fetch"):
        load_image_url("https://example.org/missing.jpg", session=session)


def test_load_image_url_connection_error() -> None:
    """Transport failures surface as ImageLoadError."""
    session = _FakeSession(error=requests.ConnectionError("offline"))
    with pytest.raises(ImageLoadError, match="offline"):
        load_image_url(DEMO_IMAGE_URL, session=session)


def test_load_image_url_rejects_non_image_payload() -> None:
    """An HTML error page served with status 200 is not decoded."""
    session = _FakeSession(_FakeResponse(b"<html>rate limited</html>"))
    with pytest.raises(ImageLoadError):
        load_image_url("https://example.org/tray.jpg", session=session)


def test_demo_image_is_a_jpeg() -> None:
    assert is_image_name(DEMO_IMAGE_NAME)
    assert DEMO_IMAGE_URL.startswith("https://")
