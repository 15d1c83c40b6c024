"""Image decode/encode helpers backed by rasterio in-memory datasets.

Rasters handed to the analysis session are always ``H x W x 4`` uint8 RGBA.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable
from urllib.parse import unquote, urlsplit
import warnings
import zipfile

from loguru import logger
import numpy as np
from rasterio.errors import NotGeoreferencedWarning, RasterioError
from rasterio.io import MemoryFile
import requests

from src.core.session import ImageAsset

IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png")
ARCHIVE_SUFFIX = ".zip"

DEMO_IMAGE_NAME = "test.JPG"
DEMO_IMAGE_URL = (
    "https://raw.githubusercontent.com/ISU-Research/Hydra1-Orbital-Greenhouse/"
    "master/Raw%20images/2018-05-27%2010-00-01.jpg"
)


class ImageLoadError(Exception):
    """Raised when an image cannot be decoded."""


def _to_rgba(bands: np.ndarray) -> np.ndarray:
    """Convert a ``(count, H, W)`` band stack into ``H x W x 4`` uint8."""
    if bands.dtype != np.uint8:
        if np.issubdtype(bands.dtype, np.integer) and bands.max(initial=0) > 255:
            bands = (bands >> 8).astype(np.uint8)
        else:
            bands = np.clip(bands, 0, 255).astype(np.uint8)
    count, height, width = bands.shape
    if count == 1:
        rgb = np.repeat(bands, 3, axis=0)
        alpha = np.full((1, height, width), 255, dtype=np.uint8)
    elif count == 2:
        rgb = np.repeat(bands[:1], 3, axis=0)
        alpha = bands[1:2]
    elif count == 3:
        rgb = bands
        alpha = np.full((1, height, width), 255, dtype=np.uint8)
    else:
        rgb = bands[:3]
        alpha = bands[3:4]
    return np.transpose(np.concatenate([rgb, alpha], axis=0), (1, 2, 0)).copy()


def load_image_bytes(data: bytes, name: str = "") -> np.ndarray:
    """Decode PNG/JPEG bytes into an RGBA raster.

    Parameters
    ----------
    data : bytes
        Encoded image.
    name : str
        Name used in log and error messages.

    Returns
    -------
    numpy.ndarray
        ``H x W x 4`` uint8 array.

    Raises
    ------
    ImageLoadError
        Raised when the bytes cannot be decoded.
    """
    if not data:
        raise ImageLoadError(f"empty image data: {name or '<bytes>'}")
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", NotGeoreferencedWarning)
            with MemoryFile(data) as memfile:
                with memfile.open() as dataset:
                    bands = dataset.read()
    except RasterioError as exc:
        raise ImageLoadError(f"cannot decode image {name or '<bytes>'}: {exc}") from exc
    return _to_rgba(bands)


def load_image(path: str | Path) -> np.ndarray:
    """Decode an image file into an RGBA raster."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ImageLoadError(f"cannot read {path}: {exc}") from exc
    return load_image_bytes(data, path.name)


def image_name_from_url(url: str) -> str:
    """Last path segment of ``url``, percent-decoded."""
    segment = urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]
    return unquote(segment) or "image"


def load_image_url(
    url: str,
    session: requests.Session | None = None,
    timeout: float = 30.0,
) -> ImageAsset:
    """Download and decode one remote image.

    Parameters
    ----------
    url : str
        HTTP(S) address of a JPEG or PNG image.
    session : requests.Session, optional
        Session used for the request; a new one is created when omitted.
    timeout : float
        Request timeout in seconds.

    Returns
    -------
    ImageAsset
        Decoded image named after the last URL path segment.

    Raises
    ------
    ImageLoadError
        Raised when the download fails or the payload cannot be decoded.
    """
    http = session or requests.Session()
    name = image_name_from_url(url)
    try:
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise ImageLoadError(f"cannot fetch {url}: {exc}") from exc
    raster = load_image_bytes(response.content, name)
    logger.info(f"Downloaded {name} ({raster.shape[1]}x{raster.shape[0]})")
    return ImageAsset(name=name, raster=raster)


def is_image_name(name: str) -> bool:
    return name.lower().endswith(IMAGE_SUFFIXES)


def load_archive(path: str | Path) -> list[ImageAsset]:
    """Decode every JPEG/PNG entry of a zip archive.

    Directories and entries with other extensions are skipped; entries that
    fail to decode are logged and skipped.

    Parameters
    ----------
    path : str | Path
        Zip file path.

    Returns
    -------
    list[ImageAsset]
        Decoded images named by their archive path, in archive order.

    Raises
    ------
    ImageLoadError
        Raised when the archive itself cannot be opened.
    """
    assets: list[ImageAsset] = []
    try:
        archive = zipfile.ZipFile(path)
    except (OSError, zipfile.BadZipFile) as exc:
        raise ImageLoadError(f"cannot open archive {path}: {exc}") from exc
    with archive:
        for info in archive.infolist():
            if info.is_dir() or not is_image_name(info.filename):
                continue
            try:
                raster = load_image_bytes(archive.read(info), info.filename)
            except ImageLoadError as exc:
                logger.warning(str(exc))
                continue
            assets.append(ImageAsset(name=info.filename, raster=raster))
    logger.info(f"Loaded {len(assets)} images from {Path(path).name}")
    return assets


def collect_images(paths: Iterable[str | Path]) -> list[ImageAsset]:
    """Load a mix of image files and zip archives.

    Files that fail to decode are logged and skipped so one bad file does not
    abort a batch.
    """
    assets: list[ImageAsset] = []
    for path in paths:
        path = Path(path)
        try:
            if path.suffix.lower() == ARCHIVE_SUFFIX:
                assets.extend(load_archive(path))
            elif is_image_name(path.name):
                assets.append(ImageAsset(name=path.name, raster=load_image(path)))
            else:
                logger.warning(f"Unsupported file type skipped: {path.name}")
        except ImageLoadError as exc:
            logger.error(str(exc))
    return assets


def _encode(raster: np.ndarray, driver: str, count: int, **options) -> bytes:
    height, width = raster.shape[:2]
    bands = np.transpose(raster[..., :count], (2, 0, 1))
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NotGeoreferencedWarning)
        with MemoryFile() as memfile:
            with memfile.open(
                driver=driver,
                width=width,
                height=height,
                count=count,
                dtype="uint8",
                **options,
            ) as dataset:
                dataset.write(bands)
            return memfile.read()


def encode_png(raster: np.ndarray) -> bytes:
    """Encode an RGB or RGBA raster as RGBA PNG bytes."""
    raster = np.asarray(raster, dtype=np.uint8)
    if raster.shape[-1] == 3:
        alpha = np.full(raster.shape[:2] + (1,), 255, dtype=np.uint8)
        raster = np.concatenate([raster, alpha], axis=2)
    return _encode(np.ascontiguousarray(raster), "PNG", count=4)


def encode_jpeg(raster: np.ndarray, quality: int = 80) -> bytes:
    """Encode the RGB channels of a raster as JPEG bytes."""
    return _encode(
        np.ascontiguousarray(raster, dtype=np.uint8), "JPEG", count=3, quality=quality
    )
