"""
Image inspection for a candidate preview image.

  1. Download the bytes (bounded). A failed download or unreadable header
     rejects the candidate and the placeholder card is inspected instead.
  2. Read width / height / format from the header only.
  3. Compute a dominant color from the pixels (bounded, worker thread).
     A failure here falls back to the default color and keeps 1 and 2.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx
import imagesize
import numpy as np
from PIL import Image

from .config import Settings
from .deadline import Deadline
from .fallback import DEFAULT_BACKGROUND_COLOR, default_dimensions
from .results import Failure, StageResult

logger = logging.getLogger(__name__)

COLOR_SAMPLE_SIZE = 64      # longest side after downsampling, px
MIN_ALPHA         = 125     # pixels more transparent than this are ignored
CHANNEL_SHIFT     = 3       # 8-bit channel -> 5-bit bucket

FORMAT_NAMES = {"jpeg": "jpg", "mpo": "jpg", "tiff": "tif"}

SVG_SNIFF_BYTES = 2048
SVG_TAG_RE    = re.compile(rb"<svg\b[^>]*>", re.IGNORECASE)
SVG_WIDTH_RE  = re.compile(rb"""\swidth\s*=\s*["']\s*([\d.]+)\s*(?:px)?\s*["']""", re.IGNORECASE)
SVG_HEIGHT_RE = re.compile(rb"""\sheight\s*=\s*["']\s*([\d.]+)\s*(?:px)?\s*["']""", re.IGNORECASE)
SVG_VIEWBOX_RE = re.compile(
    rb"""viewBox\s*=\s*["']\s*[-\d.]+[\s,]+[-\d.]+[\s,]+([\d.]+)[\s,]+([\d.]+)""",
    re.IGNORECASE,
)


@dataclass
class ImageInfo:
    image_url: str
    dimensions: Dict[str, Any]
    background_color: str
    image_source: str = "open_graph"    # open_graph | placeholder | default
    color_source: str = "extracted"     # extracted | default


# ─── Pure helpers ─────────────────────────────────────────────────────────────


def _svg_size(data: bytes) -> Tuple[int, int]:
    """Size from the root <svg> tag: width/height attributes, else the viewBox."""
    tag = SVG_TAG_RE.search(data[:SVG_SNIFF_BYTES])
    if not tag:
        return -1, -1
    attrs = tag.group(0)
    width, height = SVG_WIDTH_RE.search(attrs), SVG_HEIGHT_RE.search(attrs)
    if width and height:
        return int(float(width.group(1))), int(float(height.group(1)))
    box = SVG_VIEWBOX_RE.search(attrs)
    if box:
        return int(float(box.group(1))), int(float(box.group(2)))
    return -1, -1


def read_dimensions(data: bytes) -> Dict[str, Any]:
    """
    Width, height and format from the image header. Raises on unreadable bytes.

    imagesize reads the size (SVG included); Pillow names raster formats and
    covers sizes imagesize cannot read.
    """
    try:
        width, height = imagesize.get(io.BytesIO(data))
    except Exception:
        width, height = -1, -1

    if b"<svg" in data[:SVG_SNIFF_BYTES].lower():
        fmt = "svg"
        if width < 0 or height < 0:
            width, height = _svg_size(data)
    else:
        with Image.open(io.BytesIO(data)) as img:
            fmt = (img.format or "").lower()
            if width < 0 or height < 0:
                width, height = img.size

    if width < 0 or height < 0:
        raise ValueError(f"no size in {fmt} header")
    return {"width": int(width), "height": int(height), "format": FORMAT_NAMES.get(fmt, fmt)}


def dominant_color(data: bytes, sample_size: int = COLOR_SAMPLE_SIZE) -> str:
    """Most common color bucket of the image, averaged, as ``rgb(r,g,b)``."""
    with Image.open(io.BytesIO(data)) as img:
        # downsample before converting, JPEG decodes at reduced scale via draft()
        img.thumbnail((sample_size, sample_size))
        img = img.convert("RGBA")
        pixels = np.asarray(img, dtype=np.uint8).reshape(-1, 4)

    rgb = pixels[pixels[:, 3] >= MIN_ALPHA][:, :3]
    if rgb.size == 0:
        raise ValueError("image has no opaque pixels")

    buckets = (rgb >> CHANNEL_SHIFT).astype(np.int32)
    bits = 8 - CHANNEL_SHIFT
    keys = (buckets[:, 0] << (2 * bits)) | (buckets[:, 1] << bits) | buckets[:, 2]
    top = np.bincount(keys).argmax()
    r, g, b = (int(round(c)) for c in rgb[keys == top].mean(axis=0))
    return f"rgb({r},{g},{b})"


# ─── Bounded async stages ─────────────────────────────────────────────────────


async def download_image(
    client: httpx.AsyncClient,
    url: str,
    timeout: float,
    max_bytes: int,
    deadline: Optional[Deadline] = None,
) -> StageResult[bytes]:
    """Download image bytes. Only HTTP 200 bodies within ``max_bytes`` are accepted."""
    limit = deadline.clamp(timeout) if deadline else timeout
    try:
        resp = await asyncio.wait_for(client.get(url, timeout=limit), timeout=limit)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        return StageResult.fail(Failure.TIMEOUT, f"timed out after {limit:g}s")
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return StageResult.fail(Failure.NETWORK, f"{type(e).__name__}: {e}")

    if resp.status_code != 200:
        return StageResult.fail(Failure.HTTP_STATUS, f"HTTP {resp.status_code}")

    data = resp.content
    if len(data) > max_bytes:
        return StageResult.fail(Failure.TOO_LARGE, f"{len(data) // 1024}KB over limit")
    if not data:
        return StageResult.fail(Failure.DECODE, "empty body")
    return StageResult.success(data)


async def fetch_dimensions(
    client: httpx.AsyncClient,
    url: str,
    settings: Settings,
    deadline: Optional[Deadline] = None,
) -> StageResult[tuple]:
    """Download ``url`` and read its header. Success value is ``(bytes, dimensions)``."""
    downloaded = await download_image(
        client, url, settings.image_timeout, settings.image_max_bytes, deadline
    )
    if not downloaded.ok:
        return StageResult.fail(downloaded.failure, downloaded.detail)
    try:
        dims = read_dimensions(downloaded.value)
    except Exception as e:
        return StageResult.fail(Failure.DECODE, f"unreadable image header: {e}")
    return StageResult.success((downloaded.value, dims))


async def extract_color(
    data: bytes,
    timeout: float,
    deadline: Optional[Deadline] = None,
) -> StageResult[str]:
    limit = deadline.clamp(timeout) if deadline else timeout
    try:
        color = await asyncio.wait_for(asyncio.to_thread(dominant_color, data), timeout=limit)
    except asyncio.TimeoutError:
        return StageResult.fail(Failure.TIMEOUT, f"color extraction timed out after {limit:g}s")
    except Exception as e:
        return StageResult.fail(Failure.DECODE, str(e))
    return StageResult.success(color)


# ─── Inspector ────────────────────────────────────────────────────────────────


async def inspect_image(
    client: httpx.AsyncClient,
    candidate_url: str,
    placeholder_url: str,
    settings: Settings,
    deadline: Optional[Deadline] = None,
) -> ImageInfo:
    """Always returns a fully populated ImageInfo."""
    image_url = candidate_url
    source = "placeholder" if candidate_url == placeholder_url else "open_graph"

    fetched = await fetch_dimensions(client, image_url, settings, deadline)
    if not fetched.ok and image_url != placeholder_url:
        logger.warning(f"Failed to fetch image {image_url}: {fetched.describe()}")
        image_url, source = placeholder_url, "placeholder"
        fetched = await fetch_dimensions(client, image_url, settings, deadline)

    if not fetched.ok:
        logger.warning(f"Failed to fetch fallback image dimensions: {fetched.describe()}")
        return ImageInfo(
            image_url=placeholder_url,
            dimensions=default_dimensions(),
            background_color=DEFAULT_BACKGROUND_COLOR,
            image_source="default",
            color_source="default",
        )

    data, dims = fetched.value
    color = await extract_color(data, settings.color_timeout, deadline)
    if color.ok:
        return ImageInfo(image_url, dims, color.value, image_source=source)

    logger.warning(f"Failed to get background color for {image_url}: {color.describe()}")
    return ImageInfo(
        image_url, dims, DEFAULT_BACKGROUND_COLOR, image_source=source, color_source="default"
    )
