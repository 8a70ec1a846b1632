"""
Open Graph metadata for a link.

Fetches the page once (no retries) and reads its ``og:*`` meta tags.
Image entries follow the structured-property rules: ``og:image`` opens a new
entry and ``og:image:secure_url`` / ``:width`` / ``:height`` / ``:type``
describe the most recent one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from .deadline import Deadline
from .results import Failure, StageResult

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


@dataclass
class OpenGraphImage:
    url: Optional[str] = None
    secure_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    type: Optional[str] = None

    @property
    def best_url(self) -> Optional[str]:
        return self.secure_url or self.url


@dataclass
class OpenGraph:
    title: Optional[str] = None
    images: List[OpenGraphImage] = field(default_factory=list)

    def first_image_url(self) -> Optional[str]:
        if not self.images:
            return None
        return self.images[0].best_url


# ─── HTML parsing ─────────────────────────────────────────────────────────────


def _to_int(value: str) -> Optional[int]:
    try:
        return int(float(value))
    except ValueError:
        return None


def parse_open_graph(html: str, base_url: str) -> OpenGraph:
    """Read og:title and og:image entries from a page. Image URLs are made absolute."""
    soup = BeautifulSoup(html, "html.parser")
    og = OpenGraph()

    for meta in soup.find_all("meta"):
        prop = (meta.get("property") or meta.get("name") or "").strip().lower()
        content = (meta.get("content") or "").strip()
        if not prop.startswith("og:") or not content:
            continue

        if prop == "og:title":
            og.title = og.title or content
        elif prop == "og:image" or (prop == "og:image:url" and (not og.images or og.images[-1].url)):
            og.images.append(OpenGraphImage(url=urljoin(base_url, content)))
        elif prop == "og:image:url":
            og.images[-1].url = urljoin(base_url, content)
        elif prop.startswith("og:image:"):
            if not og.images:
                og.images.append(OpenGraphImage())
            current = og.images[-1]
            attr = prop[len("og:image:"):]
            if attr == "secure_url":
                current.secure_url = urljoin(base_url, content)
            elif attr in ("width", "height"):
                setattr(current, attr, _to_int(content))
            elif attr == "type":
                current.type = content

    # secure_url without any og:image still counts, an entry with neither does not
    og.images = [img for img in og.images if img.best_url]

    if og.title is None and soup.title and soup.title.string:
        og.title = soup.title.string.strip() or None

    return og


# ─── Fetch ────────────────────────────────────────────────────────────────────


async def fetch_open_graph(
    client: httpx.AsyncClient,
    link: str,
    timeout: float,
    deadline: Optional[Deadline] = None,
) -> StageResult[OpenGraph]:
    """Fetch a page and parse its Open Graph tags. A single attempt, bounded by ``timeout``."""
    if not link:
        return StageResult.fail(Failure.MALFORMED, "record has no link")

    limit = deadline.clamp(timeout) if deadline else timeout
    try:
        resp = await asyncio.wait_for(client.get(link, timeout=limit), timeout=limit)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        return StageResult.fail(Failure.TIMEOUT, f"unfurl for {link} timed out after {limit:g}s")
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return StageResult.fail(Failure.NETWORK, f"{type(e).__name__}: {e}")

    if resp.status_code >= 400:
        return StageResult.fail(Failure.HTTP_STATUS, f"HTTP {resp.status_code} for {link}")

    ct = resp.headers.get("content-type", "").split(";")[0].strip().lower()
    if ct and ct not in HTML_CONTENT_TYPES:
        logger.debug(f"Not an HTML page ({ct}): {link}")
        return StageResult.success(OpenGraph())

    try:
        og = parse_open_graph(resp.text, str(resp.url))
    except Exception as e:
        return StageResult.fail(Failure.MALFORMED, f"could not parse {link}: {e}")

    logger.debug(f"  {link}: title={og.title!r}, {len(og.images)} og:image entries")
    return StageResult.success(og)
