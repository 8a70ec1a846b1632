"""Per-link enrichment: Open Graph lookup, then image inspection. Never raises."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from .config import Settings
from .deadline import Deadline
from .fallback import DEFAULT_BACKGROUND_COLOR, default_dimensions, placeholder_image_url
from .images import inspect_image
from .metadata import fetch_open_graph

logger = logging.getLogger(__name__)


@dataclass
class EnrichResult:
    record: Dict[str, Any]
    image_source: str = "open_graph"    # open_graph | placeholder | default
    color_source: str = "extracted"     # extracted | default
    error: Optional[str] = None

    @property
    def link(self) -> Optional[str]:
        return self.record.get("link")


def utc_now_iso() -> str:
    """Current UTC time in the ``2024-01-31T09:30:00.000Z`` shape."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def fallback_record(item: Dict[str, Any], settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Copy of ``item`` with every enrichment field set to its default. Keeps addedOn."""
    settings = settings or Settings()
    record = dict(item)
    record["imageURL"] = placeholder_image_url(
        item.get("link"), item.get("title"), settings.placeholder_endpoint
    )
    record["dimensions"] = default_dimensions()
    record["backgroundColor"] = DEFAULT_BACKGROUND_COLOR
    record["addedOn"] = item.get("addedOn") or utc_now_iso()
    return record


async def enrich_item(
    client: httpx.AsyncClient,
    item: Dict[str, Any],
    settings: Settings,
    deadline: Optional[Deadline] = None,
) -> EnrichResult:
    """
    Enrich one link record.

    Returns a new dict; ``item`` itself is not modified and ``link`` is copied
    through unchanged so the batch can merge results back by link.
    """
    link = item.get("link")
    placeholder = placeholder_image_url(link, item.get("title"), settings.placeholder_endpoint)

    try:
        page = await fetch_open_graph(client, link, settings.unfurl_timeout, deadline)
        if not page.ok:
            logger.warning(f"Error processing {link}: {page.describe()}")
            return EnrichResult(
                fallback_record(item, settings),
                image_source="default",
                color_source="default",
                error=page.describe(),
            )

        candidate = page.value.first_image_url() or placeholder
        image = await inspect_image(client, candidate, placeholder, settings, deadline)

        record = dict(item)
        record["dimensions"] = image.dimensions
        record["imageURL"] = image.image_url
        record["addedOn"] = item.get("addedOn") or utc_now_iso()
        record["backgroundColor"] = image.background_color
        return EnrichResult(record, image.image_source, image.color_source)

    except Exception as e:
        logger.error(f"Error processing {link}: {type(e).__name__}: {e}")
        return EnrichResult(
            fallback_record(item, settings),
            image_source="default",
            color_source="default",
            error=f"{type(e).__name__}: {e}",
        )
