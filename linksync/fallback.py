"""Placeholder image URL and default values for links that cannot be enriched."""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

from .config import PLACEHOLDER_ENDPOINT

DEFAULT_DIMENSIONS: Dict[str, Any] = {"width": 1200, "height": 630, "format": "png"}
DEFAULT_BACKGROUND_COLOR = "rgb(18,18,18)"

# Dark card with light text, matching DEFAULT_BACKGROUND_COLOR
_PLACEHOLDER_STYLE = (
    ("fontSize", "14"),
    ("backgroundColor", "#121212"),
    ("title", None),
    ("fontSizeTwo", "8"),
    ("color", "#efefef"),
)


def placeholder_image_url(
    link: Optional[str],
    title: Optional[str],
    endpoint: str = PLACEHOLDER_ENDPOINT,
) -> str:
    """Deterministic generated-card URL for a link. Falls back to the link as card text."""
    text = (title or "").strip() or (link or "")
    params = [(key, text if value is None else value) for key, value in _PLACEHOLDER_STYLE]
    return f"{endpoint}?{urlencode(params, quote_via=quote)}"


def default_dimensions() -> Dict[str, Any]:
    return dict(DEFAULT_DIMENSIONS)
