"""
Shared configuration for the link sync run.
Defaults live here; a .env file or the process environment overrides them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# ─── Paths ────────────────────────────────────────────────────────────────────

LINKS_FILE  = Path(os.getenv("LINKS_FILE", "data/links.json"))
LOG_FILE    = os.getenv("LOG_FILE", "").strip() or None
REPORT_FILE = os.getenv("SYNC_REPORT_FILE", "").strip() or None
LOG_LEVEL   = os.getenv("LOG_LEVEL", "INFO").upper()

# ─── Tuning constants ─────────────────────────────────────────────────────────

UNFURL_TIMEOUT      = float(os.getenv("UNFURL_TIMEOUT", 30))      # page fetch + Open Graph parse
IMAGE_TIMEOUT       = float(os.getenv("IMAGE_TIMEOUT", 10))       # one image download
COLOR_TIMEOUT       = float(os.getenv("COLOR_TIMEOUT", 15))       # dominant color extraction
MAX_RUNTIME         = float(os.getenv("MAX_RUNTIME", 5 * 60 * 60))  # whole batch, 1h under the CI limit
CONCURRENCY         = int(os.getenv("CONCURRENCY", 3))
REFRESH_AFTER_HOURS = float(os.getenv("REFRESH_AFTER_HOURS", 24))
PROGRESS_EVERY      = int(os.getenv("PROGRESS_EVERY", 10))
IMAGE_MAX_BYTES     = int(os.getenv("IMAGE_MAX_BYTES", 15 * 1024 * 1024))

PLACEHOLDER_ENDPOINT = os.getenv(
    "PLACEHOLDER_ENDPOINT", "https://og.barelyhuman.xyz/generate"
).rstrip("?")
USER_AGENT = os.getenv(
    "USER_AGENT", "Mozilla/5.0 (compatible; LinkSyncBot/1.0; +https://github.com/)"
)


@dataclass(frozen=True)
class Settings:
    """Limits and locations for one run. Defaults mirror the module constants."""

    links_file: Path = LINKS_FILE
    report_file: Optional[Path] = Path(REPORT_FILE) if REPORT_FILE else None
    unfurl_timeout: float = UNFURL_TIMEOUT
    image_timeout: float = IMAGE_TIMEOUT
    color_timeout: float = COLOR_TIMEOUT
    max_runtime: float = MAX_RUNTIME
    concurrency: int = CONCURRENCY
    refresh_after_hours: float = REFRESH_AFTER_HOURS
    progress_every: int = PROGRESS_EVERY
    image_max_bytes: int = IMAGE_MAX_BYTES
    placeholder_endpoint: str = PLACEHOLDER_ENDPOINT
    user_agent: str = USER_AGENT
