"""
Link sync: enrich data/links.json with Open Graph images, dimensions,
background colors and first-seen timestamps.

Records enriched in the last 24 hours are skipped unless --force-all is given.
Tuning (paths, timeouts, concurrency) comes from the environment or .env,
see linksync/config.py.

Usage:
    python -m linksync                 # normal mode, skips recent items
    python -m linksync --force-all     # reprocess every link
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import config
from .config import Settings
from .deadline import BatchTimeoutError
from .orchestrator import sync_links
from .store import StoreError

logger = logging.getLogger("linksync")


# ─── Logging ─────────────────────────────────────────────────────────────────


def setup_logging(level: str = config.LOG_LEVEL, log_file: Optional[str] = config.LOG_FILE) -> logging.Logger:
    logger.setLevel(logging.DEBUG)
    if logger.handlers:
        return logger

    fmt = logging.Formatter(
        "%(asctime)s %(levelname)-8s %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        logger.addHandler(fh)
    return logger


# ─── CLI ─────────────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="link-sync",
        description="Enrich a JSON list of links with Open Graph preview metadata",
    )
    parser.add_argument(
        "--force-all", action="store_true",
        help="Process every link, including ones enriched in the last 24 hours",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        asyncio.run(sync_links(Settings(), force_all=args.force_all))
    except (StoreError, BatchTimeoutError) as e:
        logger.error(f"❌ Link preparation failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"❌ Link preparation failed: {e}")
        logger.debug("Full error details:", exc_info=True)
        return 1

    logger.info("✅ Link preparation completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
