"""
Batch run over the links dataset.

  load → dedupe by link → select stale records → enrich (bounded concurrency,
  overall deadline) → merge back by link → save

Usage:
    from linksync.orchestrator import sync_links
    summary = asyncio.run(sync_links(Settings(), force_all=False))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pandas as pd
from tqdm import tqdm

from .config import Settings
from .deadline import BatchTimeoutError, Deadline
from .enricher import EnrichResult, enrich_item, fallback_record
from .report import write_report
from .store import load_links, save_links

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    total: int = 0
    unique: int = 0
    processed: int = 0
    skipped: int = 0
    fallbacks: int = 0
    errors: int = 0
    elapsed: float = 0.0
    written: bool = False


# ─── Dedupe / select ──────────────────────────────────────────────────────────


def dedupe_links(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """One record per link, first occurrence wins, input order kept."""
    links = pd.Series([r.get("link") for r in records], dtype=object)
    dupes = links.duplicated(keep="first")
    return [r for r, dup in zip(records, dupes) if not dup]


def parse_timestamp(value: str) -> Optional[datetime]:
    try:
        ts = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def needs_refresh(
    record: Dict[str, Any],
    force_all: bool,
    now: datetime,
    refresh_after: timedelta,
) -> bool:
    """Selection predicate for both modes: force, or never enriched, or enriched too long ago."""
    if force_all:
        return True
    added_on = record.get("addedOn")
    if not added_on:
        return True
    ts = parse_timestamp(added_on)
    if ts is None:
        logger.warning(f"Unreadable addedOn {added_on!r} for {record.get('link')}, reprocessing")
        return True
    return ts < now - refresh_after


def select_for_processing(
    records: List[Dict[str, Any]],
    force_all: bool = False,
    now: Optional[datetime] = None,
    refresh_after: timedelta = timedelta(hours=24),
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Split into (to_process, skipped)."""
    now = now or datetime.now(timezone.utc)
    to_process: List[Dict[str, Any]] = []
    skipped: List[Dict[str, Any]] = []
    for record in records:
        if needs_refresh(record, force_all, now, refresh_after):
            to_process.append(record)
        else:
            logger.debug(f"Skipping recently processed item: {record.get('title')}")
            skipped.append(record)
    return to_process, skipped


# ─── Enrich ───────────────────────────────────────────────────────────────────


def build_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.unfurl_timeout, connect=10),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    )


async def enrich_batch(
    client: httpx.AsyncClient,
    items: List[Dict[str, Any]],
    settings: Settings,
    deadline: Deadline,
) -> List[EnrichResult]:
    """
    Enrich ``items`` with at most ``settings.concurrency`` in flight.

    Raises BatchTimeoutError when the deadline passes first; unfinished
    items are abandoned.
    """
    semaphore = asyncio.Semaphore(settings.concurrency)
    total = len(items)
    done = 0

    with tqdm(total=total, desc="Enriching links", disable=None) as pbar:

        async def _process(index: int, item: Dict[str, Any]) -> EnrichResult:
            nonlocal done
            async with semaphore:
                deadline.check("entire link processing")
                logger.info(f"Processing {index + 1}/{total}: {item.get('title')} - {item.get('link')}")
                try:
                    result = await enrich_item(client, item, settings, deadline)
                except Exception as e:
                    logger.error(f"Failed to process item {index + 1}: {type(e).__name__}: {e}")
                    result = EnrichResult(
                        fallback_record(item, settings),
                        image_source="default",
                        color_source="default",
                        error=f"{type(e).__name__}: {e}",
                    )

            done += 1
            pbar.update(1)
            if settings.progress_every and done % settings.progress_every == 0:
                logger.info(f"Progress: {done}/{total} items processed ({done / total * 100:.1f}%)")
            return result

        tasks = [asyncio.ensure_future(_process(i, item)) for i, item in enumerate(items)]
        try:
            return await asyncio.wait_for(asyncio.gather(*tasks), timeout=deadline.remaining())
        except asyncio.TimeoutError as e:
            raise BatchTimeoutError(
                f"entire link processing timed out: exceeded {settings.max_runtime / 60:g} minutes"
            ) from e
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()


def merge_results(
    records: List[Dict[str, Any]],
    results: List[EnrichResult],
) -> List[Dict[str, Any]]:
    """Enriched version of each record where one exists, else the record unchanged."""
    enriched = {r.link: r.record for r in results}
    known = {r.get("link") for r in records}
    for link in enriched.keys() - known:
        logger.warning(f"Enriched record has no match in the dataset, dropped: {link}")
    return [enriched.get(record.get("link"), record) for record in records]


# ─── Run ──────────────────────────────────────────────────────────────────────


async def sync_links(
    settings: Optional[Settings] = None,
    force_all: bool = False,
    client: Optional[httpx.AsyncClient] = None,
) -> SyncSummary:
    """
    Run one sync over ``settings.links_file``.

    Raises StoreError or BatchTimeoutError; on either the file is left as it was.
    """
    settings = settings or Settings()
    deadline = Deadline(settings.max_runtime)
    summary = SyncSummary()

    logger.info("Starting link preparation process...")
    if force_all:
        logger.info("Force mode: processing all items regardless of last update time")

    data = load_links(settings.links_file)
    summary.total = len(data)
    logger.info(f"Found {len(data):,} total links")

    unique = dedupe_links(data)
    summary.unique = len(unique)
    logger.info(f"Processing {len(unique):,} unique links")

    to_process, skipped = select_for_processing(
        unique, force_all, refresh_after=timedelta(hours=settings.refresh_after_hours)
    )
    summary.skipped = len(skipped)
    if skipped:
        logger.info(f"Skipping {len(skipped):,} recently processed items")
        logger.info(f"Processing {len(to_process):,} items that need updates")

    if not to_process:
        logger.info("All items are up to date, no processing needed")
        summary.elapsed = deadline.elapsed()
        return summary

    own_client = client is None
    if own_client:
        client = build_client(settings)
    try:
        results = await enrich_batch(client, to_process, settings, deadline)
    finally:
        if own_client:
            await client.aclose()

    merged = merge_results(unique, results)
    save_links(settings.links_file, merged)

    summary.processed = len(results)
    summary.fallbacks = sum(1 for r in results if r.image_source != "open_graph")
    summary.errors = sum(1 for r in results if r.error)
    summary.elapsed = deadline.elapsed()
    summary.written = True
    logger.info(f"Successfully processed {len(results):,} links")

    if settings.report_file:
        write_report(summary, results, settings.report_file)

    logger.info(f"Process completed in {summary.elapsed:.2f} seconds")
    return summary
