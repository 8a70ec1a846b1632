"""Markdown summary of a sync run."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, List

import pandas as pd

if TYPE_CHECKING:
    from .enricher import EnrichResult
    from .orchestrator import SyncSummary

logger = logging.getLogger(__name__)

OUTCOME_COLS = ["link", "title", "image_source", "color_source", "error"]


def outcomes_frame(results: List["EnrichResult"]) -> pd.DataFrame:
    rows = [
        {
            "link": r.record.get("link"),
            "title": r.record.get("title"),
            "image_source": r.image_source,
            "color_source": r.color_source,
            "error": r.error,
        }
        for r in results
    ]
    return pd.DataFrame(rows, columns=OUTCOME_COLS)


def write_report(summary: "SyncSummary", results: List["EnrichResult"], report_path: Path) -> None:
    df = outcomes_frame(results)
    processed = len(df)

    lines = [
        "# Link Sync Report",
        "",
        f"**Generated**: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "## Summary",
        "",
        f"- **Input records**: {summary.total:,}",
        f"- **Unique links**: {summary.unique:,}",
        f"- **Processed**: {summary.processed:,}",
        f"- **Skipped (recent)**: {summary.skipped:,}",
        f"- **Errors**: {summary.errors:,}",
        f"- **Elapsed**: {summary.elapsed:.2f}s",
        "",
        "## Image sources",
        "",
    ]
    counts = df["image_source"].value_counts()
    for source in ("open_graph", "placeholder", "default"):
        n = int(counts.get(source, 0))
        share = f"{n / processed * 100:.1f}%" if processed else "N/A"
        lines.append(f"- **{source}**: {n:,} ({share})")

    default_colors = int((df["color_source"] == "default").sum())
    lines += ["", f"**Default background color**: {default_colors:,}", ""]

    failed = df[df["error"].notna()]
    if not failed.empty:
        lines += ["## Failures", ""]
        for row in failed.itertuples(index=False):
            lines.append(f"- {row.link}: {row.error}")
        lines.append("")

    report_path = Path(report_path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text("\n".join(lines), encoding="utf-8")
    logger.info(f"Report saved → {report_path}")
