"""The links dataset: one JSON array on disk, read and written whole."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The dataset file could not be read, parsed or written."""


def load_links(path: Path) -> List[Dict[str, Any]]:
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise StoreError(f"Links file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise StoreError(f"Links file is not valid JSON: {path}: {e}") from e
    except OSError as e:
        raise StoreError(f"Could not read {path}: {e}") from e

    if not isinstance(data, list):
        raise StoreError(f"Links file must hold a JSON array, got {type(data).__name__}: {path}")
    bad = [i for i, item in enumerate(data) if not isinstance(item, dict)]
    if bad:
        raise StoreError(f"Links file has {len(bad)} non-object entries (first at index {bad[0]}): {path}")
    return data


def save_links(path: Path, records: List[Dict[str, Any]]) -> None:
    """Replace the dataset atomically: write a sibling temp file, then rename over it."""
    path = Path(path)
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2, ensure_ascii=False)
        tmp.replace(path)
    except (OSError, TypeError, ValueError) as e:
        if tmp.exists():
            os.unlink(tmp)
        raise StoreError(f"Could not write {path}: {e}") from e
    logger.debug(f"Wrote {len(records):,} links → {path}")
