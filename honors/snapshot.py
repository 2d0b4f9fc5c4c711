#!/usr/bin/env python3
"""Static snapshot input: a JSON array of raw honor rows."""

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from honors.errors import SnapshotError
from honors.models import HonorEntry

logger = logging.getLogger(__name__)


def load_snapshot(path: Path) -> List[dict]:
    """
    Read the raw honor collection.

    Raises:
        SnapshotError: file missing, unparsable, or not a top-level array.
        This is the only failure that aborts a run.
    """
    path = Path(path)
    if not path.exists():
        raise SnapshotError(f"Snapshot not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            rows = json.load(f)
    except (OSError, ValueError) as e:
        raise SnapshotError(f"Could not read snapshot {path}: {e}") from e
    if not isinstance(rows, list):
        raise SnapshotError(f"Snapshot {path} must be a top-level JSON array")
    logger.info(f"Loaded {len(rows)} raw honor rows from {path}")
    return rows


def filter_years(entries: Iterable[HonorEntry], since: Optional[int] = None,
                 until: Optional[int] = None) -> List[HonorEntry]:
    """Keep entries with since <= year <= until (either bound optional)"""
    return [
        e for e in entries
        if (since is None or e.year >= since) and (until is None or e.year <= until)
    ]
