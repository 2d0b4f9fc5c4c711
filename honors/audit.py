#!/usr/bin/env python3
"""
Canonical set audits: per-year category counts, expected-list diffs, and
missing-game exports.

Expected lists come from the 'expected' block of config.yaml, e.g.

    expected:
      Spiel des Jahres:
        2024:
          winner: [Sky Team]
          nominees: [Captain Flip, In the Footsteps of Darwin]
          recommended: [Harmonies, Trio]
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd

from honors.models import Category, CanonicalHonor

logger = logging.getLogger(__name__)

EXPECTED_KEYS = {
    'winner': Category.WINNER,
    'winners': Category.WINNER,
    'nominee': Category.NOMINEE,
    'nominees': Category.NOMINEE,
    'recommended': Category.SPECIAL,
    'special': Category.SPECIAL,
}


def diff_sets(collected: Iterable[str], expected: Iterable[str]) -> Dict[str, List[str]]:
    """Case-insensitive set difference: what is missing and what is unexpected"""
    col = {s.lower() for s in collected if s}
    exp = {s.lower() for s in expected if s}
    return {
        'missing': sorted(exp - col),
        'unexpected': sorted(col - exp),
    }


def year_summary(canonical: List[CanonicalHonor]) -> pd.DataFrame:
    """Year, Winner, Nominee, Special, Total per (award_type, year)"""
    columns = [c.value for c in Category]
    if not canonical:
        return pd.DataFrame(columns=['award_type', 'year'] + columns + ['Total'])
    df = pd.DataFrame(
        [{'award_type': h.award_type, 'year': h.year, 'category': h.category.value} for h in canonical]
    )
    table = (
        df.groupby(['award_type', 'year', 'category']).size()
        .unstack(fill_value=0)
        .reindex(columns=columns, fill_value=0)
        .reset_index()
    )
    table['Total'] = table[columns].sum(axis=1)
    return table.sort_values(['award_type', 'year']).reset_index(drop=True)


def audit_expected(canonical: List[CanonicalHonor], expected: Dict) -> List[Dict]:
    """
    Compare canonical game names against expected lists.

    Returns one row per (award_type, year, category) with missing/unexpected
    names. Only award/years present in the expected block are audited.
    """
    results = []
    for award_type, years in (expected or {}).items():
        for year, lists in (years or {}).items():
            year = int(year)
            for key, names in (lists or {}).items():
                category = EXPECTED_KEYS.get(str(key).lower())
                if category is None:
                    logger.warning(f"Unknown expected key '{key}' for {award_type} {year}")
                    continue
                collected = [
                    h.game_name or str(h.external_game_id) for h in canonical
                    if h.award_type == award_type and h.year == year and h.category is category
                ]
                diff = diff_sets(collected, names or [])
                results.append({
                    'award_type': award_type,
                    'year': year,
                    'category': category.value,
                    **diff,
                })
                if diff['missing'] or diff['unexpected']:
                    logger.warning(
                        f"{year} {award_type} {category.value}: "
                        f"missing={diff['missing']} unexpected={diff['unexpected']}"
                    )
    return results


def missing_games_frame(canonical: List[CanonicalHonor], missing_ids: Iterable) -> pd.DataFrame:
    """One row per missing game id with its honor count and a sample of names"""
    wanted = {str(i) for i in missing_ids}
    rows: Dict[str, Dict] = {}
    for honor in canonical:
        key = str(honor.external_game_id)
        if key not in wanted:
            continue
        row = rows.setdefault(key, {
            'external_game_id': key,
            'game_name': honor.game_name,
            'honor_count': 0,
            'sample_honors': [],
        })
        row['honor_count'] += 1
        if len(row['sample_honors']) < 3:
            row['sample_honors'].append(honor.name)
    df = pd.DataFrame(
        list(rows.values()),
        columns=['external_game_id', 'game_name', 'honor_count', 'sample_honors'],
    )
    if not df.empty:
        df['sample_honors'] = df['sample_honors'].apply('; '.join)
    return df


def export_missing(canonical: List[CanonicalHonor], missing_ids: Iterable, path: Path) -> int:
    """Write the missing-games review list to CSV; returns the row count"""
    df = missing_games_frame(canonical, missing_ids)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logger.info(f"Exported {len(df)} missing games to {path}")
    return len(df)
