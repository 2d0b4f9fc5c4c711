#!/usr/bin/env python3
"""
Entry normalizer: raw scraped/snapshot rows -> HonorEntry

Accepts both the snapshot's camelCase keys (id, awardSet, bggId) and the
snake_case keys used by normalized datasets (honor_id, award_set, game_refs).

Rejection rules (counted, never raised):
- no year (after inferring from award set, then slug)
- no award set
- no boardgames list, or no usable game reference in it
- no position (unless allow_missing_position)
"""

import logging
import re
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from honors.models import BoardgameRef, HonorEntry

logger = logging.getLogger(__name__)

LEADING_YEAR_RE = re.compile(r'^(\d{4})\b')
SLUG_YEAR_RE = re.compile(r'^(\d{4})-')


def _first(raw: Dict, *keys):
    for key in keys:
        value = raw.get(key)
        if value not in (None, ''):
            return value
    return None


def _clean_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_game_id(value):
    """Numeric ids become ints so '13' and 13 address the same game."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        return int(text) or None
    return text


def infer_year(raw: Dict) -> Optional[int]:
    """Year from the row, else the award set's leading year, else the slug's."""
    year = raw.get('year')
    if isinstance(year, int) and not isinstance(year, bool):
        return year
    if isinstance(year, str) and year.strip().isdigit():
        return int(year.strip())

    award_set = _first(raw, 'awardSet', 'award_set')
    if isinstance(award_set, str):
        m = LEADING_YEAR_RE.match(award_set.strip())
        if m:
            return int(m.group(1))

    slug = raw.get('slug')
    if isinstance(slug, str):
        m = SLUG_YEAR_RE.match(slug.strip())
        if m:
            return int(m.group(1))
    return None


class EntryNormalizer:
    """Validate raw honor rows into HonorEntry records"""

    def __init__(self, allow_missing_position: bool = False):
        self.allow_missing_position = allow_missing_position
        self.rejections = defaultdict(int)
        self.accepted = 0

    @property
    def rejected(self) -> int:
        return sum(self.rejections.values())

    def _reject(self, reason: str, raw) -> None:
        self.rejections[reason] += 1
        slug = raw.get('slug') if isinstance(raw, dict) else None
        logger.debug(f"Rejected honor row ({reason}): {slug or raw!r}")

    def _boardgames(self, raw: Dict) -> Optional[List[BoardgameRef]]:
        games = _first(raw, 'boardgames', 'game_refs')
        if not isinstance(games, list):
            return None
        refs = []
        for game in games:
            if not isinstance(game, dict):
                continue
            game_id = _coerce_game_id(_first(game, 'externalGameId', 'external_game_id', 'bggId', 'bgg_id', 'id'))
            if game_id is None:
                continue
            refs.append(BoardgameRef(external_game_id=game_id, name=_clean_text(game.get('name'))))
        return refs

    def normalize(self, raw) -> Optional[HonorEntry]:
        """Return an HonorEntry, or None if the row is rejected."""
        if not isinstance(raw, dict):
            self._reject('not_a_record', {})
            return None

        games = self._boardgames(raw)
        if games is None:
            self._reject('no_boardgames', raw)
            return None
        if not games:
            self._reject('empty_boardgames', raw)
            return None

        year = infer_year(raw)
        if year is None:
            self._reject('missing_year', raw)
            return None

        award_set = _clean_text(_first(raw, 'awardSet', 'award_set'))
        if not award_set:
            self._reject('missing_award_set', raw)
            return None

        position = _clean_text(raw.get('position'))
        if not position and not self.allow_missing_position:
            self._reject('missing_position', raw)
            return None

        honor_id = _first(raw, 'honorId', 'honor_id', 'id')
        self.accepted += 1
        return HonorEntry(
            honor_id=str(honor_id) if honor_id is not None else None,
            slug=_clean_text(raw.get('slug')) or '',
            year=year,
            award_set=award_set,
            position=position,
            title=_clean_text(raw.get('title')),
            boardgames=tuple(games),
        )

    def normalize_all(self, rows: Iterable) -> List[HonorEntry]:
        """Normalize rows in source order, dropping rejects."""
        entries = []
        for raw in rows:
            entry = self.normalize(raw)
            if entry is not None:
                entries.append(entry)
        if self.rejected:
            logger.info(
                f"Normalized {self.accepted} honor rows, rejected {self.rejected}: "
                f"{dict(self.rejections)}"
            )
        return entries
