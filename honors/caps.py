#!/usr/bin/env python3
"""
Per (year, award_type) category caps

Bounds noise from over-scraped sources. Members are kept in source order and
truncated; anything past the cap is dropped from this run's canonical set
(counted, never an error).

Winner:  always 1
Nominee: per-award era table lookup by year, else a default (older Spiel des
         Jahres years published no nominees)
Special: fixed small number (recommended lists are over-inclusive)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from honors.constants import (
    AWARD_CAPS, NOMINEE_CAP_DEFAULT, SPECIAL_CAP, WINNER_CAP,
)
from honors.errors import ConfigError
from honors.models import Category, CanonicalHonor

logger = logging.getLogger(__name__)


CAP_KEYS = ('special', 'nominee_default', 'nominee_by_year')


def _non_negative_int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"Cap '{name}' must be a non-negative integer, got {value!r}")
    return value


@dataclass
class CapPolicy:
    """Cap lookup for one award; nominee caps are data, not code"""
    special_cap: int = SPECIAL_CAP
    nominee_default: int = NOMINEE_CAP_DEFAULT
    # (until_year, cap) rows, ascending; first row with until >= year wins
    nominee_by_year: List[Tuple[int, int]] = field(default_factory=list)
    nominee_override: Optional[Callable[[int], int]] = None
    winner_cap: int = WINNER_CAP

    def nominee_cap(self, year: int) -> int:
        if self.nominee_override is not None:
            return self.nominee_override(year)
        for until, cap in sorted(self.nominee_by_year):
            if year <= until:
                return cap
        return self.nominee_default

    def cap_for(self, category: Category, year: int) -> int:
        if category is Category.WINNER:
            return self.winner_cap
        if category is Category.NOMINEE:
            return self.nominee_cap(year)
        return self.special_cap

    def apply(self, block: Optional[Dict], where: str = 'caps') -> 'CapPolicy':
        """Overlay one caps block ({special, nominee_default, nominee_by_year})"""
        if not block:
            return self
        if not isinstance(block, dict):
            raise ConfigError(f"{where} must be a mapping, got {block!r}")
        unknown = set(block) - set(CAP_KEYS)
        if unknown:
            raise ConfigError(f"Unknown cap keys in {where}: {sorted(unknown)}")
        if 'special' in block:
            self.special_cap = _non_negative_int(block['special'], 'special')
        if 'nominee_default' in block:
            self.nominee_default = _non_negative_int(block['nominee_default'], 'nominee_default')
        if 'nominee_by_year' in block:
            rows = []
            for row in block['nominee_by_year'] or []:
                if not isinstance(row, dict) or 'until' not in row or 'cap' not in row:
                    raise ConfigError(f"nominee_by_year rows need 'until' and 'cap': {row!r}")
                rows.append((
                    _non_negative_int(row['until'], 'nominee_by_year.until'),
                    _non_negative_int(row['cap'], 'nominee_by_year.cap'),
                ))
            self.nominee_by_year = rows
        return self

    @classmethod
    def from_config(cls, caps: Optional[Dict] = None, award_type: Optional[str] = None) -> 'CapPolicy':
        """
        Build the policy for one award from the config 'caps' block:

            caps:
              default:
                special: 5
                nominee_default: 3
              awards:
                Spiel des Jahres:
                  nominee_by_year:
                    - {until: 1990, cap: 0}

        Layers, later wins: built-in defaults, caps.default, the built-in
        AWARD_CAPS entry for award_type, caps.awards[award_type].
        """
        caps = caps or {}
        if not isinstance(caps, dict):
            raise ConfigError(f"caps must be a mapping, got {caps!r}")
        unknown = set(caps) - {'default', 'awards'}
        if unknown:
            raise ConfigError(f"Unknown caps sections: {sorted(unknown)} (expected 'default' and 'awards')")
        awards = caps.get('awards') or {}
        if not isinstance(awards, dict):
            raise ConfigError(f"caps.awards must be a mapping, got {awards!r}")

        policy = cls().apply(caps.get('default'), 'caps.default')
        if award_type is not None:
            policy.apply(AWARD_CAPS.get(award_type), f"built-in caps for {award_type}")
            policy.apply(awards.get(award_type), f"caps.awards[{award_type!r}]")
        return policy


class CapEnforcer:
    """Truncate each category per (year, award_type) in source order"""

    def __init__(self, policy: Optional[CapPolicy] = None):
        self.policy = policy or CapPolicy()
        self.dropped = defaultdict(int)

    def enforce(self, canonical: List[CanonicalHonor]) -> List[CanonicalHonor]:
        seen: Dict[Tuple[int, str, Category], int] = defaultdict(int)
        kept = []
        for honor in canonical:
            group = (honor.year, honor.award_type, honor.category)
            if seen[group] >= self.policy.cap_for(honor.category, honor.year):
                self.dropped[honor.category.value] += 1
                logger.debug(
                    f"Cap reached for {honor.year} {honor.award_type} {honor.category.value}: "
                    f"dropping game {honor.external_game_id}"
                )
                continue
            seen[group] += 1
            kept.append(honor)

        total_dropped = sum(self.dropped.values())
        if total_dropped:
            logger.info(f"Caps dropped {total_dropped} honors: {dict(self.dropped)}")
        return kept
