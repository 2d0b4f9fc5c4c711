#!/usr/bin/env python3
"""
Honor category classification from slug/title/position text

Rule order (first match wins, case-insensitive):
1. recommended pattern       -> Special
2. nominee pattern           -> Nominee
3. plain winner pattern      -> Winner
4. side-award pattern        -> Special
5. generic "-winner" suffix  -> Special (category variant of a win)
6. default                   -> Special

Recommended/nominee MUST be checked before winner: scraped titles often carry
several keywords at once ("Winner of the Recommended category").

Text matching the award's exclude pattern belongs to a different award family
sharing the slug namespace (Kinderspiel inside Spiel des Jahres) and is not
applicable at all.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern, Tuple

from honors.constants import AWARD_RULES, AWARD_SET_YEAR_PREFIX, DEFAULT_AWARD_RULES
from honors.errors import ConfigError
from honors.models import Category, HonorEntry

logger = logging.getLogger(__name__)

GENERIC_WINNER_SUFFIX = re.compile(r'-winner(?:\s|$)')
_YEAR_PREFIX_RE = re.compile(AWARD_SET_YEAR_PREFIX)

RULE_KEYS = ('recommended', 'nominee', 'winner', 'special', 'exclude')


def derive_award_type(award_set: str) -> str:
    """Strip the leading 4-digit year: '2024 Spiel des Jahres' -> 'Spiel des Jahres'"""
    return _YEAR_PREFIX_RE.sub('', award_set.strip()).strip()


def _compile(pattern, award: str, key: str) -> Optional[Pattern]:
    if pattern is None or pattern == '':
        return None
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise ConfigError(f"Invalid '{key}' pattern for award '{award}': {e}") from e


@dataclass(frozen=True)
class AwardRules:
    """Compiled pattern table for one award type"""
    award_type: str
    recommended: Optional[Pattern] = None
    nominee: Optional[Pattern] = None
    winner: Optional[Pattern] = None
    special: Optional[Pattern] = None
    exclude: Optional[Pattern] = None

    @classmethod
    def from_dict(cls, award_type: str, table: Dict) -> 'AwardRules':
        unknown = set(table) - set(RULE_KEYS)
        if unknown:
            raise ConfigError(f"Unknown rule keys for award '{award_type}': {sorted(unknown)}")
        return cls(
            award_type=award_type,
            **{key: _compile(table.get(key), award_type, key) for key in RULE_KEYS}
        )


class HonorClassifier:
    """Classify HonorEntry records into (award_type, Category)"""

    def __init__(self, award_rules: Optional[Dict[str, Dict]] = None):
        """
        Args:
            award_rules: per-award overrides merged over AWARD_RULES.
                         An award's table replaces individual keys only.
        """
        tables = {name: dict(rules) for name, rules in AWARD_RULES.items()}
        for name, overrides in (award_rules or {}).items():
            base = tables.get(name, dict(DEFAULT_AWARD_RULES))
            base.update(overrides or {})
            tables[name] = base

        self.rules = {name: AwardRules.from_dict(name, table) for name, table in tables.items()}
        self.default_rules = DEFAULT_AWARD_RULES
        self._generic_cache: Dict[str, AwardRules] = {}

    def rules_for(self, award_type: str) -> AwardRules:
        rules = self.rules.get(award_type)
        if rules is not None:
            return rules
        if award_type not in self._generic_cache:
            self._generic_cache[award_type] = AwardRules.from_dict(award_type, self.default_rules)
        return self._generic_cache[award_type]

    @staticmethod
    def categorize(text: str, rules: AwardRules) -> Optional[Category]:
        """
        Apply the ordered rule table to lowercase text.

        Returns None only when the text belongs to an excluded award family.
        """
        if rules.exclude and rules.exclude.search(text):
            return None
        if rules.recommended and rules.recommended.search(text):
            return Category.SPECIAL
        if rules.nominee and rules.nominee.search(text):
            return Category.NOMINEE
        if rules.winner and rules.winner.search(text):
            return Category.WINNER
        if rules.special and rules.special.search(text):
            return Category.SPECIAL
        if GENERIC_WINNER_SUFFIX.search(text):
            return Category.SPECIAL
        return Category.SPECIAL

    def classify(self, entry: HonorEntry) -> Optional[Tuple[str, Category]]:
        """
        Classify one entry.

        Returns:
            (award_type, category), or None when the entry is not applicable
        """
        award_type = derive_award_type(entry.award_set)
        category = self.categorize(entry.text, self.rules_for(award_type))
        if category is None:
            logger.debug(f"Excluded variant for {award_type}: {entry.slug}")
            return None
        return award_type, category
