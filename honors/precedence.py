#!/usr/bin/env python3
"""
Precedence resolution: many classified entries -> one CanonicalHonor per key

Key: (external_game_id, year, award_type). Rank: Winner > Nominee > Special.
Upgrade only, never downgrade. Output keeps first-seen (source) order, which
the cap enforcer truncates against.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from honors.constants import DEFAULT_SOURCE
from honors.models import Category, CanonicalHonor, HonorEntry, utc_now_iso

logger = logging.getLogger(__name__)

Classified = Tuple[HonorEntry, str, Category]


def honor_name(year: int, award_type: str, category: Category) -> str:
    return f"{year} {award_type} {category.value}"


class PrecedenceResolver:
    """Collapse classified entries to the highest-ranked category per key"""

    def __init__(self, source: str = DEFAULT_SOURCE, created_at: Optional[str] = None):
        self.source = source
        self.created_at = created_at or utc_now_iso()
        self.upgrades = 0
        self.ignored_lower = 0
        self.extra_winner_games = 0

    def _build(self, entry: HonorEntry, award_type: str, category: Category, game) -> CanonicalHonor:
        return CanonicalHonor(
            external_game_id=game.external_game_id,
            year=entry.year,
            award_type=award_type,
            category=category,
            name=honor_name(entry.year, award_type, category),
            description=entry.title or entry.slug or None,
            source=self.source,
            created_at=self.created_at,
            honor_id=entry.honor_id,
            slug=entry.slug or None,
            game_name=game.name,
        )

    def resolve(self, classified: Iterable[Classified]) -> List[CanonicalHonor]:
        resolved: Dict[Tuple, CanonicalHonor] = {}

        for entry, award_type, category in classified:
            games = entry.boardgames
            # A single-winner award listing several games: the first listed keeps the win
            if category is Category.WINNER and len(games) > 1:
                self.extra_winner_games += len(games) - 1
                logger.debug(
                    f"Winner entry {entry.slug} lists {len(games)} games; "
                    f"keeping {games[0].external_game_id}"
                )
                games = games[:1]

            for game in games:
                candidate = self._build(entry, award_type, category, game)
                current = resolved.get(candidate.key)
                if current is None:
                    resolved[candidate.key] = candidate
                elif category.rank > current.category.rank:
                    resolved[candidate.key] = candidate
                    self.upgrades += 1
                else:
                    self.ignored_lower += 1

        return list(resolved.values())
