#!/usr/bin/env python3
"""
Typed honor records shared by every pipeline stage

HonorEntry is the validated shape of one raw scraped/snapshot row.
CanonicalHonor is the single resolved fact for (game, year, award_type).
Downstream stages never branch on raw dicts again.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from honors.constants import CATEGORY_RANK, DEFAULT_SOURCE

GameId = Union[int, str]


class Category(str, Enum):
    """Storage category for an honor (Special covers Recommended and side awards)."""
    WINNER = "Winner"
    NOMINEE = "Nominee"
    SPECIAL = "Special"

    @property
    def rank(self) -> int:
        return CATEGORY_RANK[self.value]


@dataclass(frozen=True)
class BoardgameRef:
    """A game listed on an honor page"""
    external_game_id: GameId
    name: Optional[str] = None


@dataclass(frozen=True)
class HonorEntry:
    """One raw honor page / dataset row after normalization"""
    honor_id: Optional[str]
    slug: str
    year: int
    award_set: str
    position: Optional[str]
    title: Optional[str]
    boardgames: Tuple[BoardgameRef, ...]

    @property
    def text(self) -> str:
        """Concatenated slug/title/position used for pattern matching (lowercase)."""
        parts = [self.slug, self.title, self.position]
        return ' '.join(p.strip() for p in parts if p and p.strip()).lower()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CanonicalHonor:
    """Resolved honor for one (external_game_id, year, award_type)"""
    external_game_id: GameId
    year: int
    award_type: str
    category: Category
    name: str
    description: Optional[str] = None
    source: str = DEFAULT_SOURCE
    validated: bool = False
    created_at: str = field(default_factory=utc_now_iso)
    honor_id: Optional[str] = None
    slug: Optional[str] = None
    game_name: Optional[str] = None

    @property
    def key(self) -> Tuple[str, int, str]:
        """Resolution key: one canonical honor per game/year/award."""
        return (str(self.external_game_id), self.year, self.award_type)

    @property
    def document_key(self) -> Tuple[int, str, str]:
        """Merge key inside a game's honors document."""
        return (self.year, self.award_type, self.category.value)

    def to_document(self) -> Dict:
        """Persisted subset written into a game's honors list"""
        doc = {
            'name': self.name,
            'year': self.year,
            'category': self.category.value,
            'award_type': self.award_type,
            'description': self.description,
            'source': self.source,
            'validated': self.validated,
            'created_at': self.created_at,
        }
        if self.honor_id is not None:
            doc['honor_id'] = self.honor_id
        if self.slug:
            doc['slug'] = self.slug
        return doc


def document_key(honor: Dict) -> Tuple:
    """Merge key for an already-stored honor dict: (year, award_type, category)"""
    return (honor.get('year'), honor.get('award_type'), honor.get('category'))
