#!/usr/bin/env python3
"""
Test suite for honors/precedence.py — one canonical honor per (game, year, award)
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from honors.models import BoardgameRef, Category, HonorEntry
from honors.precedence import PrecedenceResolver, honor_name

AWARD = 'Spiel des Jahres'


def entry(slug, games, year=2024, title=None):
    return HonorEntry(
        honor_id=slug,
        slug=slug,
        year=year,
        award_set=f'{year} {AWARD}',
        position='x',
        title=title,
        boardgames=tuple(BoardgameRef(g, f'Game {g}') for g in games),
    )


@pytest.fixture
def resolver():
    return PrecedenceResolver(source='test', created_at='2024-07-01T00:00:00+00:00')


class TestRankUpgrade:
    """Winner > Nominee > Special, upgrade only"""

    def test_special_nominee_winner_collapse_to_winner(self, resolver):
        """Recommended, then nominee, then winner for game 1 → single Winner, two upgrades"""
        classified = [
            (entry('a-recommended', [1]), AWARD, Category.SPECIAL),
            (entry('a-nominee', [1]), AWARD, Category.NOMINEE),
            (entry('a-winner', [1]), AWARD, Category.WINNER),
        ]
        result = resolver.resolve(classified)
        assert len(result) == 1
        assert result[0].category is Category.WINNER
        assert result[0].name == '2024 Spiel des Jahres Winner'
        assert resolver.upgrades == 2

    def test_never_downgrades(self, resolver):
        """Winner first, lower entries after → Winner kept, two ignored"""
        classified = [
            (entry('a-winner', [1]), AWARD, Category.WINNER),
            (entry('a-nominee', [1]), AWARD, Category.NOMINEE),
            (entry('a-recommended', [1]), AWARD, Category.SPECIAL),
        ]
        result = resolver.resolve(classified)
        assert [h.category for h in result] == [Category.WINNER]
        assert resolver.ignored_lower == 2

    def test_equal_rank_keeps_first(self, resolver):
        """Two nominee entries for the same key → first title kept"""
        classified = [
            (entry('first', [1], title='First title'), AWARD, Category.NOMINEE),
            (entry('second', [1], title='Second title'), AWARD, Category.NOMINEE),
        ]
        result = resolver.resolve(classified)
        assert result[0].description == 'First title'
        assert resolver.upgrades == 0

    def test_upgrade_keeps_first_seen_slot(self, resolver):
        """Upgrade replaces in place, output order unchanged"""
        classified = [
            (entry('n1', [1]), AWARD, Category.NOMINEE),
            (entry('n2', [2]), AWARD, Category.NOMINEE),
            (entry('w1', [1]), AWARD, Category.WINNER),
        ]
        result = resolver.resolve(classified)
        assert [h.external_game_id for h in result] == [1, 2]
        assert result[0].category is Category.WINNER


class TestKeying:
    """Different years, awards and games never collapse together"""

    def test_distinct_years(self, resolver):
        """2023 nominee and 2024 winner for the same game stay separate"""
        classified = [
            (entry('a', [1], year=2023), AWARD, Category.NOMINEE),
            (entry('b', [1], year=2024), AWARD, Category.WINNER),
        ]
        assert len(resolver.resolve(classified)) == 2

    def test_distinct_awards(self, resolver):
        classified = [
            (entry('a', [1]), AWARD, Category.NOMINEE),
            (entry('b', [1]), 'Kennerspiel des Jahres', Category.WINNER),
        ]
        assert len(resolver.resolve(classified)) == 2

    def test_multi_game_entry_expands_per_game(self, resolver):
        """One nominee row listing three games → three honors"""
        classified = [(entry('noms', [1, 2, 3]), AWARD, Category.NOMINEE)]
        result = resolver.resolve(classified)
        assert [h.external_game_id for h in result] == [1, 2, 3]
        assert result[1].game_name == 'Game 2'


class TestWinnerFirstGame:
    """A Winner entry listing several games attributes the win to the first"""

    def test_only_first_game_wins(self, resolver):
        """Winner row with games 10, 11, 12 → only 10 wins"""
        classified = [(entry('w', [10, 11, 12]), AWARD, Category.WINNER)]
        result = resolver.resolve(classified)
        assert [h.external_game_id for h in result] == [10]
        assert resolver.extra_winner_games == 2

    def test_other_games_keep_lower_honors(self, resolver):
        """Game 11 dropped from the winner row still keeps its nominee honor"""
        classified = [
            (entry('w', [10, 11]), AWARD, Category.WINNER),
            (entry('n', [11]), AWARD, Category.NOMINEE),
        ]
        result = resolver.resolve(classified)
        by_game = {h.external_game_id: h.category for h in result}
        assert by_game == {10: Category.WINNER, 11: Category.NOMINEE}


class TestCanonicalFields:
    """Provenance fields on the resolved record"""

    def test_fields(self, resolver):
        """source, validated, created_at, description and slug carried onto the honor"""
        result = resolver.resolve([(entry('2024-x-nominee', [5], title='Nominee page'), AWARD, Category.NOMINEE)])
        honor = result[0]
        assert honor.source == 'test'
        assert honor.validated is False
        assert honor.created_at == '2024-07-01T00:00:00+00:00'
        assert honor.description == 'Nominee page'
        assert honor.slug == '2024-x-nominee'

    def test_description_falls_back_to_slug(self, resolver):
        """No title → slug used as description"""
        result = resolver.resolve([(entry('2024-x-nominee', [5]), AWARD, Category.NOMINEE)])
        assert result[0].description == '2024-x-nominee'

    def test_honor_name(self):
        assert honor_name(1999, 'Spiel des Jahres', Category.SPECIAL) == '1999 Spiel des Jahres Special'
