#!/usr/bin/env python3
"""
Shared constants for honor classification and reconciliation

Single source of truth for award pattern tables, precedence ranks and caps.
DO NOT duplicate these tables in other modules - import from here instead.
Caps and award rules can be overridden from config.yaml (see honors/config.py).
"""

# Leading "2024 " on an award set such as "2024 Spiel des Jahres"
AWARD_SET_YEAR_PREFIX = r'^\d{4}\s+'

# Storage categories (DB constraint: one of these three)
WINNER = 'Winner'
NOMINEE = 'Nominee'
SPECIAL = 'Special'

# Higher rank wins when several entries collapse to the same key
CATEGORY_RANK = {
    WINNER: 3,
    NOMINEE: 2,
    SPECIAL: 1,
}

# Default caps per (year, award_type)
WINNER_CAP = 1
SPECIAL_CAP = 5  # keep top 5 recommended to avoid overwhelming noise
NOMINEE_CAP_DEFAULT = 3  # modern standard short list

# Built-in per-award cap overrides, layered over the defaults above.
# nominee_by_year: first row whose 'until' >= year wins.
# Early Spiel des Jahres years published only a winner. 1988-1990 are
# placeholders pending a check against the jury archive.
AWARD_CAPS = {
    'Spiel des Jahres': {
        'nominee_by_year': [
            {'until': 1982, 'cap': 0},
            {'until': 1987, 'cap': 0},
            {'until': 1990, 'cap': 0},
        ],
    },
}

# Generic rules for awards with no dedicated table
DEFAULT_AWARD_RULES = {
    'recommended': r'recommend',
    'nominee': r'nominee|finalist|runner',
    'winner': r'winner',
    'special': None,
    'exclude': None,
}

# Per-award rules keyed by award_type (award set with the year stripped).
# Patterns are searched case-insensitively against "slug title position".
AWARD_RULES = {
    'Spiel des Jahres': {
        'recommended': r'-recommended|\brecommended\b',
        'nominee': r'-nominee|\bnominee\b',
        # Winner only if plain year winner slug (no variant tokens)
        'winner': r'^\d{4}-spiel-des-jahres-winner(?:\s|$)',
        'special': (
            r'beautiful-game|cooperative-family-game|literary-game|dexterity-game|'
            r'childrens-game|complex-game|fantasy-game|new-worlds-game|party-game|'
            r'historical-game|special-prize-game|special-prize|game-of-the-ye'
        ),
        # Separate award families nested in the same slug space
        'exclude': r'kinderspiel|kennerspiel',
    },
    'Kennerspiel des Jahres': {
        'recommended': r'-recommended|\brecommended\b',
        'nominee': r'-nominee|\bnominee\b',
        'winner': r'^\d{4}-kennerspiel-des-jahres-winner(?:\s|$)',
        'special': None,
        'exclude': None,
    },
    'Kinderspiel des Jahres': {
        'recommended': r'-recommended|\brecommended\b',
        'nominee': r'-nominee|\bnominee\b',
        'winner': r'^\d{4}-kinderspiel-des-jahres-winner(?:\s|$)',
        'special': None,
        'exclude': None,
    },
    'As d\'Or - Jeu de l\'Année': {
        'recommended': r'recommend',
        'nominee': r'nominee|finalist',
        'winner': r'^\d{4}-as-dor-jeu-de-lannee-winner(?:\s|$)',
        'special': r'enfant|expert|initie|grand-prix',
        'exclude': None,
    },
}

# Provenance tag written on every reconciled honor
DEFAULT_SOURCE = 'reconcile'

# Record Store defaults (games table keyed by external id)
DEFAULT_TABLE = 'games'
DEFAULT_ID_COLUMN = 'bgg_id'
DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 0.5

# Dry-run preview sample size
PREVIEW_LIMIT = 25
