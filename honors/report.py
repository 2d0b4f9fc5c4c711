#!/usr/bin/env python3
"""
SyncReport: the single result value of one pipeline run

Counters are bumped by the reconciler (possibly from worker threads) and
rendered once at the end. In dry-run the same counters describe what WOULD
happen, plus a bounded preview sample for manual inspection.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from honors.constants import PREVIEW_LIMIT

COUNTERS = (
    'created',
    'updated',
    'unchanged',
    'removed_stale_honors',
    'cleaned_games',
    'missing',
    'skipped',
    'errors',
)


@dataclass
class SyncReport:
    """Counters and preview for one run"""
    award_type: str
    mode: str
    dry_run: bool = False
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    removed_stale_honors: int = 0
    cleaned_games: int = 0
    missing: int = 0
    skipped: int = 0
    errors: int = 0
    honors_added: int = 0
    honors_to_attach: int = 0
    # Build-phase stats (normalizer/classifier/caps)
    build: Dict[str, int] = field(default_factory=dict)
    missing_ids: List = field(default_factory=list)
    error_messages: List[str] = field(default_factory=list)
    preview: List[Dict] = field(default_factory=list)
    preview_limit: int = PREVIEW_LIMIT
    cancelled: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def bump(self, counter: str, amount: int = 1) -> None:
        if counter not in COUNTERS and counter not in ('honors_added', 'honors_to_attach'):
            raise KeyError(f"Unknown report counter: {counter}")
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def record_error(self, message: str, skipped: bool = True) -> None:
        """A per-game failure: counted as an error and the game as skipped."""
        with self._lock:
            self.errors += 1
            if skipped:
                self.skipped += 1
            self.error_messages.append(message)

    def record_missing(self, game_id) -> None:
        with self._lock:
            self.missing += 1
            self.missing_ids.append(game_id)

    def add_preview(self, item: Dict) -> None:
        with self._lock:
            if len(self.preview) < self.preview_limit:
                self.preview.append(item)

    @property
    def ok(self) -> bool:
        return self.errors == 0

    def to_dict(self) -> Dict:
        data = {name: getattr(self, name) for name in COUNTERS}
        data.update({
            'award_type': self.award_type,
            'mode': self.mode,
            'dry_run': self.dry_run,
            'honors_added': self.honors_added,
            'honors_to_attach': self.honors_to_attach,
            'build': dict(self.build),
            'cancelled': self.cancelled,
        })
        if self.dry_run:
            data['preview'] = list(self.preview)
        return data

    def render(self, missing_sample: Optional[int] = 25) -> str:
        """Human summary in the boxed style used by the CLIs."""
        would = self.dry_run
        lines = ["", "=" * 60]
        lines.append(
            f"{'DRY RUN ' if would else ''}SYNC SUMMARY: {self.award_type} "
            f"({self.mode.upper()}){' (no writes issued)' if would else ''}"
        )
        lines.append("=" * 60)
        for label, key in (
            ('Raw rows normalized', 'normalized'),
            ('Raw rows rejected', 'rejected'),
            ('Excluded variants', 'excluded'),
            ('Canonical honors', 'canonical'),
            ('Dropped by caps', 'capped'),
            ('Extra winner games', 'extra_winner_games'),
        ):
            if key in self.build:
                lines.append(f"  {label + ':':<26}{self.build[key]:6d}")
        lines.append(f"  {('Would create' if would else 'Games created') + ':':<26}{self.created:6d}")
        lines.append(f"  {('Would update' if would else 'Games updated') + ':':<26}{self.updated:6d}")
        lines.append(f"  {'Unchanged:':<26}{self.unchanged:6d}")
        lines.append(f"  {'Honors added:':<26}{self.honors_added:6d}")
        if self.honors_to_attach:
            lines.append(f"  {'Honors on new games:':<26}{self.honors_to_attach:6d}")
        if self.mode == 'replace':
            lines.append(f"  {'Stale games cleaned:':<26}{self.cleaned_games:6d}")
            lines.append(f"  {'Stale honors removed:':<26}{self.removed_stale_honors:6d}")
        lines.append(f"  {'Missing games:':<26}{self.missing:6d}")
        lines.append(f"  {'Skipped (errors):':<26}{self.skipped:6d}")
        lines.append(f"  {'Errors:':<26}{self.errors:6d}")
        if self.cancelled:
            lines.append("  Run was cancelled between games")
        lines.append("=" * 60)

        if self.missing_ids and missing_sample:
            sample = ', '.join(str(i) for i in self.missing_ids[:missing_sample])
            more = ' ...' if len(self.missing_ids) > missing_sample else ''
            lines.append(f"Missing game ids (first {missing_sample}): {sample}{more}")
        return '\n'.join(lines)
