#!/usr/bin/env python3
"""
Honor pipeline orchestration

Raw rows -> EntryNormalizer -> HonorClassifier -> PrecedenceResolver
         -> CapEnforcer -> canonical set -> Reconciler -> SyncReport

build_canonical() is pure (no store access). run() adds reconciliation.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

from honors.caps import CapEnforcer, CapPolicy
from honors.classifier import HonorClassifier
from honors.constants import DEFAULT_MAX_RETRIES, DEFAULT_PAGE_SIZE, DEFAULT_RETRY_DELAY, DEFAULT_SOURCE
from honors.models import CanonicalHonor
from honors.normalizer import EntryNormalizer
from honors.precedence import PrecedenceResolver
from honors.reconciler import ALL_YEARS, MERGE, MODES, REPLACE, Reconciler, YearRange
from honors.report import SyncReport
from honors.snapshot import filter_years
from honors.store import RecordStore, with_retries

logger = logging.getLogger(__name__)

@dataclass
class BuildResult:
    """Canonical set for one award plus build-phase counters"""
    award_type: str
    canonical: List[CanonicalHonor]
    stats: Dict[str, int] = field(default_factory=dict)
    year_range: YearRange = ALL_YEARS
    # built from the first N scoped entries only
    limited: bool = False

    @property
    def game_ids(self) -> List:
        seen = {}
        for honor in self.canonical:
            seen.setdefault(str(honor.external_game_id), honor.external_game_id)
        return list(seen.values())


def _cap_policy(caps: Union[CapPolicy, Dict, None], award_scope: str) -> CapPolicy:
    if isinstance(caps, CapPolicy):
        return caps
    return CapPolicy.from_config(caps, award_scope)


def build_canonical(
    rows: Iterable,
    award_scope: str,
    year_range: YearRange = ALL_YEARS,
    caps: Union[CapPolicy, Dict, None] = None,
    award_rules: Optional[Dict] = None,
    allow_missing_position: bool = False,
    source: str = DEFAULT_SOURCE,
    limit: Optional[int] = None,
) -> BuildResult:
    """
    Derive the canonical honor set for one award type.

    Args:
        rows: raw snapshot/feed rows
        award_scope: award_type to keep (award set with the year stripped)
        year_range: (since, until), inclusive, either may be None
        caps: CapPolicy, or the config 'caps' mapping resolved for award_scope
        award_rules: per-award pattern overrides
        limit: cap on scoped entries considered (debugging aid)
    """
    normalizer = EntryNormalizer(allow_missing_position=allow_missing_position)
    entries = normalizer.normalize_all(rows)
    since, until = year_range
    entries = filter_years(entries, since, until)

    classifier = HonorClassifier(award_rules)
    classified = []
    excluded = 0
    out_of_scope = 0
    for entry in entries:
        result = classifier.classify(entry)
        if result is None:
            excluded += 1
            continue
        award_type, category = result
        if award_type != award_scope:
            out_of_scope += 1
            continue
        classified.append((entry, award_type, category))
        if limit and len(classified) >= limit:
            break

    resolver = PrecedenceResolver(source=source)
    resolved = resolver.resolve(classified)

    enforcer = CapEnforcer(_cap_policy(caps, award_scope))
    canonical = enforcer.enforce(resolved)

    stats = {
        'normalized': normalizer.accepted,
        'rejected': normalizer.rejected,
        'excluded': excluded,
        'out_of_scope': out_of_scope,
        'considered': len(classified),
        'resolved': len(resolved),
        'upgrades': resolver.upgrades,
        'ignored_lower': resolver.ignored_lower,
        'extra_winner_games': resolver.extra_winner_games,
        'capped': sum(enforcer.dropped.values()),
        'canonical': len(canonical),
    }
    logger.info(
        f"Built {len(canonical)} canonical {award_scope} honors "
        f"({len(classified)} entries considered, {stats['capped']} dropped by caps)"
    )
    return BuildResult(
        award_type=award_scope,
        canonical=canonical,
        stats=stats,
        year_range=year_range,
        limited=bool(limit),
    )


def find_missing_games(
    store: RecordStore,
    game_ids: List,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
) -> List:
    """Ids from game_ids with no record in the store (read-only)"""
    found = with_retries(
        lambda: store.existing_ids(game_ids),
        "Existing-id lookup",
        max_retries=max_retries,
        retry_delay=retry_delay,
    )
    return [g for g in game_ids if str(g) not in found]


def sync_build(
    build: BuildResult,
    store: RecordStore,
    mode: str = MERGE,
    dry_run: bool = False,
    auto_create_missing: bool = False,
    workers: int = 1,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    page_size: int = DEFAULT_PAGE_SIZE,
    preview_limit: Optional[int] = None,
    reconciler: Optional[Reconciler] = None,
) -> SyncReport:
    """
    Reconcile an already-built canonical set into the store.

    Replace mode only touches this award's honors inside build.year_range,
    and refuses a build cut short by limit (the rest of the window would be
    stripped with nothing to put back).
    """
    if mode not in MODES:
        raise ValueError(f"Unknown mode: {mode!r} (expected one of {MODES})")
    if mode == REPLACE and build.limited:
        raise ValueError("Replace mode needs the full canonical set; drop the entry limit")
    if auto_create_missing and mode != MERGE:
        logger.warning("Auto-create of missing games only applies to merge mode; ignoring")
        auto_create_missing = False

    report = SyncReport(award_type=build.award_type, mode=mode, dry_run=dry_run, build=dict(build.stats))
    if preview_limit is not None:
        report.preview_limit = preview_limit

    reconciler = reconciler or Reconciler(
        store,
        dry_run=dry_run,
        auto_create_missing=auto_create_missing,
        workers=workers,
        max_retries=max_retries,
        retry_delay=retry_delay,
        page_size=page_size,
    )
    reconciler.reconcile(build.canonical, mode, build.award_type, report, year_range=build.year_range)
    return report


def run(
    award_scope: str,
    year_range: YearRange = ALL_YEARS,
    mode: str = MERGE,
    dry_run: bool = False,
    caps: Union[CapPolicy, Dict, None] = None,
    auto_create_missing: bool = False,
    *,
    rows: Iterable,
    store: RecordStore,
    award_rules: Optional[Dict] = None,
    allow_missing_position: bool = False,
    source: str = DEFAULT_SOURCE,
    limit: Optional[int] = None,
    **sync_options,
) -> SyncReport:
    """
    Build the canonical set for award_scope and reconcile it into the store.

    sync_options are passed to sync_build (workers, max_retries, retry_delay,
    page_size, preview_limit, reconciler). Nothing is kept between runs.
    """
    if mode not in MODES:
        raise ValueError(f"Unknown mode: {mode!r} (expected one of {MODES})")
    build = build_canonical(
        rows, award_scope,
        year_range=year_range,
        caps=caps,
        award_rules=award_rules,
        allow_missing_position=allow_missing_position,
        source=source,
        limit=limit,
    )
    return sync_build(
        build, store,
        mode=mode,
        dry_run=dry_run,
        auto_create_missing=auto_create_missing,
        **sync_options,
    )
