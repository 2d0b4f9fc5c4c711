#!/usr/bin/env python3
"""
Reconciler: sync a canonical honor set into the Record Store

One algorithm for every award, scoped to a single award_type per run.

MERGE (additive)
- existing honors keyed by (year, award_type, category)
- canonical honors added only where the key is absent (existing wins)
- written back only if something changed -> a repeat run issues zero writes
- optional auto-create of missing games as provisional records

REPLACE (destructive, scoped)
- honors with award_type == scope and a year inside the run's window are
  dropped, canonical list appended; other years are kept
- written back unconditionally
- second pass pages through the whole store and strips the same scoped,
  windowed honors from every game not in the canonical id set (stale cleanup)

Failures are per game: retried with backoff, then counted; the run goes on.
Dry-run makes every decision but issues no writes.
"""

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from honors.constants import DEFAULT_MAX_RETRIES, DEFAULT_PAGE_SIZE, DEFAULT_RETRY_DELAY
from honors.errors import StoreError
from honors.models import CanonicalHonor, document_key, utc_now_iso
from honors.report import SyncReport
from honors.store import RecordStore, with_retries

logger = logging.getLogger(__name__)

MERGE = 'merge'
REPLACE = 'replace'
MODES = (MERGE, REPLACE)

# (since, until), inclusive; None leaves that end open
YearRange = Tuple[Optional[int], Optional[int]]
ALL_YEARS: YearRange = (None, None)


def merge_honors(existing: List[Dict], canonical: List[CanonicalHonor], scope: str) -> Tuple[List[Dict], int, bool]:
    """
    Union canonical honors into an existing honors list.

    Honors outside the scope are passed through untouched. Duplicate keys
    inside the scope collapse to the first stored one.

    Returns:
        (merged list, number of honors added, changed flag)
    """
    merged = []
    seen = set()
    changed = False
    for honor in existing:
        if not isinstance(honor, dict):
            merged.append(honor)
            continue
        if honor.get('award_type') == scope:
            key = document_key(honor)
            if key in seen:
                changed = True
                continue
            seen.add(key)
        merged.append(honor)

    added = 0
    for honor in canonical:
        key = honor.document_key
        if key in seen:
            continue
        seen.add(key)
        merged.append(honor.to_document())
        added += 1

    return merged, added, changed or added > 0




def _stored_year(honor: Dict) -> Optional[int]:
    year = honor.get('year')
    if isinstance(year, bool):
        return None
    if isinstance(year, int):
        return year
    if isinstance(year, str) and year.strip().isdigit():
        return int(year.strip())
    return None


def in_window(honor, scope: str, year_range: YearRange = ALL_YEARS) -> bool:
    """True if a stored honor belongs to this run: award_type == scope and since <= year <= until."""
    if not isinstance(honor, dict) or honor.get('award_type') != scope:
        return False
    since, until = year_range
    if since is None and until is None:
        return True
    year = _stored_year(honor)
    if year is None:
        return False
    return (since is None or year >= since) and (until is None or year <= until)


def strip_award(existing: List[Dict], scope: str, year_range: YearRange = ALL_YEARS) -> Tuple[List[Dict], int]:
    """Remove the scoped honors inside year_range. Returns (kept, removed_count)."""
    kept = [h for h in existing if not in_window(h, scope, year_range)]
    return kept, len(existing) - len(kept)


def replace_honors(existing: List[Dict], canonical: List[CanonicalHonor], scope: str,
                   year_range: YearRange = ALL_YEARS) -> List[Dict]:
    """Scoped honors inside year_range rebuilt from the canonical list; everything else kept."""
    kept, _ = strip_award(existing, scope, year_range)
    docs = []
    seen = set()
    for honor in canonical:
        if honor.document_key in seen:
            continue
        seen.add(honor.document_key)
        docs.append(honor.to_document())
    return kept + docs


def group_by_game(canonical: Iterable[CanonicalHonor], scope: str) -> 'OrderedDict[str, Tuple[object, List[CanonicalHonor]]]':
    """Scoped canonical honors per game, keyed by str(external id), source order."""
    groups: 'OrderedDict[str, Tuple[object, List[CanonicalHonor]]]' = OrderedDict()
    for honor in canonical:
        if honor.award_type != scope:
            continue
        key = str(honor.external_game_id)
        if key not in groups:
            groups[key] = (honor.external_game_id, [])
        groups[key][1].append(honor)
    return groups


class Reconciler:
    """Apply canonical honors to the store under merge or replace semantics"""

    def __init__(
        self,
        store: RecordStore,
        dry_run: bool = False,
        auto_create_missing: bool = False,
        workers: int = 1,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        page_size: int = DEFAULT_PAGE_SIZE,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.dry_run = dry_run
        self.auto_create_missing = auto_create_missing
        self.workers = max(1, workers)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.page_size = page_size
        self.sleep = sleep
        self._stop = threading.Event()

    def request_stop(self) -> None:
        """Stop between games; a game already being written finishes."""
        self._stop.set()

    def _retry(self, operation, description: str, game_id=None):
        return with_retries(
            operation, description,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            game_id=game_id,
            sleep=self.sleep,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def reconcile(
        self,
        canonical: List[CanonicalHonor],
        mode: str,
        scope: str,
        report: Optional[SyncReport] = None,
        year_range: YearRange = ALL_YEARS,
    ) -> SyncReport:
        """
        Apply one award's canonical honors to the store.

        year_range is the window the canonical set was built for. Replace
        and stale cleanup only remove stored honors inside that window, so
        a run limited to 2024 leaves earlier years alone.
        """
        if mode not in MODES:
            raise ValueError(f"Unknown reconcile mode: {mode!r} (expected one of {MODES})")
        report = report or SyncReport(award_type=scope, mode=mode, dry_run=self.dry_run)

        groups = group_by_game(canonical, scope)
        logger.info(
            f"{'[DRY RUN] ' if self.dry_run else ''}{mode.upper()} {scope}: "
            f"{sum(len(h) for _, h in groups.values())} honors across {len(groups)} games"
        )

        if self.workers > 1:
            self._run_parallel(groups, mode, scope, report, year_range)
        else:
            self._run_sequential(groups, mode, scope, report, year_range)

        if mode == REPLACE and not report.cancelled:
            self.cleanup_stale(scope, set(groups), report, year_range)

        return report

    def _run_sequential(self, groups, mode: str, scope: str, report: SyncReport, year_range: YearRange) -> None:
        processed = 0
        try:
            for game_id, honors in groups.values():
                if self._stop.is_set():
                    report.cancelled = True
                    break
                self.sync_game(game_id, honors, mode, scope, report, year_range)
                processed += 1
                if processed % 100 == 0:
                    logger.info(f"Progress: {processed}/{len(groups)} games processed")
        except KeyboardInterrupt:
            logger.warning(f"Interrupted after {processed} games; stopping between games")
            report.cancelled = True

    def _run_parallel(self, groups, mode: str, scope: str, report: SyncReport, year_range: YearRange) -> None:
        # One task per game id: a game's read-modify-write never runs twice at once
        executor = ThreadPoolExecutor(max_workers=self.workers)
        try:
            futures = [
                executor.submit(self._guarded_sync, game_id, honors, mode, scope, report, year_range)
                for game_id, honors in groups.values()
            ]
            for future in futures:
                future.result()
        except KeyboardInterrupt:
            logger.warning("Interrupted; letting in-flight games finish")
            self.request_stop()
            executor.shutdown(wait=True, cancel_futures=True)
            report.cancelled = True
        finally:
            executor.shutdown(wait=True)
        if self._stop.is_set():
            report.cancelled = True

    def _guarded_sync(self, game_id, honors, mode, scope, report, year_range) -> None:
        if self._stop.is_set():
            return
        self.sync_game(game_id, honors, mode, scope, report, year_range)

    # ------------------------------------------------------------------
    # Per-game sync
    # ------------------------------------------------------------------

    def sync_game(self, game_id, honors: List[CanonicalHonor], mode: str, scope: str, report: SyncReport,
                  year_range: YearRange = ALL_YEARS) -> None:
        try:
            record = self._retry(lambda: self.store.get_game(game_id), f"Fetch game {game_id}", game_id)
        except StoreError as e:
            logger.error(str(e))
            report.record_error(str(e))
            return

        if record is None:
            self._handle_missing(game_id, honors, mode, report)
            return

        existing = record.get('honors') if isinstance(record.get('honors'), list) else []
        if mode == MERGE:
            final, added, changed = merge_honors(existing, honors, scope)
            if not changed:
                report.bump('unchanged')
                return
        else:
            final = replace_honors(existing, honors, scope, year_range)
            added = len(final) - len(strip_award(existing, scope, year_range)[0])

        if self.dry_run:
            report.bump('updated')
            report.bump('honors_added', added)
            report.add_preview({
                'external_game_id': game_id,
                'action': 'update',
                'honors': [h['name'] for h in final if isinstance(h, dict) and h.get('award_type') == scope],
            })
            return

        try:
            self._retry(lambda: self.store.update_honors(game_id, final), f"Update game {game_id}", game_id)
        except StoreError as e:
            logger.error(str(e))
            report.record_error(str(e))
            return
        report.bump('updated')
        report.bump('honors_added', added)
        logger.debug(f"Updated game {game_id}: {len(final)} honors ({added} added)")

    def _handle_missing(self, game_id, honors: List[CanonicalHonor], mode: str, report: SyncReport) -> None:
        if not (self.auto_create_missing and mode == MERGE):
            report.record_missing(game_id)
            return

        docs = replace_honors([], honors, honors[0].award_type)
        name = next((h.game_name for h in honors if h.game_name), None) or f"BGG {game_id}"
        now = utc_now_iso()
        record = {
            self.store.id_column: game_id,
            'name': name,
            'honors': docs,
            # Placeholder lacking catalog metadata until enriched
            'provisional': True,
            'created_at': now,
            'updated_at': now,
        }

        if self.dry_run:
            report.bump('created')
            report.bump('honors_to_attach', len(docs))
            report.add_preview({
                'external_game_id': game_id,
                'action': 'create',
                'name': name,
                'honors': [d['name'] for d in docs],
            })
            return

        try:
            self._retry(lambda: self.store.insert_game(record), f"Insert game {game_id}", game_id)
        except StoreError as e:
            logger.error(str(e))
            report.record_error(str(e))
            return
        report.bump('created')
        report.bump('honors_to_attach', len(docs))
        if report.created % 100 == 0:
            logger.info(f"Created {report.created} games...")

    # ------------------------------------------------------------------
    # Stale cleanup (replace mode)
    # ------------------------------------------------------------------

    def cleanup_stale(self, scope: str, keep_ids: Iterable[str], report: SyncReport,
                      year_range: YearRange = ALL_YEARS) -> None:
        """Strip scoped honors inside year_range from every stored game outside keep_ids."""
        keep = {str(i) for i in keep_ids}
        id_column = self.store.id_column
        logger.info(f"Scanning store for stale {scope} honors...")

        start = 0
        while True:
            try:
                page = self._retry(
                    lambda: self.store.fetch_page(start, self.page_size),
                    f"Cleanup scan page at {start}",
                )
            except StoreError as e:
                logger.error(f"Cleanup scan aborted: {e}")
                report.record_error(f"Cleanup scan aborted: {e}", skipped=False)
                return
            if not page:
                break
            for record in page:
                if self._stop.is_set():
                    report.cancelled = True
                    return
                self._clean_record(record, scope, keep, id_column, report, year_range)
            if len(page) < self.page_size:
                break
            start += self.page_size

        logger.info(
            f"Cleanup complete. Games cleaned: {report.cleaned_games}, "
            f"honors removed: {report.removed_stale_honors}"
        )

    def _clean_record(self, record: Dict, scope: str, keep: set, id_column: str, report: SyncReport,
                      year_range: YearRange) -> None:
        game_id = record.get(id_column)
        if game_id is None or str(game_id) in keep:
            return
        honors = record.get('honors')
        if not isinstance(honors, list) or not honors:
            return
        kept, removed = strip_award(honors, scope, year_range)
        if not removed:
            return

        if not self.dry_run:
            try:
                self._retry(
                    lambda: self.store.update_honors(game_id, kept),
                    f"Cleanup game {game_id}", game_id,
                )
            except StoreError as e:
                logger.error(str(e))
                report.record_error(str(e))
                return
        else:
            report.add_preview({'external_game_id': game_id, 'action': 'cleanup', 'removed': removed})

        report.bump('cleaned_games')
        report.bump('removed_stale_honors', removed)
