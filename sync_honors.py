#!/usr/bin/env python3
"""
sync_honors.py - Sync canonical award honors into the games record store

Reads the raw honors snapshot, builds the canonical honor set for ONE award
type, and reconciles it into each game's 'honors' list.

Modes:
- MERGE (default): add missing (year, award_type, category) honors, never
  overwrite or remove. Re-running with the same input writes nothing.
- REPLACE (--replace): rebuild this award's honors per game, then strip the
  award from every other game in the store (stale cleanup).

Safety:
- --dry-run reads the store but issues no writes; prints a preview sample
- --report-missing-games only lists canonical games absent from the store
- per-game failures are retried, counted, and never stop the run

Usage:
    python sync_honors.py --award "Spiel des Jahres" --dry-run
    python sync_honors.py --award "Spiel des Jahres" --since 2010 --until 2024
    python sync_honors.py --award "Spiel des Jahres" --replace
    python sync_honors.py --award "Spiel des Jahres" --auto-create-missing
    python sync_honors.py --award "Spiel des Jahres" --report-missing-games --export-missing output/missing.csv
"""

import sys
import json
import logging
import argparse
from pathlib import Path

from honors.audit import audit_expected, export_missing, year_summary
from honors.config import build_store, load_config
from honors.errors import ConfigError, SnapshotError, StoreError
from honors.pipeline import build_canonical, find_missing_games, sync_build
from honors.reconciler import MERGE, REPLACE
from honors.snapshot import load_snapshot

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_missing_report(build, missing, sample: int = 20):
    print("\n" + "=" * 60)
    print(f"MISSING GAMES REPORT: {build.award_type} (no store updates)")
    print("=" * 60)
    print(f"  Games in canonical set:  {len(build.game_ids):5d}")
    print(f"  Missing in store:        {len(missing):5d}")
    print("=" * 60)
    if missing:
        wanted = {str(m) for m in missing[:sample]}
        rows = {}
        for honor in build.canonical:
            key = str(honor.external_game_id)
            if key in wanted:
                rows.setdefault(key, {'game': honor.external_game_id, 'name': honor.game_name, 'honors': []})
                rows[key]['honors'].append(honor.name)
        print(f"Sample missing entries (first {sample}):")
        print(json.dumps(list(rows.values()), indent=2, ensure_ascii=False))


def main():
    parser = argparse.ArgumentParser(
        description='Sync canonical award honors into the games record store',
        epilog="""
Examples:
  python sync_honors.py --award "Spiel des Jahres" --dry-run
  python sync_honors.py --award "Spiel des Jahres" --replace
  python sync_honors.py --award "Kennerspiel des Jahres" --since 2011 --auto-create-missing
        """
    )
    parser.add_argument('--award', '-a', required=True,
                        help='Award type to sync, e.g. "Spiel des Jahres"')
    parser.add_argument('--since', type=int, default=None,
                        help='First year to include (inclusive)')
    parser.add_argument('--until', type=int, default=None,
                        help='Last year to include (inclusive)')
    parser.add_argument('--dry-run', action='store_true',
                        help='Compute changes without writing to the store')
    parser.add_argument('--replace', action='store_true',
                        help='Replace this award\'s honors and remove stale ones store-wide')
    parser.add_argument('--limit', type=int, default=None,
                        help='Only consider the first N in-scope honor entries (merge mode only)')
    parser.add_argument('--auto-create-missing', action='store_true',
                        help='Create provisional game records for missing games (merge mode only)')
    parser.add_argument('--report-missing-games', action='store_true',
                        help='Only report canonical games missing from the store, then exit')
    parser.add_argument('--export-missing', type=Path, default=None,
                        help='Write missing games (with honor counts) to this CSV')
    parser.add_argument('--allow-missing-position', action='store_true',
                        help='Accept raw rows that have no position text')
    parser.add_argument('--input', '-i', type=Path, default=None,
                        help='Raw honors snapshot JSON (default: snapshot_path from config)')
    parser.add_argument('--store', type=Path, default=None,
                        help='Use a JSON record file as the store (overrides config)')
    parser.add_argument('--config', type=Path, default=Path('config.yaml'),
                        help='Configuration file (default: config.yaml)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Parallel game workers (default: from config, 1)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')

    args = parser.parse_args()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.since and args.until and args.since > args.until:
        logger.error(f"--since {args.since} is after --until {args.until}")
        return 1

    if args.replace and args.limit:
        logger.error("--replace rebuilds the whole award window; it cannot be combined with --limit")
        return 1

    try:
        config = load_config(args.config)
    except (ConfigError, OSError, ValueError) as e:
        logger.error(f"Could not load config: {e}")
        return 1

    snapshot_path = args.input or Path(config.get('snapshot_path', 'enhanced-honors-complete.json'))
    try:
        rows = load_snapshot(snapshot_path)
    except SnapshotError as e:
        logger.error(str(e))
        return 1

    store_cfg = config.get('store') or {}
    mode = REPLACE if args.replace else MERGE

    try:
        build = build_canonical(
            rows, args.award,
            year_range=(args.since, args.until),
            caps=config.get('caps'),
            award_rules=config.get('awards'),
            allow_missing_position=args.allow_missing_position,
            source=config.get('source', 'reconcile'),
            limit=args.limit,
        )
        store = build_store(config, args.store)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except (StoreError, OSError, ValueError) as e:
        logger.error(f"Could not open record store: {e}")
        return 1

    summary = year_summary(build.canonical)
    if not summary.empty:
        print("\n" + summary.to_string(index=False))

    expected = (config.get('expected') or {})
    if args.award in expected:
        audit_expected(build.canonical, {args.award: expected[args.award]})

    if args.report_missing_games:
        try:
            missing = find_missing_games(
                store, build.game_ids,
                max_retries=store_cfg.get('max_retries', 3),
                retry_delay=store_cfg.get('retry_delay', 0.5),
            )
        except StoreError as e:
            logger.error(str(e))
            return 1
        print_missing_report(build, missing)
        if args.export_missing:
            export_missing(build.canonical, missing, args.export_missing)
        return 0

    if args.dry_run:
        print("\n" + "=" * 60)
        print("DRY RUN MODE — no records will be written")
        print("=" * 60 + "\n")
    else:
        print("\n" + "=" * 60)
        print(f"{'REPLACE' if args.replace else 'MERGE'} mode: {args.award}")
        print("=" * 60 + "\n")

    report = sync_build(
        build, store,
        mode=mode,
        dry_run=args.dry_run,
        auto_create_missing=args.auto_create_missing,
        workers=args.workers or config.get('workers', 1),
        max_retries=store_cfg.get('max_retries', 3),
        retry_delay=store_cfg.get('retry_delay', 0.5),
        page_size=store_cfg.get('page_size', 1000),
        preview_limit=config.get('preview_limit'),
    )

    print(report.render())
    if args.dry_run and report.preview:
        print(f"\nPreview (first {len(report.preview)} affected games):")
        print(json.dumps(report.preview, indent=2, ensure_ascii=False, default=str))
        print("\nTo apply, run again without --dry-run")

    if args.export_missing and report.missing_ids:
        export_missing(build.canonical, report.missing_ids, args.export_missing)

    return 0 if report.ok else 1


if __name__ == '__main__':
    sys.exit(main())
