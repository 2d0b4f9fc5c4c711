#!/usr/bin/env python3
"""
Configuration loading (config.yaml) and store construction

Example config.yaml:

    snapshot_path: data/enhanced-honors-complete.json
    source: reconcile
    preview_limit: 25
    workers: 1
    store:
      backend: json            # json | supabase
      path: output/games.json  # json backend only
      table: games
      id_column: bgg_id
      page_size: 1000
      max_retries: 3
      retry_delay: 0.5
    supabase_url: https://xyz.supabase.co
    supabase_key: <service role key>
    caps:
      default:
        special: 5
        nominee_default: 3
      awards:
        Spiel des Jahres:
          nominee_by_year:
            - {until: 1990, cap: 0}
    awards:
      Spiel des Jahres:
        exclude: kinderspiel|kennerspiel
    expected:
      Spiel des Jahres:
        2024:
          winner: [Sky Team]

SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY in the environment override the
credentials in the file.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Dict, Optional

import yaml

from honors.constants import (
    DEFAULT_ID_COLUMN, DEFAULT_MAX_RETRIES, DEFAULT_PAGE_SIZE, DEFAULT_RETRY_DELAY,
    DEFAULT_SOURCE, DEFAULT_TABLE, PREVIEW_LIMIT,
)
from honors.errors import ConfigError
from honors.store import JsonFileRecordStore, RecordStore, SupabaseRecordStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    'snapshot_path': 'enhanced-honors-complete.json',
    'source': DEFAULT_SOURCE,
    'preview_limit': PREVIEW_LIMIT,
    'workers': 1,
    'store': {
        'backend': 'json',
        'path': 'output/games.json',
        'table': DEFAULT_TABLE,
        'id_column': DEFAULT_ID_COLUMN,
        'page_size': DEFAULT_PAGE_SIZE,
        'max_retries': DEFAULT_MAX_RETRIES,
        'retry_delay': DEFAULT_RETRY_DELAY,
    },
    'caps': {},
    'awards': {},
    'expected': {},
}


def _deep_merge(base: Dict, overrides: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Path]) -> dict:
    """Load configuration from YAML file, layered over the defaults"""
    if config_path is None or not Path(config_path).exists():
        if config_path is not None:
            logger.warning(f"Config file not found at {config_path}; using defaults")
        config = copy.deepcopy(DEFAULT_CONFIG)
    else:
        try:
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse config file {config_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
        config = _deep_merge(DEFAULT_CONFIG, loaded)

    url = os.environ.get('SUPABASE_URL')
    key = os.environ.get('SUPABASE_SERVICE_ROLE_KEY') or os.environ.get('SUPABASE_SERVICE_KEY')
    if url:
        config['supabase_url'] = url
    if key:
        config['supabase_key'] = key
    return config


def build_store(config: dict, store_override: Optional[Path] = None) -> RecordStore:
    """Construct the configured Record Store adapter"""
    store_cfg = config.get('store') or {}
    backend = store_cfg.get('backend', 'json')
    id_column = store_cfg.get('id_column', DEFAULT_ID_COLUMN)

    if store_override is not None:
        return JsonFileRecordStore(Path(store_override), id_column=id_column)
    if backend == 'json':
        return JsonFileRecordStore(Path(store_cfg.get('path', 'output/games.json')), id_column=id_column)
    if backend == 'supabase':
        return SupabaseRecordStore.connect(
            config.get('supabase_url'),
            config.get('supabase_key'),
            table=store_cfg.get('table', DEFAULT_TABLE),
            id_column=id_column,
        )
    raise ConfigError(f"Unknown store backend: {backend!r} (expected 'json' or 'supabase')")
