#!/usr/bin/env python3
"""
Record Store adapters: per-game records carrying an 'honors' list

All adapters expose the same small surface used by the reconciler:
    get_game(game_id)          -> record dict or None
    update_honors(game_id, honors)
    insert_game(record)
    fetch_page(start, size)    -> list of records (empty past the end)
    existing_ids(game_ids)     -> set of str ids present

The store enforces neither ordering nor uniqueness inside 'honors'; the
reconciler upholds both before every write.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set

from honors.constants import (
    DEFAULT_ID_COLUMN, DEFAULT_MAX_RETRIES, DEFAULT_PAGE_SIZE, DEFAULT_RETRY_DELAY,
    DEFAULT_TABLE,
)
from honors.errors import ConfigError, StoreError

logger = logging.getLogger(__name__)


def with_retries(
    operation: Callable,
    description: str,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    game_id=None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Run a store operation with bounded exponential backoff.

    Waits retry_delay * 2**attempt between attempts. After max_retries
    attempts the last failure is raised as StoreError.
    """
    attempts = max(1, max_retries)
    for attempt in range(attempts):
        try:
            return operation()
        except Exception as e:
            if attempt < attempts - 1:
                wait_time = retry_delay * (2 ** attempt)
                logger.warning(
                    f"{description} failed (attempt {attempt + 1}/{attempts}), "
                    f"retrying in {wait_time}s: {e}"
                )
                if wait_time > 0:
                    sleep(wait_time)
                continue
            raise StoreError(f"{description} failed after {attempts} attempts: {e}", game_id=game_id) from e


class RecordStore:
    """Interface for the per-game record store"""

    id_column = DEFAULT_ID_COLUMN

    def get_game(self, game_id) -> Optional[Dict]:
        raise NotImplementedError

    def update_honors(self, game_id, honors: List[Dict]) -> None:
        raise NotImplementedError

    def insert_game(self, record: Dict) -> None:
        raise NotImplementedError

    def fetch_page(self, start: int, page_size: int = DEFAULT_PAGE_SIZE) -> List[Dict]:
        raise NotImplementedError

    def iter_pages(self, page_size: int = DEFAULT_PAGE_SIZE) -> Iterator[List[Dict]]:
        start = 0
        while True:
            rows = self.fetch_page(start, page_size)
            if not rows:
                break
            yield rows
            if len(rows) < page_size:
                break
            start += page_size

    def existing_ids(self, game_ids: Iterable) -> Set[str]:
        raise NotImplementedError


class InMemoryRecordStore(RecordStore):
    """Dict-backed store keyed by str(external id)"""

    def __init__(self, records: Optional[Iterable[Dict]] = None, id_column: str = DEFAULT_ID_COLUMN):
        self.id_column = id_column
        self.records: Dict[str, Dict] = {}
        self.write_count = 0
        for record in records or []:
            self.records[str(record[id_column])] = dict(record)

    def get_game(self, game_id) -> Optional[Dict]:
        record = self.records.get(str(game_id))
        if record is None:
            return None
        copy = dict(record)
        copy['honors'] = [dict(h) for h in record.get('honors') or []]
        return copy

    def update_honors(self, game_id, honors: List[Dict]) -> None:
        key = str(game_id)
        if key not in self.records:
            raise StoreError(f"No game record for {self.id_column}={game_id}", game_id=game_id)
        self.records[key]['honors'] = [dict(h) for h in honors]
        self.write_count += 1
        self._persist()

    def insert_game(self, record: Dict) -> None:
        key = str(record[self.id_column])
        if key in self.records:
            raise StoreError(f"Game {self.id_column}={key} already exists", game_id=key)
        self.records[key] = dict(record)
        self.write_count += 1
        self._persist()

    def fetch_page(self, start: int, page_size: int = DEFAULT_PAGE_SIZE) -> List[Dict]:
        keys = list(self.records)[start:start + page_size]
        return [self.get_game(k) for k in keys]

    def existing_ids(self, game_ids: Iterable) -> Set[str]:
        return {str(g) for g in game_ids if str(g) in self.records}

    def _persist(self) -> None:
        """Hook for file-backed subclasses"""


class JsonFileRecordStore(InMemoryRecordStore):
    """JSON document file holding a list of game records; rewritten after each write"""

    def __init__(self, path: Path, id_column: str = DEFAULT_ID_COLUMN):
        self.path = Path(path)
        records = []
        if self.path.exists():
            with open(self.path, 'r', encoding='utf-8') as f:
                records = json.load(f)
            if not isinstance(records, list):
                raise StoreError(f"Record file {self.path} must hold a JSON array")
            logger.info(f"Loaded {len(records)} game records from {self.path}")
        super().__init__(records, id_column=id_column)

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(list(self.records.values()), f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


class SupabaseRecordStore(RecordStore):
    """games table in Supabase; honors is a JSONB column"""

    def __init__(self, client, table: str = DEFAULT_TABLE, id_column: str = DEFAULT_ID_COLUMN):
        self.client = client
        self.table = table
        self.id_column = id_column

    @classmethod
    def connect(cls, url: str, key: str, **kwargs) -> 'SupabaseRecordStore':
        if not url or not key:
            raise ConfigError("Missing Supabase credentials (need URL + service role key)")
        from supabase import create_client
        return cls(create_client(url, key), **kwargs)

    def _table(self):
        return self.client.table(self.table)

    def get_game(self, game_id) -> Optional[Dict]:
        result = self._table().select(f'id, {self.id_column}, name, honors').eq(
            self.id_column, game_id
        ).limit(1).execute()
        rows = result.data or []
        if not rows:
            return None
        row = rows[0]
        row['honors'] = row.get('honors') if isinstance(row.get('honors'), list) else []
        return row

    def update_honors(self, game_id, honors: List[Dict]) -> None:
        self._table().update({'honors': honors}).eq(self.id_column, game_id).execute()

    def insert_game(self, record: Dict) -> None:
        self._table().insert(record, returning='minimal').execute()

    def fetch_page(self, start: int, page_size: int = DEFAULT_PAGE_SIZE) -> List[Dict]:
        # offset paging is only stable over a fixed ordering
        result = self._table().select(f'id, {self.id_column}, honors').order(self.id_column).range(
            start, start + page_size - 1
        ).execute()
        return result.data or []

    def existing_ids(self, game_ids: Iterable) -> Set[str]:
        ids = list(game_ids)
        found = set()
        for start in range(0, len(ids), 500):
            batch = ids[start:start + 500]
            result = self._table().select(self.id_column).in_(self.id_column, batch).execute()
            for row in result.data or []:
                if row.get(self.id_column) is not None:
                    found.add(str(row[self.id_column]))
        return found
