#!/usr/bin/env python3
"""
Test suite for honors/store.py — record store adapters and retry helper
"""

import json
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from honors.errors import ConfigError, StoreError
from honors.store import InMemoryRecordStore, JsonFileRecordStore, SupabaseRecordStore, with_retries


class TestWithRetries:
    """Bounded exponential backoff"""

    def test_returns_first_success(self):
        """No failure → no sleep"""
        sleeps = []
        assert with_retries(lambda: 42, 'op', sleep=sleeps.append) == 42
        assert sleeps == []

    def test_backoff_doubles(self):
        """retry_delay 0.25 → sleeps 0.25, 0.5"""
        calls = {'n': 0}
        sleeps = []

        def flaky():
            calls['n'] += 1
            if calls['n'] < 3:
                raise TimeoutError('slow')
            return 'ok'

        assert with_retries(flaky, 'op', max_retries=3, retry_delay=0.25, sleep=sleeps.append) == 'ok'
        assert sleeps == [0.25, 0.5]

    def test_exhausted_raises_store_error(self):
        """Retries exhausted → StoreError carrying the game id"""
        def always_fails():
            raise ConnectionError('down')

        with pytest.raises(StoreError) as exc_info:
            with_retries(always_fails, 'Fetch game 7', max_retries=2, game_id=7, sleep=lambda s: None)
        assert exc_info.value.game_id == 7
        assert 'Fetch game 7 failed after 2 attempts' in str(exc_info.value)

    def test_zero_retries_still_tries_once(self):
        """max_retries=0 still makes one attempt"""
        calls = []
        with_retries(lambda: calls.append(1), 'op', max_retries=0)
        assert calls == [1]


class TestInMemoryStore:
    """Dict-backed store"""

    def test_string_and_int_ids_address_same_game(self):
        """'13' and 13 refer to the same record"""
        store = InMemoryRecordStore([{'bgg_id': 13, 'honors': []}])
        assert store.get_game('13')['bgg_id'] == 13
        assert store.existing_ids([13, '14']) == {'13'}

    def test_get_returns_copy(self):
        """Mutating a fetched record does not touch the store"""
        store = InMemoryRecordStore([{'bgg_id': 1, 'honors': [{'year': 2024}]}])
        record = store.get_game(1)
        record['honors'][0]['year'] = 1999
        assert store.records['1']['honors'][0]['year'] == 2024

    def test_pages(self):
        """Five records, page_size 2 → pages of 2, 2, 1"""
        store = InMemoryRecordStore([{'bgg_id': i, 'honors': []} for i in range(5)])
        pages = list(store.iter_pages(page_size=2))
        assert [len(p) for p in pages] == [2, 2, 1]
        assert store.fetch_page(10, 2) == []

    def test_custom_id_column(self):
        store = InMemoryRecordStore([{'external_id': 'a', 'honors': []}], id_column='external_id')
        store.update_honors('a', [{'year': 2024}])
        assert store.records['a']['honors'] == [{'year': 2024}]


class TestJsonFileStore:
    """JSON array of game records on disk"""

    def test_writes_persist(self, tmp_path):
        """Update and insert survive a reload; no temp file left behind"""
        path = tmp_path / 'games.json'
        path.write_text(json.dumps([{'bgg_id': 1, 'name': 'Sky Team', 'honors': []}]))

        store = JsonFileRecordStore(path)
        store.update_honors(1, [{'year': 2024, 'award_type': 'Spiel des Jahres', 'category': 'Winner'}])
        store.insert_game({'bgg_id': 2, 'name': 'BGG 2', 'honors': [], 'provisional': True})

        reloaded = JsonFileRecordStore(path)
        assert reloaded.get_game(1)['honors'][0]['category'] == 'Winner'
        assert reloaded.get_game(2)['provisional'] is True
        assert not list(tmp_path.glob('*.tmp'))

    def test_missing_file_starts_empty(self, tmp_path):
        """Absent file → empty store, created on first write"""
        store = JsonFileRecordStore(tmp_path / 'out' / 'games.json')
        assert store.records == {}
        store.insert_game({'bgg_id': 5, 'honors': []})
        assert (tmp_path / 'out' / 'games.json').exists()

    def test_non_array_rejected(self, tmp_path):
        """JSON object instead of array → StoreError"""
        path = tmp_path / 'games.json'
        path.write_text(json.dumps({'bgg_id': 1}))
        with pytest.raises(StoreError):
            JsonFileRecordStore(path)


class TestSupabaseStore:
    """Query shape against a recorded fake client"""

    class FakeQuery:
        def __init__(self, log, data):
            self.log = log
            self.data = data

        def __getattr__(self, name):
            def method(*args, **kwargs):
                self.log.append((name, args, kwargs))
                return self
            return method

        def execute(self):
            return type('Result', (), {'data': self.data})()

    class FakeClient:
        def __init__(self, data):
            self.log = []
            self.data = data

        def table(self, name):
            self.log.append(('table', (name,), {}))
            return TestSupabaseStore.FakeQuery(self.log, self.data)

    def test_get_game_filters_on_id_column(self):
        """Lookup uses eq on bgg_id; null honors read as []"""
        client = self.FakeClient([{'bgg_id': 1, 'name': 'x', 'honors': None}])
        record = SupabaseRecordStore(client).get_game(1)
        assert record['honors'] == []
        assert ('eq', ('bgg_id', 1), {}) in client.log

    def test_get_game_absent(self):
        assert SupabaseRecordStore(self.FakeClient([])).get_game(1) is None

    def test_insert_minimal(self):
        """Insert asks for a minimal response"""
        client = self.FakeClient([])
        SupabaseRecordStore(client).insert_game({'bgg_id': 3})
        assert ('insert', ({'bgg_id': 3},), {'returning': 'minimal'}) in client.log

    def test_fetch_page_range(self):
        """Second page of 1000 → range(1000, 1999)"""
        client = self.FakeClient([])
        SupabaseRecordStore(client).fetch_page(1000, 1000)
        assert ('range', (1000, 1999), {}) in client.log

    def test_fetch_page_orders_before_range(self):
        """Offset pages are taken over a stable ordering on the id column"""
        client = self.FakeClient([])
        SupabaseRecordStore(client, id_column='external_id').fetch_page(0, 500)
        calls = [name for name, _, _ in client.log]
        assert ('order', ('external_id',), {}) in client.log
        assert calls.index('order') < calls.index('range')

    def test_connect_requires_credentials(self):
        """Missing url or key → ConfigError"""
        with pytest.raises(ConfigError):
            SupabaseRecordStore.connect('', None)
