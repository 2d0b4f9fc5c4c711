#!/usr/bin/env python3
"""
Test suite for honors/config.py — YAML config layering and store construction
"""

import pytest
import sys
import yaml
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from honors.config import DEFAULT_CONFIG, build_store, load_config
from honors.errors import ConfigError, SnapshotError
from honors.snapshot import load_snapshot
from honors.store import JsonFileRecordStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ('SUPABASE_URL', 'SUPABASE_SERVICE_ROLE_KEY', 'SUPABASE_SERVICE_KEY'):
        monkeypatch.delenv(var, raising=False)


class TestLoadConfig:
    """config.yaml layered over defaults"""

    def test_missing_file_uses_defaults(self, tmp_path):
        """Absent config.yaml → DEFAULT_CONFIG"""
        config = load_config(tmp_path / 'nope.yaml')
        assert config['store'] == DEFAULT_CONFIG['store']
        assert config['workers'] == 1

    def test_nested_override_keeps_other_defaults(self, tmp_path):
        """store.page_size overridden, store.id_column still the default"""
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump({
            'store': {'page_size': 50},
            'caps': {'default': {'special': 2}},
        }))
        config = load_config(path)
        assert config['store']['page_size'] == 50
        assert config['store']['id_column'] == 'bgg_id'
        assert config['caps'] == {'default': {'special': 2}}

    def test_defaults_not_mutated(self, tmp_path):
        """Loading a config never changes DEFAULT_CONFIG"""
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump({'store': {'backend': 'supabase'}}))
        load_config(path)
        assert DEFAULT_CONFIG['store']['backend'] == 'json'

    def test_non_mapping_rejected(self, tmp_path):
        """Top-level YAML list → ConfigError"""
        path = tmp_path / 'config.yaml'
        path.write_text('- just\n- a list\n')
        with pytest.raises(ConfigError):
            load_config(path)

    def test_malformed_yaml_rejected(self, tmp_path):
        """Unclosed flow mapping → ConfigError"""
        path = tmp_path / 'config.yaml'
        path.write_text('store: {backend: json\n')
        with pytest.raises(ConfigError):
            load_config(path)

    def test_environment_credentials_override(self, tmp_path, monkeypatch):
        """SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY win over the file"""
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump({'supabase_url': 'https://file.example', 'supabase_key': 'file'}))
        monkeypatch.setenv('SUPABASE_URL', 'https://env.example')
        monkeypatch.setenv('SUPABASE_SERVICE_ROLE_KEY', 'env')
        config = load_config(path)
        assert config['supabase_url'] == 'https://env.example'
        assert config['supabase_key'] == 'env'


class TestBuildStore:
    """Backend selection"""

    def test_json_backend(self, tmp_path):
        """Default backend → JsonFileRecordStore"""
        config = load_config(None)
        config['store']['path'] = str(tmp_path / 'games.json')
        assert isinstance(build_store(config), JsonFileRecordStore)

    def test_override_path_wins(self, tmp_path):
        """--store path beats a configured supabase backend"""
        config = load_config(None)
        config['store']['backend'] = 'supabase'
        store = build_store(config, tmp_path / 'local.json')
        assert isinstance(store, JsonFileRecordStore)
        assert store.path == tmp_path / 'local.json'

    def test_supabase_without_credentials(self):
        """supabase backend with no url/key → ConfigError"""
        config = load_config(None)
        config['store']['backend'] = 'supabase'
        with pytest.raises(ConfigError):
            build_store(config)

    def test_unknown_backend(self):
        """'sqlite' → ConfigError"""
        config = load_config(None)
        config['store']['backend'] = 'sqlite'
        with pytest.raises(ConfigError):
            build_store(config)


class TestSnapshot:
    """Snapshot file is the only run-fatal input"""

    def test_loads_array(self, tmp_path):
        path = tmp_path / 'honors.json'
        path.write_text('[{"id": 1}]')
        assert load_snapshot(path) == [{'id': 1}]

    def test_missing_file(self, tmp_path):
        """Absent snapshot → SnapshotError"""
        with pytest.raises(SnapshotError):
            load_snapshot(tmp_path / 'absent.json')

    def test_invalid_json(self, tmp_path):
        """Truncated JSON → SnapshotError"""
        path = tmp_path / 'honors.json'
        path.write_text('[{"id": 1},')
        with pytest.raises(SnapshotError):
            load_snapshot(path)

    def test_not_an_array(self, tmp_path):
        """Snapshot object instead of array → SnapshotError"""
        path = tmp_path / 'honors.json'
        path.write_text('{"id": 1}')
        with pytest.raises(SnapshotError):
            load_snapshot(path)
