"""
Tests for settings loading and environment overrides
"""
import yaml

import settings as settings_module
from constants import DEFAULT_SETTINGS
from settings import merge_settings, apply_env_overrides, load_settings, verify_settings


def test_merge_keeps_unset_defaults():
    merged = merge_settings(DEFAULT_SETTINGS, {'scraper': {'concurrency': 8}})
    assert merged['scraper']['concurrency'] == 8
    assert merged['scraper']['delay_min'] == 2.0
    assert merged['queue']['batch_size'] == 100
    assert DEFAULT_SETTINGS['scraper']['concurrency'] == 3


def test_env_overrides_are_cast():
    settings = merge_settings(DEFAULT_SETTINGS, {})
    apply_env_overrides(settings, {
        'REDIS_URL': 'redis://cache:6379/1',
        'SCRAPER_BATCH_SIZE': '25',
        'SCRAPER_CONCURRENT': '2',
        'SCRAPER_DELAY_MIN': '0.5',
        'DATABASE_URL': 'postgresql://u:p@db/eshop',
    })
    assert settings['queue']['redis_url'] == 'redis://cache:6379/1'
    assert settings['queue']['batch_size'] == 25
    assert settings['scraper']['concurrency'] == 2
    assert settings['scraper']['delay_min'] == 0.5
    assert settings['database']['url'] == 'postgresql://u:p@db/eshop'


def test_invalid_env_value_is_ignored():
    settings = merge_settings(DEFAULT_SETTINGS, {})
    apply_env_overrides(settings, {'SCRAPER_BATCH_SIZE': 'lots', 'METRICS_PORT': ''})
    assert settings['queue']['batch_size'] == 100
    assert settings['metrics']['port'] is None


def test_load_settings_writes_defaults(tmp_path, monkeypatch):
    monkeypatch.setattr(settings_module, '_cached_settings', None)
    for env_name, _, _, _ in settings_module.ENV_OVERRIDES:
        monkeypatch.delenv(env_name, raising=False)
    config_file = tmp_path / 'config' / 'settings.yaml'

    loaded = load_settings(force=True, config_file=str(config_file))

    assert loaded['queue']['batch_size'] == 100
    assert config_file.exists()


def test_load_settings_reads_file(tmp_path, monkeypatch):
    monkeypatch.setattr(settings_module, '_cached_settings', None)
    monkeypatch.setenv('SCRAPER_CONCURRENT', '6')
    config_file = tmp_path / 'settings.yaml'
    config_file.write_text(yaml.dump({'scraper': {'concurrency': 4, 'region': 'JP'}}))

    loaded = load_settings(force=True, config_file=str(config_file))

    assert loaded['scraper']['region'] == 'JP'
    assert loaded['scraper']['concurrency'] == 6


def test_verify_settings():
    ok, errors = verify_settings(DEFAULT_SETTINGS)
    assert ok and errors == []

    bad = merge_settings(DEFAULT_SETTINGS, {'scraper': {'concurrency': 0, 'delay_min': 9.0}})
    ok, errors = verify_settings(bad)
    assert not ok
    assert {e['path'] for e in errors} == {'scraper/concurrency', 'scraper/delay_min'}
