"""Tests for environment-driven configuration."""

import pytest

from logbench.config import DEFAULT_LOG_PATH, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ('LOGBENCH_LOG_FILE', 'LOGBENCH_IDLE_INTERVAL', 'LOGBENCH_ACTIVE_INTERVAL',
                 'LOGBENCH_REDRAW_INTERVAL', 'LOGBENCH_DEBUG_LOG', 'LOGBENCH_DEBUG_LEVEL'):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    def test_defaults(self):
        cfg = load_config()
        assert cfg.log_path == DEFAULT_LOG_PATH
        assert cfg.idle_interval == 0.5
        assert cfg.active_interval == 0.01
        assert cfg.debug_log == ''

    def test_argument_wins_over_env(self, monkeypatch):
        monkeypatch.setenv('LOGBENCH_LOG_FILE', 'env.log')
        assert load_config('arg.log').log_path == 'arg.log'
        assert load_config().log_path == 'env.log'

    def test_intervals_from_env(self, monkeypatch):
        monkeypatch.setenv('LOGBENCH_IDLE_INTERVAL', '2')
        monkeypatch.setenv('LOGBENCH_DEBUG_LEVEL', 'info')
        cfg = load_config()
        assert cfg.idle_interval == 2.0
        assert cfg.debug_level == 'INFO'

    def test_bad_interval(self, monkeypatch):
        monkeypatch.setenv('LOGBENCH_ACTIVE_INTERVAL', 'fast')
        with pytest.raises(ValueError, match='LOGBENCH_ACTIVE_INTERVAL'):
            load_config()

    def test_negative_interval(self, monkeypatch):
        monkeypatch.setenv('LOGBENCH_REDRAW_INTERVAL', '-1')
        with pytest.raises(ValueError):
            load_config()
