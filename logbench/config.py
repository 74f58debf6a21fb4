"""Configuration — frozen dataclass loaded from environment variables."""

import os
from dataclasses import dataclass

DEFAULT_LOG_PATH = 'log/development.log'


@dataclass(frozen=True)
class Config:
    log_path:         str   = DEFAULT_LOG_PATH
    idle_interval:    float = 0.5     # tail sleep after an empty poll
    active_interval:  float = 0.01    # tail sleep right after new data
    redraw_interval:  float = 1.0
    debug_log:        str   = ''      # file for logging output; empty disables it
    debug_level:      str   = 'DEBUG'


def _float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f'{name} must be a number, got {raw!r}') from None
    if value < 0:
        raise ValueError(f'{name} must not be negative, got {raw!r}')
    return value


def load_config(log_path: str | None = None) -> Config:
    """Build Config from environment variables with sensible defaults."""
    return Config(
        log_path        = log_path or os.environ.get('LOGBENCH_LOG_FILE', Config.log_path),
        idle_interval   = _float('LOGBENCH_IDLE_INTERVAL', Config.idle_interval),
        active_interval = _float('LOGBENCH_ACTIVE_INTERVAL', Config.active_interval),
        redraw_interval = _float('LOGBENCH_REDRAW_INTERVAL', Config.redraw_interval),
        debug_log       = os.environ.get('LOGBENCH_DEBUG_LOG', Config.debug_log),
        debug_level     = os.environ.get('LOGBENCH_DEBUG_LEVEL', Config.debug_level).upper(),
    )
