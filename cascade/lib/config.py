"""
Configuration loader for the planning engine.

Loads engine settings from <workspace>/cascade.env. Every setting has a
default; bad values fall back with a warning instead of failing startup.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from . import envparse

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "cascade.env"

DEFAULT_PLANS_DIR = "plans"
DEFAULT_REFRESH_DEBOUNCE_MS = 300
DEFAULT_GIT_SETTLE_MS = 500
DEFAULT_FILE_EVENT_DEBOUNCE_MS = 300
DEFAULT_POLL_INTERVAL_MS = 1000

# Inclusive (min, max) bounds in milliseconds
REFRESH_DEBOUNCE_RANGE = (0, 5000)
GIT_SETTLE_RANGE = (100, 5000)
FILE_EVENT_DEBOUNCE_RANGE = (0, 5000)
POLL_INTERVAL_RANGE = (100, 60000)


class ConfigError(Exception):
    """Settings file exists but cannot be read as KEY=value lines."""


@dataclass
class EngineConfig:
    """Engine settings from cascade.env"""
    plans_dir: str = DEFAULT_PLANS_DIR  # Relative to workspace root
    refresh_debounce_ms: int = DEFAULT_REFRESH_DEBOUNCE_MS  # 0 disables debouncing
    git_detection_enabled: bool = True
    git_settle_ms: int = DEFAULT_GIT_SETTLE_MS
    file_event_debounce_ms: int = DEFAULT_FILE_EVENT_DEBOUNCE_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS


def clamp_delay(value: int, bounds: tuple[int, int], name: str) -> int:
    """Clamp a delay into bounds, logging when the value had to change."""
    low, high = bounds
    if value < low:
        logger.warning(f"{name}={value}ms is below {low}ms, using {low}ms")
        return low
    if value > high:
        logger.warning(f"{name}={value}ms exceeds {high}ms, using {high}ms")
        return high
    return value


def _get_delay(env: dict, key: str, default: int, bounds: tuple[int, int]) -> int:
    raw = env.get(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Unknown {key} '{raw}', using {default}ms")
        return default
    return clamp_delay(value, bounds, key)


def _get_bool(env: dict, key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    logger.warning(f"Unknown {key} '{raw}', using {str(default).lower()}")
    return default


def load_engine_config(workspace: Path) -> EngineConfig:
    """Load cascade.env and return EngineConfig.

    Missing file means all defaults.

    Raises:
        ConfigError: if the file exists but has invalid syntax
    """
    config_path = workspace / CONFIG_FILENAME
    if not config_path.exists():
        return EngineConfig()

    try:
        env = envparse.load_env(config_path)
    except envparse.EnvSyntaxError as e:
        raise ConfigError(str(e)) from e

    return EngineConfig(
        plans_dir=env.get("CASCADE_PLANS_DIR", DEFAULT_PLANS_DIR),
        refresh_debounce_ms=_get_delay(
            env, "REFRESH_DEBOUNCE_DELAY", DEFAULT_REFRESH_DEBOUNCE_MS, REFRESH_DEBOUNCE_RANGE
        ),
        git_detection_enabled=_get_bool(env, "GIT_OPERATION_DETECTION", True),
        git_settle_ms=_get_delay(
            env, "GIT_OPERATION_DEBOUNCE_DELAY", DEFAULT_GIT_SETTLE_MS, GIT_SETTLE_RANGE
        ),
        file_event_debounce_ms=_get_delay(
            env, "FILE_EVENT_DEBOUNCE_DELAY", DEFAULT_FILE_EVENT_DEBOUNCE_MS, FILE_EVENT_DEBOUNCE_RANGE
        ),
        poll_interval_ms=_get_delay(
            env, "POLL_INTERVAL", DEFAULT_POLL_INTERVAL_MS, POLL_INTERVAL_RANGE
        ),
    )
