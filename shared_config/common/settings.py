"""
Store Settings

Deployment settings for a shared config store: where the backend keeps
its state, how often to poll and watch, where the snapshot endpoint lives
and which default map seeds a fresh store.

Loaded from YAML, then overridden by environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError
from .logging_setup import get_service_logger

logger = get_service_logger("settings")

# Built-in default map, used when nothing is persisted yet
DEFAULT_CONFIG: dict[str, Any] = {
    "vodDownload": False,
    "clipDownload": True,
}

DEFAULT_STATE_DIR = Path("/var/lib/shared-config/state")
DEFAULT_PORT = 8765

CONFIG_FILE_CANDIDATES = [
    Path("/etc/shared-config/config.yaml"),
    Path("config.yaml"),
]


@dataclass
class StoreSettings:
    """Settings for one store deployment"""
    state_dir: Path = DEFAULT_STATE_DIR
    entry: str = "config"
    poll_interval_s: float = 1.0
    watch_interval_s: float = 0.25
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    snapshot_url: str = ""
    defaults: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_CONFIG))
    log_level: str = "INFO"
    log_format: str = "json"

    def __post_init__(self) -> None:
        self.state_dir = Path(self.state_dir)
        if not self.snapshot_url:
            self.snapshot_url = f"http://{self.host}:{self.port}"
        if self.poll_interval_s <= 0:
            raise ConfigError(f"poll_interval_s must be positive, got {self.poll_interval_s}")
        if self.watch_interval_s <= 0:
            raise ConfigError(f"watch_interval_s must be positive, got {self.watch_interval_s}")
        if not self.entry:
            raise ConfigError("entry name must not be empty")
        if self.log_format.lower() not in ("json", "text"):
            raise ConfigError(f"log_format must be 'json' or 'text', got {self.log_format!r}")


def find_settings_file(path: str | Path | None = None) -> Path | None:
    """Find the settings file: explicit path, $SHARED_CONFIG_FILE, then well-known locations"""
    candidates: list[Path] = []
    if path:
        candidates.append(Path(path))
    env_path = os.environ.get("SHARED_CONFIG_FILE")
    if env_path:
        candidates.append(Path(env_path))
    candidates.extend(CONFIG_FILE_CANDIDATES)

    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _load_yaml(path: Path) -> dict:
    """Load settings YAML, returning {} when unreadable"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Settings file not found: {path}")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing settings: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Settings file {path} must contain a mapping, got {type(data).__name__}")
        return {}
    return data


def _section(data: dict, name: str) -> dict:
    """A top-level YAML section, {} when absent"""
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section must be a mapping, got {type(section).__name__}")
    return section


def _number(value: Any, name: str, kind: type = float) -> Any:
    if isinstance(value, bool):
        raise ConfigError(f"Invalid {name}: {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid {name}: {value!r}")


def load_settings(path: str | Path | None = None) -> StoreSettings:
    """
    Load settings from YAML and environment.

    Environment variables win over the file:
    SHARED_CONFIG_STATE_DIR, SHARED_CONFIG_PORT, SHARED_CONFIG_URL,
    SHARED_CONFIG_LOG_LEVEL, SHARED_CONFIG_LOG_FORMAT.

    Raises:
        ConfigError: a section, number or the defaults map has the wrong type
    """
    settings_file = find_settings_file(path)
    data = _load_yaml(settings_file) if settings_file else {}
    if settings_file:
        logger.info(f"Loaded settings from {settings_file}")

    store = _section(data, "store")
    server = _section(data, "server")
    log = _section(data, "logging")

    defaults = data.get("defaults")
    if defaults is None:
        defaults = dict(DEFAULT_CONFIG)
    elif not isinstance(defaults, dict):
        raise ConfigError(f"'defaults' must be a mapping, got {type(defaults).__name__}")

    port = _number(os.environ.get("SHARED_CONFIG_PORT") or server.get("port", DEFAULT_PORT), "port", int)

    return StoreSettings(
        state_dir=Path(os.environ.get("SHARED_CONFIG_STATE_DIR") or store.get("state_dir", DEFAULT_STATE_DIR)),
        entry=str(store.get("entry", "config")),
        poll_interval_s=_number(store.get("poll_interval_s", 1.0), "poll_interval_s"),
        watch_interval_s=_number(store.get("watch_interval_s", 0.25), "watch_interval_s"),
        host=str(server.get("host", "127.0.0.1")),
        port=port,
        snapshot_url=os.environ.get("SHARED_CONFIG_URL") or server.get("snapshot_url", ""),
        defaults=defaults,
        log_level=str(os.environ.get("SHARED_CONFIG_LOG_LEVEL") or log.get("level", "INFO")),
        log_format=str(os.environ.get("SHARED_CONFIG_LOG_FORMAT") or log.get("format", "json")),
    )
