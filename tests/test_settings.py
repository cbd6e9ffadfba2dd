from pathlib import Path

import pytest

from shared_config.common.exceptions import ConfigError
from shared_config.common.settings import (
    DEFAULT_CONFIG,
    DEFAULT_PORT,
    DEFAULT_STATE_DIR,
    StoreSettings,
    load_settings,
)

ENV_VARS = (
    "SHARED_CONFIG_FILE",
    "SHARED_CONFIG_STATE_DIR",
    "SHARED_CONFIG_PORT",
    "SHARED_CONFIG_URL",
    "SHARED_CONFIG_LOG_LEVEL",
    "SHARED_CONFIG_LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep ./config.yaml lookups inside the test directory
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        "shared_config.common.settings.CONFIG_FILE_CANDIDATES",
        [tmp_path / "config.yaml"],
    )


def write_yaml(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(text)
    return path


def test_defaults_without_file():
    settings = load_settings()

    assert settings.state_dir == DEFAULT_STATE_DIR
    assert settings.port == DEFAULT_PORT
    assert settings.defaults == DEFAULT_CONFIG
    assert settings.snapshot_url == f"http://127.0.0.1:{DEFAULT_PORT}"
    assert settings.log_format == "json"


def test_defaults_are_not_shared_between_instances():
    first = StoreSettings()
    first.defaults["extra"] = True
    assert "extra" not in StoreSettings().defaults


def test_load_from_yaml(tmp_path):
    path = write_yaml(tmp_path, """
store:
  state_dir: /tmp/shared-config
  entry: settings
  poll_interval_s: 2.5
server:
  host: 0.0.0.0
  port: 9000
logging:
  level: DEBUG
  format: text
defaults:
  vodDownload: true
  quality: 720p
""")
    settings = load_settings(path)

    assert settings.state_dir == Path("/tmp/shared-config")
    assert settings.entry == "settings"
    assert settings.poll_interval_s == 2.5
    assert settings.port == 9000
    assert settings.snapshot_url == "http://0.0.0.0:9000"
    assert settings.defaults == {"vodDownload": True, "quality": "720p"}
    assert settings.log_level == "DEBUG"
    assert settings.log_format == "text"


def test_well_known_location_is_used(tmp_path):
    (tmp_path / "config.yaml").write_text("server:\n  port: 9100\n")
    assert load_settings().port == 9100


def test_env_overrides_file(tmp_path, monkeypatch):
    path = write_yaml(tmp_path, "server:\n  port: 9000\nstore:\n  state_dir: /from/file\n")
    monkeypatch.setenv("SHARED_CONFIG_PORT", "9500")
    monkeypatch.setenv("SHARED_CONFIG_STATE_DIR", str(tmp_path / "env-state"))
    monkeypatch.setenv("SHARED_CONFIG_URL", "http://background:1234")

    settings = load_settings(path)

    assert settings.port == 9500
    assert settings.state_dir == tmp_path / "env-state"
    assert settings.snapshot_url == "http://background:1234"


def test_settings_file_from_env(tmp_path, monkeypatch):
    path = write_yaml(tmp_path, "store:\n  entry: from-env\n")
    monkeypatch.setenv("SHARED_CONFIG_FILE", str(path))
    assert load_settings().entry == "from-env"


@pytest.mark.parametrize("text", ["store: [unclosed", "- just\n- a list\n"])
def test_unusable_yaml_falls_back_to_defaults(tmp_path, text):
    settings = load_settings(write_yaml(tmp_path, text))
    assert settings.port == DEFAULT_PORT
    assert settings.defaults == DEFAULT_CONFIG


def test_defaults_must_be_a_mapping(tmp_path):
    with pytest.raises(ConfigError):
        load_settings(write_yaml(tmp_path, "defaults: [1, 2]\n"))


def test_invalid_port(tmp_path, monkeypatch):
    monkeypatch.setenv("SHARED_CONFIG_PORT", "eighty")
    with pytest.raises(ConfigError):
        load_settings()


@pytest.mark.parametrize("kwargs", [
    {"poll_interval_s": 0},
    {"watch_interval_s": -1},
    {"entry": ""},
])
def test_invalid_settings(kwargs):
    with pytest.raises(ConfigError):
        StoreSettings(**kwargs)


@pytest.mark.parametrize("text", [
    "store: foo\n",
    "server: [1, 2]\n",
    "logging: 5\n",
    "store:\n  poll_interval_s: often\n",
    "store:\n  watch_interval_s: true\n",
    "server:\n  port: [8765]\n",
    "logging:\n  format: xml\n",
])
def test_wrongly_typed_values_raise_config_error(tmp_path, text):
    with pytest.raises(ConfigError):
        load_settings(write_yaml(tmp_path, text))


def test_empty_section_uses_defaults(tmp_path):
    settings = load_settings(write_yaml(tmp_path, "store:\nserver:\n"))
    assert settings.entry == "config"
    assert settings.port == DEFAULT_PORT
