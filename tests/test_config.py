from __future__ import annotations

from pathlib import Path

import pytest

from iwdctl.core.config import DEFAULT_NOTIFY_COMMAND, Settings, load_settings
from iwdctl.core.errors import ConfigError, ConfigValidationError


def _write_config(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def config_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    return tmp_path / "cfg" / "iwdctl" / "config.yaml"


def test_missing_default_file_gives_defaults(config_home: Path) -> None:
    loaded = load_settings()
    assert loaded.source is None
    assert loaded.settings == Settings()
    assert loaded.settings.debounce_ms == 200
    assert loaded.settings.debounce_s == 0.2
    assert loaded.settings.notify_command == DEFAULT_NOTIFY_COMMAND


def test_full_config_loads(config_home: Path) -> None:
    _write_config(
        config_home,
        """
debounce_ms: 350
agent_path: /org/example/agent
ping_timeout_s: 0.5
notifications:
  enabled: false
  command: ["dunstify", "-a", "wifi"]
prompt:
  command: ["rofi", "-dmenu", "-password", "-p", "Passphrase for {ssid}"]
""",
    )

    loaded = load_settings()
    settings = loaded.settings
    assert loaded.source == config_home
    assert settings.debounce_ms == 350
    assert settings.agent_path == "/org/example/agent"
    assert settings.ping_timeout_s == 0.5
    assert settings.notifications_enabled is False
    assert settings.notify_command == ("dunstify", "-a", "wifi")
    assert settings.prompt_command[-1] == "Passphrase for {ssid}"
    assert loaded.warnings == ()


def test_prompt_command_without_ssid_warns(config_home: Path) -> None:
    _write_config(config_home, 'prompt:\n  command: ["zenity", "--password"]\n')
    loaded = load_settings()
    assert any("{ssid}" in warning for warning in loaded.warnings)


def test_unknown_key_rejected(config_home: Path) -> None:
    _write_config(config_home, "debounce: 200\n")
    with pytest.raises(ConfigValidationError) as exc:
        load_settings()
    assert "debounce" in str(exc.value)


def test_out_of_range_debounce_rejected(config_home: Path) -> None:
    _write_config(config_home, "debounce_ms: 0\n")
    with pytest.raises(ConfigValidationError) as exc:
        load_settings()
    assert "debounce_ms" in str(exc.value)


def test_invalid_agent_path_rejected(config_home: Path) -> None:
    _write_config(config_home, "agent_path: not/a/path\n")
    with pytest.raises(ConfigValidationError):
        load_settings()


def test_duplicate_yaml_keys_rejected(config_home: Path) -> None:
    _write_config(config_home, "debounce_ms: 100\ndebounce_ms: 300\n")
    with pytest.raises(ConfigValidationError):
        load_settings()


def test_root_must_be_mapping(config_home: Path) -> None:
    _write_config(config_home, "- debounce_ms\n")
    with pytest.raises(ConfigValidationError):
        load_settings()


def test_empty_file_gives_defaults(config_home: Path) -> None:
    _write_config(config_home, "")
    assert load_settings().settings == Settings()


def test_explicit_path_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "absent.yaml")
