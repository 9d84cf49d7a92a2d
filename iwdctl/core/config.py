"""Configuration loading and validation for the YAML settings file."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from iwdctl.core.agent import DEFAULT_AGENT_PATH, DEFAULT_PING_TIMEOUT_S
from iwdctl.core.coalescer import DEFAULT_WINDOW_S
from iwdctl.core.errors import ConfigError, ConfigValidationError

LOGGER = logging.getLogger(__name__)

DEFAULT_NOTIFY_COMMAND = ("notify-send", "--app-name=iwdctl")


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Only the literal strings true/false count as booleans, so "on" or "no"
# inside a prompt command line stay strings.
for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class Settings:
    debounce_ms: int = int(DEFAULT_WINDOW_S * 1000)
    agent_path: str = DEFAULT_AGENT_PATH
    ping_timeout_s: float = DEFAULT_PING_TIMEOUT_S
    notifications_enabled: bool = True
    notify_command: tuple[str, ...] = DEFAULT_NOTIFY_COMMAND
    prompt_command: tuple[str, ...] = ()

    @property
    def debounce_s(self) -> float:
        return self.debounce_ms / 1000


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    source: Path | None
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("iwdctl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "iwdctl/config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ConfigValidationError(f"{context} must be boolean true/false")


def _build_settings(doc: dict[str, Any], source: Path) -> tuple[Settings, list[str]]:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    warnings: list[str] = []
    notifications = doc.get("notifications", {})
    prompt = doc.get("prompt", {})
    prompt_command = tuple(prompt.get("command", ()))
    if prompt_command and not any("{ssid}" in arg for arg in prompt_command):
        warnings.append("prompt.command does not mention {ssid}; the prompt will not name the network")

    settings = Settings(
        debounce_ms=int(doc.get("debounce_ms", Settings.debounce_ms)),
        agent_path=doc.get("agent_path", DEFAULT_AGENT_PATH),
        ping_timeout_s=float(doc.get("ping_timeout_s", DEFAULT_PING_TIMEOUT_S)),
        notifications_enabled=_normalize_bool(
            notifications.get("enabled", True),
            context="notifications.enabled",
        ),
        notify_command=tuple(notifications.get("command", DEFAULT_NOTIFY_COMMAND)),
        prompt_command=prompt_command,
    )
    return settings, warnings


def load_settings(path: Path | None = None) -> LoadedSettings:
    """Load settings from ``path`` or the XDG default location.

    An explicit path must exist; a missing default file means defaults.
    """
    explicit = path is not None
    source = path if path is not None else default_config_path()
    if not source.exists():
        if explicit:
            raise ConfigError(f"Config file {source} does not exist")
        return LoadedSettings(settings=Settings(), source=None, warnings=())

    settings, warnings = _build_settings(_read_yaml(source), source)
    for warning in warnings:
        LOGGER.warning(warning)
    return LoadedSettings(settings=settings, source=source, warnings=tuple(warnings))
