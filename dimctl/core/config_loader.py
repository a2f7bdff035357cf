"""Configuration loading and validation for YAML-based dimctl configs."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import httpx
import yaml
from jsonschema import ValidationError

from dimctl.core.errors import ConfigLoadError, ConfigValidationError
from dimctl.core.model import (
    ButtonConfig,
    ControllerSettings,
    DimmerConfig,
    LogicalButton,
    StepTables,
    TransportKind,
)
from dimctl.core.schemas import CONFIG_SCHEMA, describe_error, load_validator

LOGGER = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yaml"


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# "on"/"off"/"yes"/"no" stay strings.
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
class LoadedConfig:
    config: DimmerConfig
    source: str
    warnings: tuple[str, ...]


def user_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "dimctl" / CONFIG_FILE_NAME


def _packaged_config_path() -> Traversable:
    return resources.files("dimctl.configs").joinpath("default.yaml")


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _build_step_tables(doc: dict[str, Any]) -> StepTables:
    defaults = StepTables()
    tables = doc.get("step_tables", {})
    return StepTables(
        single=tuple(tables.get("single", defaults.single)),
        double=tuple(tables.get("double", defaults.double)),
        triple=tuple(tables.get("triple", defaults.triple)),
    )


def _build_settings(doc: dict[str, Any]) -> ControllerSettings:
    defaults = ControllerSettings()
    queue = doc.get("queue", {})
    http = doc.get("http", {})
    return ControllerSettings(
        source_component=doc.get("source_component", defaults.source_component),
        minimum_brightness=int(doc.get("minimum_brightness", defaults.minimum_brightness)),
        queue_capacity=int(queue.get("capacity", defaults.queue_capacity)),
        drain_spacing_s=float(queue.get("drain_spacing_ms", defaults.drain_spacing_s * 1000)) / 1000,
        http_timeout_s=float(http.get("timeout_s", defaults.http_timeout_s)),
        step_tables=_build_step_tables(doc),
    )


def _build_button(entry: dict[str, Any]) -> ButtonConfig:
    transport = TransportKind(entry.get("transport", TransportKind.LOCAL))
    remote_address = str(entry.get("remote_address", "")).strip()
    if remote_address:
        try:
            httpx.URL(f"http://{remote_address}")
        except httpx.InvalidURL as exc:
            raise ConfigValidationError(f"remote_address '{remote_address}' is not a valid host: {exc}") from exc
    return ButtonConfig(
        device_id=entry["device_id"],
        channel_id=int(entry["channel_id"]),
        transport=transport,
        remote_address=remote_address,
    )


def build_config(doc: dict[str, Any], source: Path | Traversable | str) -> DimmerConfig:
    try:
        load_validator(CONFIG_SCHEMA).validate(doc)
    except ValidationError as exc:
        raise ConfigValidationError(f"Schema validation failed for {source}: {describe_error(exc)}") from exc

    buttons: dict[LogicalButton, ButtonConfig] = {}
    for name, entry in doc["buttons"].items():
        button = LogicalButton.parse(name)
        if button in buttons:
            raise ConfigValidationError(f"Button '{button}' is configured more than once in {source}")
        try:
            buttons[button] = _build_button(entry)
        except ConfigValidationError as exc:
            raise ConfigValidationError(f"Invalid button '{name}' in {source}: {exc}") from exc

    try:
        settings = _build_settings(doc)
    except ConfigValidationError as exc:
        raise ConfigValidationError(f"Invalid settings in {source}: {exc}") from exc

    return DimmerConfig(settings=settings, buttons=buttons)


def load_config(path: Path | str | None = None) -> LoadedConfig:
    """Load the explicit config, else the user config, else the packaged default."""
    warnings: list[str] = []

    if path is not None:
        source: Path | Traversable = Path(path)
        if not source.exists():
            raise ConfigLoadError(f"Config file {source} does not exist")
    else:
        user_path = user_config_path()
        if user_path.is_file():
            source = user_path
        else:
            source = _packaged_config_path()
            warning = f"No user config at {user_path}; using packaged defaults"
            LOGGER.warning(warning)
            warnings.append(warning)

    config = build_config(_read_yaml(source), source)
    LOGGER.debug("Loaded %s buttons from %s", len(config.buttons), source)
    return LoadedConfig(config=config, source=str(source), warnings=tuple(warnings))
