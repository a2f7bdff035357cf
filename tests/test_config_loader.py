from __future__ import annotations

from pathlib import Path

import pytest

from dimctl.core.config_loader import load_config
from dimctl.core.errors import ConfigLoadError, ConfigValidationError
from dimctl.core.model import LogicalButton, TransportKind


def _write_config(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def _isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))


def test_load_packaged_default() -> None:
    loaded = load_config()
    config = loaded.config
    assert set(config.buttons) == set(LogicalButton)
    up_left = config.buttons[LogicalButton.UP_LEFT]
    assert up_left.transport is TransportKind.HTTP
    assert up_left.remote_address == "192.168.0.12"
    assert config.settings.queue_capacity == 100
    assert config.settings.drain_spacing_s == pytest.approx(0.05)
    assert config.settings.step_tables.single == (0, 3, 5, 10, 25, 50, 75, 100)
    assert any("packaged defaults" in warning for warning in loaded.warnings)


def test_user_config_takes_precedence(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "cfg" / "dimctl" / "config.yaml",
        """
source_component: "script:3"
minimum_brightness: 5
buttons:
  btn_up_left:
    device_id: Kitchen
    channel_id: 2
""",
    )

    loaded = load_config()
    assert loaded.warnings == ()
    assert loaded.config.settings.source_component == "script:3"
    assert loaded.config.settings.minimum_brightness == 5
    button = loaded.config.buttons[LogicalButton.UP_LEFT]
    assert button.transport is TransportKind.LOCAL
    assert button.channel_id == 2
    assert list(loaded.config.buttons) == [LogicalButton.UP_LEFT]


def test_explicit_path(tmp_path: Path) -> None:
    path = tmp_path / "lights.yaml"
    _write_config(
        path,
        """
queue:
  capacity: 10
  drain_spacing_ms: 0
http:
  timeout_s: 1.5
step_tables:
  triple: [0, 50, 100]
buttons:
  down_right:
    device_id: Porch
    channel_id: 0
    transport: http
    remote_address: porch.lan
""",
    )

    settings = load_config(path).config.settings
    assert settings.queue_capacity == 10
    assert settings.drain_spacing_s == 0
    assert settings.http_timeout_s == 1.5
    assert settings.step_tables.triple == (0, 50, 100)
    assert settings.step_tables.double[-1] == 100


def test_missing_explicit_path(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    "content",
    [
        # http without an address
        """
buttons:
  up_left: {device_id: A, channel_id: 0, transport: http}
""",
        # negative channel
        """
buttons:
  up_left: {device_id: A, channel_id: -1}
""",
        # unknown button
        """
buttons:
  middle: {device_id: A, channel_id: 0}
""",
        # unknown transport
        """
buttons:
  up_left: {device_id: A, channel_id: 0, transport: zigbee}
""",
        # descending step table
        """
step_tables:
  single: [0, 50, 25, 100]
buttons:
  up_left: {device_id: A, channel_id: 0}
""",
        # step table not ending at 100
        """
step_tables:
  double: [0, 10, 90]
buttons:
  up_left: {device_id: A, channel_id: 0}
""",
        # unparseable remote address
        """
buttons:
  up_left: {device_id: A, channel_id: 0, transport: http, remote_address: "192.168.0.12:notaport"}
""",
        # local button with an address
        """
buttons:
  up_left: {device_id: A, channel_id: 0, remote_address: 10.0.0.2}
""",
        # same button twice under two spellings
        """
buttons:
  up_left: {device_id: A, channel_id: 0}
  btn_up_left: {device_id: B, channel_id: 1}
""",
        # no buttons
        """
buttons: {}
""",
        # unknown top-level key
        """
colour: warm
buttons:
  up_left: {device_id: A, channel_id: 0}
""",
        # root is not a mapping
        """
- up_left
""",
    ],
)
def test_invalid_configs_rejected(tmp_path: Path, content: str) -> None:
    path = tmp_path / "bad.yaml"
    _write_config(path, content)
    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    path = tmp_path / "dup.yaml"
    _write_config(
        path,
        """
buttons:
  up_left:
    device_id: A
    channel_id: 0
    channel_id: 1
""",
    )
    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_invalid_yaml_rejected(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    _write_config(path, "buttons: [unclosed\n")
    with pytest.raises(ConfigValidationError):
        load_config(path)
