"""Core data models used across decoder, policy, dispatcher, and CLI."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from dimctl.core.errors import ConfigValidationError

MAX_BRIGHTNESS = 100


class Direction(StrEnum):
    UP = "up"
    DOWN = "down"


class LogicalButton(StrEnum):
    UP_LEFT = "up_left"
    DOWN_LEFT = "down_left"
    UP_RIGHT = "up_right"
    DOWN_RIGHT = "down_right"

    @classmethod
    def parse(cls, name: str) -> LogicalButton:
        """Resolve a canonical or ``btn_``-prefixed button name."""
        normalized = name.strip().lower()
        if normalized.startswith("btn_"):
            normalized = normalized[len("btn_"):]
        return cls(normalized)

    @property
    def direction(self) -> Direction:
        return Direction.UP if self.value.startswith("up") else Direction.DOWN


# Slot order of the four-button payload.
SLOT_ORDER: tuple[LogicalButton, ...] = (
    LogicalButton.UP_LEFT,
    LogicalButton.DOWN_LEFT,
    LogicalButton.UP_RIGHT,
    LogicalButton.DOWN_RIGHT,
)


class PressAction(StrEnum):
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    LONG_PRESS = "long_press"


class TransportKind(StrEnum):
    LOCAL = "local"
    HTTP = "http"


@dataclass(frozen=True)
class ButtonConfig:
    device_id: str
    channel_id: int
    transport: TransportKind = TransportKind.LOCAL
    remote_address: str = ""

    def __post_init__(self) -> None:
        if not self.device_id:
            raise ConfigValidationError("device_id must not be empty")
        if isinstance(self.channel_id, bool) or not isinstance(self.channel_id, int) or self.channel_id < 0:
            raise ConfigValidationError(
                f"channel_id for '{self.device_id}' must be a non-negative integer, got {self.channel_id!r}"
            )
        if not isinstance(self.transport, TransportKind):
            try:
                object.__setattr__(self, "transport", TransportKind(self.transport))
            except ValueError as exc:
                raise ConfigValidationError(
                    f"Unsupported transport '{self.transport}' for '{self.device_id}'"
                ) from exc
        if self.transport is TransportKind.HTTP and not self.remote_address:
            raise ConfigValidationError(f"Device '{self.device_id}' uses http transport but has no remote_address")
        if self.transport is TransportKind.LOCAL and self.remote_address:
            raise ConfigValidationError(f"Device '{self.device_id}' uses local transport and must not set remote_address")


@dataclass(frozen=True)
class DecodedEvent:
    button: LogicalButton
    action: PressAction


@dataclass(frozen=True)
class DecodeFailure:
    reason: str


@dataclass(frozen=True)
class SensorEvent:
    source_component_id: str
    payload: Any

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> SensorEvent:
        """Build an event from either the platform or the canonical shape."""
        if "source_component_id" in raw:
            return cls(source_component_id=str(raw["source_component_id"]), payload=raw.get("payload"))
        info = raw.get("info")
        data = info.get("data") if isinstance(info, Mapping) else None
        return cls(source_component_id=str(raw.get("component", "")), payload=data)


@dataclass(frozen=True)
class QueueItem:
    payload: Mapping[str, Any]
    enqueued_at: float


@dataclass(frozen=True)
class DeviceState:
    brightness: int
    is_on: bool

    def __post_init__(self) -> None:
        if not 0 <= self.brightness <= MAX_BRIGHTNESS:
            raise ValueError(f"brightness must be within 0..{MAX_BRIGHTNESS}, got {self.brightness}")


UNKNOWN_STATE = DeviceState(brightness=0, is_on=False)


@dataclass(frozen=True)
class TurnOn:
    pass


@dataclass(frozen=True)
class TurnOff:
    pass


@dataclass(frozen=True)
class SetBrightness:
    value: int

    def __post_init__(self) -> None:
        if not 0 <= self.value <= MAX_BRIGHTNESS:
            raise ValueError(f"brightness must be within 0..{MAX_BRIGHTNESS}, got {self.value}")


LightCommand = TurnOn | TurnOff | SetBrightness


def describe_command(command: LightCommand) -> str:
    if isinstance(command, SetBrightness):
        return f"set_brightness({command.value})"
    if isinstance(command, TurnOff):
        return "turn_off"
    return "turn_on"


@dataclass(frozen=True)
class StatusResult:
    state: DeviceState
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CommandResult:
    command: LightCommand
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CycleReport:
    event: DecodedEvent
    config: ButtonConfig
    status: StatusResult
    command: LightCommand | None = None
    result: CommandResult | None = None

    @property
    def abandoned(self) -> bool:
        return self.command is None


def _check_table(name: str, table: tuple[int, ...]) -> None:
    if not table:
        raise ConfigValidationError(f"Step table '{name}' must not be empty")
    if any(not 0 <= step <= MAX_BRIGHTNESS for step in table):
        raise ConfigValidationError(f"Step table '{name}' must only contain values within 0..{MAX_BRIGHTNESS}")
    if any(later <= earlier for earlier, later in zip(table, table[1:])):
        raise ConfigValidationError(f"Step table '{name}' must be strictly ascending")
    if table[-1] != MAX_BRIGHTNESS:
        raise ConfigValidationError(f"Step table '{name}' must end at {MAX_BRIGHTNESS}")


@dataclass(frozen=True)
class StepTables:
    single: tuple[int, ...] = (0, 3, 5, 10, 25, 50, 75, 100)
    double: tuple[int, ...] = (0, 3, 5, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100)
    triple: tuple[int, ...] = (0, 3, 25, 50, 75, 100)

    def __post_init__(self) -> None:
        for name in ("single", "double", "triple"):
            table = tuple(getattr(self, name))
            object.__setattr__(self, name, table)
            _check_table(name, table)

    def for_action(self, action: PressAction) -> tuple[int, ...]:
        if action is PressAction.DOUBLE:
            return self.double
        if action is PressAction.TRIPLE:
            return self.triple
        return self.single


@dataclass(frozen=True)
class ControllerSettings:
    source_component: str = "script:1"
    minimum_brightness: int = 3
    queue_capacity: int = 100
    drain_spacing_s: float = 0.05
    http_timeout_s: float = 5.0
    step_tables: StepTables = field(default_factory=StepTables)

    def __post_init__(self) -> None:
        if not 0 < self.minimum_brightness <= MAX_BRIGHTNESS:
            raise ConfigValidationError(
                f"minimum_brightness must be within 1..{MAX_BRIGHTNESS}, got {self.minimum_brightness}"
            )
        if self.queue_capacity < 1:
            raise ConfigValidationError("queue capacity must be at least 1")
        if self.drain_spacing_s < 0:
            raise ConfigValidationError("drain spacing must not be negative")
        if self.http_timeout_s <= 0:
            raise ConfigValidationError("http timeout must be positive")


@dataclass(frozen=True)
class DimmerConfig:
    settings: ControllerSettings
    buttons: dict[LogicalButton, ButtonConfig]
