"""Brightness policy: maps a press and the current device state to a command."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from dimctl.core.model import (
    MAX_BRIGHTNESS,
    DeviceState,
    Direction,
    LightCommand,
    PressAction,
    SetBrightness,
    StepTables,
    TurnOff,
    TurnOn,
)

DEFAULT_MINIMUM_BRIGHTNESS = 3


def next_higher_step(current: int, steps: Sequence[int]) -> int:
    for step in steps:
        if step > current:
            return step
    return steps[-1]


def next_lower_step(current: int, steps: Sequence[int]) -> int:
    for step in reversed(steps):
        if step < current:
            return step
    return 0


@dataclass(frozen=True)
class BrightnessPolicy:
    step_tables: StepTables = field(default_factory=StepTables)
    minimum_brightness: int = DEFAULT_MINIMUM_BRIGHTNESS

    def decide(self, direction: Direction, action: PressAction, state: DeviceState) -> LightCommand:
        if direction is Direction.UP:
            return self._brighten(action, state)
        return self._dim(action, state)

    def _brighten(self, action: PressAction, state: DeviceState) -> LightCommand:
        if not state.is_on:
            # Device restores its own remembered level.
            return TurnOn()
        if action is PressAction.LONG_PRESS:
            return SetBrightness(MAX_BRIGHTNESS)
        return SetBrightness(next_higher_step(state.brightness, self.step_tables.for_action(action)))

    def _dim(self, action: PressAction, state: DeviceState) -> LightCommand:
        if not state.is_on:
            if state.brightness < self.minimum_brightness:
                return SetBrightness(self.minimum_brightness)
            return TurnOn()
        if action is PressAction.LONG_PRESS:
            return TurnOff()
        target = next_lower_step(state.brightness, self.step_tables.for_action(action))
        if target <= 0:
            return TurnOff()
        return SetBrightness(target)


_DEFAULT_POLICY = BrightnessPolicy()


def decide(direction: Direction, action: PressAction, is_on: bool, brightness: int) -> LightCommand:
    """Decide with the default step tables and minimum brightness."""
    return _DEFAULT_POLICY.decide(direction, action, DeviceState(brightness=brightness, is_on=is_on))
