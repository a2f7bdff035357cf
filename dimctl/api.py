"""Stable public API for building tooling on top of dimctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import httpx

from dimctl.core.controller import ButtonController, CycleListener
from dimctl.core.decoder import decode_payload
from dimctl.core.errors import (
    ButtonResolutionError,
    ConfigLoadError,
    ConfigValidationError,
    DimctlError,
    TransportConnectError,
    TransportError,
    TransportResponseError,
    TransportTimeoutError,
)
from dimctl.core.model import (
    ButtonConfig,
    CommandResult,
    ControllerSettings,
    CycleReport,
    DecodedEvent,
    DecodeFailure,
    DeviceState,
    Direction,
    LightCommand,
    LogicalButton,
    PressAction,
    SensorEvent,
    SetBrightness,
    StatusResult,
    StepTables,
    TransportKind,
    TurnOff,
    TurnOn,
)
from dimctl.core.policy import BrightnessPolicy, next_higher_step, next_lower_step
from dimctl.core.service import DimmerService
from dimctl.transports.base import LightTransport
from dimctl.transports.local import LocalLightBus, LocalRpc

__all__ = [
    "DimctlError",
    "ConfigLoadError",
    "ConfigValidationError",
    "ButtonResolutionError",
    "TransportError",
    "TransportConnectError",
    "TransportTimeoutError",
    "TransportResponseError",
    "ButtonConfig",
    "CommandResult",
    "ControllerSettings",
    "CycleReport",
    "DecodedEvent",
    "DecodeFailure",
    "DeviceState",
    "Direction",
    "LightCommand",
    "LogicalButton",
    "PressAction",
    "SensorEvent",
    "SetBrightness",
    "StatusResult",
    "StepTables",
    "TransportKind",
    "TurnOff",
    "TurnOn",
    "BrightnessPolicy",
    "ButtonController",
    "LocalLightBus",
    "next_higher_step",
    "next_lower_step",
    "Client",
]


class Client:
    """Public client for interacting with dimctl core capabilities.

    A `Client` wraps configuration loading, transport setup and the button
    controller behind a stable API intended for third-party tools
    (home automation bridges, services, scripts).
    """

    def __init__(
        self,
        *,
        config_path: Path | str | None = None,
        local_bus: LocalRpc | None = None,
        http_client: httpx.AsyncClient | None = None,
        transports: Mapping[TransportKind, LightTransport] | None = None,
    ) -> None:
        self._service = DimmerService(
            config_path=config_path,
            local_bus=local_bus,
            http_client=http_client,
            transports=transports,
        )

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def runtime_warnings(self) -> tuple[str, ...]:
        return self._service.runtime_warnings

    @property
    def settings(self) -> ControllerSettings:
        return self._service.config.settings

    def list_buttons(self) -> list[tuple[LogicalButton, ButtonConfig]]:
        return self._service.list_buttons()

    def decode(self, payload: Any) -> DecodedEvent | DecodeFailure:
        return decode_payload(payload)

    def controller(self, *, on_cycle: CycleListener | None = None) -> ButtonController:
        """Build a controller whose ``handle_event`` can be wired to a sensor feed."""
        return self._service.build_controller(on_cycle=on_cycle)

    async def get_status(self, button: str) -> StatusResult:
        _, status = await self._service.status(button)
        return status

    async def press(self, button: str, action: PressAction | str = PressAction.SINGLE) -> CycleReport:
        return await self._service.press(button, PressAction(action))

    async def replay(self, events: Iterable[Mapping[str, Any]]) -> list[CycleReport]:
        reports, _ = await self._service.replay(events)
        return reports

    async def aclose(self) -> None:
        await self._service.aclose()
