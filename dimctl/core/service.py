"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import httpx

from dimctl.core.config_loader import load_config
from dimctl.core.controller import ButtonController, CycleListener
from dimctl.core.dispatcher import LightDispatcher
from dimctl.core.errors import ButtonResolutionError
from dimctl.core.model import (
    ButtonConfig,
    CycleReport,
    DecodedEvent,
    DeviceState,
    LogicalButton,
    PressAction,
    StatusResult,
    TransportKind,
)
from dimctl.transports.base import LightTransport
from dimctl.transports.http import HttpTransport
from dimctl.transports.local import LocalLightBus, LocalRpc, LocalTransport

LOGGER = logging.getLogger(__name__)


class DimmerService:
    def __init__(
        self,
        *,
        config_path: Path | str | None = None,
        local_bus: LocalRpc | None = None,
        http_client: httpx.AsyncClient | None = None,
        transports: Mapping[TransportKind, LightTransport] | None = None,
    ) -> None:
        loaded = load_config(config_path)
        self.config = loaded.config
        self.config_source = loaded.source
        self.load_warnings = loaded.warnings
        self.runtime_warnings = _runtime_warnings(self.config.buttons, local_bus, transports)

        self.http_transport = HttpTransport(client=http_client, timeout_s=self.config.settings.http_timeout_s)
        self.local_transport = LocalTransport(local_bus or LocalLightBus(_local_channels(self.config.buttons)))
        self.dispatcher = LightDispatcher(
            transports
            or {
                TransportKind.LOCAL: self.local_transport,
                TransportKind.HTTP: self.http_transport,
            }
        )

    def list_buttons(self) -> list[tuple[LogicalButton, ButtonConfig]]:
        order = list(LogicalButton)
        return sorted(self.config.buttons.items(), key=lambda item: order.index(item[0]))

    def resolve_button(self, name: str) -> tuple[LogicalButton, ButtonConfig]:
        try:
            button = LogicalButton.parse(name)
        except ValueError:
            valid = ", ".join(b.value for b in LogicalButton)
            raise ButtonResolutionError(f"Unknown button '{name}'. Valid buttons: {valid}") from None
        config = self.config.buttons.get(button)
        if config is None:
            raise ButtonResolutionError(f"Button '{button}' is not configured. Use 'dimctl buttons' to list buttons.")
        return button, config

    def build_controller(self, *, on_cycle: CycleListener | None = None) -> ButtonController:
        controller = ButtonController(
            self.dispatcher,
            settings=self.config.settings,
            buttons=self.config.buttons,
        )
        if on_cycle is not None:
            controller.add_cycle_listener(on_cycle)
        return controller

    async def status(self, button_name: str) -> tuple[LogicalButton, StatusResult]:
        button, config = self.resolve_button(button_name)
        return button, await self.dispatcher.get_status(config)

    async def press(self, button_name: str, action: PressAction = PressAction.SINGLE) -> CycleReport:
        button, _ = self.resolve_button(button_name)
        report = await self.build_controller().run_once(DecodedEvent(button=button, action=action))
        if report is None:
            raise ButtonResolutionError(f"Button '{button}' is not configured.")
        return report

    async def replay(
        self,
        events: Iterable[Mapping[str, Any]],
        *,
        on_cycle: CycleListener | None = None,
    ) -> tuple[list[CycleReport], int]:
        """Feed sensor events through the queue and wait for every cycle.

        Returns the cycle reports and the number of events that were queued.
        """
        reports: list[CycleReport] = []
        controller = self.build_controller(on_cycle=reports.append)
        if on_cycle is not None:
            controller.add_cycle_listener(on_cycle)

        queued = 0
        for event in events:
            if controller.handle_event(event):
                queued += 1
        await controller.shutdown()
        return reports, queued

    async def aclose(self) -> None:
        await self.http_transport.aclose()


def _local_channels(buttons: Mapping[LogicalButton, ButtonConfig]) -> dict[int, DeviceState]:
    channels = {config.channel_id for config in buttons.values() if config.transport is TransportKind.LOCAL}
    return {channel: DeviceState(brightness=50, is_on=False) for channel in sorted(channels or {0})}


def _runtime_warnings(
    buttons: Mapping[LogicalButton, ButtonConfig],
    local_bus: LocalRpc | None,
    transports: Mapping[TransportKind, LightTransport] | None,
) -> tuple[str, ...]:
    warnings: list[str] = []
    if local_bus is None and transports is None:
        if any(config.transport is TransportKind.LOCAL for config in buttons.values()):
            warnings.append("No local device bus attached; local buttons drive an in-process simulated light.")
    missing = [b.value for b in LogicalButton if b not in buttons]
    if missing:
        warnings.append(f"Presses on unconfigured buttons will be dropped: {', '.join(missing)}")
    return tuple(warnings)
