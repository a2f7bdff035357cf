"""Button controller: turns wall switch events into serialized light commands."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from dimctl.core.decoder import decode_payload, parse_payload
from dimctl.core.dispatcher import LightDispatcher
from dimctl.core.errors import ConfigValidationError
from dimctl.core.model import (
    ButtonConfig,
    ControllerSettings,
    CycleReport,
    DecodedEvent,
    DecodeFailure,
    LogicalButton,
    QueueItem,
    SensorEvent,
    describe_command,
)
from dimctl.core.policy import BrightnessPolicy
from dimctl.core.serializer import EventSerializer, Scheduler

LOGGER = logging.getLogger(__name__)

CycleListener = Callable[[CycleReport], None]


class ButtonController:
    def __init__(
        self,
        dispatcher: LightDispatcher,
        *,
        settings: ControllerSettings | None = None,
        buttons: Mapping[LogicalButton, ButtonConfig] | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or ControllerSettings()
        self._dispatcher = dispatcher
        self._policy = BrightnessPolicy(
            step_tables=self.settings.step_tables,
            minimum_brightness=self.settings.minimum_brightness,
        )
        self._buttons: dict[LogicalButton, ButtonConfig] = {}
        self._listeners: list[CycleListener] = []
        self._serializer = EventSerializer(
            self._handle_item,
            capacity=self.settings.queue_capacity,
            spacing_s=self.settings.drain_spacing_s,
            scheduler=scheduler,
            clock=clock,
        )
        for button, config in (buttons or {}).items():
            self.register_button(button, config)

    @property
    def serializer(self) -> EventSerializer:
        return self._serializer

    @property
    def buttons(self) -> Mapping[LogicalButton, ButtonConfig]:
        return dict(self._buttons)

    def register_button(self, button: LogicalButton | str, config: ButtonConfig) -> None:
        try:
            key = button if isinstance(button, LogicalButton) else LogicalButton.parse(button)
        except ValueError as exc:
            raise ConfigValidationError(f"Unknown button '{button}'") from exc
        if key in self._buttons:
            raise ConfigValidationError(f"Button '{key}' is already configured")
        self._buttons[key] = config
        LOGGER.debug("Registered %s -> %s channel %s via %s", key, config.device_id, config.channel_id, config.transport)

    def add_cycle_listener(self, listener: CycleListener) -> None:
        self._listeners.append(listener)

    def handle_event(self, event: SensorEvent | Mapping[str, Any]) -> bool:
        """Queue a sensor event if it comes from the configured component.

        Returns whether the event was queued. Call it from the running event loop.
        """
        if not isinstance(event, SensorEvent):
            event = SensorEvent.from_mapping(event)
        if event.source_component_id != self.settings.source_component:
            LOGGER.debug("Ignoring event from component %s", event.source_component_id)
            return False

        payload = parse_payload(event.payload)
        if payload is None:
            return False
        if "button" not in payload:
            LOGGER.debug("Ignoring event without button data: %r", payload)
            return False
        return self._serializer.enqueue(payload)

    async def wait_idle(self) -> None:
        await self._serializer.wait_idle()

    async def shutdown(self) -> None:
        await self._serializer.wait_idle()
        self._serializer.cancel_pending()

    async def run_once(self, event: DecodedEvent) -> CycleReport | None:
        """Run one drain cycle for an already decoded press, bypassing the queue."""
        config = self._buttons.get(event.button)
        if config is None:
            LOGGER.warning("No configuration found for button %s", event.button)
            return None
        return await self._run_cycle(event, config)

    def _handle_item(self, item: QueueItem) -> Awaitable[CycleReport] | None:
        decoded = decode_payload(item.payload)
        if isinstance(decoded, DecodeFailure):
            LOGGER.info("Skipping event: %s", decoded.reason)
            return None
        config = self._buttons.get(decoded.button)
        if config is None:
            LOGGER.warning("No configuration found for button %s", decoded.button)
            return None
        return self._run_cycle(decoded, config)

    async def _run_cycle(self, event: DecodedEvent, config: ButtonConfig) -> CycleReport:
        status = await self._dispatcher.get_status(config)
        if not status.ok:
            LOGGER.warning("Abandoning %s %s press: %s", event.button, event.action, status.error)
            report = CycleReport(event=event, config=config, status=status)
        else:
            command = self._policy.decide(event.button.direction, event.action, status.state)
            LOGGER.info(
                "%s %s on %s (on=%s brightness=%s) -> %s",
                event.button,
                event.action,
                config.device_id,
                status.state.is_on,
                status.state.brightness,
                describe_command(command),
            )
            result = await self._dispatcher.apply(config, command)
            report = CycleReport(event=event, config=config, status=status, command=command, result=result)
        self._notify(report)
        return report

    def _notify(self, report: CycleReport) -> None:
        for listener in self._listeners:
            try:
                listener(report)
            except Exception:
                LOGGER.exception("Cycle listener %r failed", listener)
