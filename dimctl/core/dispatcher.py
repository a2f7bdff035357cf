"""Uniform light operations over the configured transports."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from dimctl.core.errors import TransportError
from dimctl.core.model import (
    UNKNOWN_STATE,
    ButtonConfig,
    CommandResult,
    LightCommand,
    SetBrightness,
    StatusResult,
    TransportKind,
    TurnOff,
    TurnOn,
    describe_command,
)
from dimctl.transports.base import LightTransport

LOGGER = logging.getLogger(__name__)


class LightDispatcher:
    """Routes light operations to the transport a button is configured for.

    Transport failures never propagate: status queries fall back to
    ``UNKNOWN_STATE`` and every result carries the error instead.
    """

    def __init__(self, transports: Mapping[TransportKind, LightTransport]) -> None:
        self._transports = dict(transports)

    async def get_status(self, config: ButtonConfig) -> StatusResult:
        try:
            state = await self._transport_for(config).get_status(config)
        except TransportError as exc:
            LOGGER.warning("Status query for %s failed: %s", _describe(config), exc)
            return StatusResult(state=UNKNOWN_STATE, error=exc)
        LOGGER.info(
            "Status of %s: on=%s brightness=%s", _describe(config), state.is_on, state.brightness
        )
        return StatusResult(state=state)

    async def turn_on(self, config: ButtonConfig) -> CommandResult:
        return await self.apply(config, TurnOn())

    async def turn_off(self, config: ButtonConfig) -> CommandResult:
        return await self.apply(config, TurnOff())

    async def set_brightness(self, config: ButtonConfig, value: int) -> CommandResult:
        return await self.apply(config, SetBrightness(value))

    async def apply(self, config: ButtonConfig, command: LightCommand) -> CommandResult:
        if isinstance(command, SetBrightness):
            on, brightness = command.value != 0, command.value
        else:
            on, brightness = isinstance(command, TurnOn), None

        try:
            await self._transport_for(config).set_light(config, on=on, brightness=brightness)
        except TransportError as exc:
            LOGGER.warning("Command %s for %s failed: %s", describe_command(command), _describe(config), exc)
            return CommandResult(command=command, error=exc)
        LOGGER.info("Sent %s to %s", describe_command(command), _describe(config))
        return CommandResult(command=command)

    def _transport_for(self, config: ButtonConfig) -> LightTransport:
        transport = self._transports.get(config.transport)
        if transport is None:
            raise TransportError(f"No transport registered for '{config.transport}'")
        return transport


def _describe(config: ButtonConfig) -> str:
    if config.transport is TransportKind.HTTP:
        return f"{config.device_id}[{config.channel_id}]@{config.remote_address}"
    return f"{config.device_id}[{config.channel_id}]"
