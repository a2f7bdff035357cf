"""Local transport: calls the light RPC surface of the co-located device."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from dimctl.core.errors import TransportError, TransportResponseError
from dimctl.core.model import ButtonConfig, DeviceState
from dimctl.transports.base import parse_light_status

LOGGER = logging.getLogger(__name__)


class LocalRpc(Protocol):
    async def call(self, method: str, params: Mapping[str, Any]) -> Mapping[str, Any] | str | None:
        """Invoke an RPC method on the co-located device."""


class LocalTransport:
    def __init__(self, bus: LocalRpc) -> None:
        self._bus = bus

    async def get_status(self, config: ButtonConfig) -> DeviceState:
        params = {"id": config.channel_id}
        response = await self._call("Light.GetStatus", params)
        if response is None:
            raise TransportResponseError("Light.GetStatus returned no body")
        # Some firmware wraps the status as a JSON string under "body".
        if isinstance(response, Mapping) and "body" in response:
            response = response["body"]
        return parse_light_status(response)

    async def set_light(
        self,
        config: ButtonConfig,
        *,
        on: bool,
        brightness: int | None = None,
    ) -> None:
        params: dict[str, Any] = {"id": config.channel_id, "on": on}
        if brightness is not None:
            params["brightness"] = brightness
        await self._call("Light.Set", params)

    async def _call(self, method: str, params: Mapping[str, Any]) -> Mapping[str, Any] | str | None:
        LOGGER.debug("Local %s %s", method, dict(params))
        try:
            return await self._bus.call(method, params)
        except TransportError:
            raise
        except Exception as exc:
            raise TransportResponseError(f"Local {method} failed: {exc}") from exc


class LocalLightBus:
    """In-process light with one or more dimmable channels.

    Answers the same ``Light.GetStatus``/``Light.Set`` calls as the device
    firmware, which makes it usable as the local bus on hosts without one.
    """

    def __init__(self, channels: Mapping[int, DeviceState] | None = None) -> None:
        self.channels: dict[int, DeviceState] = dict(channels or {0: DeviceState(brightness=50, is_on=False)})
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def call(self, method: str, params: Mapping[str, Any]) -> Mapping[str, Any]:
        self.calls.append((method, dict(params)))
        channel = params.get("id")
        if channel not in self.channels:
            raise TransportResponseError(f"No light channel with id {channel!r}")

        if method == "Light.GetStatus":
            state = self.channels[channel]
            return {"id": channel, "output": state.is_on, "brightness": state.brightness}
        if method == "Light.Set":
            current = self.channels[channel]
            brightness = params.get("brightness", current.brightness)
            self.channels[channel] = DeviceState(brightness=int(brightness), is_on=bool(params.get("on", current.is_on)))
            return {"was_on": current.is_on}
        raise TransportResponseError(f"Unsupported method '{method}'")
