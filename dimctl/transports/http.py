"""HTTP transport implementation using the device RPC-over-GET endpoints."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from dimctl.core.errors import TransportConnectError, TransportResponseError, TransportTimeoutError
from dimctl.core.model import ButtonConfig, DeviceState
from dimctl.transports.base import parse_light_status

LOGGER = logging.getLogger(__name__)


class HttpTransport:
    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 5.0,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout_s = timeout_s

    async def get_status(self, config: ButtonConfig) -> DeviceState:
        response = await self._get(config, "Light.GetStatus", {"id": config.channel_id})
        try:
            body = response.json()
        except ValueError as exc:
            raise TransportResponseError(f"Light.GetStatus from {config.remote_address} is not JSON: {exc}") from exc
        return parse_light_status(body)

    async def set_light(
        self,
        config: ButtonConfig,
        *,
        on: bool,
        brightness: int | None = None,
    ) -> None:
        params: dict[str, Any] = {"on": "true" if on else "false"}
        if brightness is not None:
            params["brightness"] = brightness
        params["id"] = config.channel_id
        await self._get(config, "Light.Set", params)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self._client

    async def _get(self, config: ButtonConfig, method: str, params: dict[str, Any]) -> httpx.Response:
        url = f"http://{config.remote_address}/rpc/{method}"
        client = self._require_client()
        try:
            response = await client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise TransportTimeoutError(f"{method} to {config.remote_address} timed out") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportConnectError(f"{method} to {config.remote_address} failed: {exc}") from exc

        LOGGER.debug("GET %s -> %s", response.request.url, response.status_code)
        if response.is_error:
            raise TransportResponseError(
                f"{method} to {config.remote_address} returned HTTP {response.status_code}"
            )
        return response
