"""Transport interfaces."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Protocol

from jsonschema import ValidationError

from dimctl.core.errors import TransportResponseError
from dimctl.core.model import ButtonConfig, DeviceState
from dimctl.core.schemas import LIGHT_STATUS_SCHEMA, describe_error, load_validator


class LightTransport(Protocol):
    async def get_status(self, config: ButtonConfig) -> DeviceState:
        """Return the current brightness and power state of the configured channel."""

    async def set_light(
        self,
        config: ButtonConfig,
        *,
        on: bool,
        brightness: int | None = None,
    ) -> None:
        """Switch the configured channel and optionally set its brightness."""


def parse_light_status(body: Mapping[str, Any] | str | bytes) -> DeviceState:
    """Validate a Light.GetStatus body and convert it to a DeviceState."""
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except ValueError as exc:
            raise TransportResponseError(f"Light.GetStatus returned invalid JSON: {exc}") from exc

    try:
        load_validator(LIGHT_STATUS_SCHEMA).validate(body)
    except ValidationError as exc:
        raise TransportResponseError(f"Light.GetStatus returned unexpected body: {describe_error(exc)}") from exc

    return DeviceState(brightness=int(body["brightness"]), is_on=body["output"])
