"""Decoding of raw wall switch payloads into logical button presses."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from jsonschema import ValidationError

from dimctl.core.model import SLOT_ORDER, DecodedEvent, DecodeFailure, PressAction
from dimctl.core.schemas import BUTTON_PAYLOAD_SCHEMA, describe_error, load_validator

LOGGER = logging.getLogger(__name__)

IDLE = 0
HELD = 254
MAX_SLOT_CODE = 255

ACTION_CODES: dict[int, PressAction] = {
    1: PressAction.SINGLE,
    2: PressAction.DOUBLE,
    3: PressAction.TRIPLE,
    4: PressAction.LONG_PRESS,
}


def parse_payload(raw: Any) -> Mapping[str, Any] | None:
    """Return the payload as a mapping, parsing JSON text when needed."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            LOGGER.warning("Could not parse payload %r: %s", raw, exc)
            return None
    if not isinstance(raw, Mapping):
        LOGGER.warning("Payload is not an object: %r", raw)
        return None
    return raw


def decode_payload(raw: Any) -> DecodedEvent | DecodeFailure:
    """Decode a payload into the first actionable button press.

    Slots are scanned in ``SLOT_ORDER``; the first slot holding a known action
    code wins even if later slots are also active.
    """
    payload = parse_payload(raw)
    if payload is None:
        return DecodeFailure("payload is not a JSON object")

    try:
        load_validator(BUTTON_PAYLOAD_SCHEMA).validate(payload)
    except ValidationError as exc:
        reason = f"invalid button data: {describe_error(exc)}"
        LOGGER.warning("Dropping payload %r: %s", payload, reason)
        return DecodeFailure(reason)

    button = payload["button"]
    if isinstance(button, (int, float)):
        return _decode_index(int(button))
    return _decode_slots(button)


def _decode_index(index: int) -> DecodedEvent | DecodeFailure:
    if not 1 <= index <= len(SLOT_ORDER):
        LOGGER.warning("Invalid button index: %s", index)
        return DecodeFailure(f"button index {index} out of range")
    decoded = DecodedEvent(button=SLOT_ORDER[index - 1], action=PressAction.SINGLE)
    LOGGER.debug("Decoded legacy button index %s as %s", index, decoded)
    return decoded


def _decode_slots(slots: list[Any]) -> DecodedEvent | DecodeFailure:
    for button, state in zip(SLOT_ORDER, slots):
        if isinstance(state, bool) or not isinstance(state, int) or not 0 <= state <= MAX_SLOT_CODE:
            LOGGER.warning("Malformed button state %r on %s", state, button)
            continue
        if state in (IDLE, HELD):
            continue
        action = ACTION_CODES.get(state)
        if action is None:
            LOGGER.warning("Unrecognized button state %s on %s", state, button)
            continue
        decoded = DecodedEvent(button=button, action=action)
        LOGGER.debug("Decoded slots %s as %s", slots, decoded)
        return decoded
    LOGGER.debug("No actionable button press in %s", slots)
    return DecodeFailure("no actionable button press")
