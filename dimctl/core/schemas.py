"""Access to the packaged JSON schemas."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any

from jsonschema import ValidationError, validators

BUTTON_PAYLOAD_SCHEMA = "button_payload.schema.json"
LIGHT_STATUS_SCHEMA = "light_status.schema.json"
CONFIG_SCHEMA = "config.schema.json"


@lru_cache(maxsize=None)
def load_validator(name: str) -> Any:
    schema_text = resources.files("dimctl.schemas").joinpath(name).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def describe_error(exc: ValidationError) -> str:
    path = ".".join(str(p) for p in exc.absolute_path)
    where = f" ({path})" if path else ""
    return f"{exc.message}{where}"
