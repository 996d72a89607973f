"""Payload classification.

Turns raw MQTT payload bytes into a :data:`~mqttsnap.models.TopicValue`.
Classification never fails: anything that is not an object or an array of
objects is kept as (lossily decoded) text.
"""

from __future__ import annotations

import json
from typing import Any

from mqttsnap.models.value import ObjectArrayValue, ObjectValue, TextValue, TopicValue

_ARRAY_START = b"["


def _reject_constant(name: str) -> Any:
    # Python's json accepts NaN/Infinity, strict JSON does not.
    raise ValueError(f"Non-standard JSON constant {name}")


def _loads_strict(text: str) -> Any:
    parsed = json.loads(text, parse_constant=_reject_constant)
    # Lone surrogate escapes ("\ud800") decode but cannot be encoded as UTF-8.
    json.dumps(parsed, ensure_ascii=False).encode("utf-8")
    return parsed


def _parse_object_array(text: str) -> list[dict[str, Any]] | None:
    try:
        parsed = _loads_strict(text)
    except (ValueError, RecursionError):
        return None
    if not isinstance(parsed, list):
        return None
    if not all(isinstance(item, dict) for item in parsed):
        return None
    return parsed


def _parse_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = _loads_strict(text)
    except (ValueError, RecursionError):
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def classify(payload: bytes) -> TopicValue:
    """Classify *payload* as an object array, an object, or text.

    The branch is chosen from the first byte only. A payload starting with
    ``[`` is either an array of objects or text, so ``[1,2,3]`` is kept as
    the string ``"[1,2,3]"`` even though it is valid JSON.
    """
    text = payload.decode("utf-8", errors="replace")

    if payload[:1] == _ARRAY_START:
        items = _parse_object_array(text)
        if items is not None:
            return ObjectArrayValue(value=items)
        return TextValue(value=text)

    obj = _parse_object(text)
    if obj is not None:
        return ObjectValue(value=obj)
    return TextValue(value=text)
