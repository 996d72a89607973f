"""Data models for mqttsnap."""

from mqttsnap.models.message import InboundMessage
from mqttsnap.models.value import (
    ObjectArrayValue,
    ObjectValue,
    TextValue,
    TopicValue,
    ValueKind,
)

__all__ = [
    "InboundMessage",
    "ObjectArrayValue",
    "ObjectValue",
    "TextValue",
    "TopicValue",
    "ValueKind",
]
