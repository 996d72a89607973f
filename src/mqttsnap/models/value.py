"""Classified topic values.

A topic value is one of three variants:

* :class:`TextValue` - the payload was not recognised as structured JSON.
* :class:`ObjectValue` - the payload is a single JSON object.
* :class:`ObjectArrayValue` - the payload is a JSON array of objects.

Internally each variant carries a ``kind`` discriminant so code can branch
on it. On the wire the discriminant is dropped: :meth:`untagged` returns the
bare value, so a snapshot looks exactly like the JSON that was published
(or a string for anything else).
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ValueKind(StrEnum):
    TEXT = "text"
    OBJECT = "object"
    OBJECT_ARRAY = "object_array"


class _TopicValueBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    value: Any

    def untagged(self) -> Any:
        """Return the bare value without its ``kind`` discriminant."""
        return self.value


class TextValue(_TopicValueBase):
    kind: Literal[ValueKind.TEXT] = ValueKind.TEXT
    value: str


class ObjectValue(_TopicValueBase):
    kind: Literal[ValueKind.OBJECT] = ValueKind.OBJECT
    value: dict[str, Any]


class ObjectArrayValue(_TopicValueBase):
    kind: Literal[ValueKind.OBJECT_ARRAY] = ValueKind.OBJECT_ARRAY
    value: list[dict[str, Any]]


TopicValue = Annotated[
    TextValue | ObjectValue | ObjectArrayValue,
    Field(discriminator="kind"),
]
"""Tagged union of the three classified payload shapes."""
