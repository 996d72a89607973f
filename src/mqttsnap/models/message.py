"""Inbound broker message."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """One PUBLISH received from the broker, as raw bytes."""

    topic: str
    payload: bytes

    def payload_text(self) -> str:
        """Payload decoded as UTF-8, replacing invalid sequences."""
        return self.payload.decode("utf-8", errors="replace")
